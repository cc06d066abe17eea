"""Command-line interface for the trainer."""

from .main import app, main

__all__ = ["app", "main"]
