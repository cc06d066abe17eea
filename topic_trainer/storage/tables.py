"""
SQLAlchemy table models for the SQL storage adapter.

The ``seq`` columns record insertion order so that category trees and
session tie-breaks stay stable across reloads.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, Index, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all trainer tables."""


class CategoryRow(Base):
    """A category of the forest; parent_id may dangle."""

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    parent_id: Mapped[str | None] = mapped_column(Text, index=True)


class QuestionRow(Base):
    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    correct_answer: Mapped[str] = mapped_column(Text, nullable=False)
    difficulty: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    category_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    next_review_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    interval: Mapped[int] = mapped_column("interval_days", Integer, nullable=False, default=0)
    repetition_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)


class QuestionTagRow(Base):
    """Multi-entry tag index: one row per (question, tag)."""

    __tablename__ = "question_tags"

    question_id: Mapped[str] = mapped_column(Text, primary_key=True)
    tag: Mapped[str] = mapped_column(Text, primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (Index("idx_question_tags_tag", "tag"),)


class AttemptRow(Base):
    """Append-only attempt history; question_id may reference a deleted question."""

    __tablename__ = "attempts"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    question_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    user_answer: Mapped[str] = mapped_column(Text, nullable=False, default="")
    ai_score: Mapped[float] = mapped_column(Float, nullable=False)
    ai_feedback: Mapped[str] = mapped_column(Text, nullable=False, default="")
    duration: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
