"""
Integrations: external collaborators of the trainer core.

Components:
- OpenRouterClient: chat completions over HTTP (evaluation + agent chat)
- ToolRegistry: fixed tool contract mapping onto ContentGraph operations
- TutorAgent: bounded tool-calling loop
"""

from .agent import AgentReply, TutorAgent
from .openrouter_client import OpenRouterClient, OpenRouterError
from .tools import TOOL_SCHEMAS, ToolRegistry

__all__ = [
    "OpenRouterClient",
    "OpenRouterError",
    "ToolRegistry",
    "TOOL_SCHEMAS",
    "TutorAgent",
    "AgentReply",
]
