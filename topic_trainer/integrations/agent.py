"""
Tutor Agent: bounded tool-calling loop around a chat model.

The model may answer with tool calls; each call is executed through the
ToolRegistry (the only way the agent can touch the ContentGraph) and the
JSON result is fed back. The loop ends on a plain assistant reply or fails
with AgentLoopError after ``max_tool_rounds`` tool-calling replies.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Protocol

from loguru import logger

from topic_trainer.core.errors import AgentLoopError

from .tools import ToolRegistry

SYSTEM_PROMPT = """You are a study assistant helping {user_name} build a question bank
for spaced-repetition review.

You can create, update and delete categories and questions with the provided tools.
- Call get_categories first to look up category IDs; never invent IDs.
- Questions need text, a correct answer (Markdown allowed), a difficulty from 1 to 5
  and a category ID. Add short topical tags.
- Deleting a non-empty category requires cascade=true; ask the user before doing that.
- When a tool returns an error, read it and correct the call.

Reply in plain text once the work is done, summarizing what changed.
"""


class ChatPort(Protocol):
    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]: ...


@dataclass
class AgentReply:
    """Final assistant message plus what happened on the way."""

    message: dict[str, Any]
    transcript: list[dict[str, Any]] = field(default_factory=list)
    tool_calls: int = 0

    @property
    def content(self) -> str:
        return self.message.get("content") or ""


class TutorAgent:
    """Runs chat turns, executing tool calls until a plain reply arrives."""

    def __init__(
        self,
        chat: ChatPort,
        tools: ToolRegistry,
        max_tool_rounds: int = 8,
        user_name: str = "User",
    ):
        self.chat = chat
        self.tools = tools
        self.max_tool_rounds = max_tool_rounds
        self.history: list[dict[str, Any]] = [
            {"role": "system", "content": SYSTEM_PROMPT.format(user_name=user_name)}
        ]

    async def ask(self, text: str) -> AgentReply:
        """Send a user message, keeping the conversation in ``history``."""
        reply = await self.run([*self.history, {"role": "user", "content": text}])
        self.history = reply.transcript
        return reply

    async def run(self, messages: list[dict[str, Any]]) -> AgentReply:
        """
        Drive the tool loop for ``messages``.

        Raises:
            AgentLoopError: the model kept calling tools past the round limit
        """
        transcript = list(messages)
        tool_calls_made = 0
        schemas = self.tools.schemas()

        for round_number in range(self.max_tool_rounds + 1):
            message = await self.chat.chat(transcript, tools=schemas)
            tool_calls = message.get("tool_calls") or []

            if not tool_calls:
                transcript.append(message)
                return AgentReply(message=message, transcript=transcript, tool_calls=tool_calls_made)

            if round_number == self.max_tool_rounds:
                break

            transcript.append(message)
            for call in tool_calls:
                function = call.get("function") or {}
                name = function.get("name", "")
                result = await self.tools.call(name, function.get("arguments"))
                tool_calls_made += 1
                transcript.append(
                    {
                        "role": "tool",
                        "tool_call_id": call.get("id"),
                        "name": name,
                        "content": json.dumps(result),
                    }
                )
            logger.debug(f"Agent round {round_number + 1}: {len(tool_calls)} tool calls")

        raise AgentLoopError(
            f"agent still requesting tools after {self.max_tool_rounds} rounds"
        )
