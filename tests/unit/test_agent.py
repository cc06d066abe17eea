"""
Unit tests for the TutorAgent tool loop.

The chat model is scripted; tools run against an in-memory graph.
"""

import json

import pytest

from topic_trainer.core.errors import AgentLoopError
from topic_trainer.integrations.agent import TutorAgent
from topic_trainer.integrations.tools import ToolRegistry


def tool_call(call_id, name, arguments):
    return {
        "id": call_id,
        "type": "function",
        "function": {"name": name, "arguments": json.dumps(arguments)},
    }


class ScriptedChat:
    """Replays canned assistant messages and records what it was sent."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.requests = []

    async def chat(self, messages, tools=None):
        self.requests.append((list(messages), tools))
        return self.replies.pop(0)


class LoopingChat:
    """Always asks for another tool call."""

    def __init__(self):
        self.calls = 0

    async def chat(self, messages, tools=None):
        self.calls += 1
        return {
            "role": "assistant",
            "content": None,
            "tool_calls": [tool_call(f"c{self.calls}", "get_categories", {})],
        }


class TestTutorAgent:
    @pytest.mark.asyncio
    async def test_plain_reply(self, graph):
        chat = ScriptedChat([{"role": "assistant", "content": "Hello!"}])
        agent = TutorAgent(chat, ToolRegistry(graph), user_name="Sam")

        reply = await agent.ask("hi")

        assert reply.content == "Hello!"
        assert reply.tool_calls == 0
        messages, tools = chat.requests[0]
        assert "Sam" in messages[0]["content"]
        assert messages[-1] == {"role": "user", "content": "hi"}
        assert len(tools) == 8

    @pytest.mark.asyncio
    async def test_tool_round_then_reply(self, graph):
        chat = ScriptedChat(
            [
                {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [tool_call("c1", "create_category", {"name": "Routing"})],
                },
                {"role": "assistant", "content": "Created Routing."},
            ]
        )
        agent = TutorAgent(chat, ToolRegistry(graph))

        reply = await agent.ask("make a Routing category")

        assert reply.content == "Created Routing."
        assert reply.tool_calls == 1
        assert [c.name for c in graph.categories()] == ["Routing"]

        tool_message = chat.requests[1][0][-1]
        assert tool_message["role"] == "tool"
        assert tool_message["tool_call_id"] == "c1"
        assert json.loads(tool_message["content"])["name"] == "Routing"

    @pytest.mark.asyncio
    async def test_tool_errors_are_fed_back(self, graph):
        chat = ScriptedChat(
            [
                {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [tool_call("c1", "delete_question", {"id": "missing"})],
                },
                {"role": "assistant", "content": "That question does not exist."},
            ]
        )
        agent = TutorAgent(chat, ToolRegistry(graph))

        await agent.ask("delete it")

        result = json.loads(chat.requests[1][0][-1]["content"])
        assert result["kind"] == "not_found"

    @pytest.mark.asyncio
    async def test_history_carries_over(self, graph):
        chat = ScriptedChat(
            [
                {"role": "assistant", "content": "first"},
                {"role": "assistant", "content": "second"},
            ]
        )
        agent = TutorAgent(chat, ToolRegistry(graph))

        await agent.ask("one")
        await agent.ask("two")

        sent = chat.requests[1][0]
        assert [m["role"] for m in sent] == ["system", "user", "assistant", "user"]
        assert len(agent.history) == 5

    @pytest.mark.asyncio
    async def test_round_limit(self, graph):
        chat = LoopingChat()
        agent = TutorAgent(chat, ToolRegistry(graph), max_tool_rounds=3)

        with pytest.raises(AgentLoopError):
            await agent.ask("loop forever")

        assert chat.calls == 4
        assert len(agent.history) == 1
