"""
Tool Registry: the fixed operation set an automated agent may call.

Each tool maps onto one ContentGraph operation and returns a small
JSON-shaped dict. Trainer errors come back as ``{"error": ..., "kind": ...}``
so the agent can read them and try again.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from topic_trainer.core.errors import TrainerError, ValidationError
from topic_trainer.graph.content_graph import ContentGraph

ToolHandler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]

# Wire name -> Question field
_QUESTION_FIELDS = {
    "text": "text",
    "correctAnswer": "correct_answer",
    "difficulty": "difficulty",
    "tags": "tags",
    "categoryId": "category_id",
}


def _function(name: str, description: str, properties: dict[str, Any], required: list[str] | None = None) -> dict[str, Any]:
    parameters: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        parameters["required"] = required
    return {
        "type": "function",
        "function": {"name": name, "description": description, "parameters": parameters},
    }


TOOL_SCHEMAS: list[dict[str, Any]] = [
    _function(
        "create_category",
        "Create a new category for questions",
        {
            "name": {"type": "string", "description": "Name of the category"},
            "parentId": {
                "type": "string",
                "description": "ID of the parent category (optional)",
                "nullable": True,
            },
        },
        ["name"],
    ),
    _function(
        "update_category",
        "Rename and/or move an existing category",
        {
            "id": {"type": "string", "description": "ID of the category to update"},
            "name": {"type": "string", "description": "New name (optional)"},
            "parentId": {
                "type": "string",
                "description": "New parent ID, null for top level (optional)",
                "nullable": True,
            },
        },
        ["id"],
    ),
    _function(
        "delete_category",
        "Delete a category. Non-empty categories need cascade=true, which also "
        "deletes every subcategory and question below it",
        {
            "id": {"type": "string", "description": "ID of the category to delete"},
            "cascade": {
                "type": "boolean",
                "description": "Confirm deletion of subcategories and questions",
            },
        },
        ["id"],
    ),
    _function(
        "get_categories",
        "Get list of existing categories to find IDs",
        {},
    ),
    _function(
        "create_question",
        "Create a new question",
        {
            "text": {"type": "string", "description": "The question text (Markdown supported)"},
            "correctAnswer": {
                "type": "string",
                "description": "The correct answer (Markdown supported)",
            },
            "difficulty": {"type": "number", "description": "Difficulty level 1-5"},
            "tags": {"type": "array", "items": {"type": "string"}, "description": "List of tags"},
            "categoryId": {
                "type": "string",
                "description": "ID of the category this question belongs to",
            },
        },
        ["text", "correctAnswer", "difficulty", "categoryId"],
    ),
    _function(
        "update_question",
        "Update an existing question",
        {
            "id": {"type": "string", "description": "ID of the question to update"},
            "text": {"type": "string", "description": "New text (optional)"},
            "correctAnswer": {"type": "string", "description": "New correct answer (optional)"},
            "difficulty": {"type": "number", "description": "New difficulty (optional)"},
            "tags": {
                "type": "array",
                "items": {"type": "string"},
                "description": "New tags (optional)",
            },
            "categoryId": {"type": "string", "description": "New category ID (optional)"},
        },
        ["id"],
    ),
    _function(
        "delete_question",
        "Delete a question",
        {"id": {"type": "string", "description": "ID of the question to delete"}},
        ["id"],
    ),
    _function(
        "get_questions",
        "Get list of questions (optionally filtered by category)",
        {
            "categoryId": {"type": "string", "description": "Filter by category ID (optional)"},
            "limit": {
                "type": "number",
                "description": "Max number of questions to return (default 20)",
            },
        },
    ),
]


def _require(args: dict[str, Any], key: str) -> Any:
    if args.get(key) is None:
        raise ValidationError(f"missing required argument: {key}")
    return args[key]


class ToolRegistry:
    """Dispatches agent tool calls onto a ContentGraph."""

    def __init__(self, graph: ContentGraph, question_limit: int = 20):
        self.graph = graph
        self.question_limit = question_limit
        self._handlers: dict[str, ToolHandler] = {
            "create_category": self.create_category,
            "update_category": self.update_category,
            "delete_category": self.delete_category,
            "get_categories": self.get_categories,
            "create_question": self.create_question,
            "update_question": self.update_question,
            "delete_question": self.delete_question,
            "get_questions": self.get_questions,
        }

    @property
    def names(self) -> list[str]:
        return list(self._handlers)

    def schemas(self) -> list[dict[str, Any]]:
        """OpenAI-style function definitions for the chat request."""
        return TOOL_SCHEMAS

    async def call(self, name: str, arguments: dict[str, Any] | str | None) -> dict[str, Any]:
        """
        Run one tool call.

        Args:
            name: Tool name
            arguments: Parsed arguments or the raw JSON string from the model

        Returns:
            Result dict, or an error object for unknown tools, bad arguments
            and trainer errors
        """
        handler = self._handlers.get(name)
        if handler is None:
            return {"error": f"unknown tool: {name}", "kind": "unknown_tool"}

        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments) if arguments.strip() else {}
            except json.JSONDecodeError as e:
                return {"error": f"arguments are not valid JSON: {e}", "kind": "validation"}
        arguments = arguments or {}
        if not isinstance(arguments, dict):
            return {"error": "arguments must be a JSON object", "kind": "validation"}

        try:
            result = await handler(arguments)
        except TrainerError as e:
            logger.info(f"Tool {name} failed: {e}")
            return e.to_dict()

        logger.debug(f"Tool {name} succeeded")
        return result

    # =========================================================================
    # Categories
    # =========================================================================

    async def create_category(self, args: dict[str, Any]) -> dict[str, Any]:
        category = await self.graph.add_category(_require(args, "name"), args.get("parentId"))
        return category.to_dict()

    async def update_category(self, args: dict[str, Any]) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        if "name" in args and args["name"] is not None:
            changes["name"] = args["name"]
        if "parentId" in args:
            changes["parent_id"] = args["parentId"] or None
        category = await self.graph.edit_category(_require(args, "id"), **changes)
        return category.to_dict()

    async def delete_category(self, args: dict[str, Any]) -> dict[str, Any]:
        removal = await self.graph.remove_category(
            _require(args, "id"), cascade=bool(args.get("cascade", False))
        )
        return {"success": True, **removal.to_dict()}

    async def get_categories(self, args: dict[str, Any]) -> dict[str, Any]:
        return {
            "categories": [
                {**c.to_dict(), "path": self.graph.path_of(c.id)} for c in self.graph.categories()
            ]
        }

    # =========================================================================
    # Questions
    # =========================================================================

    async def create_question(self, args: dict[str, Any]) -> dict[str, Any]:
        question = await self.graph.add_question(
            text=_require(args, "text"),
            correct_answer=_require(args, "correctAnswer"),
            category_id=_require(args, "categoryId"),
            difficulty=_require(args, "difficulty"),
            tags=args.get("tags") or [],
        )
        return question.to_dict()

    async def update_question(self, args: dict[str, Any]) -> dict[str, Any]:
        changes = {
            field: args[wire]
            for wire, field in _QUESTION_FIELDS.items()
            if wire in args and args[wire] is not None
        }
        question = await self.graph.edit_question(_require(args, "id"), **changes)
        return question.to_dict()

    async def delete_question(self, args: dict[str, Any]) -> dict[str, Any]:
        question = await self.graph.remove_question(_require(args, "id"))
        return {"success": True, "id": question.id}

    async def get_questions(self, args: dict[str, Any]) -> dict[str, Any]:
        limit = args.get("limit")
        if limit is None:
            limit = self.question_limit
        if isinstance(limit, bool) or not isinstance(limit, (int, float)) or limit < 1:
            raise ValidationError(f"limit must be a positive number, got {limit!r}")

        category_id = args.get("categoryId")
        if category_id:
            questions = self.graph.questions_in(category_id)
        else:
            questions = self.graph.questions()

        return {
            "questions": [q.to_dict() for q in questions[: int(limit)]],
            "total": len(questions),
        }
