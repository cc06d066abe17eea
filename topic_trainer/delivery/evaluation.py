"""
Evaluation port: scores a free-text answer against the reference answer.

The evaluator is external (an LLM behind HTTP in production). It may fail
(EvaluationError) or be cancelled (EvaluationCancelled); either way no
scheduling update happens.
"""

from __future__ import annotations

import json
import re
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from topic_trainer.core.errors import EvaluationError

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class Evaluation(BaseModel):
    """Evaluator verdict: 0 = completely wrong, 10 = perfect."""

    score: float = Field(ge=0, le=10)
    feedback: str = ""


@runtime_checkable
class Evaluator(Protocol):
    async def evaluate(
        self, question_text: str, correct_answer: str, user_answer: str
    ) -> Evaluation: ...


EVALUATION_PROMPT = """Question: {question}
Correct Answer: {correct_answer}
User Answer: {user_answer}

Evaluate the user's answer.
1. Give a score from 0 to 10 (0 = completely wrong, 10 = perfect).
2. Provide brief feedback explaining the score and correcting any mistakes.

Return JSON: {{ "score": number, "feedback": "string" }}
"""


def build_evaluation_prompt(question_text: str, correct_answer: str, user_answer: str) -> str:
    return EVALUATION_PROMPT.format(
        question=question_text,
        correct_answer=correct_answer,
        user_answer=user_answer,
    )


def parse_evaluation(content: str | None) -> Evaluation:
    """
    Parse the evaluator's JSON reply, tolerating markdown code fences.

    Raises:
        EvaluationError: empty, non-JSON or out-of-range reply
    """
    if not content or not content.strip():
        raise EvaluationError("evaluator returned an empty reply")

    cleaned = _FENCE_RE.sub("", content.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise EvaluationError(f"evaluator reply is not JSON: {content[:200]}") from e

    if not isinstance(data, dict):
        raise EvaluationError(f"evaluator reply is not a JSON object: {content[:200]}")

    try:
        return Evaluation.model_validate(data)
    except PydanticValidationError as e:
        raise EvaluationError(f"evaluator reply has an invalid score: {data.get('score')!r}") from e
