"""
OpenRouter API client for answer evaluation and agent chat.

Talks to the OpenAI-compatible chat-completions endpoint. Timeouts, network
errors and 5xx responses are retried with exponential backoff; 4xx
responses are raised immediately.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from loguru import logger

from topic_trainer.config import Settings
from topic_trainer.core.errors import EvaluationError, TrainerError
from topic_trainer.delivery.evaluation import (
    Evaluation,
    build_evaluation_prompt,
    parse_evaluation,
)

APP_TITLE = "Topic Trainer"


class OpenRouterError(TrainerError):
    """The chat-completions request failed or returned an unusable body."""

    kind = "upstream"


class OpenRouterClient:
    """HTTP client for OpenRouter chat completions."""

    def __init__(
        self,
        api_key: str,
        model: str = "google/gemini-2.0-flash-exp",
        base_url: str = "https://openrouter.ai/api/v1",
        timeout_seconds: float = 60.0,
        retry_attempts: int = 3,
    ):
        """
        Initialize OpenRouter client.

        Args:
            api_key: OpenRouter API key
            model: Model identifier
            base_url: API base URL
            timeout_seconds: Request timeout
            retry_attempts: Attempts on timeouts, network errors and 5xx
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.retry_attempts = retry_attempts
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=True,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> OpenRouterClient:
        return cls(
            api_key=settings.openrouter_api_key,
            model=settings.openrouter_model,
            base_url=settings.openrouter_base_url,
            timeout_seconds=settings.openrouter_timeout_seconds,
            retry_attempts=settings.openrouter_retry_attempts,
        )

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> OpenRouterClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": APP_TITLE,
        }

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        """
        POST to /chat/completions with retry logic.

        Raises:
            OpenRouterError: missing key, 4xx, malformed body, or retries exhausted
        """
        if not self.api_key:
            raise OpenRouterError("OpenRouter API key not configured")

        url = f"{self.base_url}/chat/completions"
        last_error: Exception | None = None

        for attempt in range(self.retry_attempts):
            try:
                response = await self.client.post(url, json=payload, headers=self._headers())
                response.raise_for_status()
                return response.json()

            except httpx.TimeoutException as e:
                last_error = e
                wait_time = 2 ** attempt  # Exponential backoff: 1s, 2s, 4s
                logger.warning(
                    f"OpenRouter timeout on attempt {attempt + 1}/{self.retry_attempts}. "
                    f"Retrying in {wait_time}s..."
                )
                if attempt < self.retry_attempts - 1:
                    await asyncio.sleep(wait_time)

            except httpx.HTTPStatusError as e:
                last_error = e
                if e.response.status_code >= 500:
                    wait_time = 2 ** attempt
                    logger.warning(
                        f"OpenRouter server error {e.response.status_code} on attempt "
                        f"{attempt + 1}/{self.retry_attempts}. Retrying in {wait_time}s..."
                    )
                    if attempt < self.retry_attempts - 1:
                        await asyncio.sleep(wait_time)
                else:
                    # Don't retry on 4xx client errors
                    message = self._error_message(e.response)
                    logger.error(f"OpenRouter client error {e.response.status_code}: {message}")
                    raise OpenRouterError(message) from e

            except httpx.RequestError as e:
                last_error = e
                wait_time = 2 ** attempt
                logger.warning(
                    f"OpenRouter request error on attempt {attempt + 1}/{self.retry_attempts}: {e}. "
                    f"Retrying in {wait_time}s..."
                )
                if attempt < self.retry_attempts - 1:
                    await asyncio.sleep(wait_time)

            except ValueError as e:
                raise OpenRouterError(f"OpenRouter returned a non-JSON body: {e}") from e

        error_msg = f"OpenRouter request failed after {self.retry_attempts} attempts"
        logger.error(f"{error_msg}: {last_error}")
        raise OpenRouterError(error_msg) from last_error

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"AI request failed ({response.status_code})"
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return f"AI request failed ({response.status_code})"

    @staticmethod
    def _first_message(data: dict[str, Any]) -> dict[str, Any]:
        try:
            return data["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as e:
            raise OpenRouterError(f"OpenRouter response has no message: {str(data)[:200]}") from e

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """
        Send one chat-completions request.

        Returns:
            The assistant message (may carry ``tool_calls``)
        """
        payload: dict[str, Any] = {"model": self.model, "messages": messages}
        if tools:
            payload["tools"] = tools
        return self._first_message(await self._post(payload))

    async def evaluate(
        self, question_text: str, correct_answer: str, user_answer: str
    ) -> Evaluation:
        """
        Score an answer 0-10 with feedback.

        Raises:
            EvaluationError: request failed or reply was unusable
        """
        prompt = build_evaluation_prompt(question_text, correct_answer, user_answer)
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "response_format": {"type": "json_object"},
        }
        try:
            message = self._first_message(await self._post(payload))
        except OpenRouterError as e:
            raise EvaluationError(f"evaluation request failed: {e}") from e

        evaluation = parse_evaluation(message.get("content"))
        logger.debug(f"Evaluation score={evaluation.score}")
        return evaluation
