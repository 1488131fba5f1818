"""Text-completion collaborator.

The ranking and extraction steps treat the model as an unreliable function
from prompt to text: it may be slow, fail outright, or return malformed
JSON. Outright failures are retried here; malformed content is returned
as-is and each caller decides its own fallback.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


class CompletionError(Exception):
    """The completion backend failed after all retries."""


class TextCompletion(ABC):

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        response_format: str = "json",
        temperature: float = 0.0,
        system: Optional[str] = None,
    ) -> str:
        """Return the model's text for `prompt`. Raises CompletionError."""
        ...


class OpenAICompletion(TextCompletion):

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o",
        max_retries: int = 2,
        retry_backoff_s: float = 1.0,
    ):
        self._client = client
        self._model = model
        self._max_retries = max_retries
        self._retry_backoff_s = retry_backoff_s

    async def complete(
        self,
        prompt: str,
        response_format: str = "json",
        temperature: float = 0.0,
        system: Optional[str] = None,
    ) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs: Dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": temperature,
        }
        if response_format == "json":
            kwargs["response_format"] = {"type": "json_object"}

        last_exc: Optional[Exception] = None
        for attempt in range(self._max_retries + 1):
            try:
                response = await self._client.chat.completions.create(**kwargs)
                content = response.choices[0].message.content if response.choices else None
                return content or ""
            except Exception as exc:
                last_exc = exc
                logger.warning(
                    "Completion attempt %d/%d failed: %s",
                    attempt + 1, self._max_retries + 1, exc,
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(self._retry_backoff_s * (attempt + 1))

        raise CompletionError(f"Completion failed after {self._max_retries + 1} attempt(s): {last_exc}")


def parse_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Parse a completion as a JSON object. None when it is anything else."""
    if not text:
        return None
    text = text.strip()
    # Tolerate a fenced ```json block
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None
