from __future__ import annotations

from typing import Protocol

import openai
from loguru import logger
from openai import OpenAI

from .config import DEFAULT_OPENAI_MODEL


class GenerationError(RuntimeError):
    """The generative service failed or answered with something unusable."""


class GenerativeService(Protocol):
    def complete_json(self, system: str, user: str) -> str:
        """Return the raw text of a JSON object answering `user`."""
        ...


class OpenAIGenerativeService:
    """Chat-completions backend constrained to JSON object output."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = DEFAULT_OPENAI_MODEL,
        timeout_s: float = 30.0,
        client: OpenAI | None = None,
    ):
        # Retries are the resolver's business (one cleaned retry, nothing else).
        self.client = client or OpenAI(api_key=api_key, timeout=timeout_s, max_retries=0)
        self.model = model

    def complete_json(self, system: str, user: str) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                temperature=0,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
            )
        except openai.OpenAIError as e:
            logger.warning("OpenAI request failed: {}", e)
            raise GenerationError(f"OpenAI request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise GenerationError("No content from OpenAI")
        return content
