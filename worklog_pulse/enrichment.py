"""OpenAI chat completions used to dress up outgoing messages."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

import openai
from openai import AsyncOpenAI

from .messages import (
    CELEBRATION_SYSTEM_PROMPT,
    celebration_prompt,
    feedback_summary_prompt,
    no_celebrations_prompt,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4-turbo"


class EnrichmentError(RuntimeError):
    """Raised when the language model call fails or returns unusable output."""


@dataclass(slots=True)
class CelebrationMessage:
    message: str
    emails: List[str] = field(default_factory=list)


def parse_celebration_response(raw: str) -> CelebrationMessage:
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        lines = [line for line in cleaned.splitlines() if not line.strip().startswith("```")]
        cleaned = "\n".join(lines).strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise EnrichmentError(f"Model did not return JSON: {exc}") from exc
    if not isinstance(parsed, dict) or not isinstance(parsed.get("message"), str) or not parsed["message"].strip():
        raise EnrichmentError("Model response has no message")
    emails = [email for email in parsed.get("emails") or [] if isinstance(email, str)]
    return CelebrationMessage(message=parsed["message"], emails=emails)


class Enricher:
    """Thin wrapper over ``AsyncOpenAI`` for the two prompts the bot uses."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        timeout: float = 60.0,
        client: Optional[Any] = None,
    ) -> None:
        self.model = model
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def _complete(self, messages: list[dict[str, str]], temperature: float) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                temperature=temperature,
                messages=messages,
            )
        except openai.APIError as exc:
            raise EnrichmentError(f"OpenAI request failed: {exc}") from exc

        if not response.choices or not response.choices[0].message.content:
            raise EnrichmentError("Empty response from OpenAI")
        return response.choices[0].message.content.strip()

    async def celebration_message(
        self,
        summary: str,
        now: datetime,
        instructions: str = "",
    ) -> CelebrationMessage:
        prompt = celebration_prompt(summary, now, instructions) if summary else no_celebrations_prompt(now, instructions)
        raw = await self._complete(
            [
                {"role": "system", "content": CELEBRATION_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0.7,
        )
        logger.debug("Celebration response: %s", raw)
        return parse_celebration_response(raw)

    async def feedback_summary(self, feedback_text: str) -> str:
        return await self._complete(
            [{"role": "user", "content": feedback_summary_prompt(feedback_text)}],
            temperature=1,
        )


__all__ = [
    "DEFAULT_MODEL",
    "EnrichmentError",
    "CelebrationMessage",
    "Enricher",
    "parse_celebration_response",
]
