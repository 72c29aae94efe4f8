"""AI moderation adapter.

Asks an OpenAI model whether a piece of text is safe to show in a
mental-health conversation. Two classification modes:

- structured: Instructor forces a single-field verdict model (safe/unsafe)
- text: free-text reply checked for flag words (legacy heuristic)

Any failure to obtain a verdict raises ModerationError. Callers must treat
that as a block.
"""

from __future__ import annotations

import asyncio
import enum
from pathlib import Path
from typing import Protocol

import instructor
import openai
import structlog
from openai import AsyncOpenAI
from pydantic import BaseModel
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from zentia.models.guardrails import Direction

log = structlog.get_logger(__name__)

_PROMPTS = {
    Direction.IN: (Path(__file__).parent.parent / "prompts" / "moderate_in.txt").read_text(),
    Direction.OUT: (Path(__file__).parent.parent / "prompts" / "moderate_out.txt").read_text(),
}

# Substrings that flag a free-text reply. Note "not unsafe" still matches.
FLAG_WORDS: tuple[str, ...] = ("unsafe", "flagged", "inappropriate")

_TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class ModerationError(RuntimeError):
    """The moderation provider did not return a usable verdict."""


class Verdict(enum.StrEnum):
    SAFE = "safe"
    UNSAFE = "unsafe"


class ModerationVerdict(BaseModel):
    verdict: Verdict


class ModerationResult(BaseModel):
    flagged_unsafe: bool


class Moderator(Protocol):
    async def moderate(self, text: str, direction: Direction) -> ModerationResult: ...


def build_prompt(text: str, direction: Direction) -> str:
    return _PROMPTS[Direction(direction)].format(text=text)


def reply_is_flagged(reply: str) -> bool:
    """Legacy heuristic: does a free-text reply contain a flag word?"""
    lowered = reply.strip().lower()
    return any(word in lowered for word in FLAG_WORDS)


class OpenAIModerator:
    """Moderation backed by OpenAI chat completions.

    Args:
        client: Shared async OpenAI client.
        model: Chat model used for the verdict.
        timeout_seconds: Hard budget for the whole call, retries included.
        mode: 'structured' or 'text'.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini",
        timeout_seconds: float = 8.0,
        mode: str = "structured",
    ) -> None:
        if mode not in ("structured", "text"):
            raise ValueError(f"Unknown moderation mode {mode!r}")
        self._client = client
        self._structured = instructor.from_openai(client) if mode == "structured" else None
        self._model = model
        self._timeout = timeout_seconds
        self.mode = mode

    async def moderate(self, text: str, direction: Direction) -> ModerationResult:
        """Classify `text`.

        Raises:
            ModerationError: On timeout, provider error or an unusable reply.
        """
        prompt = build_prompt(text, direction)
        try:
            async with asyncio.timeout(self._timeout):
                if self._structured is not None:
                    verdict = await self._ask_structured(prompt)
                    flagged = verdict.verdict is Verdict.UNSAFE
                else:
                    reply = await self._ask_text(prompt)
                    flagged = reply_is_flagged(reply)
        except TimeoutError as exc:
            log.warning("moderation_timeout", timeout_s=self._timeout, direction=str(direction))
            raise ModerationError(f"moderation timed out after {self._timeout}s") from exc
        except Exception as exc:
            log.warning("moderation_failed", error=str(exc), direction=str(direction))
            raise ModerationError(str(exc)) from exc

        log.debug("moderation_verdict", flagged=flagged, mode=self.mode, direction=str(direction))
        return ModerationResult(flagged_unsafe=flagged)

    @retry(
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
        reraise=True,
    )
    async def _ask_structured(self, prompt: str) -> ModerationVerdict:
        return await self._structured.chat.completions.create(
            model=self._model,
            response_model=ModerationVerdict,
            max_retries=1,  # Instructor internal retries on validation fail
            temperature=0.0,
            messages=[
                {
                    "role": "system",
                    "content": "You are a content safety classifier. Answer with a verdict only.",
                },
                {"role": "user", "content": prompt},
            ],
        )

    @retry(
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
        reraise=True,
    )
    async def _ask_text(self, prompt: str) -> str:
        response = await self._client.chat.completions.create(
            model=self._model,
            temperature=0.0,
            messages=[{"role": "user", "content": prompt}],
        )
        reply = response.choices[0].message.content
        if not reply:
            raise ModerationError("empty moderation reply")
        return reply
