"""Unit tests for the AI moderation adapter.

Uses a real (offline) AsyncOpenAI client with the network calls patched out.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from openai import AsyncOpenAI

from zentia.models.guardrails import Direction
from zentia.safety.moderation import (
    ModerationError,
    ModerationVerdict,
    OpenAIModerator,
    Verdict,
    build_prompt,
    reply_is_flagged,
)


def _client() -> AsyncOpenAI:
    return AsyncOpenAI(api_key="test-key")


def _completion(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.mark.parametrize(
    ("reply", "flagged"),
    [
        ("SAFE", False),
        ("UNSAFE - detailed plan", True),
        ("This message should be flagged.", True),
        ("Inappropriate for therapy", True),
        ("safe, supportive content", False),
    ],
)
def test_reply_heuristic(reply: str, flagged: bool) -> None:
    assert reply_is_flagged(reply) is flagged


def test_prompt_embeds_text_per_direction() -> None:
    inbound = build_prompt("hello {there}", Direction.IN)
    outbound = build_prompt("hello {there}", Direction.OUT)

    assert 'User message to analyze: "hello {there}"' in inbound
    assert 'AI response to analyze: "hello {there}"' in outbound


def test_unknown_mode_is_rejected() -> None:
    with pytest.raises(ValueError):
        OpenAIModerator(_client(), mode="regex")


@pytest.mark.asyncio
async def test_structured_verdict_unsafe() -> None:
    moderator = OpenAIModerator(_client(), mode="structured")
    verdict = ModerationVerdict(verdict=Verdict.UNSAFE)

    with patch.object(moderator, "_ask_structured", AsyncMock(return_value=verdict)):
        result = await moderator.moderate("some text", Direction.IN)

    assert result.flagged_unsafe is True


@pytest.mark.asyncio
async def test_structured_verdict_safe() -> None:
    moderator = OpenAIModerator(_client(), mode="structured")
    verdict = ModerationVerdict(verdict=Verdict.SAFE)

    with patch.object(moderator, "_ask_structured", AsyncMock(return_value=verdict)):
        result = await moderator.moderate("I had a good day", Direction.OUT)

    assert result.flagged_unsafe is False


@pytest.mark.asyncio
async def test_text_mode_reads_free_text_reply() -> None:
    client = _client()
    moderator = OpenAIModerator(client, mode="text")
    create = AsyncMock(return_value=_completion("UNSAFE"))

    with patch.object(client.chat.completions, "create", create):
        result = await moderator.moderate("text", Direction.IN)

    assert result.flagged_unsafe is True
    prompt = create.call_args.kwargs["messages"][0]["content"]
    assert 'User message to analyze: "text"' in prompt


@pytest.mark.asyncio
async def test_empty_reply_is_an_error() -> None:
    client = _client()
    moderator = OpenAIModerator(client, mode="text")

    with patch.object(client.chat.completions, "create", AsyncMock(return_value=_completion(""))):
        with pytest.raises(ModerationError):
            await moderator.moderate("text", Direction.IN)


@pytest.mark.asyncio
async def test_provider_failure_becomes_moderation_error() -> None:
    moderator = OpenAIModerator(_client(), mode="structured")

    with patch.object(moderator, "_ask_structured", AsyncMock(side_effect=ValueError("bad json"))):
        with pytest.raises(ModerationError) as exc_info:
            await moderator.moderate("text", Direction.IN)

    assert isinstance(exc_info.value.__cause__, ValueError)


@pytest.mark.asyncio
async def test_slow_provider_times_out() -> None:
    moderator = OpenAIModerator(_client(), mode="text", timeout_seconds=0.05)

    async def slow(prompt: str) -> str:
        await asyncio.sleep(1)
        return "SAFE"

    with patch.object(moderator, "_ask_text", slow):
        with pytest.raises(ModerationError, match="timed out"):
            await moderator.moderate("text", Direction.IN)
