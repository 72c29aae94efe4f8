"""Companion reply node — generates the AI response for an allowed message."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
from openai import AsyncOpenAI
from tenacity import retry, stop_after_attempt, wait_exponential

from zentia.agent.state import ChatState

log = structlog.get_logger(__name__)

_SYSTEM_PROMPT = (Path(__file__).parent.parent.parent / "prompts" / "companion.txt").read_text()

_FALLBACK_REPLY = "I'm here with you. Could you tell me a little more about how you're feeling?"


class Responder:
    """Wraps the chat completion call used by the companion.

    Args:
        client: Shared async OpenAI client.
        model: Chat model name.
        temperature: Sampling temperature for replies.
        history_turns: How many saved turns to load as context.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
        history_turns: int = 6,
    ) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature
        self.history_turns = history_turns

    def build_messages(self, state: ChatState) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": _SYSTEM_PROMPT}]
        for msg in state.get("chat_history", []):
            role = "assistant" if msg.type == "ai" else "user"
            messages.append({"role": role, "content": str(msg.content)})
        messages.append({"role": "user", "content": state["raw_input"]})
        return messages

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def generate(self, messages: list[dict[str, str]]) -> str:
        response = await self._client.chat.completions.create(
            model=self._model,
            temperature=self._temperature,
            messages=messages,
        )
        return response.choices[0].message.content or _FALLBACK_REPLY


async def run(state: ChatState, responder: Responder) -> dict[str, Any]:
    """Generate the companion's reply to the user's message."""
    log.info("generating_reply", client_id=state["client_id"])
    reply = await responder.generate(responder.build_messages(state))
    return {"ai_response": reply}
