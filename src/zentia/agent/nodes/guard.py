"""Guardrails nodes — input safety, output safety and the crisis safety net.

Run at three points in the graph:
1. Before anything else: checks the raw user message
2. Right after: screens the user message against the shipped crisis phrases
3. After response generation: checks the AI reply before it is shown
"""

from __future__ import annotations

from typing import Any

import structlog

from zentia.agent.state import ChatState
from zentia.models.guardrails import Direction
from zentia.safety.orchestrator import GuardrailOrchestrator
from zentia.safety.responses import select_safe_response

log = structlog.get_logger(__name__)


async def run_input_guard(state: ChatState, orchestrator: GuardrailOrchestrator) -> dict[str, Any]:
    """Check the user's message before any model sees it.

    Args:
        state: Current chat state.
        orchestrator: Guardrail pipeline.

    Returns:
        State update. Sets 'abort' and a safe response if the message is blocked.
    """
    result = await orchestrator.check(state["raw_input"], state["client_id"], Direction.IN)
    if result.allowed:
        return {"abort": False, "blocked": False}

    log.warning("input_blocked", client_id=state["client_id"], reason=result.reason)
    return {
        "abort": True,
        "blocked": True,
        "block_reason": result.reason,
        "response_message": select_safe_response(result.reason),
    }


async def run_crisis_screen(
    state: ChatState, orchestrator: GuardrailOrchestrator
) -> dict[str, Any]:
    """Alert the care team on any shipped crisis phrase, whatever the guards decided."""
    alert = await orchestrator.screen_crisis_phrases(
        state["client_id"],
        state["raw_input"],
        {"turn_id": state.get("turn_id"), "input_blocked": state.get("blocked", False)},
    )
    if alert is not None:
        log.warning("crisis_phrase_alert", client_id=state["client_id"], alert_id=alert.id)
    return {}


async def run_output_guard(
    state: ChatState, orchestrator: GuardrailOrchestrator
) -> dict[str, Any]:
    """Check the AI reply; replace it with a safe response when blocked."""
    reply = state.get("ai_response") or ""
    result = await orchestrator.check(reply, state["client_id"], Direction.OUT)
    if result.allowed:
        return {"response_message": reply, "blocked": False}

    log.warning("output_blocked", client_id=state["client_id"], reason=result.reason)
    return {
        "response_message": select_safe_response(result.reason),
        "blocked": True,
        "block_reason": result.reason,
    }
