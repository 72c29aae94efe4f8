"""Persistence node

Saves the finished turn to SQLite, where the next turn reloads it as history.
"""

from typing import Any

import structlog

from zentia.agent.state import ChatState
from zentia.integrations.sqlite_store import SafetyStore

log = structlog.get_logger(__name__)


async def run(state: ChatState, store: SafetyStore) -> dict[str, Any]:
    """Record the turn. A storage failure never costs the user their reply.

    Args:
        state: Current chat state with response_message populated.
        store: SQLite store.
    """
    message = state["raw_input"]
    response = state.get("response_message") or ""
    try:
        await store.save_chat_turn(
            turn_id=state["turn_id"],
            client_id=state["client_id"],
            message=message,
            response=response,
            blocked=state.get("blocked", False),
        )
    except Exception as exc:
        log.error("chat_turn_save_failed", turn_id=state["turn_id"], error=str(exc))

    return {}
