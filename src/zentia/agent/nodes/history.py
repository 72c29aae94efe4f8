"""History node

Loads the client's last few saved turns so the reply has context.
"""

from typing import Any

import structlog
from langchain_core.messages import AIMessage, HumanMessage

from zentia.agent.state import ChatState
from zentia.integrations.sqlite_store import SafetyStore

log = structlog.get_logger(__name__)


async def run(state: ChatState, store: SafetyStore, turns: int) -> dict[str, Any]:
    try:
        saved = await store.recent_turns(state["client_id"], turns)
    except Exception as exc:
        # Reply without context rather than fail the turn
        log.error("chat_history_load_failed", client_id=state["client_id"], error=str(exc))
        saved = []

    history = []
    for message, response in saved:
        history.append(HumanMessage(content=message))
        history.append(AIMessage(content=response))
    return {"chat_history": history}
