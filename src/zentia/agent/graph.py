from __future__ import annotations

import uuid
from typing import Any

import structlog
from langgraph.graph import END, START, StateGraph
from langgraph.graph.state import CompiledStateGraph

from zentia.agent.nodes import guard, history, persister, responder
from zentia.agent.state import ChatState
from zentia.integrations.sqlite_store import SafetyStore
from zentia.safety.orchestrator import GuardrailOrchestrator

log = structlog.get_logger(__name__)


def should_abort(state: ChatState) -> str:
    if state.get("abort"):
        return END
    return "load_history"


def build_graph(
    orchestrator: GuardrailOrchestrator,
    reply_generator: responder.Responder,
    store: SafetyStore,
) -> CompiledStateGraph:
    """Wire the chat workflow around injected services."""

    async def guard_input(state: ChatState) -> dict[str, Any]:
        return await guard.run_input_guard(state, orchestrator)

    async def screen_crisis(state: ChatState) -> dict[str, Any]:
        return await guard.run_crisis_screen(state, orchestrator)

    async def load_history(state: ChatState) -> dict[str, Any]:
        return await history.run(state, store, reply_generator.history_turns)

    async def respond(state: ChatState) -> dict[str, Any]:
        return await responder.run(state, reply_generator)

    async def guard_output(state: ChatState) -> dict[str, Any]:
        return await guard.run_output_guard(state, orchestrator)

    async def persist(state: ChatState) -> dict[str, Any]:
        return await persister.run(state, store)

    builder = StateGraph(ChatState)

    # Add nodes
    builder.add_node("guard_input", guard_input)
    builder.add_node("screen_crisis", screen_crisis)
    builder.add_node("load_history", load_history)
    builder.add_node("respond", respond)
    builder.add_node("guard_output", guard_output)
    builder.add_node("persist", persist)

    # Add edges
    builder.add_edge(START, "guard_input")
    builder.add_edge("guard_input", "screen_crisis")
    builder.add_conditional_edges(
        "screen_crisis", should_abort, {END: END, "load_history": "load_history"}
    )
    builder.add_edge("load_history", "respond")
    builder.add_edge("respond", "guard_output")
    builder.add_edge("guard_output", "persist")
    builder.add_edge("persist", END)

    # No checkpointer: every turn starts clean and history lives in SQLite
    return builder.compile()


class ChatCompanion:
    """Runs one chat turn through the guarded workflow."""

    def __init__(self, graph: CompiledStateGraph) -> None:
        self._graph = graph

    async def respond(self, client_id: str, message: str) -> ChatState:
        turn_id = str(uuid.uuid4())
        log.info("processing_chat_turn", client_id=client_id, turn_id=turn_id, length=len(message))
        return await self._graph.ainvoke(
            {
                "client_id": client_id,
                "turn_id": turn_id,
                "raw_input": message,
                "ai_response": None,
                "response_message": None,
                "blocked": False,
                "block_reason": None,
                "abort": False,
            },
        )
