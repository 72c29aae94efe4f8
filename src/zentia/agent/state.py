"""Agent state for the chat companion LangGraph workflow."""

from __future__ import annotations

from typing import TypedDict

from langchain_core.messages import AnyMessage


class ChatState(TypedDict, total=False):
    """State passed between nodes in the chat workflow.

    Nothing survives between turns: history is reloaded from SQLite each time.

    Attributes:
        chat_history: Recent saved turns for this client, loaded for the prompt.
        client_id: Client the conversation belongs to.
        turn_id: Identifier of the current turn.
        raw_input: The user's message as received.
        ai_response: The companion's reply before the output guard.
        response_message: The text that is finally shown to the user.
        blocked: Whether either guard replaced the text with a safe response.
        block_reason: Reason code of the guard that blocked, if any.
        abort: Stop after the input guard and crisis screen.
    """

    chat_history: list[AnyMessage]
    client_id: str
    turn_id: str
    raw_input: str
    ai_response: str | None
    response_message: str | None
    blocked: bool
    block_reason: str | None
    abort: bool
