from unittest.mock import AsyncMock, patch

import pytest

from zentia.agent.graph import ChatCompanion, build_graph
from zentia.models.guardrails import Direction
from zentia.safety.responses import select_safe_response


@pytest.mark.asyncio
async def test_second_turn_sees_first_turn(store, make_orchestrator, responder, client_id):
    companion = ChatCompanion(build_graph(make_orchestrator(store), responder, store))

    await companion.respond(client_id, "I started journaling this week")
    state = await companion.respond(client_id, "It helped a little")

    assert state["response_message"] == responder.reply
    second_prompt = responder.seen[1]
    assert second_prompt[0]["role"] == "system"
    assert {"role": "user", "content": "I started journaling this week"} in second_prompt
    assert {"role": "assistant", "content": responder.reply} in second_prompt
    assert second_prompt[-1] == {"role": "user", "content": "It helped a little"}


@pytest.mark.asyncio
async def test_history_stays_bounded_over_many_turns(store, make_orchestrator, responder, client_id):
    graph = build_graph(make_orchestrator(store), responder, store)
    companion = ChatCompanion(graph)

    for i in range(20):
        await companion.respond(client_id, f"message number {i}")

    assert graph.checkpointer is None
    last_prompt = responder.seen[-1]
    # system prompt + one user/assistant pair per remembered turn + current message
    assert len(last_prompt) == 1 + 2 * responder.history_turns + 1
    assert last_prompt[1] == {"role": "user", "content": "message number 13"}
    assert last_prompt[-1] == {"role": "user", "content": "message number 19"}


@pytest.mark.asyncio
async def test_blocked_reply_is_not_remembered(store, moderator, make_orchestrator, responder, client_id):
    moderator.flag_directions = {Direction.OUT}
    companion = ChatCompanion(build_graph(make_orchestrator(store), responder, store))

    state = await companion.respond(client_id, "what should I do?")
    moderator.flag_directions = set()
    await companion.respond(client_id, "ok")

    assert state["blocked"] is True
    assert state["response_message"] != responder.reply
    second_prompt = responder.seen[1]
    assert {"role": "assistant", "content": select_safe_response("safety_violation")} in second_prompt
    assert all(m["content"] != responder.reply for m in second_prompt)


@pytest.mark.asyncio
async def test_threads_are_isolated_per_client(store, make_orchestrator, responder):
    companion = ChatCompanion(build_graph(make_orchestrator(store), responder, store))

    await companion.respond("client-a", "my dog is called Biscuit")
    await companion.respond("client-b", "hello")

    second_prompt = responder.seen[1]
    assert all("Biscuit" not in m["content"] for m in second_prompt)


@pytest.mark.asyncio
async def test_history_outage_still_replies(store, make_orchestrator, responder, client_id):
    companion = ChatCompanion(build_graph(make_orchestrator(store), responder, store))

    with patch.object(store, "recent_turns", AsyncMock(side_effect=OSError("locked"))):
        state = await companion.respond(client_id, "hello")

    assert state["response_message"] == responder.reply
    assert len(responder.seen[0]) == 2
