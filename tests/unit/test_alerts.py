from unittest.mock import AsyncMock

import pytest

from zentia.models.guardrails import Alert
from zentia.safety.alerts import AlertEmitter, AlertPersistenceError


@pytest.mark.asyncio
async def test_raise_alert_persists_unresolved_alert(client_id: str) -> None:
    stored = Alert(id=7, client_id=client_id, reason="crisis_keyword_detected", details={})
    store = AsyncMock()
    store.insert_alert.return_value = stored

    alert = await AlertEmitter(store).raise_alert(
        client_id, "crisis_keyword_detected", {"severity": "critical"}
    )

    assert alert is stored
    assert alert.resolved is False
    store.insert_alert.assert_awaited_once_with(
        client_id, "crisis_keyword_detected", {"severity": "critical"}
    )


@pytest.mark.asyncio
async def test_each_call_creates_a_new_alert(client_id: str) -> None:
    store = AsyncMock()
    store.insert_alert.return_value = Alert(client_id=client_id, reason="r")
    emitter = AlertEmitter(store)

    await emitter.raise_alert(client_id, "r", {})
    await emitter.raise_alert(client_id, "r", {})

    assert store.insert_alert.await_count == 2


@pytest.mark.asyncio
async def test_store_failure_is_raised(client_id: str) -> None:
    store = AsyncMock()
    store.insert_alert.side_effect = OSError("disk full")

    with pytest.raises(AlertPersistenceError) as exc_info:
        await AlertEmitter(store).raise_alert(client_id, "crisis_keyword_detected", {})

    assert exc_info.value.client_id == client_id
    assert isinstance(exc_info.value.__cause__, OSError)
