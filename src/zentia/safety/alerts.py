"""Crisis alert emitter.

Writes therapist-facing alerts. A missed alert is a patient-safety gap, so
persistence failures are raised to the caller, never swallowed.
"""

from __future__ import annotations

from typing import Any, Protocol

import structlog

from zentia.models.guardrails import Alert

log = structlog.get_logger(__name__)


class AlertPersistenceError(RuntimeError):
    """An alert could not be written to the alert store."""

    def __init__(self, client_id: str, reason: str, cause: BaseException) -> None:
        super().__init__(f"failed to persist alert {reason!r} for client {client_id}: {cause}")
        self.client_id = client_id
        self.reason = reason


class AlertStore(Protocol):
    async def insert_alert(self, client_id: str, reason: str, details: dict[str, Any]) -> Alert: ...


class AlertEmitter:
    """Creates one unresolved alert per call. Not idempotent."""

    def __init__(self, store: AlertStore) -> None:
        self._store = store

    async def raise_alert(self, client_id: str, reason: str, details: dict[str, Any]) -> Alert:
        """Persist an alert for the client's care team.

        Args:
            client_id: Client the alert concerns.
            reason: Machine-readable alert reason.
            details: Context shown to the therapist.

        Returns:
            The stored alert.

        Raises:
            AlertPersistenceError: If the write fails for any reason.
        """
        log.warning(
            "therapist_alert_raising",
            client_id=client_id,
            reason=reason,
            severity=details.get("severity"),
            keyword=details.get("keyword"),
        )
        try:
            alert = await self._store.insert_alert(client_id, reason, details)
        except Exception as exc:
            log.critical("alert_persistence_failed", client_id=client_id, reason=reason, error=str(exc))
            raise AlertPersistenceError(client_id, reason, exc) from exc

        log.info("therapist_alert_raised", client_id=client_id, reason=reason, alert_id=alert.id)
        return alert
