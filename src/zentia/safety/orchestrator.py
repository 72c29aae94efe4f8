"""Guardrail orchestrator — the input/output safety pipeline.

Every message, in either direction, runs through:
1. Crisis keyword match against the active keyword table
2. AI moderation (only if no keyword matched)

Blocks and failures are written to the guardrail log; allowed messages are
not. High and critical keyword matches raise a therapist alert. The
pipeline fails closed: without a confirmed safe verdict nothing is allowed.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Protocol

import structlog

from zentia.models.guardrails import (
    Alert,
    CrisisKeyword,
    CrisisSignal,
    Direction,
    GuardrailResult,
    GuardrailState,
)
from zentia.safety.alerts import AlertEmitter, AlertPersistenceError
from zentia.safety.keywords import Detector, KeywordDetector, PhraseDetector
from zentia.safety.moderation import Moderator

log = structlog.get_logger(__name__)

ALERT_TEXT_PREVIEW = 200

CRISIS_KEYWORD_ALERT = "crisis_keyword_detected"
CRISIS_PHRASE_ALERT = "crisis_keywords_detected"


class GuardrailStore(Protocol):
    async def active_keywords(self) -> list[CrisisKeyword]: ...

    async def append_guardrail_log(
        self, client_id: str, direction: Direction, reason: str, raw_text: str
    ) -> None: ...


class GuardrailOrchestrator:
    """Runs the guardrail pipeline for one message at a time.

    Args:
        store: Source of the keyword snapshot and sink for audit entries.
        moderator: AI moderation adapter.
        alerts: Therapist alert emitter.
        phrase_detector: Hard-coded safety-net detector for user messages.
    """

    def __init__(
        self,
        store: GuardrailStore,
        moderator: Moderator,
        alerts: AlertEmitter,
        phrase_detector: Detector | None = None,
    ) -> None:
        self._store = store
        self._moderator = moderator
        self._alerts = alerts
        self._phrases = phrase_detector or PhraseDetector()

    async def check(
        self, text: str, client_id: str, direction: Direction = Direction.IN
    ) -> GuardrailResult:
        """Decide whether `text` may be shown.

        Always resolves to a GuardrailResult, except when a therapist alert
        could not be persisted.

        Raises:
            AlertPersistenceError: The message is blocked but its alert was lost.
        """
        state = GuardrailState.RECEIVED
        try:
            direction = Direction(direction)
            keywords = await self._store.active_keywords()
            signal = KeywordDetector(keywords).detect(text)
            state = GuardrailState.KEYWORD_CHECKED
            if signal is not None:
                return await self._block_by_keyword(text, client_id, direction, signal)

            try:
                moderation = await self._moderator.moderate(text, direction)
            except Exception as exc:  # ModerationError or a misbehaving adapter
                log.warning(
                    "moderation_unavailable",
                    client_id=client_id,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                await self._log_best_effort(
                    client_id, direction, f"{direction}_safety_check_failed", text
                )
                return GuardrailResult.block(
                    GuardrailState.BLOCKED_BY_SYSTEM_ERROR, "safety_check_failed"
                )
            state = GuardrailState.MODERATION_CHECKED

            if moderation.flagged_unsafe:
                await self._store.append_guardrail_log(
                    client_id, direction, f"{direction}_moderation_flag", text
                )
                log.warning(
                    "guardrail_blocked",
                    client_id=client_id,
                    direction=str(direction),
                    reason="safety_violation",
                    state=str(GuardrailState.BLOCKED_BY_MODERATION),
                )
                return GuardrailResult.block(
                    GuardrailState.BLOCKED_BY_MODERATION, "safety_violation"
                )

            log.debug("guardrail_allowed", client_id=client_id, direction=str(direction))
            return GuardrailResult.allow()

        except AlertPersistenceError:
            await self._log_best_effort(client_id, direction, "system_error", text)
            raise
        except Exception as exc:
            log.exception(
                "guardrail_system_error", client_id=client_id, failed_at=str(state), error=str(exc)
            )
            await self._log_best_effort(client_id, direction, "system_error", text)
            return GuardrailResult.block(GuardrailState.BLOCKED_BY_SYSTEM_ERROR, "system_error")

    async def _block_by_keyword(
        self, text: str, client_id: str, direction: Direction, signal: CrisisSignal
    ) -> GuardrailResult:
        log.warning(
            "crisis_keyword_detected",
            client_id=client_id,
            direction=str(direction),
            keyword=signal.keyword,
            severity=str(signal.severity),
        )
        # Alert before the audit write so a log failure cannot cost the alert
        if signal.severity.raises_alert:
            await self._alerts.raise_alert(
                client_id,
                CRISIS_KEYWORD_ALERT,
                {
                    "keyword": signal.keyword,
                    "severity": str(signal.severity),
                    "direction": str(direction),
                    "text": text[:ALERT_TEXT_PREVIEW],
                },
            )
        await self._store.append_guardrail_log(
            client_id, direction, f"{direction}_crisis_keyword_{signal.severity}", text
        )
        return GuardrailResult.block(
            GuardrailState.BLOCKED_BY_KEYWORD,
            f"crisis_keyword_{signal.severity}",
            severity=signal.severity,
        )

    async def _log_best_effort(
        self, client_id: str, direction: Direction, reason: str, text: str
    ) -> None:
        try:
            await self._store.append_guardrail_log(client_id, direction, reason, text)
        except Exception as exc:
            log.error(
                "guardrail_log_write_failed", client_id=client_id, reason=reason, error=str(exc)
            )

    async def screen_crisis_phrases(
        self, client_id: str, text: str, context: dict[str, Any] | None = None
    ) -> Alert | None:
        """Safety net for user messages, independent of the keyword table.

        Raises an alert on any shipped crisis phrase, whatever the guard
        verdicts were. Duplicates of a keyword-table alert are accepted.

        Raises:
            AlertPersistenceError: If the alert could not be stored.
        """
        signal = self._phrases.detect(text)
        if signal is None:
            return None
        details: dict[str, Any] = {
            "keyword": signal.keyword,
            "severity": str(signal.severity),
            "original_message": text,
            "timestamp": datetime.now(UTC).isoformat(),
        }
        if context:
            details.update(context)
        return await self._alerts.raise_alert(client_id, CRISIS_PHRASE_ALERT, details)
