"""Pydantic v2 models for the guardrail pipeline.

These models are used throughout the service for:
- Crisis keyword snapshots read from SQLite
- Audit log entries and therapist alerts
- The transient decision returned for a single checked message
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


class Severity(enum.StrEnum):
    # Ordered from least to most urgent; see Severity.rank.
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @property
    def raises_alert(self) -> bool:
        """High and critical keyword matches page the care team."""
        return self in (Severity.HIGH, Severity.CRITICAL)


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class Direction(enum.StrEnum):
    # 'in' is a user message, 'out' is an AI-generated reply.
    IN = "in"
    OUT = "out"


class GuardrailState(enum.StrEnum):
    RECEIVED = "received"
    KEYWORD_CHECKED = "keyword_checked"
    MODERATION_CHECKED = "moderation_checked"
    BLOCKED_BY_KEYWORD = "blocked_by_keyword"
    BLOCKED_BY_MODERATION = "blocked_by_moderation"
    BLOCKED_BY_SYSTEM_ERROR = "blocked_by_system_error"
    ALLOWED = "allowed"


class CrisisKeyword(BaseModel):
    """A configurable crisis keyword.

    Attributes:
        keyword: Phrase matched case-insensitively as a substring.
        severity: How urgent a match is.
        active: Inactive keywords are kept but never matched.
    """

    keyword: str = Field(min_length=1)
    severity: Severity
    active: bool = True

    @field_validator("keyword")
    @classmethod
    def normalise_keyword(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("keyword must not be blank")
        return v


class CrisisSignal(BaseModel):
    """What a detector found in a piece of text."""

    detector: str
    keyword: str
    severity: Severity


class GuardrailLogEntry(BaseModel):
    """An append-only audit record for a blocked or failed check."""

    id: int | None = None
    client_id: str
    direction: Direction
    reason: str
    raw_text: str
    created_at: datetime | None = None


class Alert(BaseModel):
    """A therapist-facing alert. Only `resolved` ever changes."""

    id: int | None = None
    client_id: str
    reason: str
    details: dict[str, Any] = Field(default_factory=dict)
    resolved: bool = False
    created_at: datetime | None = None


class GuardrailResult(BaseModel):
    """Decision for a single message. Never persisted.

    Attributes:
        allowed: Whether the text may be shown to the end user.
        reason: Reason code when blocked.
        severity: Matched keyword severity, for keyword blocks only.
        state: Terminal state the pipeline reached.
    """

    allowed: bool
    reason: str | None = None
    severity: Severity | None = None
    state: GuardrailState = Field(default=GuardrailState.ALLOWED, exclude=True)

    @classmethod
    def allow(cls) -> GuardrailResult:
        return cls(allowed=True, state=GuardrailState.ALLOWED)

    @classmethod
    def block(
        cls, state: GuardrailState, reason: str, severity: Severity | None = None
    ) -> GuardrailResult:
        return cls(allowed=False, reason=reason, severity=severity, state=state)
