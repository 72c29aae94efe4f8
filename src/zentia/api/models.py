"""Request and response bodies for the HTTP API."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field

from zentia.models.guardrails import Direction, Severity


class GuardrailCheckRequest(BaseModel):
    text: str = Field(min_length=1)
    client_id: UUID
    direction: Direction = Direction.IN


class GuardrailCheckResponse(BaseModel):
    allowed: bool
    reason: str | None = None
    severity: Severity | None = None


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=8000)
    client_id: UUID


class ChatResponse(BaseModel):
    response: str
    blocked: bool
    reason: str | None = None
    turn_id: str | None = None


class KeywordToggle(BaseModel):
    active: bool


class HealthResponse(BaseModel):
    status: str = "ok"
