"""FastAPI application for the Zentia safety service."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from zentia.api.models import (
    ChatRequest,
    ChatResponse,
    GuardrailCheckRequest,
    GuardrailCheckResponse,
    HealthResponse,
    KeywordToggle,
)
from zentia.config.settings import Settings, settings
from zentia.models.guardrails import (
    Alert,
    CrisisKeyword,
    Direction,
    GuardrailLogEntry,
    GuardrailState,
)
from zentia.safety.alerts import AlertPersistenceError
from zentia.safety.responses import SYSTEM_ERROR, select_safe_response
from zentia.services import Services, build_services

log = structlog.get_logger(__name__)


def get_services(request: Request) -> Services:
    return request.app.state.services


def _bind_client(client_id: str) -> None:
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(client_id=client_id)


def create_app(services: Services | None = None, config: Settings = settings) -> FastAPI:
    """Build the app. Pass `services` to skip building real clients."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.services = services if services is not None else await build_services(config)
        yield

    app = FastAPI(title="Zentia Safety API", version="0.1.0", lifespan=lifespan)

    @app.exception_handler(RequestValidationError)
    async def missing_fields(request: Request, exc: RequestValidationError) -> JSONResponse:
        log.warning("request_rejected", path=request.url.path, errors=len(exc.errors()))
        return JSONResponse(
            status_code=400, content={"allowed": False, "reason": "missing_required_fields"}
        )

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse()

    @app.post(
        "/guardrail/check",
        response_model=GuardrailCheckResponse,
        response_model_exclude_none=True,
    )
    async def guardrail_check(
        payload: GuardrailCheckRequest,
        svc: Services = Depends(get_services),
    ) -> GuardrailCheckResponse | JSONResponse:
        client_id = str(payload.client_id)
        _bind_client(client_id)
        try:
            result = await svc.orchestrator.check(payload.text, client_id, payload.direction)
        except AlertPersistenceError:
            return JSONResponse(status_code=500, content={"allowed": False, "reason": SYSTEM_ERROR})
        if result.state is GuardrailState.BLOCKED_BY_SYSTEM_ERROR and result.reason == SYSTEM_ERROR:
            return JSONResponse(status_code=500, content={"allowed": False, "reason": SYSTEM_ERROR})
        return GuardrailCheckResponse(
            allowed=result.allowed, reason=result.reason, severity=result.severity
        )

    @app.post("/chat", response_model=ChatResponse, response_model_exclude_none=True)
    async def chat(
        payload: ChatRequest,
        svc: Services = Depends(get_services),
    ) -> ChatResponse | JSONResponse:
        client_id = str(payload.client_id)
        _bind_client(client_id)
        try:
            state = await svc.companion.respond(client_id, payload.message)
        except Exception as exc:
            log.exception("chat_turn_failed", error=str(exc))
            try:
                await svc.store.append_guardrail_log(
                    client_id, Direction.IN, "api_error", f"Error: {exc}"
                )
            except Exception as log_exc:
                log.error("guardrail_log_write_failed", reason="api_error", error=str(log_exc))
            return JSONResponse(
                status_code=500,
                content={
                    "response": select_safe_response(SYSTEM_ERROR),
                    "blocked": True,
                    "reason": SYSTEM_ERROR,
                },
            )

        return ChatResponse(
            response=state.get("response_message") or select_safe_response(SYSTEM_ERROR),
            blocked=state.get("blocked", False),
            reason=state.get("block_reason"),
            turn_id=state.get("turn_id"),
        )

    @app.get("/alerts", response_model=list[Alert])
    async def list_alerts(
        client_id: str | None = None,
        resolved: bool | None = None,
        limit: int = Query(default=100, ge=1, le=500),
        svc: Services = Depends(get_services),
    ) -> list[Alert]:
        return await svc.store.list_alerts(client_id=client_id, resolved=resolved, limit=limit)

    @app.post("/alerts/{alert_id}/resolve", response_model=Alert)
    async def resolve_alert(alert_id: int, svc: Services = Depends(get_services)) -> Alert:
        alert = await svc.store.resolve_alert(alert_id)
        if alert is None:
            raise HTTPException(status_code=404, detail="alert not found")
        return alert

    @app.get("/guardrail-log", response_model=list[GuardrailLogEntry])
    async def guardrail_log(
        client_id: str | None = None,
        limit: int = Query(default=100, ge=1, le=500),
        svc: Services = Depends(get_services),
    ) -> list[GuardrailLogEntry]:
        return await svc.store.list_guardrail_log(client_id=client_id, limit=limit)

    @app.get("/keywords", response_model=list[CrisisKeyword])
    async def list_keywords(
        active_only: bool = False, svc: Services = Depends(get_services)
    ) -> list[CrisisKeyword]:
        return await svc.store.list_keywords(active_only=active_only)

    @app.put("/keywords", response_model=CrisisKeyword)
    async def upsert_keyword(
        keyword: CrisisKeyword, svc: Services = Depends(get_services)
    ) -> CrisisKeyword:
        return await svc.store.upsert_keyword(keyword)

    @app.patch("/keywords/{keyword}", response_model=CrisisKeyword)
    async def toggle_keyword(
        keyword: str, payload: KeywordToggle, svc: Services = Depends(get_services)
    ) -> CrisisKeyword:
        updated = await svc.store.set_keyword_active(keyword, payload.active)
        if updated is None:
            raise HTTPException(status_code=404, detail="keyword not found")
        return updated

    return app
