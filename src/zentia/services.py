"""Composition root: builds every long-lived client once at process start."""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from openai import AsyncOpenAI

from zentia.agent.graph import ChatCompanion, build_graph
from zentia.agent.nodes.responder import Responder
from zentia.config.settings import Settings
from zentia.integrations.sqlite_store import SafetyStore
from zentia.safety.alerts import AlertEmitter
from zentia.safety.keywords import DEFAULT_KEYWORDS
from zentia.safety.moderation import OpenAIModerator
from zentia.safety.orchestrator import GuardrailOrchestrator

log = structlog.get_logger(__name__)


@dataclass
class Services:
    store: SafetyStore
    orchestrator: GuardrailOrchestrator
    companion: ChatCompanion


async def prepare_store(config: Settings) -> SafetyStore:
    """Create tables and seed the default keyword set if enabled."""
    store = SafetyStore(config.db_path)
    await store.init_db()
    if config.seed_default_keywords:
        await store.seed_keywords(DEFAULT_KEYWORDS)
    return store


async def build_services(config: Settings) -> Services:
    if config.openai_api_key is None:
        raise RuntimeError("OPENAI_API_KEY not set")

    store = await prepare_store(config)
    client = AsyncOpenAI(api_key=config.openai_api_key.get_secret_value())

    moderator = OpenAIModerator(
        client,
        model=config.moderation_model,
        timeout_seconds=config.moderation_timeout_seconds,
        mode=config.moderation_mode,
    )
    orchestrator = GuardrailOrchestrator(store, moderator, AlertEmitter(store))
    reply_generator = Responder(
        client,
        model=config.openai_model,
        temperature=config.openai_temperature,
        history_turns=config.history_turns,
    )
    companion = ChatCompanion(build_graph(orchestrator, reply_generator, store))

    log.info("services_ready", db_path=config.db_path, moderation_mode=config.moderation_mode)
    return Services(store=store, orchestrator=orchestrator, companion=companion)
