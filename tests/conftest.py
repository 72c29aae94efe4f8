import asyncio
from unittest.mock import MagicMock

import pytest
import pytest_asyncio

from zentia.agent.nodes.responder import Responder
from zentia.integrations.sqlite_store import SafetyStore
from zentia.models.guardrails import CrisisKeyword, Direction, Severity
from zentia.safety.alerts import AlertEmitter
from zentia.safety.moderation import ModerationResult
from zentia.safety.orchestrator import GuardrailOrchestrator

CLIENT_ID = "6f1c2a52-9a43-4f0e-8d8e-3c1b1f3f9a10"

TEST_KEYWORDS = [
    CrisisKeyword(keyword="kill myself", severity=Severity.CRITICAL),
    CrisisKeyword(keyword="overdose", severity=Severity.HIGH),
    CrisisKeyword(keyword="hopeless", severity=Severity.MEDIUM),
    CrisisKeyword(keyword="tired", severity=Severity.LOW),
]


class StubModerator:
    """Records calls; flags per direction or raises a configured error."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Direction]] = []
        self.flag_directions: set[Direction] = set()
        self.error: Exception | None = None

    async def moderate(self, text: str, direction: Direction) -> ModerationResult:
        self.calls.append((text, direction))
        if self.error is not None:
            raise self.error
        return ModerationResult(flagged_unsafe=direction in self.flag_directions)


class StubResponder(Responder):
    """Companion reply without calling OpenAI."""

    def __init__(self, reply: str = "That sounds like a lovely day.") -> None:
        super().__init__(client=MagicMock(), history_turns=6)
        self.reply = reply
        self.seen: list[list[dict[str, str]]] = []

    async def generate(self, messages: list[dict[str, str]]) -> str:
        self.seen.append(messages)
        return self.reply


@pytest.fixture()
def client_id() -> str:
    return CLIENT_ID


@pytest.fixture()
def moderator() -> StubModerator:
    return StubModerator()


@pytest.fixture()
def responder() -> StubResponder:
    return StubResponder()


@pytest_asyncio.fixture()
async def store(tmp_path) -> SafetyStore:
    """Fresh SQLite store seeded with a small keyword set."""
    db = SafetyStore(str(tmp_path / "zentia.db"))
    await db.init_db()
    await db.seed_keywords(TEST_KEYWORDS)
    return db


@pytest.fixture()
def sync_store(tmp_path) -> SafetyStore:
    """Same as `store`, for synchronous (TestClient) tests."""
    db = SafetyStore(str(tmp_path / "zentia.db"))
    asyncio.run(db.init_db())
    asyncio.run(db.seed_keywords(TEST_KEYWORDS))
    return db


@pytest.fixture()
def make_orchestrator(moderator: StubModerator):
    def _make(db: SafetyStore) -> GuardrailOrchestrator:
        return GuardrailOrchestrator(db, moderator, AlertEmitter(db))

    return _make
