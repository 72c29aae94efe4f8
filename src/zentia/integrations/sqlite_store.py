"""SQLite persistence layer for the safety service.

Provides async access to the primary SQLite database.
Stores crisis keywords, the guardrail audit log, therapist alerts and
chat turns. Every operation opens its own short-lived connection.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterable
from typing import Any

import aiosqlite
import structlog

from zentia.models.guardrails import Alert, CrisisKeyword, Direction, GuardrailLogEntry

log = structlog.get_logger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS crisis_keywords (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        keyword TEXT NOT NULL UNIQUE COLLATE NOCASE,
        severity TEXT NOT NULL CHECK (severity IN ('low', 'medium', 'high', 'critical')),
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS guardrail_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        client_id TEXT NOT NULL,
        direction TEXT NOT NULL CHECK (direction IN ('in', 'out')),
        reason TEXT NOT NULL,
        raw TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS alerts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        client_id TEXT NOT NULL,
        reason TEXT NOT NULL,
        details TEXT NOT NULL,
        is_resolved INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS chat_messages (
        id TEXT PRIMARY KEY,
        client_id TEXT NOT NULL,
        message TEXT NOT NULL,
        response TEXT NOT NULL,
        blocked INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_alerts_open ON alerts (is_resolved, client_id)",
    "CREATE INDEX IF NOT EXISTS idx_guardrail_log_client ON guardrail_log (client_id)",
    "CREATE INDEX IF NOT EXISTS idx_chat_messages_client ON chat_messages (client_id)",
)


def _keyword_from_row(row: aiosqlite.Row) -> CrisisKeyword:
    return CrisisKeyword(keyword=row["keyword"], severity=row["severity"], active=bool(row["is_active"]))


def _log_entry_from_row(row: aiosqlite.Row) -> GuardrailLogEntry:
    return GuardrailLogEntry(
        id=row["id"],
        client_id=row["client_id"],
        direction=row["direction"],
        reason=row["reason"],
        raw_text=row["raw"],
        created_at=row["created_at"],
    )


def _alert_from_row(row: aiosqlite.Row) -> Alert:
    return Alert(
        id=row["id"],
        client_id=row["client_id"],
        reason=row["reason"],
        details=json.loads(row["details"]),
        resolved=bool(row["is_resolved"]),
        created_at=row["created_at"],
    )


class SafetyStore:
    """Async repository over the SQLite database at `db_path`."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    async def get_db(self) -> aiosqlite.Connection:
        """Get an async connection to the SQLite database."""
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        conn = await aiosqlite.connect(self.db_path)
        conn.row_factory = aiosqlite.Row
        return conn

    async def init_db(self) -> None:
        '''Create all tables and indexes if missing.'''
        db = await self.get_db()
        try:
            for statement in _SCHEMA:
                await db.execute(statement)
            await db.commit()
        finally:
            await db.close()
        log.info("sqlite_db_initialized", path=self.db_path)

    # ── Crisis keywords ──────────────────────────────────────────────────

    async def seed_keywords(self, keywords: Iterable[CrisisKeyword]) -> int:
        """Insert keywords that are not present yet. Existing rows are untouched.

        Returns:
            Number of keywords inserted.
        """
        db = await self.get_db()
        inserted = 0
        try:
            for kw in keywords:
                cursor = await db.execute(
                    "INSERT OR IGNORE INTO crisis_keywords (keyword, severity, is_active) "
                    "VALUES (?, ?, ?)",
                    (kw.keyword, kw.severity.value, int(kw.active)),
                )
                inserted += cursor.rowcount
            await db.commit()
        finally:
            await db.close()
        log.info("crisis_keywords_seeded", inserted=inserted)
        return inserted

    async def list_keywords(self, active_only: bool = False) -> list[CrisisKeyword]:
        db = await self.get_db()
        try:
            query = "SELECT keyword, severity, is_active FROM crisis_keywords"
            if active_only:
                query += " WHERE is_active = 1"
            cursor = await db.execute(query + " ORDER BY keyword")
            rows = await cursor.fetchall()
        finally:
            await db.close()
        return [_keyword_from_row(r) for r in rows]

    async def active_keywords(self) -> list[CrisisKeyword]:
        """Snapshot of the active keyword set, taken right before a check."""
        return await self.list_keywords(active_only=True)

    async def upsert_keyword(self, keyword: CrisisKeyword) -> CrisisKeyword:
        db = await self.get_db()
        try:
            await db.execute(
                """
                INSERT INTO crisis_keywords (keyword, severity, is_active)
                VALUES (?, ?, ?)
                ON CONFLICT (keyword) DO UPDATE SET
                    severity = excluded.severity,
                    is_active = excluded.is_active
                """,
                (keyword.keyword, keyword.severity.value, int(keyword.active)),
            )
            await db.commit()
        finally:
            await db.close()
        log.info("crisis_keyword_upserted", keyword=keyword.keyword, severity=str(keyword.severity))
        return keyword

    async def set_keyword_active(self, keyword: str, active: bool) -> CrisisKeyword | None:
        """Toggle a keyword. Returns None when the keyword does not exist."""
        db = await self.get_db()
        try:
            cursor = await db.execute(
                "UPDATE crisis_keywords SET is_active = ? WHERE keyword = ?",
                (int(active), keyword),
            )
            await db.commit()
            if cursor.rowcount == 0:
                return None
            cursor = await db.execute(
                "SELECT keyword, severity, is_active FROM crisis_keywords WHERE keyword = ?",
                (keyword,),
            )
            row = await cursor.fetchone()
        finally:
            await db.close()
        log.info("crisis_keyword_toggled", keyword=keyword, active=active)
        return _keyword_from_row(row)

    # ── Guardrail log ────────────────────────────────────────────────────

    async def append_guardrail_log(
        self, client_id: str, direction: Direction, reason: str, raw_text: str
    ) -> None:
        db = await self.get_db()
        try:
            await db.execute(
                "INSERT INTO guardrail_log (client_id, direction, reason, raw) VALUES (?, ?, ?, ?)",
                (client_id, Direction(direction).value, reason, raw_text),
            )
            await db.commit()
        finally:
            await db.close()

    async def list_guardrail_log(
        self, client_id: str | None = None, limit: int = 100
    ) -> list[GuardrailLogEntry]:
        db = await self.get_db()
        try:
            params: list[Any] = []
            query = "SELECT * FROM guardrail_log"
            if client_id is not None:
                query += " WHERE client_id = ?"
                params.append(client_id)
            query += " ORDER BY id DESC LIMIT ?"
            params.append(limit)
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        finally:
            await db.close()
        return [_log_entry_from_row(r) for r in rows]

    # ── Alerts ───────────────────────────────────────────────────────────

    async def insert_alert(self, client_id: str, reason: str, details: dict[str, Any]) -> Alert:
        db = await self.get_db()
        try:
            cursor = await db.execute(
                "INSERT INTO alerts (client_id, reason, details, is_resolved) VALUES (?, ?, ?, 0)",
                (client_id, reason, json.dumps(details, default=str)),
            )
            await db.commit()
            cursor = await db.execute("SELECT * FROM alerts WHERE id = ?", (cursor.lastrowid,))
            row = await cursor.fetchone()
        finally:
            await db.close()
        return _alert_from_row(row)

    async def list_alerts(
        self, client_id: str | None = None, resolved: bool | None = None, limit: int = 100
    ) -> list[Alert]:
        db = await self.get_db()
        try:
            clauses: list[str] = []
            params: list[Any] = []
            if client_id is not None:
                clauses.append("client_id = ?")
                params.append(client_id)
            if resolved is not None:
                clauses.append("is_resolved = ?")
                params.append(int(resolved))
            query = "SELECT * FROM alerts"
            if clauses:
                query += " WHERE " + " AND ".join(clauses)
            query += " ORDER BY id DESC LIMIT ?"
            params.append(limit)
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        finally:
            await db.close()
        return [_alert_from_row(r) for r in rows]

    async def resolve_alert(self, alert_id: int) -> Alert | None:
        """Mark an alert resolved. Returns None when the alert does not exist."""
        db = await self.get_db()
        try:
            cursor = await db.execute("UPDATE alerts SET is_resolved = 1 WHERE id = ?", (alert_id,))
            await db.commit()
            if cursor.rowcount == 0:
                return None
            cursor = await db.execute("SELECT * FROM alerts WHERE id = ?", (alert_id,))
            row = await cursor.fetchone()
        finally:
            await db.close()
        log.info("alert_resolved", alert_id=alert_id)
        return _alert_from_row(row)

    # ── Chat turns ───────────────────────────────────────────────────────

    async def save_chat_turn(
        self, turn_id: str, client_id: str, message: str, response: str, blocked: bool
    ) -> None:
        '''Save one user message and the reply that was shown.'''
        db = await self.get_db()
        try:
            await db.execute(
                """
                INSERT INTO chat_messages (id, client_id, message, response, blocked)
                VALUES (?, ?, ?, ?, ?)
                """,
                (turn_id, client_id, message, response, int(blocked)),
            )
            await db.commit()
        finally:
            await db.close()
        log.info("saved_chat_turn", turn_id=turn_id, client_id=client_id)

    async def recent_turns(self, client_id: str, limit: int = 6) -> list[tuple[str, str]]:
        """Last `limit` saved turns for a client as (message, response), oldest first."""
        if limit <= 0:
            return []
        db = await self.get_db()
        try:
            cursor = await db.execute(
                """
                SELECT message, response FROM chat_messages
                WHERE client_id = ?
                ORDER BY rowid DESC LIMIT ?
                """,
                (client_id, limit),
            )
            rows = await cursor.fetchall()
        finally:
            await db.close()
        return [(r["message"], r["response"]) for r in reversed(rows)]
