"""Async SQLite persistence for widget chat messages and daily usage."""

from __future__ import annotations

import asyncio
import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiosqlite


def _utc_now() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="microseconds")


def _utc_today() -> str:
    return datetime.now(tz=timezone.utc).date().isoformat()


def _row_to_message(row: aiosqlite.Row) -> Dict[str, Any]:
    metadata = json.loads(row["metadata"]) if row["metadata"] else None
    return {
        "id": row["id"],
        "role": row["role"],
        "content": row["content"],
        "metadata": metadata,
        "created_at": row["created_at"],
    }


class ChatStore:
    """Message store and usage recorder for widget sessions.

    Messages are ordered by an autoincrement ``seq`` column so pagination is
    stable even when two messages share a timestamp.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._init_lock = asyncio.Lock()
        self._initialized = False

    async def init(self) -> None:
        async with self._init_lock:
            if self._initialized:
                return

            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = await aiosqlite.connect(self.db_path)
            try:
                await conn.execute("PRAGMA journal_mode=WAL;")
                await conn.execute("PRAGMA synchronous=NORMAL;")

                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS messages (
                        seq INTEGER PRIMARY KEY AUTOINCREMENT,
                        id TEXT NOT NULL UNIQUE,
                        session_id TEXT NOT NULL,
                        role TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
                        content TEXT NOT NULL,
                        metadata TEXT,
                        created_at TEXT NOT NULL
                    )
                    """
                )

                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS usage_daily (
                        session_id TEXT NOT NULL,
                        date TEXT NOT NULL,
                        total_tokens INTEGER NOT NULL DEFAULT 0,
                        total_requests INTEGER NOT NULL DEFAULT 0,
                        PRIMARY KEY (session_id, date)
                    )
                    """
                )

                await conn.execute("CREATE INDEX IF NOT EXISTS idx_messages_session ON messages(session_id, seq)")
                await conn.commit()
            finally:
                await conn.close()
            self._initialized = True

    async def _conn(self) -> aiosqlite.Connection:
        await self.init()
        conn = await aiosqlite.connect(self.db_path)
        conn.row_factory = aiosqlite.Row
        return conn

    # Messages
    async def create_message(
        self,
        session_id: str,
        role: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        message_id = str(uuid.uuid4())
        created_at = _utc_now()
        payload = json.dumps(metadata, ensure_ascii=False) if metadata else None
        conn = await self._conn()
        try:
            await conn.execute(
                """
                INSERT INTO messages (id, session_id, role, content, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (message_id, session_id, role, content, payload, created_at),
            )
            await conn.commit()
        finally:
            await conn.close()
        return {
            "id": message_id,
            "role": role,
            "content": content,
            "metadata": metadata or None,
            "created_at": created_at,
        }

    async def get_messages(
        self,
        session_id: str,
        *,
        cursor: Optional[str] = None,
        limit: int = 20,
    ) -> Dict[str, Any]:
        """Newest-first page of messages older than ``cursor`` (a message id)."""
        conn = await self._conn()
        try:
            before_seq: Optional[int] = None
            if cursor:
                async with conn.execute(
                    "SELECT seq FROM messages WHERE id = ? AND session_id = ?",
                    (cursor, session_id),
                ) as cur:
                    row = await cur.fetchone()
                if row is not None:
                    before_seq = row["seq"]

            if before_seq is None:
                query = "SELECT * FROM messages WHERE session_id = ? ORDER BY seq DESC LIMIT ?"
                params: tuple = (session_id, limit + 1)
            else:
                query = "SELECT * FROM messages WHERE session_id = ? AND seq < ? ORDER BY seq DESC LIMIT ?"
                params = (session_id, before_seq, limit + 1)

            async with conn.execute(query, params) as cur:
                rows = await cur.fetchall()
        finally:
            await conn.close()

        has_more = len(rows) > limit
        page = [_row_to_message(row) for row in rows[:limit]]
        next_cursor = page[-1]["id"] if has_more and page else None
        return {"messages": page, "next_cursor": next_cursor}

    async def get_messages_for_context(self, session_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Most recent ``limit`` messages, newest first."""
        conn = await self._conn()
        try:
            async with conn.execute(
                "SELECT * FROM messages WHERE session_id = ? ORDER BY seq DESC LIMIT ?",
                (session_id, limit),
            ) as cur:
                rows = await cur.fetchall()
        finally:
            await conn.close()
        return [_row_to_message(row) for row in rows]

    async def get_user_message_count(self, session_id: str) -> int:
        conn = await self._conn()
        try:
            async with conn.execute(
                "SELECT COUNT(*) AS total FROM messages WHERE session_id = ? AND role = 'user'",
                (session_id,),
            ) as cur:
                row = await cur.fetchone()
        finally:
            await conn.close()
        return int(row["total"]) if row else 0

    # Usage
    async def record_usage(self, session_id: str, total_tokens: int) -> None:
        if total_tokens <= 0:
            return
        conn = await self._conn()
        try:
            await conn.execute(
                """
                INSERT INTO usage_daily (session_id, date, total_tokens, total_requests)
                VALUES (?, ?, ?, 1)
                ON CONFLICT(session_id, date) DO UPDATE SET
                    total_tokens = usage_daily.total_tokens + excluded.total_tokens,
                    total_requests = usage_daily.total_requests + 1
                """,
                (session_id, _utc_today(), int(total_tokens)),
            )
            await conn.commit()
        finally:
            await conn.close()
