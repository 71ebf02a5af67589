"""Async Data Access Layer for the SESSION_STATE table.

Each row holds one session's serialized state under its session key. The
DAL only moves opaque blobs; encoding belongs to the session engine.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import aiosqlite

from utils.database_init import AsyncDatabaseInitializer

LOGGER = logging.getLogger(__name__)


class StoreUnavailableError(RuntimeError):
    """The keyed store failed for a reason other than a missing key."""


class SessionStateDAL:
    """Keyed blob store backed by SQLite.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def get(self, session_key: str) -> Optional[str]:
        """Return the stored blob for `session_key`, or None if absent."""
        try:
            async with self._db.connection() as conn:
                cur = await conn.execute(
                    "SELECT state_json FROM SESSION_STATE WHERE session_key = ?",
                    (session_key,),
                )
                row = await cur.fetchone()
        except (aiosqlite.Error, OSError) as exc:
            LOGGER.exception("Loading session %s failed", session_key)
            raise StoreUnavailableError(f"Failed to load session {session_key}") from exc
        return row[0] if row else None

    async def put(self, session_key: str, blob: str) -> None:
        """Insert or replace the blob stored under `session_key`."""
        try:
            async with self._db.connection() as conn:
                await conn.execute(
                    """
                    INSERT INTO SESSION_STATE (session_key, state_json, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(session_key) DO UPDATE SET
                        state_json = excluded.state_json,
                        updated_at = excluded.updated_at
                    """,
                    (session_key, blob, int(time.time())),
                )
                await conn.commit()
        except (aiosqlite.Error, OSError) as exc:
            LOGGER.exception("Saving session %s failed", session_key)
            raise StoreUnavailableError(f"Failed to save session {session_key}") from exc

    async def delete(self, session_key: str) -> bool:
        """Delete the row for `session_key`. Returns True if a row was deleted."""
        try:
            async with self._db.connection() as conn:
                await conn.execute("DELETE FROM SESSION_STATE WHERE session_key = ?", (session_key,))
                await conn.commit()
                cur = await conn.execute("SELECT changes()")
                changed = await cur.fetchone()
        except (aiosqlite.Error, OSError) as exc:
            raise StoreUnavailableError(f"Failed to delete session {session_key}") from exc
        return bool(changed and changed[0] > 0)
