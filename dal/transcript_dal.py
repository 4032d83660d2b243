"""Async Data Access Layer for the TRANSCRIPT key/value table.

Each row holds one serialized conversation collection under a namespace key.
"""

from __future__ import annotations

import time
from typing import Optional

from utils.database_init import AsyncDatabaseInitializer


class TranscriptDAL:
    """Durable key/value storage for conversation transcripts.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def load(self, namespace: str) -> Optional[str]:
        """Return the payload stored under `namespace`, or None if absent."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT payload FROM TRANSCRIPT WHERE namespace = ?",
                (namespace,),
            )
            row = await cur.fetchone()
            return row[0] if row else None

    async def save(self, namespace: str, payload: str) -> None:
        """Insert or replace the payload for `namespace`."""
        async with self._db.connection() as conn:
            await conn.execute(
                "INSERT INTO TRANSCRIPT (namespace, payload, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(namespace) DO UPDATE SET payload = excluded.payload, "
                "updated_at = excluded.updated_at",
                (namespace, payload, int(time.time())),
            )
            await conn.commit()

    async def delete(self, namespace: str) -> bool:
        """Delete the payload for `namespace`. Returns True if a row was deleted."""
        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM TRANSCRIPT WHERE namespace = ?", (namespace,))
            await conn.commit()
            cur = await conn.execute("SELECT changes()")
            changed = await cur.fetchone()
            return bool(changed and changed[0] > 0)
