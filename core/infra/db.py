"""
Database infrastructure with SQLite and async support.
"""

import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple

import aiosqlite


logger = logging.getLogger(__name__)


class Database:
    """Async SQLite database wrapper.

    Owners pass their schema as a list of statements; they are applied once on
    connect. The connection is shared, so every write is a single statement
    committed by :meth:`execute_commit` or :meth:`execute_returning`.
    """

    def __init__(self, db_path: str = "events.db", schema: Iterable[str] = ()):
        # Handle SQLite URL format if provided
        if db_path.startswith("sqlite"):
            if "///" in db_path:
                actual_path = db_path.split("///")[-1]
            else:
                actual_path = db_path.split("//")[-1]
            self.db_path = Path(actual_path)
        else:
            self.db_path = Path(db_path)
        self._schema = list(schema)
        self._connection: Optional[aiosqlite.Connection] = None

    async def connect(self) -> None:
        """Connect to the database and apply the schema."""
        if self._connection:
            return

        if self.db_path.parent and not self.db_path.parent.exists():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self.db_path, timeout=30)
        self._connection.row_factory = aiosqlite.Row
        # WAL lets the CLI read while the worker writes
        await self._connection.execute("PRAGMA journal_mode=WAL;")
        await self._connection.execute("PRAGMA busy_timeout=30000;")
        await self._run_migrations()
        logger.debug(f"Connected to {self.db_path}")

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def execute(self, sql: str, params: Tuple[Any, ...] = ()) -> aiosqlite.Cursor:
        """Execute a SQL statement."""
        if not self._connection:
            await self.connect()
        return await self._connection.execute(sql, params)

    async def execute_commit(self, sql: str, params: Tuple[Any, ...] = ()) -> int:
        """Execute a write and commit it; returns the affected row count."""
        cursor = await self.execute(sql, params)
        await self._connection.commit()
        return cursor.rowcount

    async def execute_returning(self, sql: str, params: Tuple[Any, ...] = ()) -> List[aiosqlite.Row]:
        """Run a write with a RETURNING clause to completion, then commit."""
        if not self._connection:
            await self.connect()
        rows = await self._connection.execute_fetchall(sql, params)
        await self._connection.commit()
        return list(rows)

    async def fetch_one(self, sql: str, params: Tuple[Any, ...] = ()) -> Optional[aiosqlite.Row]:
        """Fetch one row."""
        cursor = await self.execute(sql, params)
        return await cursor.fetchone()

    async def fetch_all(self, sql: str, params: Tuple[Any, ...] = ()) -> List[aiosqlite.Row]:
        """Fetch all rows."""
        cursor = await self.execute(sql, params)
        return await cursor.fetchall()

    async def _run_migrations(self) -> None:
        for statement in self._schema:
            await self._connection.execute(statement)
        await self._connection.commit()
