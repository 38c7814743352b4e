"""
Async SQLite access for the library database.

A single aiosqlite connection in autocommit mode. Writes are serialized by an
asyncio.Lock so that a single-statement write from one coroutine can never
land inside a transaction another coroutine has open on the same connection.
"""
import asyncio
import logging
import os
import sqlite3
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Optional, Sequence

import aiosqlite

from .schema import SCHEMA, MIGRATIONS

logger = logging.getLogger(__name__)


class Database:
    """Owns the aiosqlite connection and the schema lifecycle."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database is not initialized - call initialize() first")
        return self._conn

    async def initialize(self) -> None:
        """Open the connection, create tables and apply migrations."""
        if self._conn is not None:
            return

        if self.db_path != ':memory:':
            os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)

        self._conn = await aiosqlite.connect(self.db_path, isolation_level=None)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")

        await self._conn.executescript(SCHEMA)
        await self._run_migrations()
        logger.info(f"[Database] Initialized at {self.db_path}")

    async def _run_migrations(self) -> None:
        applied = 0
        for statement in MIGRATIONS:
            try:
                await self._conn.execute(statement)
                applied += 1
            except sqlite3.OperationalError as e:
                # Column already exists - migration was applied before
                if 'duplicate column name' in str(e).lower():
                    continue
                raise
        if applied:
            logger.info(f"[Database] Applied {applied} migration(s)")

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("[Database] Closed")

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a single write statement. Returns the number of affected rows."""
        async with self._write_lock:
            cursor = await self.conn.execute(sql, params)
            rowcount = cursor.rowcount
            await cursor.close()
            return rowcount

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[aiosqlite.Row]:
        async with self.conn.execute(sql, params) as cursor:
            return list(await cursor.fetchall())

    async def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[aiosqlite.Row]:
        async with self.conn.execute(sql, params) as cursor:
            return await cursor.fetchone()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Run several statements atomically.

        Yields the raw connection; statements executed on it inside the block
        commit together or roll back together if the block raises.
        """
        async with self._write_lock:
            await self.conn.execute("BEGIN")
            try:
                yield self.conn
            except BaseException:
                await self.conn.execute("ROLLBACK")
                raise
            else:
                await self.conn.execute("COMMIT")
