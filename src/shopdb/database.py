# manages the connection pool, provides the transaction helper used by queries
from __future__ import annotations

import asyncio
import os.path
import sqlite3
from contextlib import asynccontextmanager
from sqlite3 import Row
from typing import AsyncIterator, List, Optional

import aiosqlite

from shopdb.config import Config
from shopdb.results import DatabaseClosedError
from shopdb.utils.logger import get_logger

_logger = get_logger(__name__)

# bootstrap scripts only run against a database without this table
SENTINEL_TABLE = "Users"
# loggers switched to DEBUG by Config.debug
LOGGER_NAMES = ("shopdb.database", "shopdb.queries")


def _py_lower(value):
    return None if value is None else str(value).lower()


async def _init_db(conn: aiosqlite.Connection, scripts) -> None:
    for script in scripts:
        if not os.path.exists(script) or os.path.getsize(script) == 0:
            _logger.debug(f"Skipping missing or empty init script {script}")
            continue
        _logger.info(f"Initializing database with script {script}...")
        with open(script, "r") as f:
            await conn.executescript(f.read())


async def _table_exists(conn: aiosqlite.Connection, table_name: str) -> bool:
    cur = await conn.execute(
        """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table'
          AND name = ? COLLATE NOCASE;
        """,
        (table_name,),
    )
    row = await cur.fetchone()
    await cur.close()
    return row is not None


@asynccontextmanager
async def transaction(
    conn: aiosqlite.Connection, lock: bool = False
) -> AsyncIterator[aiosqlite.Connection]:
    """BEGIN, run the body, COMMIT; ROLLBACK and re-raise if anything fails.

    With ``lock`` the transaction starts with BEGIN IMMEDIATE, taking the
    database write lock up front so concurrent locking writers serialize
    (each waits up to the connection's busy timeout).
    """
    await conn.execute("BEGIN IMMEDIATE;" if lock else "BEGIN;")
    try:
        yield conn
    except BaseException:
        try:
            await conn.execute("ROLLBACK;")
        except (sqlite3.Error, ValueError) as rollback_err:
            _logger.warning(f"ROLLBACK failed: {rollback_err}")
        raise
    await conn.execute("COMMIT;")


class Database:
    """
    A bounded pool of aiosqlite connections to one SQLite file.

    Connections are opened lazily up to ``config.pool_size``, lent out by
    ``acquire()`` for the length of one operation and returned afterwards.
    Every connection runs in autocommit mode so transactions are issued
    explicitly (see ``transaction``), with foreign keys enforced.

        async with Database(Config(db_path="shop.sqlite")) as db:
            users = await queries.get_user_info_by_email(db, "a@b.c")
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config if config is not None else Config.from_env()
        self._conns: List[aiosqlite.Connection] = []
        self._idle: Optional[asyncio.Queue] = None
        self._grow_lock: Optional[asyncio.Lock] = None
        self._waiting = 0
        self._closed = True
        if self.config.debug:
            for name in LOGGER_NAMES:
                get_logger(name, debug=True)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def size(self) -> int:
        """Number of connections currently open (idle or lent out)."""
        return len(self._conns)

    async def __aenter__(self) -> "Database":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def open(self) -> None:
        """Open the first connection and run bootstrap scripts on a fresh database."""
        if not self._closed:
            return
        self._idle = asyncio.Queue()
        self._grow_lock = asyncio.Lock()
        self._closed = False

        try:
            conn = await self._connect()
            self._conns.append(conn)
            if self.config.init_scripts and not await _table_exists(
                conn, SENTINEL_TABLE
            ):
                _logger.info("Initializing database...")
                await _init_db(conn, self.config.init_scripts)
        except BaseException:
            self._closed = True
            for opened in list(self._conns):
                await self._discard(opened)
            raise
        self._idle.put_nowait(conn)
        _logger.debug(
            f"Opened {self.config.db_path} (pool size {self.config.pool_size})"
        )

    async def close(self) -> None:
        """Close idle connections; lent-out ones are closed when released."""
        if self._closed:
            return
        self._closed = True
        while not self._idle.empty():
            conn = self._idle.get_nowait()
            if conn is not None:
                await self._discard(conn)
        # wake up anyone blocked in acquire()
        for _ in range(self._waiting):
            self._idle.put_nowait(None)
        _logger.debug(f"Closed {self.config.db_path}")

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        """Borrow a connection for one operation."""
        conn = await self._checkout()
        try:
            yield conn
        finally:
            await self._release(conn)

    async def _connect(self) -> aiosqlite.Connection:
        folder = os.path.dirname(self.config.db_path)
        if folder and not os.path.isdir(folder):
            os.makedirs(folder, exist_ok=True)
        conn = await aiosqlite.connect(
            self.config.db_path,
            timeout=self.config.busy_timeout,
            isolation_level=None,
        )
        conn.row_factory = Row
        await conn.execute("PRAGMA foreign_keys = ON;")
        # SQLite's LOWER() only folds ASCII; searches lowercase with this on both sides
        await conn.create_function("py_lower", 1, _py_lower, deterministic=True)
        return conn

    async def _checkout(self) -> aiosqlite.Connection:
        if self._closed:
            raise DatabaseClosedError(f"database {self.config.db_path} is closed")
        try:
            return self._idle.get_nowait()
        except asyncio.QueueEmpty:
            pass

        async with self._grow_lock:
            if len(self._conns) < self.config.pool_size:
                conn = await self._connect()
                self._conns.append(conn)
                return conn

        self._waiting += 1
        try:
            conn = await self._idle.get()
        finally:
            self._waiting -= 1
        if conn is None:
            raise DatabaseClosedError(f"database {self.config.db_path} is closed")
        return conn

    async def _release(self, conn: aiosqlite.Connection) -> None:
        if self._closed:
            await self._discard(conn)
            return
        if conn.in_transaction:
            # a body that bailed out without ending its transaction
            try:
                await conn.rollback()
            except (sqlite3.Error, ValueError) as e:
                _logger.warning(f"Dropping connection after failed ROLLBACK: {e}")
                await self._discard(conn)
                return
        self._idle.put_nowait(conn)

    async def _discard(self, conn: aiosqlite.Connection) -> None:
        if conn in self._conns:
            self._conns.remove(conn)
        await conn.close()
