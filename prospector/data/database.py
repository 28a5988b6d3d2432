from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any, NamedTuple, Protocol, runtime_checkable

import aiosqlite

from prospector.data.schema import SCHEMA_SQL

logger = logging.getLogger(__name__)

Params = Sequence[Any]


class RunResult(NamedTuple):
    lastrowid: int | None
    rowcount: int


@runtime_checkable
class Database(Protocol):
    """The only database surface the query layer is written against."""

    async def run(self, sql: str, params: Params = ()) -> RunResult: ...

    async def get(self, sql: str, params: Params = ()) -> dict[str, Any] | None: ...

    async def all(self, sql: str, params: Params = ()) -> list[dict[str, Any]]: ...

    async def close(self) -> None: ...


class SqliteDatabase:
    """``Database`` backed by a single ``aiosqlite`` connection.

    The connection runs in autocommit mode (``isolation_level=None``): every
    statement commits on its own unless an explicit ``BEGIN`` is active.
    """

    def __init__(self, conn: aiosqlite.Connection, db_path: str) -> None:
        self._conn = conn
        self._db_path = db_path

    @property
    def db_path(self) -> str:
        return self._db_path

    async def run(self, sql: str, params: Params = ()) -> RunResult:
        logger.debug("run: %s", _squash(sql))
        async with self._conn.execute(sql, tuple(params)) as cur:
            return RunResult(cur.lastrowid, cur.rowcount)

    async def get(self, sql: str, params: Params = ()) -> dict[str, Any] | None:
        async with self._conn.execute(sql, tuple(params)) as cur:
            row = await cur.fetchone()
        return dict(row) if row else None

    async def all(self, sql: str, params: Params = ()) -> list[dict[str, Any]]:
        async with self._conn.execute(sql, tuple(params)) as cur:
            rows = await cur.fetchall()
        return [dict(row) for row in rows]

    async def close(self) -> None:
        await self._conn.close()
        logger.info("Closed SQLite database at %s", self._db_path)


async def connect(db_path: str | Path) -> SqliteDatabase:
    """Open the database at *db_path* and make sure the schema exists."""
    db_path = str(db_path)
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = await aiosqlite.connect(db_path, isolation_level=None)
    conn.row_factory = aiosqlite.Row
    db = SqliteDatabase(conn, db_path)
    logger.info("Connected to SQLite database at %s", db_path)
    try:
        await init_database(db)
    except Exception:
        await conn.close()
        raise
    return db


async def init_database(db: Database) -> None:
    """Apply the schema one statement at a time.

    Every statement uses IF NOT EXISTS, so this is safe on every startup.
    """
    for statement in schema_statements():
        await db.run(statement)
    logger.info("Database initialized successfully")


def schema_statements(script: str = SCHEMA_SQL) -> list[str]:
    return [stmt.strip() for stmt in script.split(";") if stmt.strip()]


def _squash(sql: str) -> str:
    return " ".join(sql.split())
