from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from prospector.data.database import Database, SqliteDatabase, connect
from prospector.handlers.provider import HandlersProvider

pytestmark = pytest.mark.anyio


class _CountingConnector:
    def __init__(self, fail_times: int = 0) -> None:
        self.calls = 0
        self.fail_times = fail_times

    async def __call__(self, db_path: str) -> Database:
        self.calls += 1
        await asyncio.sleep(0.01)
        if self.calls <= self.fail_times:
            raise OSError("database is locked")
        return await connect(db_path)


async def test_lazy_initialization_happens_once(tmp_path: Path) -> None:
    connector = _CountingConnector()
    provider = HandlersProvider(str(tmp_path / "prospector.db"), connector=connector)
    assert not provider.is_initialized

    results = await asyncio.gather(*(provider.get() for _ in range(5)))

    assert connector.calls == 1
    assert all(h is results[0] for h in results)
    assert await provider.get() is results[0]
    assert provider.is_initialized
    await provider.close()


async def test_failed_initialization_is_retried(tmp_path: Path) -> None:
    connector = _CountingConnector(fail_times=1)
    provider = HandlersProvider(str(tmp_path / "prospector.db"), connector=connector)

    first, second = await asyncio.gather(
        provider.get(), provider.get(), return_exceptions=True
    )
    assert isinstance(first, OSError)
    assert second is first
    assert not provider.is_initialized

    handlers = await provider.get()

    assert connector.calls == 2
    assert await handlers.get_all() == []
    await provider.close()


async def test_initialize_with_explicit_database(
    db: SqliteDatabase, tmp_path: Path, mock_vault: dict
) -> None:
    connector = _CountingConnector()
    provider = HandlersProvider(str(tmp_path / "unused.db"), connector=connector)

    handlers = provider.initialize(db)
    await handlers.create(mock_vault)

    assert await provider.get() is handlers
    assert connector.calls == 0

    await provider.reset()
    assert not provider.is_initialized

    await provider.close()
    # The explicitly supplied database is not owned by the provider.
    assert len(await db.all("SELECT * FROM vaults")) == 1


async def test_close_releases_database(tmp_path: Path) -> None:
    provider = HandlersProvider(str(tmp_path / "prospector.db"))
    await provider.get()

    await provider.close()

    assert not provider.is_initialized
    assert (tmp_path / "prospector.db").exists()


class _TrackedDatabase:
    def __init__(self, db: SqliteDatabase) -> None:
        self.db = db
        self.closed = False

    async def run(self, sql, params=()):
        return await self.db.run(sql, params)

    async def get(self, sql, params=()):
        return await self.db.get(sql, params)

    async def all(self, sql, params=()):
        return await self.db.all(sql, params)

    async def close(self) -> None:
        self.closed = True
        await self.db.close()


class _TrackingConnector:
    """Records every database it opens; the first open waits for ``release``."""

    def __init__(self) -> None:
        self.opened: list[_TrackedDatabase] = []
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def __call__(self, db_path: str) -> Database:
        first = not self.started.is_set()
        self.started.set()
        if first:
            await self.release.wait()
        db = _TrackedDatabase(await connect(db_path))
        self.opened.append(db)
        return db


async def test_reset_closes_owned_database(tmp_path: Path) -> None:
    connector = _TrackingConnector()
    connector.release.set()
    provider = HandlersProvider(str(tmp_path / "prospector.db"), connector=connector)

    await provider.get()
    await provider.reset()
    assert connector.opened[0].closed

    await provider.get()
    await provider.close()

    assert len(connector.opened) == 2
    assert all(db.closed for db in connector.opened)


async def test_reset_during_initialization_discards_connection(tmp_path: Path) -> None:
    connector = _TrackingConnector()
    provider = HandlersProvider(str(tmp_path / "prospector.db"), connector=connector)

    pending = asyncio.create_task(provider.get())
    await connector.started.wait()
    await provider.reset()
    connector.release.set()
    handlers = await pending

    assert len(connector.opened) == 2
    stale, current = connector.opened
    assert stale.closed
    assert not current.closed
    assert provider.is_initialized
    assert await provider.get() is handlers
    assert await handlers.get_all() == []

    await provider.close()
    assert current.closed
