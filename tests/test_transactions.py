from __future__ import annotations

import asyncio
import sqlite3

import pytest

from prospector.data.database import Params, RunResult, SqliteDatabase
from prospector.data.queries import DatabaseQueries
from prospector.errors import TransactionError

pytestmark = pytest.mark.anyio


async def test_commits_successful_transaction(
    queries: DatabaseQueries, mock_vault: dict, mock_note: dict
) -> None:
    async def work(tx: DatabaseQueries) -> dict:
        vault = await tx.vaults.create(mock_vault)
        note = await tx.notes.create({**mock_note, "vault_id": vault["id"]})
        tag = await tx.tags.create(vault["id"], "test-tag")
        await tx.tags.link_to_note(note["id"], tag["id"])
        return {"vault": vault, "note": note, "tag": tag}

    result = await queries.transaction(work)

    assert await queries.vaults.get_by_id(result["vault"]["id"]) is not None
    assert await queries.notes.get_by_id(result["note"]["id"]) is not None
    assert await queries.tags.get_by_id(result["tag"]["id"]) is not None
    assert len(await queries.tags.get_tags_for_note(result["note"]["id"])) == 1
    assert not queries.in_transaction


async def test_rolls_back_on_constraint_violation(
    queries: DatabaseQueries, mock_vault: dict, mock_note: dict
) -> None:
    created: dict = {}

    async def work(tx: DatabaseQueries) -> None:
        vault = await tx.vaults.create(mock_vault)
        created["vault_id"] = vault["id"]
        await tx.notes.create({**mock_note, "vault_id": vault["id"]})
        await tx.notes.create({**mock_note, "vault_id": vault["id"]})

    with pytest.raises(sqlite3.IntegrityError):
        await queries.transaction(work)

    assert await queries.vaults.get_by_id(created["vault_id"]) is None
    assert await queries.vaults.get_all() == []


async def test_rolls_back_and_reraises_original_error(
    queries: DatabaseQueries, mock_vault: dict, mock_note: dict
) -> None:
    class Boom(Exception):
        pass

    async def work(tx: DatabaseQueries) -> None:
        vault = await tx.vaults.create(mock_vault)
        await tx.notes.create({**mock_note, "vault_id": vault["id"]})
        raise Boom("Custom transaction error")

    with pytest.raises(Boom, match="Custom transaction error"):
        await queries.transaction(work)

    assert await queries.vaults.get_all() == []
    # The connection is usable again after the rollback.
    assert (await queries.vaults.create(mock_vault))["path"] == mock_vault["path"]


async def test_nested_operations(
    queries: DatabaseQueries, mock_vault: dict, mock_note: dict
) -> None:
    async def work(tx: DatabaseQueries) -> int:
        vault = await tx.vaults.create(mock_vault)
        notes = await asyncio.gather(
            *(
                tx.notes.create({**mock_note, "vault_id": vault["id"], "file_path": f"/test/note{i}.md"})
                for i in range(3)
            )
        )
        tags = [await tx.tags.create(vault["id"], name) for name in ("tag1", "tag2")]
        for note in notes:
            for tag in tags:
                await tx.tags.link_to_note(note["id"], tag["id"])
        await tx.tags.update_all_usage_counts(vault["id"])
        return vault["id"]

    vault_id = await queries.transaction(work)

    assert len(await queries.notes.get_by_vault(vault_id)) == 3
    tags = await queries.tags.get_by_vault(vault_id)
    assert [t["usage_count"] for t in tags] == [3, 3]


async def test_statistics_inside_transaction(
    queries: DatabaseQueries, mock_vault: dict, mock_note: dict
) -> None:
    async def work(tx: DatabaseQueries) -> dict:
        vault = await tx.vaults.create(mock_vault)
        await tx.notes.create(
            {**mock_note, "vault_id": vault["id"], "file_path": "/test/note1.md",
             "word_count": 100, "character_count": 500}
        )
        await tx.notes.create(
            {**mock_note, "vault_id": vault["id"], "file_path": "/test/note2.md",
             "word_count": 200, "character_count": 1000}
        )
        await tx.tags.create(vault["id"], "tag1")
        await tx.tags.create(vault["id"], "tag2")
        return await tx.vaults.get_statistics(vault["id"])

    stats = await queries.transaction(work)

    assert stats["note_count"] == 2
    assert stats["tag_count"] == 2
    assert stats["total_words"] == 300
    assert stats["total_characters"] == 1500


async def test_returns_callback_result(queries: DatabaseQueries, mock_vault: dict) -> None:
    expected = {"success": True, "message": "Transaction completed"}

    async def work(tx: DatabaseQueries) -> dict:
        await tx.vaults.create(mock_vault)
        return expected

    assert await queries.transaction(work) == expected


async def test_nesting_is_rejected(queries: DatabaseQueries, mock_vault: dict) -> None:
    async def inner(tx: DatabaseQueries) -> None:
        await tx.vaults.create({**mock_vault, "path": "/inner"})

    async def outer(tx: DatabaseQueries) -> None:
        await tx.vaults.create(mock_vault)
        await tx.transaction(inner)

    with pytest.raises(TransactionError):
        await queries.transaction(outer)

    assert await queries.vaults.get_all() == []
    assert not queries.in_transaction


class _RollbackFails:
    """Delegates to a real database but fails every ROLLBACK."""

    def __init__(self, db: SqliteDatabase) -> None:
        self._db = db

    async def run(self, sql: str, params: Params = ()) -> RunResult:
        if sql == "ROLLBACK":
            raise sqlite3.OperationalError("disk I/O error")
        return await self._db.run(sql, params)

    async def get(self, sql: str, params: Params = ()) -> dict | None:
        return await self._db.get(sql, params)

    async def all(self, sql: str, params: Params = ()) -> list[dict]:
        return await self._db.all(sql, params)

    async def close(self) -> None:
        await self._db.close()


async def test_rollback_failure_does_not_mask_original_error(
    db: SqliteDatabase, mock_vault: dict
) -> None:
    queries = DatabaseQueries(_RollbackFails(db))

    async def work(tx: DatabaseQueries) -> None:
        await tx.vaults.create(mock_vault)
        raise ValueError("original")

    with pytest.raises(ValueError, match="original"):
        await queries.transaction(work)

    # Leave the shared connection clean for fixture teardown.
    await db.run("ROLLBACK")
