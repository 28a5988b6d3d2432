"""Shared fixtures: a fresh on-disk database per test."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import pytest

from prospector.data.database import SqliteDatabase, connect
from prospector.data.queries import DatabaseQueries


@pytest.fixture(params=["asyncio"])
def anyio_backend(request: pytest.FixtureRequest) -> str:
    """Restrict anyio tests to asyncio only (trio is not installed)."""
    return request.param


@pytest.fixture
async def db(tmp_path: Path) -> AsyncIterator[SqliteDatabase]:
    database = await connect(tmp_path / "prospector.db")
    yield database
    await database.close()


@pytest.fixture
def queries(db: SqliteDatabase) -> DatabaseQueries:
    return DatabaseQueries(db)


@pytest.fixture
def mock_vault() -> dict[str, Any]:
    return {"path": "/test/vault", "name": "Test Vault"}


@pytest.fixture
def mock_note() -> dict[str, Any]:
    return {
        "vault_id": 1,
        "file_path": "/test/vault/note.md",
        "file_name": "note.md",
        "file_size": 1024,
        "modified_time": "2024-01-01T00:00:00.000Z",
        "created_time": "2024-01-01T00:00:00.000Z",
        "content_hash": "abc123",
        "title": "Test Note",
        "frontmatter_tags": ["tag1", "tag2"],
        "frontmatter_data": {"author": "test", "priority": "high"},
        "word_count": 100,
        "character_count": 500,
    }
