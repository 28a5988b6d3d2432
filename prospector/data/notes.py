from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, cast

from prospector.data.database import Database
from prospector.data.types import CreateNoteInput, Note, UpdateNoteInput
from prospector.errors import PersistenceError, ValidationError

logger = logging.getLogger(__name__)

_JSON_COLUMNS = frozenset({"frontmatter_tags", "frontmatter_data"})

# Columns ``update`` may touch, in the order assignments are emitted.
_UPDATABLE_COLUMNS = (
    "file_size",
    "modified_time",
    "content_hash",
    "title",
    "frontmatter_tags",
    "frontmatter_data",
    "word_count",
    "character_count",
)

_INSERT_COLUMNS = (
    "vault_id",
    "file_path",
    "file_name",
    "file_size",
    "modified_time",
    "created_time",
    "content_hash",
    "title",
    "frontmatter_tags",
    "frontmatter_data",
    "word_count",
    "character_count",
)


def encode_json_column(value: Any) -> str | None:
    """Serialise a frontmatter list/dict for storage; ``None`` stays NULL."""
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


def decode_json_column(text: str | None) -> Any:
    if text is None:
        return None
    return json.loads(text)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class NoteQueries:
    def __init__(self, db: Database) -> None:
        self._db = db

    async def create(self, data: CreateNoteInput) -> Note:
        values = []
        for column in _INSERT_COLUMNS:
            value = data.get(column)
            if column in _JSON_COLUMNS:
                value = encode_json_column(value)
            values.append(value)

        placeholders = ", ".join("?" for _ in _INSERT_COLUMNS)
        result = await self._db.run(
            f"INSERT INTO notes ({', '.join(_INSERT_COLUMNS)}) VALUES ({placeholders})",
            values,
        )
        note = await self.get_by_id(result.lastrowid) if result.lastrowid else None
        if note is None:
            raise PersistenceError("Failed to create note")
        return note

    async def get_by_id(self, note_id: int) -> Note | None:
        row = await self._db.get("SELECT * FROM notes WHERE id = ?", (note_id,))
        return cast(Note, row) if row else None

    async def get_by_path(self, vault_id: int, file_path: str) -> Note | None:
        row = await self._db.get(
            "SELECT * FROM notes WHERE vault_id = ? AND file_path = ?",
            (vault_id, file_path),
        )
        return cast(Note, row) if row else None

    async def get_by_vault(self, vault_id: int) -> list[Note]:
        rows = await self._db.all(
            "SELECT * FROM notes WHERE vault_id = ? ORDER BY modified_time DESC",
            (vault_id,),
        )
        return cast(list[Note], rows)

    async def update(self, note_id: int, changes: UpdateNoteInput) -> Note:
        """Update only the columns present in *changes*.

        Raises:
            ValidationError: *changes* is empty or names a column that cannot
                be updated.
            PersistenceError: no note with *note_id* exists after the update.
        """
        unknown = sorted(set(changes) - set(_UPDATABLE_COLUMNS))
        if unknown:
            raise ValidationError(f"Unknown note field(s): {', '.join(unknown)}")

        assignments: list[str] = []
        values: list[Any] = []
        for column in _UPDATABLE_COLUMNS:
            if column not in changes:
                continue
            value = changes[column]  # type: ignore[literal-required]
            if column in _JSON_COLUMNS:
                value = encode_json_column(value)
            assignments.append(f"{column} = ?")
            values.append(value)

        if not assignments:
            raise ValidationError("No fields to update")

        values.append(note_id)
        await self._db.run(
            f"UPDATE notes SET {', '.join(assignments)} WHERE id = ?", values
        )

        note = await self.get_by_id(note_id)
        if note is None:
            raise PersistenceError("Failed to update note")
        return note

    async def delete(self, note_id: int) -> None:
        await self._db.run("DELETE FROM notes WHERE id = ?", (note_id,))

    async def delete_by_path(self, vault_id: int, file_path: str) -> None:
        await self._db.run(
            "DELETE FROM notes WHERE vault_id = ? AND file_path = ?",
            (vault_id, file_path),
        )

    async def get_modified_since(self, vault_id: int, since: str) -> list[Note]:
        rows = await self._db.all(
            """
            SELECT * FROM notes
            WHERE vault_id = ? AND modified_time > ?
            ORDER BY modified_time DESC
            """,
            (vault_id, since),
        )
        return cast(list[Note], rows)

    async def search(self, vault_id: int, query: str) -> list[Note]:
        """Case-insensitive substring match on title, file name and frontmatter."""
        term = f"%{_escape_like(query)}%"
        rows = await self._db.all(
            r"""
            SELECT * FROM notes
            WHERE vault_id = ?
              AND (title LIKE ? ESCAPE '\'
                   OR file_name LIKE ? ESCAPE '\'
                   OR frontmatter_data LIKE ? ESCAPE '\')
            ORDER BY modified_time DESC
            """,
            (vault_id, term, term, term),
        )
        logger.debug("Search '%s' in vault %d matched %d note(s)", query, vault_id, len(rows))
        return cast(list[Note], rows)

    @staticmethod
    def decode(note: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of *note* with its JSON columns parsed."""
        decoded = dict(note)
        for column in _JSON_COLUMNS:
            decoded[column] = decode_json_column(decoded.get(column))
        return decoded
