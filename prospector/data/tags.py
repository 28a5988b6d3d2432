from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import cast

from prospector.data.database import Database
from prospector.data.types import Tag
from prospector.errors import PersistenceError, ValidationError

logger = logging.getLogger(__name__)


class TagQueries:
    def __init__(self, db: Database) -> None:
        self._db = db

    async def create(self, vault_id: int, name: str) -> Tag:
        result = await self._db.run(
            "INSERT INTO tags (vault_id, name) VALUES (?, ?)", (vault_id, name)
        )
        tag = await self.get_by_id(result.lastrowid) if result.lastrowid else None
        if tag is None:
            raise PersistenceError("Failed to create tag")
        return tag

    async def get_by_id(self, tag_id: int) -> Tag | None:
        row = await self._db.get("SELECT * FROM tags WHERE id = ?", (tag_id,))
        return cast(Tag, row) if row else None

    async def get_by_name(self, vault_id: int, name: str) -> Tag | None:
        row = await self._db.get(
            "SELECT * FROM tags WHERE vault_id = ? AND name = ?", (vault_id, name)
        )
        return cast(Tag, row) if row else None

    async def get_by_vault(self, vault_id: int) -> list[Tag]:
        rows = await self._db.all(
            "SELECT * FROM tags WHERE vault_id = ? ORDER BY name COLLATE NOCASE",
            (vault_id,),
        )
        return cast(list[Tag], rows)

    async def ensure(self, vault_id: int, name: str) -> Tag:
        """Return the vault's tag called *name*, creating it if needed."""
        name = name.strip()
        if not name:
            raise ValidationError("Tag name is empty")
        tag = await self.get_by_name(vault_id, name)
        if tag is not None:
            return tag
        return await self.create(vault_id, name)

    async def link_to_note(self, note_id: int, tag_id: int) -> None:
        await self._db.run(
            "INSERT OR IGNORE INTO note_tags (note_id, tag_id) VALUES (?, ?)",
            (note_id, tag_id),
        )

    async def set_for_note(
        self, vault_id: int, note_id: int, names: Iterable[str]
    ) -> list[Tag]:
        """Replace the note's tag links with *names*.

        Usage counts are not touched; call ``update_all_usage_counts`` once
        the batch of link changes is done.
        """
        tags = [await self.ensure(vault_id, name) for name in names]
        await self._db.run("DELETE FROM note_tags WHERE note_id = ?", (note_id,))
        for tag in tags:
            await self.link_to_note(note_id, tag["id"])
        return tags

    async def get_tags_for_note(self, note_id: int) -> list[Tag]:
        rows = await self._db.all(
            """
            SELECT t.*
            FROM tags t
            JOIN note_tags nt ON nt.tag_id = t.id
            WHERE nt.note_id = ?
            ORDER BY t.name COLLATE NOCASE
            """,
            (note_id,),
        )
        return cast(list[Tag], rows)

    async def update_all_usage_counts(self, vault_id: int) -> None:
        """Recompute ``usage_count`` for every tag in the vault from the links."""
        result = await self._db.run(
            """
            UPDATE tags
            SET usage_count = (
                SELECT COUNT(*) FROM note_tags nt WHERE nt.tag_id = tags.id
            )
            WHERE vault_id = ?
            """,
            (vault_id,),
        )
        logger.debug("Recomputed usage counts for %d tag(s)", result.rowcount)
