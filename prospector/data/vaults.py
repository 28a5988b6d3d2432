from __future__ import annotations

import logging
from typing import cast

from prospector.data.database import Database
from prospector.data.types import CreateVaultInput, Vault, VaultStatistics
from prospector.errors import PersistenceError

logger = logging.getLogger(__name__)


class VaultQueries:
    def __init__(self, db: Database) -> None:
        self._db = db

    async def create(self, data: CreateVaultInput) -> Vault:
        """Insert a vault and return the stored row.

        A duplicate path surfaces as ``sqlite3.IntegrityError`` from the
        UNIQUE constraint; callers that want a friendlier error check first.
        """
        result = await self._db.run(
            "INSERT INTO vaults (path, name) VALUES (?, ?)",
            (data["path"], data["name"]),
        )
        vault = await self.get_by_id(result.lastrowid) if result.lastrowid else None
        if vault is None:
            raise PersistenceError("Failed to create vault")
        logger.debug("Created vault %d at %s", vault["id"], vault["path"])
        return vault

    async def get_by_path(self, path: str) -> Vault | None:
        row = await self._db.get("SELECT * FROM vaults WHERE path = ?", (path,))
        return cast(Vault, row) if row else None

    async def get_by_id(self, vault_id: int) -> Vault | None:
        row = await self._db.get("SELECT * FROM vaults WHERE id = ?", (vault_id,))
        return cast(Vault, row) if row else None

    async def get_all(self) -> list[Vault]:
        rows = await self._db.all("SELECT * FROM vaults ORDER BY created_at DESC, id DESC")
        return cast(list[Vault], rows)

    async def update_last_scanned(self, vault_id: int) -> None:
        await self._db.run(
            "UPDATE vaults SET last_scanned = CURRENT_TIMESTAMP WHERE id = ?",
            (vault_id,),
        )

    async def delete(self, vault_id: int) -> None:
        """Delete a vault. CASCADE removes its notes, tags and links."""
        await self._db.run("DELETE FROM vaults WHERE id = ?", (vault_id,))

    async def get_statistics(self, vault_id: int) -> VaultStatistics:
        stats = await self._db.get(
            """
            SELECT
                COUNT(*) AS note_count,
                COALESCE(SUM(word_count), 0) AS total_words,
                COALESCE(SUM(character_count), 0) AS total_characters,
                MAX(modified_time) AS last_modified
            FROM notes
            WHERE vault_id = ?
            """,
            (vault_id,),
        )
        tags = await self._db.get(
            "SELECT COUNT(*) AS tag_count FROM tags WHERE vault_id = ?", (vault_id,)
        )
        stats = stats or {}
        return {
            "note_count": int(stats.get("note_count") or 0),
            "tag_count": int(tags["tag_count"]) if tags else 0,
            "total_words": int(stats.get("total_words") or 0),
            "total_characters": int(stats.get("total_characters") or 0),
            "last_modified": stats.get("last_modified"),
        }
