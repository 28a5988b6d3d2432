"""Business rules for vaults, layered on the query layer."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Protocol, runtime_checkable

from prospector.data.database import Database
from prospector.data.queries import DatabaseQueries
from prospector.data.types import CreateVaultInput, Note, Tag, Vault, VaultWithStats
from prospector.errors import ConflictError, ValidationError, vault_not_found

logger = logging.getLogger(__name__)


@runtime_checkable
class VaultHandlers(Protocol):
    async def get_all(self) -> list[Vault]: ...

    async def create(self, data: CreateVaultInput) -> Vault: ...

    async def get_with_stats(self, vault_id: int) -> VaultWithStats: ...

    async def delete(self, vault_id: int) -> None: ...

    async def list_notes(
        self,
        vault_id: int,
        query: str | None = None,
        modified_since: str | None = None,
    ) -> list[Note]: ...

    async def list_tags(self, vault_id: int) -> list[Tag]: ...


class DatabaseVaultHandlers:
    """``VaultHandlers`` bound to a single database."""

    def __init__(self, db: Database) -> None:
        self._queries = DatabaseQueries(db)

    @property
    def queries(self) -> DatabaseQueries:
        return self._queries

    async def get_all(self) -> list[Vault]:
        return await self._queries.vaults.get_all()

    async def create(self, data: CreateVaultInput) -> Vault:
        path = data.get("path")
        name = data.get("name")
        if not path or not name:
            raise ValidationError("Both 'path' and 'name' are required")

        conflict = ConflictError(f"A vault with path '{path}' already exists")
        if await self._queries.vaults.get_by_path(path):
            raise conflict
        # A concurrent writer can still win between the check and the insert;
        # the UNIQUE constraint is the authoritative signal.
        try:
            vault = await self._queries.vaults.create({"path": path, "name": name})
        except sqlite3.IntegrityError as exc:
            raise conflict from exc

        logger.info("Created vault %d '%s' at %s", vault["id"], name, path)
        return vault

    async def get_with_stats(self, vault_id: int) -> VaultWithStats:
        vault = await self._require(vault_id)
        statistics = await self._queries.vaults.get_statistics(vault_id)
        merged: dict[str, Any] = {**vault, "statistics": statistics}
        return merged  # type: ignore[return-value]

    async def delete(self, vault_id: int) -> None:
        await self._require(vault_id)
        await self._queries.vaults.delete(vault_id)
        logger.info("Deleted vault %d", vault_id)

    async def list_notes(
        self,
        vault_id: int,
        query: str | None = None,
        modified_since: str | None = None,
    ) -> list[Note]:
        await self._require(vault_id)
        notes = self._queries.notes
        if query:
            found = await notes.search(vault_id, query)
            if modified_since:
                found = [
                    n for n in found
                    if n["modified_time"] is not None and n["modified_time"] > modified_since
                ]
            return found
        if modified_since:
            return await notes.get_modified_since(vault_id, modified_since)
        return await notes.get_by_vault(vault_id)

    async def list_tags(self, vault_id: int) -> list[Tag]:
        await self._require(vault_id)
        return await self._queries.tags.get_by_vault(vault_id)

    async def _require(self, vault_id: int) -> Vault:
        vault = await self._queries.vaults.get_by_id(vault_id)
        if vault is None:
            raise vault_not_found(vault_id)
        return vault


def create_vault_handlers(db: Database) -> VaultHandlers:
    return DatabaseVaultHandlers(db)
