from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from prospector.data.database import Database
from prospector.data.notes import NoteQueries
from prospector.data.tags import TagQueries
from prospector.data.vaults import VaultQueries
from prospector.errors import TransactionError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DatabaseQueries:
    """All per-entity queries over one database, plus transactions."""

    def __init__(self, db: Database) -> None:
        self._db = db
        self._in_transaction = False
        self.vaults = VaultQueries(db)
        self.notes = NoteQueries(db)
        self.tags = TagQueries(db)

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    async def transaction(self, callback: Callable[[DatabaseQueries], Awaitable[T]]) -> T:
        """Run *callback* inside BEGIN/COMMIT and return its result.

        Any exception raised by the callback (or by COMMIT) rolls the
        transaction back and is re-raised unchanged. A failing ROLLBACK is
        logged; the original exception still propagates. Transactions do not
        nest.
        """
        if self._in_transaction:
            raise TransactionError("A transaction is already in progress")

        await self._db.run("BEGIN TRANSACTION")
        self._in_transaction = True
        try:
            result = await callback(self)
            await self._db.run("COMMIT")
            return result
        except BaseException:
            try:
                await self._db.run("ROLLBACK")
            except Exception:
                logger.exception("Rollback failed")
            raise
        finally:
            self._in_transaction = False
