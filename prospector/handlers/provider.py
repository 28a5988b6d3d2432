from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from prospector.data.database import Database, connect
from prospector.handlers.vaults import VaultHandlers, create_vault_handlers

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Database]]


class HandlersProvider:
    """Owns the application's ``VaultHandlers`` and the database behind them.

    ``get()`` opens the database on first use. Callers that arrive while the
    first initialisation is still running await the same task, so only one
    connection is ever opened. A failed initialisation is forgotten and the
    next ``get()`` tries again. An initialisation overtaken by ``reset()``
    closes its connection instead of installing it.
    """

    def __init__(self, db_path: str, connector: Connector = connect) -> None:
        self._db_path = db_path
        self._connector = connector
        self._db: Database | None = None
        self._handlers: VaultHandlers | None = None
        self._init_task: asyncio.Task[VaultHandlers | None] | None = None
        self._lock = asyncio.Lock()

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def is_initialized(self) -> bool:
        return self._handlers is not None

    async def get(self) -> VaultHandlers:
        while True:
            if self._handlers is not None:
                return self._handlers
            async with self._lock:
                if self._init_task is None:
                    self._init_task = asyncio.create_task(self._initialize())
                task = self._init_task
            handlers = await asyncio.shield(task)
            if handlers is not None:
                return handlers

    async def _initialize(self) -> VaultHandlers | None:
        task = asyncio.current_task()
        logger.info("Initializing vault handlers...")
        try:
            db = await self._connector(self._db_path)
        except Exception:
            logger.exception("Failed to initialize vault handlers")
            if self._init_task is task:
                self._init_task = None
            raise
        if self._init_task is not task:
            logger.info("Vault handlers were reset during initialization, discarding connection")
            await db.close()
            return None
        self._db = db
        self._handlers = create_vault_handlers(db)
        logger.info("Vault handlers initialized successfully")
        return self._handlers

    def initialize(self, db: Database) -> VaultHandlers:
        """Install handlers over an already-open *db*, bypassing lazy init.

        The provider does not take ownership of *db*; ``close()`` leaves it open.
        """
        self._handlers = create_vault_handlers(db)
        self._init_task = None
        logger.info("Vault handlers initialized successfully")
        return self._handlers

    async def reset(self) -> None:
        """Forget the current handlers so the next ``get()`` starts over.

        A connection the provider opened itself is closed.
        """
        db, self._db = self._db, None
        self._handlers = None
        self._init_task = None
        if db is not None:
            await db.close()

    async def close(self) -> None:
        await self.reset()
