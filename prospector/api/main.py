from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from prospector.config import Config
from prospector.errors import ConflictError, NotFoundError, ValidationError
from prospector.handlers.provider import HandlersProvider
from prospector.handlers.vaults import VaultHandlers

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_CREATED = 201
HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409
HTTP_INTERNAL_SERVER_ERROR = 500

VAULT_ID_PATTERN = re.compile(r"-?[0-9]+")


class ApiResponse(BaseModel):
    success: bool
    data: Any = None
    error: Optional[str] = None
    message: Optional[str] = None


class VaultCreate(BaseModel):
    path: Optional[str] = Field(default=None)
    name: Optional[str] = Field(default=None)


def create_app(
    config: Config | None = None,
    provider: HandlersProvider | None = None,
) -> FastAPI:
    config = config or Config()
    provider = provider or HandlersProvider(config.db_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.handlers.close()

    app = FastAPI(title="Prospector API", lifespan=lifespan)
    app.state.config = config
    app.state.handlers = provider

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = "; ".join(error["msg"] for error in exc.errors()) or "Invalid request"
        return _fail(HTTP_BAD_REQUEST, "Invalid request body", message)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/vaults")
    async def list_vaults(request: Request) -> JSONResponse:
        try:
            handlers = await _handlers(request)
            vaults = await handlers.get_all()
            return _ok(vaults)
        except Exception as exc:
            return _error(exc, "Failed to fetch vaults")

    @app.post("/vaults")
    async def create_vault(request: Request, payload: VaultCreate) -> JSONResponse:
        try:
            handlers = await _handlers(request)
            vault = await handlers.create(
                {"path": payload.path or "", "name": payload.name or ""}
            )
            return _ok(vault, HTTP_CREATED)
        except Exception as exc:
            return _error(exc, "Failed to create vault")

    @app.get("/vaults/{vault_id}")
    async def get_vault(request: Request, vault_id: str) -> JSONResponse:
        parsed = _parse_vault_id(vault_id)
        if parsed is None:
            return _invalid_id()
        try:
            handlers = await _handlers(request)
            return _ok(await handlers.get_with_stats(parsed))
        except Exception as exc:
            return _error(exc, "Failed to fetch vault")

    @app.delete("/vaults/{vault_id}")
    async def delete_vault(request: Request, vault_id: str) -> JSONResponse:
        parsed = _parse_vault_id(vault_id)
        if parsed is None:
            return _invalid_id()
        try:
            handlers = await _handlers(request)
            await handlers.delete(parsed)
            return _ok({"deleted": True})
        except Exception as exc:
            return _error(exc, "Failed to delete vault")

    @app.get("/vaults/{vault_id}/notes")
    async def list_vault_notes(
        request: Request,
        vault_id: str,
        q: Optional[str] = Query(default=None),
        since: Optional[str] = Query(default=None),
    ) -> JSONResponse:
        parsed = _parse_vault_id(vault_id)
        if parsed is None:
            return _invalid_id()
        try:
            handlers = await _handlers(request)
            notes = await handlers.list_notes(
                parsed, query=(q or "").strip() or None, modified_since=since or None
            )
            return _ok(notes)
        except Exception as exc:
            return _error(exc, "Failed to fetch notes")

    @app.get("/vaults/{vault_id}/tags")
    async def list_vault_tags(request: Request, vault_id: str) -> JSONResponse:
        parsed = _parse_vault_id(vault_id)
        if parsed is None:
            return _invalid_id()
        try:
            handlers = await _handlers(request)
            return _ok(await handlers.list_tags(parsed))
        except Exception as exc:
            return _error(exc, "Failed to fetch tags")

    return app


async def _handlers(request: Request) -> VaultHandlers:
    provider: HandlersProvider = request.app.state.handlers
    return await provider.get()


def _ok(data: Any, status_code: int = HTTP_OK) -> JSONResponse:
    body = ApiResponse(success=True, data=data)
    return JSONResponse(body.model_dump(exclude_none=True), status_code=status_code)


def _fail(status_code: int, error: str, message: str) -> JSONResponse:
    body = ApiResponse(success=False, error=error, message=message)
    return JSONResponse(body.model_dump(exclude_none=True), status_code=status_code)


def _error(exc: Exception, fallback: str) -> JSONResponse:
    if isinstance(exc, ValidationError):
        return _fail(HTTP_BAD_REQUEST, "Missing required fields", str(exc))
    if isinstance(exc, ConflictError):
        return _fail(HTTP_CONFLICT, "Vault already exists", str(exc))
    if isinstance(exc, NotFoundError):
        return _fail(HTTP_NOT_FOUND, "Vault not found", str(exc))
    logger.exception("%s", fallback)
    return _fail(HTTP_INTERNAL_SERVER_ERROR, fallback, str(exc) or "Unknown error")


def _invalid_id() -> JSONResponse:
    return _fail(HTTP_BAD_REQUEST, "Invalid vault ID", "Vault ID must be a valid number")


def _parse_vault_id(raw: str) -> int | None:
    raw = raw.strip()
    if not VAULT_ID_PATTERN.fullmatch(raw):
        return None
    return int(raw)


app = create_app()
