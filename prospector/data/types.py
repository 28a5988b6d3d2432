from __future__ import annotations

from typing import Any, NotRequired, TypedDict


class Vault(TypedDict):
    id: int
    path: str
    name: str
    created_at: str
    last_scanned: str | None


class Note(TypedDict):
    id: int
    vault_id: int
    file_path: str
    file_name: str
    file_size: int | None
    modified_time: str | None
    created_time: str | None
    content_hash: str | None
    title: str | None
    frontmatter_tags: str | None  # JSON array
    frontmatter_data: str | None  # JSON object
    word_count: int | None
    character_count: int | None


class Tag(TypedDict):
    id: int
    vault_id: int
    name: str
    usage_count: int


class NoteTag(TypedDict):
    note_id: int
    tag_id: int


class VaultStatistics(TypedDict):
    note_count: int
    tag_count: int
    total_words: int
    total_characters: int
    last_modified: str | None


class VaultWithStats(Vault):
    statistics: VaultStatistics


class CreateVaultInput(TypedDict):
    path: str
    name: str


class CreateNoteInput(TypedDict):
    vault_id: int
    file_path: str
    file_name: str
    file_size: NotRequired[int | None]
    modified_time: NotRequired[str | None]
    created_time: NotRequired[str | None]
    content_hash: NotRequired[str | None]
    title: NotRequired[str | None]
    frontmatter_tags: NotRequired[list[str] | None]
    frontmatter_data: NotRequired[dict[str, Any] | None]
    word_count: NotRequired[int | None]
    character_count: NotRequired[int | None]


class UpdateNoteInput(TypedDict, total=False):
    file_size: int | None
    modified_time: str | None
    content_hash: str | None
    title: str | None
    frontmatter_tags: list[str] | None
    frontmatter_data: dict[str, Any] | None
    word_count: int | None
    character_count: int | None
