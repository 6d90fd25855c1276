"""Blob store: file content keyed by app, client version and relative path.

Files under ``tables/<tableId>/`` belong to that table's manifest; every other
path belongs to the app-level manifest. Each mutation recomputes the owning
manifest's ETag in the same (uncommitted) transaction; callers commit.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select

from tablesync.exceptions import RequestBodyError
from tablesync.models.file import APP_LEVEL_SCOPE, FileRecord
from tablesync.services.datetime_service import now_iso
from tablesync.services.manifest_service import hash_content, refresh_manifest_etag

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

TABLES_DIR = "tables"


def normalize_file_path(file_path: str) -> str:
    """Return the canonical form of a client-supplied relative path.

    Rejects empty paths and any ``.`` or ``..`` segment.
    """
    parts = [part for part in file_path.strip().lstrip("/").split("/") if part != ""]
    if not parts:
        raise RequestBodyError("File path must not be empty")
    if any(part in {".", ".."} for part in parts):
        raise RequestBodyError(f"Invalid file path: {file_path}")
    return "/".join(parts)


def table_id_for_path(file_path: str) -> str:
    """Manifest scope of a normalized path: a table id or the app-level scope."""
    parts = file_path.split("/")
    if len(parts) >= 3 and parts[0] == TABLES_DIR:
        return parts[1]
    return APP_LEVEL_SCOPE


def properties_file_path(table_id: str) -> str:
    return f"{TABLES_DIR}/{table_id}/properties.csv"


async def load_file(
    session: AsyncSession, app_id: str, client_version: str, file_path: str
) -> FileRecord | None:
    stmt = select(FileRecord).where(
        FileRecord.app_id == app_id,
        FileRecord.client_version == client_version,
        FileRecord.file_path == file_path,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def store_file(
    session: AsyncSession,
    app_id: str,
    client_version: str,
    file_path: str,
    content: bytes,
    content_type: str,
) -> FileRecord:
    """Insert or replace a blob and advance its manifest ETag."""
    path = normalize_file_path(file_path)
    scope = table_id_for_path(path)
    content_hash = hash_content(content)

    record = await load_file(session, app_id, client_version, path)
    if record is None:
        record = FileRecord(
            app_id=app_id,
            client_version=client_version,
            file_path=path,
            table_id=scope,
            content_type=content_type,
            content_length=len(content),
            content_hash=content_hash,
            content=content,
            updated_at=now_iso(),
        )
        session.add(record)
    elif record.content_hash != content_hash or record.content_type != content_type:
        record.content = content
        record.content_length = len(content)
        record.content_hash = content_hash
        record.content_type = content_type
        record.updated_at = now_iso()
    else:
        logger.debug("File %s/%s unchanged, keeping manifest", app_id, path)
        return record

    await session.flush()
    await refresh_manifest_etag(session, app_id, scope)
    return record


async def remove_file(
    session: AsyncSession, app_id: str, client_version: str, file_path: str
) -> bool:
    """Delete a blob. Returns False if nothing was stored under the path."""
    path = normalize_file_path(file_path)
    record = await load_file(session, app_id, client_version, path)
    if record is None:
        return False
    scope = record.table_id
    await session.delete(record)
    await session.flush()
    await refresh_manifest_etag(session, app_id, scope)
    return True
