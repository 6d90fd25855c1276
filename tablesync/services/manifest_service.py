"""Manifest service: per-app and per-table file manifests and their aggregate ETags."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import select

from tablesync.models.file import APP_LEVEL_SCOPE, FileRecord, ManifestRecord
from tablesync.services.datetime_service import now_iso

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from tablesync.services.permission_service import RequestContext

logger = logging.getLogger(__name__)


@dataclass
class ManifestEntry:
    """A file's state as advertised to clients."""

    file_path: str
    content_etag: str
    content_length: int
    content_type: str
    client_version: str


@dataclass
class Manifest:
    """Entries of one scope plus the scope's aggregate ETag (None when empty)."""

    entries: list[ManifestEntry] = field(default_factory=list)
    etag: str | None = None


def hash_content(content: bytes) -> str:
    """Compute the content ETag of a blob."""
    return "md5:" + hashlib.md5(content, usedforsecurity=False).hexdigest()


def compute_manifest_etag(items: Iterable[tuple[str, str, str, str]]) -> str | None:
    """Aggregate ETag over (client_version, file_path, content_etag, content_type) rows.

    Order-independent; returns None for an empty scope so that "no files" is
    distinguishable from any populated manifest.
    """
    ordered = sorted(items)
    if not ordered:
        return None
    sha = hashlib.sha256()
    for client_version, file_path, content_etag, content_type in ordered:
        sha.update(f"{client_version}\0{file_path}\0{content_etag}\0{content_type}\n".encode())
    return sha.hexdigest()


async def refresh_manifest_etag(
    session: AsyncSession, app_id: str, table_id: str = APP_LEVEL_SCOPE
) -> str | None:
    """Recompute and store the aggregate ETag of one scope.

    Runs inside the caller's transaction so the ETag moves together with the
    file mutation that triggered it.
    """
    stmt = select(
        FileRecord.client_version,
        FileRecord.file_path,
        FileRecord.content_hash,
        FileRecord.content_type,
    ).where(FileRecord.app_id == app_id, FileRecord.table_id == table_id)
    result = await session.execute(stmt)
    etag = compute_manifest_etag((row[0], row[1], row[2], row[3]) for row in result.all())

    record = await session.get(ManifestRecord, (app_id, table_id))
    if etag is None:
        if record is not None:
            await session.delete(record)
    elif record is None:
        session.add(
            ManifestRecord(
                app_id=app_id, table_id=table_id, manifest_etag=etag, updated_at=now_iso()
            )
        )
    elif record.manifest_etag != etag:
        record.manifest_etag = etag
        record.updated_at = now_iso()
    logger.debug("Manifest %s/%s etag is now %s", app_id, table_id or "<app>", etag)
    return etag


async def _get_etag(session: AsyncSession, app_id: str, table_id: str) -> str | None:
    record = await session.get(ManifestRecord, (app_id, table_id))
    return record.manifest_etag if record is not None else None


async def get_app_level_manifest_etag(session: AsyncSession, ctx: RequestContext) -> str | None:
    """Return the app-level manifest ETag, or None if the app has no shared files."""
    return await _get_etag(session, ctx.app_id, APP_LEVEL_SCOPE)


async def get_table_level_manifest_etag(
    session: AsyncSession, ctx: RequestContext, table_id: str
) -> str | None:
    """Return the table-level manifest ETag, or None if the table has no files."""
    return await _get_etag(session, ctx.app_id, table_id)


async def get_manifest(
    session: AsyncSession,
    ctx: RequestContext,
    client_version: str,
    table_id: str | None = None,
) -> Manifest:
    """List one scope's files for a client version together with the scope ETag."""
    scope = table_id if table_id is not None else APP_LEVEL_SCOPE
    stmt = (
        select(FileRecord)
        .where(
            FileRecord.app_id == ctx.app_id,
            FileRecord.table_id == scope,
            FileRecord.client_version == client_version,
        )
        .order_by(FileRecord.file_path)
    )
    result = await session.execute(stmt)
    entries = [
        ManifestEntry(
            file_path=record.file_path,
            content_etag=record.content_hash,
            content_length=record.content_length,
            content_type=record.content_type,
            client_version=record.client_version,
        )
        for record in result.scalars().all()
    ]
    return Manifest(entries=entries, etag=await _get_etag(session, ctx.app_id, scope))
