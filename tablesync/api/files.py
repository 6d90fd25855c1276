"""Blob store endpoints: download, upload and delete app and table files."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from tablesync.api.deps import get_request_context, get_session, get_settings
from tablesync.config import Settings
from tablesync.exceptions import FileNotFoundInStoreError
from tablesync.models.file import APP_LEVEL_SCOPE
from tablesync.schemas.manifest import FileUploadResponse
from tablesync.services import manifest_service
from tablesync.services.file_service import (
    load_file,
    normalize_file_path,
    remove_file,
    store_file,
    table_id_for_path,
)
from tablesync.services.permission_service import (
    RequestContext,
    TablePermission,
    check_permission,
)
from tablesync.services.task_lock import table_lock_key, task_locks

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/{app_id}/files", tags=["files"])

_DEFAULT_CONTENT_TYPE = "application/octet-stream"


def _permission_scope(path: str) -> str | None:
    scope = table_id_for_path(path)
    return None if scope == APP_LEVEL_SCOPE else scope


@router.get("/{client_version}/{file_path:path}")
async def download_file(
    client_version: str,
    file_path: str,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Response:
    """Return a stored file's content."""
    path = normalize_file_path(file_path)
    check_permission(ctx, _permission_scope(path), TablePermission.READ_FILES)
    record = await load_file(session, ctx.app_id, client_version, path)
    if record is None:
        raise FileNotFoundInStoreError(path)
    return Response(
        content=record.content,
        media_type=record.content_type,
        headers={"ETag": f'"{record.content_hash}"'},
    )


@router.put("/{client_version}/{file_path:path}", response_model=FileUploadResponse)
async def upload_file(
    client_version: str,
    file_path: str,
    request: Request,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> FileUploadResponse:
    """Store the request body under ``file_path``, replacing any previous content."""
    path = normalize_file_path(file_path)
    check_permission(ctx, _permission_scope(path), TablePermission.WRITE_FILES)

    content = await request.body()
    if len(content) > settings.max_upload_size:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large (max {settings.max_upload_size} bytes): {path}",
        )
    content_type = request.headers.get("content-type") or _DEFAULT_CONTENT_TYPE
    scope = table_id_for_path(path)

    async with task_locks.hold(*table_lock_key(ctx.app_id, scope)):
        try:
            record = await store_file(
                session, ctx.app_id, client_version, path, content, content_type
            )
            await session.commit()
        except Exception as exc:
            logger.error("Upload of %s/%s failed: %s", ctx.app_id, path, exc)
            await session.rollback()
            raise
        manifest_etag = await manifest_service.get_table_level_manifest_etag(session, ctx, scope)

    logger.info("Stored %s/%s (%d bytes) by %s", ctx.app_id, path, len(content), ctx.username)
    return FileUploadResponse(
        filename=path,
        md5hash=record.content_hash,
        content_length=record.content_length,
        manifest_etag=manifest_etag,
    )


@router.delete("/{client_version}/{file_path:path}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    client_version: str,
    file_path: str,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Response:
    """Delete a stored file."""
    path = normalize_file_path(file_path)
    check_permission(ctx, _permission_scope(path), TablePermission.WRITE_FILES)
    scope = table_id_for_path(path)

    async with task_locks.hold(*table_lock_key(ctx.app_id, scope)):
        try:
            removed = await remove_file(session, ctx.app_id, client_version, path)
            await session.commit()
        except Exception as exc:
            logger.error("Delete of %s/%s failed: %s", ctx.app_id, path, exc)
            await session.rollback()
            raise
    if not removed:
        raise FileNotFoundInStoreError(path)

    logger.info("Deleted %s/%s by %s", ctx.app_id, path, ctx.username)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
