"""File manifest endpoints."""

from __future__ import annotations

from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from tablesync.api.deps import get_base_url, get_request_context, get_session
from tablesync.schemas.manifest import ManifestEntryResponse, ManifestResponse
from tablesync.services import manifest_service
from tablesync.services.manifest_service import Manifest
from tablesync.services.permission_service import (
    RequestContext,
    TablePermission,
    check_permission,
)

router = APIRouter(prefix="/api/{app_id}/manifest", tags=["manifest"])


def quote_etag(etag: str) -> str:
    return f'"{etag}"'


def etag_matches(if_none_match: str | None, etag: str | None) -> bool:
    """Whether an ``If-None-Match`` header names ``etag`` (weak comparison)."""
    if if_none_match is None or etag is None:
        return False
    for candidate in if_none_match.split(","):
        candidate = candidate.strip()
        if candidate == "*":
            return True
        if candidate.startswith("W/"):
            candidate = candidate[2:]
        if candidate.strip('"') == etag:
            return True
    return False


def file_download_url(base_url: str, app_id: str, client_version: str, file_path: str) -> str:
    return (
        f"{base_url.rstrip('/')}/api/{quote(app_id, safe='')}/files/"
        f"{quote(client_version, safe='')}/{quote(file_path)}"
    )


def _manifest_response(
    manifest: Manifest,
    request: Request,
    response: Response,
    base_url: str,
    app_id: str,
    client_version: str,
) -> ManifestResponse | Response:
    if manifest.etag is not None:
        if etag_matches(request.headers.get("if-none-match"), manifest.etag):
            return Response(
                status_code=status.HTTP_304_NOT_MODIFIED,
                headers={"ETag": quote_etag(manifest.etag)},
            )
        response.headers["ETag"] = quote_etag(manifest.etag)
    return ManifestResponse(
        files=[
            ManifestEntryResponse(
                filename=entry.file_path,
                content_length=entry.content_length,
                content_type=entry.content_type,
                md5hash=entry.content_etag,
                download_url=file_download_url(
                    base_url, app_id, client_version, entry.file_path
                ),
            )
            for entry in manifest.entries
        ],
        manifest_etag=manifest.etag,
    )


@router.get("/{client_version}", response_model=ManifestResponse)
async def get_app_level_manifest(
    client_version: str,
    request: Request,
    response: Response,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    base_url: Annotated[str, Depends(get_base_url)],
) -> ManifestResponse | Response:
    """List the app-level files a client of ``client_version`` should hold."""
    check_permission(ctx, None, TablePermission.READ_FILES)
    manifest = await manifest_service.get_manifest(session, ctx, client_version)
    return _manifest_response(manifest, request, response, base_url, ctx.app_id, client_version)


@router.get("/{client_version}/{table_id}", response_model=ManifestResponse)
async def get_table_level_manifest(
    client_version: str,
    table_id: str,
    request: Request,
    response: Response,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    base_url: Annotated[str, Depends(get_base_url)],
) -> ManifestResponse | Response:
    """List one table's files; an unknown table simply has an empty manifest."""
    check_permission(ctx, table_id, TablePermission.READ_FILES)
    manifest = await manifest_service.get_manifest(session, ctx, client_version, table_id)
    return _manifest_response(manifest, request, response, base_url, ctx.app_id, client_version)
