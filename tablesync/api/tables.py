"""Table API endpoints: listing, lookup, creation and schema pinning."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tablesync.api.deps import get_base_url, get_request_context, get_session, get_settings
from tablesync.config import Settings
from tablesync.exceptions import RequestBodyError
from tablesync.schemas.table import (
    ColumnSchema,
    TableDefinitionRequest,
    TableDefinitionResponse,
    TableResourceListResponse,
    TableResourceResponse,
)
from tablesync.services import sync_facade, table_registry
from tablesync.services.permission_service import RequestContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/{app_id}/tables", tags=["tables"])


def parse_fetch_limit(raw: str | None, settings: Settings) -> int:
    """Parse ``fetchLimit``: default when absent, 400 below 1, clamped to the maximum."""
    if raw is None or raw.strip() == "":
        return settings.default_fetch_limit
    try:
        limit = int(raw)
    except ValueError as exc:
        raise RequestBodyError(f"fetchLimit must be an integer: {raw}") from exc
    if limit < 1:
        raise RequestBodyError("fetchLimit must be at least 1")
    return min(limit, settings.max_fetch_limit)


@router.get("", response_model=TableResourceListResponse)
async def list_tables(
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    settings: Annotated[Settings, Depends(get_settings)],
    base_url: Annotated[str, Depends(get_base_url)],
    cursor: str | None = Query(None, max_length=2000),
    fetch_limit: str | None = Query(None, alias="fetchLimit", max_length=20),
    office_id: str | None = Query(None, alias="officeId", max_length=200),
) -> TableResourceListResponse:
    """List the realized tables of an app, one page at a time."""
    limit = parse_fetch_limit(fetch_limit, settings)
    page = await sync_facade.list_table_resources(
        session, ctx, base_url, cursor, limit, office_id
    )
    return TableResourceListResponse.from_resource_list(page)


@router.get("/{table_id}", response_model=TableResourceResponse)
async def get_table(
    table_id: str,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    base_url: Annotated[str, Depends(get_base_url)],
) -> TableResourceResponse:
    """Get one realized table."""
    resource = await sync_facade.get_table_resource(session, ctx, base_url, table_id)
    return TableResourceResponse.from_resource(resource)


@router.put("/{table_id}", response_model=TableResourceResponse)
async def create_table(
    table_id: str,
    body: TableDefinitionRequest,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    base_url: Annotated[str, Depends(get_base_url)],
) -> TableResourceResponse:
    """Create a table, or return it unchanged if it exists with the same columns."""
    resource = await sync_facade.create_table_resource(
        session,
        ctx,
        base_url,
        table_id,
        [column.to_column() for column in body.columns],
        body.office_id,
    )
    return TableResourceResponse.from_resource(resource)


@router.get("/{table_id}/ref/{schema_etag}", response_model=TableDefinitionResponse)
async def get_pinned_table(
    table_id: str,
    schema_etag: str,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    base_url: Annotated[str, Depends(get_base_url)],
) -> TableDefinitionResponse:
    """Get the table definition pinned to ``schema_etag``.

    Fails with 409 if the table's current schema ETag differs. A table whose
    schema is not realized yet pins successfully with ``schemaPending`` set.
    """
    pinned = await sync_facade.pin_to_schema(session, ctx, table_id, schema_etag)
    columns: list[ColumnSchema] = []
    if not pinned.schema_pending:
        columns = [
            ColumnSchema.from_column(column)
            for column in await table_registry.get_columns(
                session, ctx.app_id, table_id, pinned.schema_etag
            )
        ]
    return TableDefinitionResponse(
        table_id=table_id,
        schema_etag=pinned.schema_etag,
        schema_pending=pinned.schema_pending,
        columns=columns,
        self_uri=sync_facade.table_uri(base_url, ctx.app_id, table_id),
    )
