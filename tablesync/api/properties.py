"""Table property endpoints with JSON and XML representations."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from tablesync.api.deps import get_request_context, get_session
from tablesync.exceptions import RequestBodyError
from tablesync.schemas.property import PropertyEntryJson, PropertyEntryJsonList
from tablesync.services import property_service
from tablesync.services.negotiation import Representation, choose_representation
from tablesync.services.permission_service import (
    RequestContext,
    TablePermission,
    check_permission,
)
from tablesync.services.property_service import PropertyEntry
from tablesync.services.property_xml import parse_property_list, render_property_list
from tablesync.services.sync_facade import resolve_current_table

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/{app_id}/tables/{table_id}/properties", tags=["properties"])


def _parse_body(content_type: str, body: bytes) -> list[PropertyEntry]:
    if "xml" in content_type.lower():
        return parse_property_list(body)
    try:
        items = PropertyEntryJsonList.validate_json(body)
    except ValidationError as exc:
        raise RequestBodyError(f"Invalid property list: {exc.error_count()} error(s)") from exc
    return [item.to_entry() for item in items]


@router.get("/{client_version}")
async def get_properties(
    table_id: str,
    client_version: str,
    request: Request,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Response:
    """Return a table's properties as JSON or XML, whichever the client prefers."""
    check_permission(ctx, table_id, TablePermission.READ_PROPERTIES)
    await resolve_current_table(session, ctx, table_id)
    negotiated = choose_representation(request.headers.get("accept"))
    if negotiated.representation is Representation.XML:
        raw = await property_service.get_raw_properties(session, ctx, client_version, table_id)
        return Response(content=render_property_list(raw), media_type=negotiated.media_type)

    entries = await property_service.get_properties(session, ctx, client_version, table_id)
    return JSONResponse(
        content=[PropertyEntryJson.from_typed(entry).model_dump() for entry in entries]
    )


@router.put("/{client_version}", status_code=status.HTTP_202_ACCEPTED)
async def replace_properties(
    table_id: str,
    client_version: str,
    request: Request,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Response:
    """Replace a table's whole property list."""
    check_permission(ctx, table_id, TablePermission.WRITE_PROPERTIES)
    await resolve_current_table(session, ctx, table_id)
    entries = _parse_body(request.headers.get("content-type", ""), await request.body())
    await property_service.replace_properties(session, ctx, client_version, table_id, entries)
    return Response(status_code=status.HTTP_202_ACCEPTED)
