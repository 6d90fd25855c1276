"""Synchronization facade: schema pinning and client-facing table resources.

The facade owns no state. It reads the registry, enriches entries with
manifest ETags on a best-effort basis and builds the hypermedia links clients
follow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from urllib.parse import quote

from sqlalchemy.exc import SQLAlchemyError

from tablesync.exceptions import SchemaETagMismatchError, TableNotFoundError
from tablesync.services import manifest_service, table_registry
from tablesync.services.permission_service import TablePermission, check_permission
from tablesync.services.table_registry import QueryResumePoint

if TYPE_CHECKING:
    from collections.abc import Awaitable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from tablesync.services.permission_service import RequestContext
    from tablesync.services.table_registry import Column, TableEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PinnedSchemaContext:
    """A table pinned to the schema ETag a client asked for.

    ``schema_pending`` is True when the table has no realized schema yet; the
    caller may then proceed with a realize-schema flow.
    """

    entry: TableEntry
    schema_etag: str
    schema_pending: bool


@dataclass
class TableResource:
    table_id: str
    schema_etag: str
    self_uri: str
    definition_uri: str
    data_uri: str
    instance_files_uri: str
    diff_uri: str
    acl_uri: str
    table_level_manifest_etag: str | None = None


@dataclass
class TableResourceList:
    tables: list[TableResource] = field(default_factory=list)
    refetch_cursor: str | None = None
    backward_cursor: str | None = None
    resume_cursor: str | None = None
    has_more: bool = False
    has_prior: bool = False
    app_level_manifest_etag: str | None = None


def _segment(value: str) -> str:
    return quote(value, safe=":")


def table_uri(base_url: str, app_id: str, table_id: str) -> str:
    return f"{base_url.rstrip('/')}/api/{_segment(app_id)}/tables/{_segment(table_id)}"


def compose_links(base_url: str, app_id: str, table_id: str, schema_etag: str) -> dict[str, str]:
    """The six resource URIs of a table, derived only from their inputs.

    Only self and definition are served here; the rest name endpoints of the
    row, attachment and ACL services.
    """
    self_uri = table_uri(base_url, app_id, table_id)
    definition_uri = f"{self_uri}/ref/{_segment(schema_etag)}"
    return {
        "self_uri": self_uri,
        "definition_uri": definition_uri,
        "data_uri": f"{definition_uri}/rows",
        "instance_files_uri": f"{definition_uri}/attachments",
        "diff_uri": f"{definition_uri}/diff",
        "acl_uri": f"{self_uri}/acl",
    }


async def _best_effort_etag(lookup: Awaitable[str | None], scope: str) -> str | None:
    """Manifest ETags are advisory: a store failure yields None instead of an error."""
    try:
        return await lookup
    except SQLAlchemyError as exc:
        logger.warning("Manifest ETag lookup failed for %s, omitting it: %s", scope, exc)
        return None


async def resolve_current_table(
    session: AsyncSession, ctx: RequestContext, table_id: str
) -> TableEntry:
    """Return the realized entry of a table.

    A pending table is indistinguishable from a missing one.
    """
    entry = await table_registry.get_table(session, ctx.app_id, table_id)
    if entry is None or not entry.is_realized:
        raise TableNotFoundError(table_id)
    return entry


async def pin_to_schema(
    session: AsyncSession, ctx: RequestContext, table_id: str, requested_schema_etag: str
) -> PinnedSchemaContext:
    """Validate a client's schema ETag against the table's current one."""
    check_permission(ctx, table_id, TablePermission.READ_TABLE_ENTRY)
    entry = await table_registry.get_table(session, ctx.app_id, table_id)
    if entry is None:
        raise TableNotFoundError(table_id)
    if entry.schema_etag is not None and entry.schema_etag != requested_schema_etag:
        raise SchemaETagMismatchError(table_id, entry.schema_etag)
    return PinnedSchemaContext(
        entry=entry,
        schema_etag=requested_schema_etag,
        schema_pending=entry.schema_etag is None,
    )


async def compose_resource(
    session: AsyncSession, ctx: RequestContext, base_url: str, entry: TableEntry
) -> TableResource:
    """Build the outbound view of a realized table."""
    if entry.schema_etag is None:
        raise TableNotFoundError(entry.table_id)
    resource = TableResource(
        table_id=entry.table_id,
        schema_etag=entry.schema_etag,
        **compose_links(base_url, ctx.app_id, entry.table_id, entry.schema_etag),
    )
    resource.table_level_manifest_etag = await _best_effort_etag(
        manifest_service.get_table_level_manifest_etag(session, ctx, entry.table_id),
        f"table {ctx.app_id}/{entry.table_id}",
    )
    return resource


async def get_table_resource(
    session: AsyncSession, ctx: RequestContext, base_url: str, table_id: str
) -> TableResource:
    check_permission(ctx, table_id, TablePermission.READ_TABLE_ENTRY)
    entry = await resolve_current_table(session, ctx, table_id)
    return await compose_resource(session, ctx, base_url, entry)


async def list_table_resources(
    session: AsyncSession,
    ctx: RequestContext,
    base_url: str,
    cursor: str | None,
    limit: int,
    office_id: str | None = None,
) -> TableResourceList:
    """One page of realized tables; pending entries are dropped after the fetch."""
    check_permission(ctx, None, TablePermission.READ_TABLE_ENTRY)
    resume = QueryResumePoint.from_cursor(cursor)
    page = await table_registry.list_tables(session, ctx.app_id, resume, limit, office_id)

    resources = [
        await compose_resource(session, ctx, base_url, entry)
        for entry in page.entries
        if entry.is_realized
    ]
    return TableResourceList(
        tables=resources,
        refetch_cursor=page.refetch_cursor,
        backward_cursor=page.backward_cursor,
        resume_cursor=page.resume_cursor,
        has_more=page.has_more,
        has_prior=page.has_prior,
        app_level_manifest_etag=await _best_effort_etag(
            manifest_service.get_app_level_manifest_etag(session, ctx),
            f"app {ctx.app_id}",
        ),
    )


async def create_table_resource(
    session: AsyncSession,
    ctx: RequestContext,
    base_url: str,
    table_id: str,
    columns: Sequence[Column],
    office_id: str | None = None,
) -> TableResource:
    """Create a table (or return the identical existing one) as a resource."""
    check_permission(ctx, table_id, TablePermission.CREATE_TABLE)
    entry = await table_registry.create_table(session, ctx.app_id, table_id, columns, office_id)
    logger.info(
        "createTable: %s/%s by %s, %d columns", ctx.app_id, table_id, ctx.username, len(columns)
    )
    return await compose_resource(session, ctx, base_url, entry)
