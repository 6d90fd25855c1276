"""Table registry: table identity, schema versions and paged listing."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import select

from tablesync.exceptions import InvalidCursorError, RequestBodyError, TableAlreadyExistsError
from tablesync.models.table import ColumnRecord, TableRecord, TableStatus
from tablesync.services.datetime_service import now_iso
from tablesync.services.task_lock import table_lock_key, task_locks

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Column:
    """One column of a realized schema."""

    element_key: str
    element_name: str
    element_type: str = "string"
    list_child_element_keys: tuple[str, ...] | None = None


@dataclass(frozen=True)
class TableEntry:
    """Registry view of a table. ``schema_etag`` is None iff the status is PENDING."""

    table_id: str
    status: TableStatus
    schema_etag: str | None
    office_id: str | None = None

    @property
    def is_realized(self) -> bool:
        return self.status is TableStatus.REALIZED


@dataclass(frozen=True)
class QueryResumePoint:
    """Position in the table id ordering, plus the direction to page in."""

    key: str
    forward: bool = True

    def to_cursor(self) -> str:
        raw = json.dumps({"key": self.key, "forward": self.forward}, separators=(",", ":"))
        return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")

    @classmethod
    def from_cursor(cls, cursor: str | None) -> QueryResumePoint | None:
        """Decode an opaque cursor. Empty or missing cursors mean "start from the beginning"."""
        if not cursor:
            return None
        try:
            padded = cursor + "=" * (-len(cursor) % 4)
            data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        except (binascii.Error, UnicodeError, ValueError) as exc:
            raise InvalidCursorError(f"Invalid cursor: {cursor}") from exc
        if (
            not isinstance(data, dict)
            or not isinstance(data.get("key"), str)
            or not isinstance(data.get("forward"), bool)
        ):
            raise InvalidCursorError(f"Invalid cursor: {cursor}")
        return cls(key=data["key"], forward=data["forward"])


@dataclass
class TablePage:
    """One page of raw registry entries, pending ones included."""

    entries: list[TableEntry] = field(default_factory=list)
    refetch_cursor: str | None = None
    backward_cursor: str | None = None
    resume_cursor: str | None = None
    has_more: bool = False
    has_prior: bool = False


def _to_entry(record: TableRecord) -> TableEntry:
    return TableEntry(
        table_id=record.table_id,
        status=record.status,
        schema_etag=record.schema_etag if record.status is TableStatus.REALIZED else None,
        office_id=record.office_id,
    )


def mint_schema_etag() -> str:
    return f"uuid:{uuid.uuid4()}"


def same_columns(left: Sequence[Column], right: Sequence[Column]) -> bool:
    """Column sets are equal when they hold the same columns, in any order."""
    if len(left) != len(right):
        return False
    by_key = {column.element_key: column for column in left}
    return all(by_key.get(column.element_key) == column for column in right)


def _validate_columns(columns: Sequence[Column]) -> None:
    seen: set[str] = set()
    for column in columns:
        if not column.element_key:
            raise RequestBodyError("Column elementKey must not be empty")
        if column.element_key in seen:
            raise RequestBodyError(f"Duplicate column elementKey: {column.element_key}")
        seen.add(column.element_key)


async def _exists(session: AsyncSession, stmt: Select[tuple[TableRecord]]) -> bool:
    return bool(await session.scalar(select(stmt.exists())))


async def get_table(session: AsyncSession, app_id: str, table_id: str) -> TableEntry | None:
    """Return the registry entry for a table, pending or realized."""
    record = await session.get(TableRecord, (app_id, table_id))
    return _to_entry(record) if record is not None else None


async def get_columns(
    session: AsyncSession, app_id: str, table_id: str, schema_etag: str
) -> list[Column]:
    """Columns of one schema version, in definition order."""
    stmt = (
        select(ColumnRecord)
        .where(
            ColumnRecord.app_id == app_id,
            ColumnRecord.table_id == table_id,
            ColumnRecord.schema_etag == schema_etag,
        )
        .order_by(ColumnRecord.ordinal)
    )
    result = await session.execute(stmt)
    return [
        Column(
            element_key=row.element_key,
            element_name=row.element_name,
            element_type=row.element_type,
            list_child_element_keys=(
                tuple(json.loads(row.list_child_element_keys))
                if row.list_child_element_keys is not None
                else None
            ),
        )
        for row in result.scalars().all()
    ]


async def list_tables(
    session: AsyncSession,
    app_id: str,
    resume: QueryResumePoint | None,
    limit: int,
    office_id: str | None = None,
) -> TablePage:
    """Return one page of at most ``limit`` entries ordered by table id.

    Pending entries are included; the caller decides what to show.
    """
    base = select(TableRecord).where(TableRecord.app_id == app_id)
    if office_id:
        base = base.where(TableRecord.office_id == office_id)

    if resume is None:
        stmt = base.order_by(TableRecord.table_id)
    elif resume.forward:
        stmt = base.where(TableRecord.table_id > resume.key).order_by(TableRecord.table_id)
    else:
        stmt = base.where(TableRecord.table_id < resume.key).order_by(TableRecord.table_id.desc())

    result = await session.execute(stmt.limit(limit))
    records = list(result.scalars().all())
    if resume is not None and not resume.forward:
        records.reverse()

    refetch = resume.to_cursor() if resume is not None else None
    if records:
        first, last = records[0].table_id, records[-1].table_id
        return TablePage(
            entries=[_to_entry(record) for record in records],
            refetch_cursor=refetch,
            backward_cursor=QueryResumePoint(first, forward=False).to_cursor(),
            resume_cursor=QueryResumePoint(last, forward=True).to_cursor(),
            has_more=await _exists(session, base.where(TableRecord.table_id > last)),
            has_prior=await _exists(session, base.where(TableRecord.table_id < first)),
        )

    if resume is None:
        return TablePage()
    if resume.forward:
        has_more = False
        has_prior = await _exists(session, base.where(TableRecord.table_id <= resume.key))
    else:
        has_more = await _exists(session, base.where(TableRecord.table_id >= resume.key))
        has_prior = False
    return TablePage(
        refetch_cursor=refetch,
        backward_cursor=refetch,
        resume_cursor=refetch,
        has_more=has_more,
        has_prior=has_prior,
    )


async def create_table(
    session: AsyncSession,
    app_id: str,
    table_id: str,
    columns: Sequence[Column],
    office_id: str | None = None,
) -> TableEntry:
    """Create a table or return the existing one if its schema is identical.

    The entry is first reserved as PENDING and committed, then its columns are
    written and a schema ETag minted in a second transaction. If that second
    step fails the pending entry stays behind and the next call completes it.

    Raises TableAlreadyExistsError if a realized table has different columns.
    """
    _validate_columns(columns)
    async with task_locks.hold(*table_lock_key(app_id, table_id)):
        record = await session.get(TableRecord, (app_id, table_id))
        if (
            record is not None
            and record.status is TableStatus.REALIZED
            and record.schema_etag is not None
        ):
            existing = await get_columns(session, app_id, table_id, record.schema_etag)
            if same_columns(existing, columns):
                logger.info("Table %s/%s already exists with identical schema", app_id, table_id)
                return _to_entry(record)
            raise TableAlreadyExistsError(table_id)

        if record is None:
            now = now_iso()
            record = TableRecord(
                app_id=app_id,
                table_id=table_id,
                status=TableStatus.PENDING,
                schema_etag=None,
                office_id=office_id,
                created_at=now,
                updated_at=now,
            )
            session.add(record)
            await session.commit()
            logger.info("Reserved table %s/%s", app_id, table_id)

        schema_etag = mint_schema_etag()
        try:
            for ordinal, column in enumerate(columns):
                session.add(
                    ColumnRecord(
                        app_id=app_id,
                        table_id=table_id,
                        schema_etag=schema_etag,
                        element_key=column.element_key,
                        ordinal=ordinal,
                        element_name=column.element_name,
                        element_type=column.element_type,
                        list_child_element_keys=(
                            json.dumps(list(column.list_child_element_keys))
                            if column.list_child_element_keys is not None
                            else None
                        ),
                    )
                )
            record.status = TableStatus.REALIZED
            record.schema_etag = schema_etag
            if office_id is not None:
                record.office_id = office_id
            record.updated_at = now_iso()
            await session.commit()
        except Exception as exc:
            logger.error("Failed to realize schema of table %s/%s: %s", app_id, table_id, exc)
            await session.rollback()
            raise

        logger.info("Realized table %s/%s with schemaETag %s", app_id, table_id, schema_etag)
        return _to_entry(record)
