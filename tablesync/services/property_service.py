"""Property store: per-table key/value metadata replaced as a whole.

The list is persisted as the table-level file ``tables/<tableId>/properties.csv``
with the header ``_partition,_aspect,_key,_type,_value``. Values are kept as
text and re-typed on read according to their ``_type`` tag.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import math
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tablesync.exceptions import CorruptPropertyStoreError
from tablesync.services.file_service import load_file, properties_file_path, store_file
from tablesync.services.permission_service import TablePermission, check_permission
from tablesync.services.task_lock import table_lock_key, task_locks

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from tablesync.services.permission_service import RequestContext

logger = logging.getLogger(__name__)

PROPERTIES_HEADER = ("_partition", "_aspect", "_key", "_type", "_value")
PROPERTIES_CONTENT_TYPE = "text/csv; charset=utf-8"

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_INTEGER_RE = re.compile(r"[+-]?\d+")


@dataclass(frozen=True)
class PropertyEntry:
    """A stored property; ``value`` is the persisted text."""

    partition: str
    aspect: str
    key: str
    type: str
    value: str | None


@dataclass(frozen=True)
class TypedPropertyEntry:
    """A property whose value has been re-typed from its text form."""

    partition: str
    aspect: str
    key: str
    type: str
    value: Any


def retype_value(type_name: str, value: str | None) -> Any:
    """Convert stored text to the logical value named by ``type_name``.

    Parse failures degrade to None; they never raise.
    """
    if type_name == "string":
        return value if value is not None else ""
    if type_name == "boolean":
        return value is not None and value.lower() == "true"
    if value is None or value == "":
        return None
    if type_name == "number":
        try:
            number = float(value)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    if type_name == "integer":
        if not _INTEGER_RE.fullmatch(value):
            return None
        integer = int(value)
        return integer if _INT32_MIN <= integer <= _INT32_MAX else None
    try:
        return json.loads(value)
    except (ValueError, RecursionError) as exc:
        logger.warning("Unparseable %s property value %r: %s", type_name, value[:80], exc)
        return None


def coerce_json_value(value: Any) -> str | None:
    """Text form of a loosely-typed JSON property value."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"))


def typed(entry: PropertyEntry) -> TypedPropertyEntry:
    return TypedPropertyEntry(
        partition=entry.partition,
        aspect=entry.aspect,
        key=entry.key,
        type=entry.type,
        value=retype_value(entry.type, entry.value),
    )


def encode_properties_csv(entries: Sequence[PropertyEntry]) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerow(PROPERTIES_HEADER)
    for entry in entries:
        writer.writerow(
            [
                entry.partition,
                entry.aspect,
                entry.key,
                entry.type,
                entry.value if entry.value is not None else "",
            ]
        )
    return buffer.getvalue().encode("utf-8")


def decode_properties_csv(content: bytes) -> list[PropertyEntry]:
    """Parse a stored properties file.

    Raises CorruptPropertyStoreError on a bad header or a malformed row.
    """
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise CorruptPropertyStoreError("properties.csv is not valid UTF-8") from exc

    rows = [row for row in csv.reader(io.StringIO(text, newline="")) if row]
    if not rows:
        raise CorruptPropertyStoreError("properties.csv has no header row")
    header = tuple(rows[0])
    if len(header) != len(PROPERTIES_HEADER):
        raise CorruptPropertyStoreError(
            f"properties.csv header has {len(header)} columns, expected {len(PROPERTIES_HEADER)}"
        )
    for position, (found, expected) in enumerate(zip(header, PROPERTIES_HEADER, strict=True)):
        if found != expected:
            raise CorruptPropertyStoreError(
                f"properties.csv column {position + 1} is {found!r}, expected {expected!r}"
            )

    entries: list[PropertyEntry] = []
    for line_no, row in enumerate(rows[1:], start=2):
        if len(row) != len(PROPERTIES_HEADER):
            raise CorruptPropertyStoreError(
                f"properties.csv row {line_no} has {len(row)} columns"
            )
        partition, aspect, key, type_name, value = row
        entries.append(PropertyEntry(partition, aspect, key, type_name, value))
    return entries


async def get_raw_properties(
    session: AsyncSession, ctx: RequestContext, client_version: str, table_id: str
) -> list[PropertyEntry]:
    """Stored properties with text values. A missing file means no properties."""
    check_permission(ctx, table_id, TablePermission.READ_PROPERTIES)
    record = await load_file(session, ctx.app_id, client_version, properties_file_path(table_id))
    if record is None or not record.content:
        return []
    return decode_properties_csv(record.content)


async def get_properties(
    session: AsyncSession, ctx: RequestContext, client_version: str, table_id: str
) -> list[TypedPropertyEntry]:
    """Stored properties with each value re-typed by its type tag."""
    entries = await get_raw_properties(session, ctx, client_version, table_id)
    return [typed(entry) for entry in entries]


async def replace_properties(
    session: AsyncSession,
    ctx: RequestContext,
    client_version: str,
    table_id: str,
    entries: Sequence[PropertyEntry],
) -> None:
    """Atomically replace a table's whole property list.

    The new file and the table manifest ETag are written in one transaction;
    on any failure the transaction is rolled back and the old list remains.
    """
    check_permission(ctx, table_id, TablePermission.WRITE_PROPERTIES)
    content = encode_properties_csv(entries)
    async with task_locks.hold(*table_lock_key(ctx.app_id, table_id)):
        try:
            await store_file(
                session,
                ctx.app_id,
                client_version,
                properties_file_path(table_id),
                content,
                PROPERTIES_CONTENT_TYPE,
            )
            await session.commit()
        except Exception as exc:
            logger.error(
                "Property replacement failed for %s/%s: %s", ctx.app_id, table_id, exc
            )
            await session.rollback()
            raise
    logger.info(
        "Replaced properties of %s/%s (%d entries) by %s",
        ctx.app_id,
        table_id,
        len(entries),
        ctx.username,
    )
