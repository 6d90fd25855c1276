"""Table registry models."""

from __future__ import annotations

from enum import StrEnum

from sqlalchemy import Enum, ForeignKeyConstraint, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tablesync.models.base import Base


class TableStatus(StrEnum):
    """Lifecycle of a table entry.

    A PENDING entry has reserved its table id but has no committed schema;
    it is invisible to clients. A REALIZED entry always has a schema ETag.
    """

    PENDING = "pending"
    REALIZED = "realized"


class TableRecord(Base):
    """One table of an application."""

    __tablename__ = "tables"

    app_id: Mapped[str] = mapped_column(String, primary_key=True)
    table_id: Mapped[str] = mapped_column(String, primary_key=True)
    status: Mapped[TableStatus] = mapped_column(
        Enum(TableStatus, native_enum=False, length=16),
        nullable=False,
        default=TableStatus.PENDING,
    )
    schema_etag: Mapped[str | None] = mapped_column(String, nullable=True)
    office_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    created_at: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False)


class ColumnRecord(Base):
    """Column definition belonging to one schema version of a table.

    Rows are keyed by schema ETag and never updated; a schema change writes a
    new set of rows under the new ETag.
    """

    __tablename__ = "table_columns"

    app_id: Mapped[str] = mapped_column(String, primary_key=True)
    table_id: Mapped[str] = mapped_column(String, primary_key=True)
    schema_etag: Mapped[str] = mapped_column(String, primary_key=True)
    element_key: Mapped[str] = mapped_column(String, primary_key=True)
    ordinal: Mapped[int] = mapped_column(Integer, nullable=False)
    element_name: Mapped[str] = mapped_column(String, nullable=False)
    element_type: Mapped[str] = mapped_column(String, nullable=False, default="string")
    list_child_element_keys: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        ForeignKeyConstraint(
            ["app_id", "table_id"],
            ["tables.app_id", "tables.table_id"],
            ondelete="CASCADE",
        ),
    )
