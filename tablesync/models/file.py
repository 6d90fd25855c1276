"""Blob store and manifest models."""

from __future__ import annotations

from sqlalchemy import Integer, LargeBinary, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tablesync.models.base import Base

# Manifest scope key used for files shared by all tables of an app.
APP_LEVEL_SCOPE = ""


class FileRecord(Base):
    """A stored file, addressed by app, client version and relative path."""

    __tablename__ = "app_files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    app_id: Mapped[str] = mapped_column(String, nullable=False)
    client_version: Mapped[str] = mapped_column(String, nullable=False)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    table_id: Mapped[str] = mapped_column(String, nullable=False, default=APP_LEVEL_SCOPE)
    content_type: Mapped[str] = mapped_column(String, nullable=False)
    content_length: Mapped[int] = mapped_column(Integer, nullable=False)
    content_hash: Mapped[str] = mapped_column(String, nullable=False)
    content: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (UniqueConstraint("app_id", "client_version", "file_path"),)


class ManifestRecord(Base):
    """Aggregate ETag of one manifest scope (app-level or one table)."""

    __tablename__ = "manifest_etags"

    app_id: Mapped[str] = mapped_column(String, primary_key=True)
    table_id: Mapped[str] = mapped_column(String, primary_key=True, default=APP_LEVEL_SCOPE)
    manifest_etag: Mapped[str] = mapped_column(String, nullable=False)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False)
