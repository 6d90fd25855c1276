"""SQLAlchemy ORM models for tablesync."""

from tablesync.models.base import Base
from tablesync.models.file import FileRecord, ManifestRecord
from tablesync.models.table import ColumnRecord, TableRecord, TableStatus
from tablesync.models.user import User, UserGrant

__all__ = [
    "Base",
    "ColumnRecord",
    "FileRecord",
    "ManifestRecord",
    "TableRecord",
    "TableStatus",
    "User",
    "UserGrant",
]
