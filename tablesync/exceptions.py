"""Application-level exception types.

Convention:
- ``NotFoundError`` subclasses map to 404, ``ConflictError`` subclasses to 409,
  ``PermissionDeniedError`` to 403 and ``ValidationFailure`` subclasses to 400.
  Their messages are safe to forward to clients.
- ``CorruptStateError``: persisted state that no longer parses. It is never
  repaired or retried; the global handler logs it and returns a generic
  "Data integrity error" (500).
- Anything else is a bug or an unexpected store failure: the global safety-net
  handlers log it with its traceback and return a generic 500.

Transient store failures are plain SQLAlchemy errors; they propagate unchanged
(``OperationalError`` becomes 503) except where the data is advisory.
"""

from __future__ import annotations


class TableSyncError(Exception):
    """Base class for errors raised by the synchronization core."""


class NotFoundError(TableSyncError):
    """A table, file or schema the caller asked for does not exist."""


class TableNotFoundError(NotFoundError):
    """The table is absent or its schema has not been realized yet."""

    def __init__(self, table_id: str) -> None:
        super().__init__(f"Table not found: {table_id}")
        self.table_id = table_id


class FileNotFoundInStoreError(NotFoundError):
    """No blob is stored under the requested path."""

    def __init__(self, file_path: str) -> None:
        super().__init__(f"File not found: {file_path}")
        self.file_path = file_path


class ConflictError(TableSyncError):
    """The request disagrees with the current server state."""


class SchemaETagMismatchError(ConflictError):
    def __init__(self, table_id: str, current_schema_etag: str) -> None:
        super().__init__(f"SchemaETag differs for table {table_id}: {current_schema_etag}")
        self.table_id = table_id
        self.current_schema_etag = current_schema_etag


class TableAlreadyExistsError(ConflictError):
    def __init__(self, table_id: str) -> None:
        super().__init__(f"Table {table_id} already exists with a different schema")
        self.table_id = table_id


class PermissionDeniedError(TableSyncError):
    """The caller lacks the capability required for the operation."""


class CorruptStateError(TableSyncError):
    """Persisted state is malformed."""


class CorruptPropertyStoreError(CorruptStateError):
    """The stored properties file does not match the expected format."""


class ValidationFailure(TableSyncError):
    """Malformed request input detected after FastAPI's own validation."""


class InvalidCursorError(ValidationFailure):
    """A paging cursor could not be decoded."""


class RequestBodyError(ValidationFailure):
    """A request body could not be parsed into the expected shape."""

