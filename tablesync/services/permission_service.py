"""Permission oracle: maps table operations to required roles."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum

from tablesync.exceptions import PermissionDeniedError

logger = logging.getLogger(__name__)

ROLE_SYNCHRONIZE_TABLES = "ROLE_SYNCHRONIZE_TABLES"
ROLE_SUPER_USER_TABLES = "ROLE_SUPER_USER_TABLES"
ROLE_ADMINISTER_TABLES = "ROLE_ADMINISTER_TABLES"


class TablePermission(StrEnum):
    """Capabilities checked before touching the registry or the stores."""

    READ_TABLE_ENTRY = "read_table_entry"
    CREATE_TABLE = "create_table"
    READ_PROPERTIES = "read_properties"
    WRITE_PROPERTIES = "write_properties"
    READ_FILES = "read_files"
    WRITE_FILES = "write_files"


_REQUIRED_ROLE: dict[TablePermission, str] = {
    TablePermission.READ_TABLE_ENTRY: ROLE_SYNCHRONIZE_TABLES,
    TablePermission.CREATE_TABLE: ROLE_ADMINISTER_TABLES,
    TablePermission.READ_PROPERTIES: ROLE_SYNCHRONIZE_TABLES,
    TablePermission.WRITE_PROPERTIES: ROLE_ADMINISTER_TABLES,
    TablePermission.READ_FILES: ROLE_SYNCHRONIZE_TABLES,
    TablePermission.WRITE_FILES: ROLE_ADMINISTER_TABLES,
}


@dataclass(frozen=True)
class RequestContext:
    """Per-request identity passed explicitly to every service call.

    ``authorities`` is the caller's reachable authority set, already expanded
    through the role hierarchy.
    """

    app_id: str
    username: str
    authorities: frozenset[str] = field(default_factory=frozenset)

    def has_role(self, role: str) -> bool:
        return role in self.authorities


def has_permission(ctx: RequestContext, permission: TablePermission) -> bool:
    return ctx.has_role(_REQUIRED_ROLE[permission])


def check_permission(
    ctx: RequestContext, table_id: str | None, permission: TablePermission
) -> None:
    """Raise PermissionDeniedError unless the caller may perform ``permission``.

    ``table_id`` is None for app-level operations.
    """
    if has_permission(ctx, permission):
        return
    scope = f"table {table_id}" if table_id is not None else f"app {ctx.app_id}"
    logger.warning(
        "Permission %s denied to %s on %s", permission.value, ctx.username, scope
    )
    raise PermissionDeniedError(
        f"User lacks {_REQUIRED_ROLE[permission]} required to {permission.value.replace('_', ' ')}"
    )
