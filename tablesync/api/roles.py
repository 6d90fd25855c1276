"""Role endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from tablesync.api.deps import get_role_graph, get_settings, require_auth
from tablesync.config import Settings
from tablesync.models.user import User
from tablesync.services.role_graph import AuthorityGraph, granted_role_names

router = APIRouter(prefix="/api/roles", tags=["roles"])


@router.get("/granted", response_model=list[str])
async def get_granted_roles(
    user: Annotated[User, Depends(require_auth)],
    graph: Annotated[AuthorityGraph, Depends(get_role_graph)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> list[str]:
    """Roles the caller holds, directly or through group membership."""
    return granted_role_names(graph, user.direct_authorities, settings.role_prefix)
