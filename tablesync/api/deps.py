"""Shared API dependencies: settings, DB session, auth and request context."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from tablesync.config import Settings
from tablesync.models.user import User
from tablesync.services.auth_service import decode_access_token, get_user_by_username
from tablesync.services.permission_service import RequestContext
from tablesync.services.role_graph import AuthorityGraph

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def get_role_graph(request: Request) -> AuthorityGraph:
    """Get the role hierarchy from app state."""
    graph: AuthorityGraph = request.app.state.role_graph
    return graph


async def get_session(request: Request) -> AsyncGenerator[AsyncSession]:
    """Get a database session."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        yield session


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
    session: AsyncSession = Depends(get_session),
) -> User | None:
    """Get current authenticated user, or None if not authenticated."""
    if credentials is None:
        return None

    settings: Settings = request.app.state.settings
    payload = decode_access_token(credentials.credentials, settings.secret_key)
    if payload is None:
        return None
    username = payload.get("sub")
    if not isinstance(username, str) or not username:
        return None
    return await get_user_by_username(session, username)


async def require_auth(
    user: Annotated[User | None, Depends(get_current_user)],
) -> User:
    """Require authentication. Raises 401 if not authenticated."""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_request_context(
    app_id: str,
    user: Annotated[User, Depends(require_auth)],
    graph: Annotated[AuthorityGraph, Depends(get_role_graph)],
) -> RequestContext:
    """Bundle the app id and the caller's expanded authorities for service calls."""
    return RequestContext(
        app_id=app_id,
        username=user.username,
        authorities=frozenset(graph.reachable(user.direct_authorities)),
    )


def get_base_url(request: Request) -> str:
    """Base URL resource links are built from."""
    return str(request.base_url).rstrip("/")
