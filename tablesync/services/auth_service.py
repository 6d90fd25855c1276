"""Authentication service: bearer token verification and user bootstrap.

Tokens are minted by an external identity provider sharing ``secret_key``;
``create_access_token`` exists for tooling and tests.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from jose import JWTError, jwt
from sqlalchemy import select

from tablesync.models.user import User, UserGrant
from tablesync.services.datetime_service import now_iso

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from tablesync.config import Settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


def create_access_token(data: dict[str, Any], secret_key: str, expires_minutes: int = 15) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(UTC) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire, "type": "access"})
    return str(jwt.encode(to_encode, secret_key, algorithm=ALGORITHM))


def decode_access_token(token: str, secret_key: str) -> dict[str, Any] | None:
    """Decode and validate a JWT access token."""
    try:
        payload: dict[str, Any] = jwt.decode(token, secret_key, algorithms=[ALGORITHM])
        if payload.get("type") != "access":
            return None
        return payload
    except JWTError:
        logger.debug("Failed to decode access token", exc_info=True)
        return None


async def get_user_by_username(session: AsyncSession, username: str) -> User | None:
    stmt = select(User).where(User.username == username)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def grant_authorities(
    session: AsyncSession, username: str, authorities: Iterable[str]
) -> User:
    """Create the user if needed and add the given direct grants."""
    user = await get_user_by_username(session, username)
    if user is None:
        user = User(username=username, created_at=now_iso(), grants=[])
        session.add(user)
        logger.info("Created user %s", username)

    existing = user.direct_authorities
    for authority in authorities:
        if authority not in existing:
            user.grants.append(UserGrant(authority=authority))
            existing.add(authority)
    await session.commit()
    return user


async def ensure_admin_user(session: AsyncSession, settings: Settings) -> None:
    """Create the bootstrap administrator with its configured grants."""
    await grant_authorities(session, settings.admin_username, settings.admin_authorities)
