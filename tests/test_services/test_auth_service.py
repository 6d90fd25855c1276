"""Unit tests for the authentication service."""

from __future__ import annotations

from typing import TYPE_CHECKING

from jose import jwt

from tablesync.services.auth_service import (
    ALGORITHM,
    create_access_token,
    decode_access_token,
    ensure_admin_user,
    get_user_by_username,
    grant_authorities,
)
from tests.conftest import TEST_SECRET_KEY

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from tablesync.config import Settings


class TestAccessTokens:
    def test_round_trip(self) -> None:
        token = create_access_token({"sub": "alice"}, TEST_SECRET_KEY)
        payload = decode_access_token(token, TEST_SECRET_KEY)
        assert payload is not None
        assert payload["sub"] == "alice"
        assert payload["type"] == "access"

    def test_wrong_secret_rejected(self) -> None:
        token = create_access_token({"sub": "alice"}, TEST_SECRET_KEY)
        assert decode_access_token(token, "x" * 40) is None

    def test_expired_token_rejected(self) -> None:
        token = create_access_token({"sub": "alice"}, TEST_SECRET_KEY, expires_minutes=-1)
        assert decode_access_token(token, TEST_SECRET_KEY) is None

    def test_non_access_token_rejected(self) -> None:
        token = jwt.encode({"sub": "alice", "type": "refresh"}, TEST_SECRET_KEY, ALGORITHM)
        assert decode_access_token(token, TEST_SECRET_KEY) is None

    def test_garbage_rejected(self) -> None:
        assert decode_access_token("not.a.token", TEST_SECRET_KEY) is None


class TestGrants:
    async def test_grant_creates_user(self, db_session: AsyncSession) -> None:
        user = await grant_authorities(db_session, "alice", ["GROUP_DATA_COLLECTORS"])
        assert user.direct_authorities == {"GROUP_DATA_COLLECTORS"}

        loaded = await get_user_by_username(db_session, "alice")
        assert loaded is not None
        assert loaded.id == user.id

    async def test_grants_accumulate_without_duplicates(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        async with session_factory() as session:
            await grant_authorities(session, "alice", ["GROUP_DATA_COLLECTORS"])
        async with session_factory() as session:
            await grant_authorities(
                session, "alice", ["GROUP_DATA_COLLECTORS", "GROUP_DATA_VIEWERS"]
            )
        async with session_factory() as session:
            user = await get_user_by_username(session, "alice")
            assert user is not None
            assert user.direct_authorities == {"GROUP_DATA_COLLECTORS", "GROUP_DATA_VIEWERS"}

    async def test_ensure_admin_user_is_repeatable(
        self, session_factory: async_sessionmaker[AsyncSession], test_settings: Settings
    ) -> None:
        async with session_factory() as session:
            await ensure_admin_user(session, test_settings)
        async with session_factory() as session:
            await ensure_admin_user(session, test_settings)
        async with session_factory() as session:
            admin = await get_user_by_username(session, test_settings.admin_username)
            assert admin is not None
            assert admin.direct_authorities == set(test_settings.admin_authorities)

    async def test_unknown_user(self, db_session: AsyncSession) -> None:
        assert await get_user_by_username(db_session, "nobody") is None
