"""API tests for cross-cutting protocol behavior: auth, roles and headers."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError

from tests.conftest import auth_headers, create_test_client

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from httpx import AsyncClient

    from tablesync.config import Settings


@pytest.fixture
async def client(test_settings: Settings) -> AsyncGenerator[AsyncClient]:
    async with create_test_client(
        test_settings, users={"collector": ["GROUP_DATA_COLLECTORS"]}
    ) as ac:
        yield ac


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_token_is_401(self, client: AsyncClient) -> None:
        resp = await client.get("/api/default/tables")
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_wrong_secret_is_401(self, client: AsyncClient) -> None:
        headers = auth_headers(secret_key="another-secret-key-of-at-least-32-chars")
        resp = await client.get("/api/default/tables", headers=headers)
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_user_is_401(self, client: AsyncClient) -> None:
        resp = await client.get("/api/default/tables", headers=auth_headers("nobody"))
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_role_without_sync_is_403(self, client: AsyncClient) -> None:
        resp = await client.get("/api/default/tables", headers=auth_headers("collector"))
        assert resp.status_code == 403


class TestGrantedRoles:
    @pytest.mark.asyncio
    async def test_admin_roles_are_expanded(self, client: AsyncClient) -> None:
        resp = await client.get("/api/roles/granted", headers=auth_headers())
        assert resp.status_code == 200
        assert resp.json() == [
            "ROLE_ADMINISTER_TABLES",
            "ROLE_SITE_ACCESS_ADMIN",
            "ROLE_SUPER_USER_TABLES",
            "ROLE_SYNCHRONIZE_TABLES",
            "ROLE_USER",
        ]

    @pytest.mark.asyncio
    async def test_collector_roles(self, client: AsyncClient) -> None:
        resp = await client.get("/api/roles/granted", headers=auth_headers("collector"))
        assert resp.json() == ["ROLE_DATA_COLLECTOR", "ROLE_USER"]


class TestProtocolHeaders:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("path", "authenticated"),
        [
            ("/api/health", False),
            ("/api/default/tables", True),
            ("/api/default/tables", False),
            ("/api/default/tables/missing", True),
        ],
    )
    async def test_every_response_has_protocol_headers(
        self, client: AsyncClient, path: str, authenticated: bool
    ) -> None:
        headers = auth_headers() if authenticated else {}
        resp = await client.get(path, headers=headers)
        assert resp.headers["x-opendatakit-version"] == "2.0"
        assert resp.headers["access-control-allow-origin"] == "*"
        assert resp.headers["access-control-allow-credentials"] == "true"

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {
            "status": "ok",
            "version": "0.1.0",
            "protocolVersion": "2.0",
            "database": "ok",
        }


class TestUnexpectedErrors:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            RecursionError("maximum recursion depth exceeded"),
            TypeError("unsupported operand"),
            IntegrityError("INSERT", {}, Exception("constraint failed")),
        ],
    )
    async def test_safety_net_keeps_protocol_headers(
        self, client: AsyncClient, error: Exception
    ) -> None:
        with patch("tablesync.api.roles.granted_role_names", side_effect=error):
            resp = await client.get("/api/roles/granted", headers=auth_headers())
        assert resp.status_code == 500
        assert "maximum recursion" not in resp.text
        assert resp.headers["x-opendatakit-version"] == "2.0"
        assert resp.headers["access-control-allow-origin"] == "*"
        assert resp.headers["access-control-allow-credentials"] == "true"

    @pytest.mark.asyncio
    async def test_unhandled_exception_keeps_protocol_headers(
        self, test_settings: Settings
    ) -> None:
        async with create_test_client(test_settings, raise_app_exceptions=False) as ac:
            with patch(
                "tablesync.api.roles.granted_role_names", side_effect=LookupError("secret detail")
            ):
                resp = await ac.get("/api/roles/granted", headers=auth_headers())
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Internal server error"}
        assert resp.headers["x-opendatakit-version"] == "2.0"
        assert resp.headers["access-control-allow-origin"] == "*"
        assert resp.headers["access-control-allow-credentials"] == "true"
