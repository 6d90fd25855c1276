"""Tests for the blob store and manifest ETags."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tablesync.exceptions import RequestBodyError
from tablesync.models.file import APP_LEVEL_SCOPE
from tablesync.services import file_service, manifest_service
from tablesync.services.file_service import normalize_file_path, table_id_for_path
from tablesync.services.manifest_service import compute_manifest_etag, hash_content
from tests.conftest import TEST_APP_ID

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from tablesync.services.permission_service import RequestContext

_ENTRY = st.tuples(
    st.sampled_from(["1", "2"]),
    st.text(alphabet="abc/", min_size=1, max_size=6),
    st.text(alphabet="0123456789abcdef", min_size=1, max_size=4),
    st.sampled_from(["text/plain", "application/json"]),
)


class TestComputeManifestEtag:
    def test_empty_scope_has_no_etag(self) -> None:
        assert compute_manifest_etag([]) is None

    @settings(max_examples=150, deadline=None)
    @given(items=st.lists(_ENTRY, min_size=1, max_size=8), seed=st.randoms())
    def test_order_independent(
        self, items: list[tuple[str, str, str, str]], seed: random.Random
    ) -> None:
        shuffled = list(items)
        seed.shuffle(shuffled)
        assert compute_manifest_etag(items) == compute_manifest_etag(shuffled)

    def test_changes_when_content_changes(self) -> None:
        before = compute_manifest_etag([("2", "a.txt", hash_content(b"one"), "text/plain")])
        after = compute_manifest_etag([("2", "a.txt", hash_content(b"two"), "text/plain")])
        assert before != after

    def test_changes_when_content_type_changes(self) -> None:
        content_etag = hash_content(b"one")
        before = compute_manifest_etag([("2", "a.txt", content_etag, "text/plain")])
        after = compute_manifest_etag([("2", "a.txt", content_etag, "application/json")])
        assert before != after

    def test_hash_content_format(self) -> None:
        assert hash_content(b"") == "md5:d41d8cd98f00b204e9800998ecf8427e"


class TestFilePaths:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("a.txt", "a.txt"),
            ("/config/a.txt", "config/a.txt"),
            ("tables//visits/form.json", "tables/visits/form.json"),
        ],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        assert normalize_file_path(raw) == expected

    @pytest.mark.parametrize("raw", ["", "/", "../etc/passwd", "tables/./x", "a/../../b"])
    def test_normalize_rejects(self, raw: str) -> None:
        with pytest.raises(RequestBodyError):
            normalize_file_path(raw)

    @pytest.mark.parametrize(
        ("path", "scope"),
        [
            ("tables/visits/properties.csv", "visits"),
            ("tables/visits/forms/a/form.json", "visits"),
            ("tables/visits", APP_LEVEL_SCOPE),
            ("config/app.json", APP_LEVEL_SCOPE),
        ],
    )
    def test_table_scope(self, path: str, scope: str) -> None:
        assert table_id_for_path(path) == scope


class TestManifestStore:
    async def test_store_sets_app_level_etag(
        self, db_session: AsyncSession, admin_ctx: RequestContext
    ) -> None:
        assert await manifest_service.get_app_level_manifest_etag(db_session, admin_ctx) is None
        await file_service.store_file(
            db_session, TEST_APP_ID, "2", "config/app.json", b"{}", "application/json"
        )
        await db_session.commit()
        assert await manifest_service.get_app_level_manifest_etag(db_session, admin_ctx)

    async def test_etag_changes_iff_files_change(
        self, db_session: AsyncSession, admin_ctx: RequestContext
    ) -> None:
        await file_service.store_file(db_session, TEST_APP_ID, "2", "a.txt", b"one", "text/plain")
        first = await manifest_service.get_app_level_manifest_etag(db_session, admin_ctx)

        await file_service.store_file(db_session, TEST_APP_ID, "2", "a.txt", b"one", "text/plain")
        same = await manifest_service.get_app_level_manifest_etag(db_session, admin_ctx)

        await file_service.store_file(db_session, TEST_APP_ID, "2", "a.txt", b"two", "text/plain")
        changed = await manifest_service.get_app_level_manifest_etag(db_session, admin_ctx)

        assert same == first
        assert changed != first

    async def test_content_type_change_moves_etag(
        self, db_session: AsyncSession, admin_ctx: RequestContext
    ) -> None:
        await file_service.store_file(db_session, TEST_APP_ID, "2", "a.txt", b"one", "text/plain")
        first = await manifest_service.get_app_level_manifest_etag(db_session, admin_ctx)

        await file_service.store_file(
            db_session, TEST_APP_ID, "2", "a.txt", b"one", "application/json"
        )
        retyped = await manifest_service.get_app_level_manifest_etag(db_session, admin_ctx)

        manifest = await manifest_service.get_manifest(db_session, admin_ctx, "2")
        assert manifest.entries[0].content_type == "application/json"
        assert retyped != first

    async def test_table_files_do_not_touch_app_scope(
        self, db_session: AsyncSession, admin_ctx: RequestContext
    ) -> None:
        await file_service.store_file(db_session, TEST_APP_ID, "2", "a.txt", b"one", "text/plain")
        app_etag = await manifest_service.get_app_level_manifest_etag(db_session, admin_ctx)
        await file_service.store_file(
            db_session, TEST_APP_ID, "2", "tables/visits/form.json", b"{}", "application/json"
        )
        app_after = await manifest_service.get_app_level_manifest_etag(db_session, admin_ctx)
        assert app_after == app_etag
        assert await manifest_service.get_table_level_manifest_etag(
            db_session, admin_ctx, "visits"
        )

    async def test_removing_last_file_clears_etag(
        self, db_session: AsyncSession, admin_ctx: RequestContext
    ) -> None:
        await file_service.store_file(db_session, TEST_APP_ID, "2", "a.txt", b"one", "text/plain")
        assert await file_service.remove_file(db_session, TEST_APP_ID, "2", "a.txt")
        await db_session.commit()
        assert await manifest_service.get_app_level_manifest_etag(db_session, admin_ctx) is None
        assert not await file_service.remove_file(db_session, TEST_APP_ID, "2", "a.txt")

    async def test_manifest_lists_one_client_version(
        self, db_session: AsyncSession, admin_ctx: RequestContext
    ) -> None:
        await file_service.store_file(db_session, TEST_APP_ID, "2", "b.txt", b"b", "text/plain")
        await file_service.store_file(db_session, TEST_APP_ID, "2", "a.txt", b"a", "text/plain")
        await file_service.store_file(db_session, TEST_APP_ID, "3", "c.txt", b"c", "text/plain")
        await db_session.commit()

        manifest = await manifest_service.get_manifest(db_session, admin_ctx, "2")
        assert [e.file_path for e in manifest.entries] == ["a.txt", "b.txt"]
        assert manifest.entries[0].content_etag == hash_content(b"a")
        assert manifest.entries[0].content_length == 1
        assert manifest.etag is not None
