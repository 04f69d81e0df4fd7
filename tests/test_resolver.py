"""
Tests for slug resolution.
"""
import asyncio
from datetime import timedelta

import pytest

from shortlink_app.services.passwords import hash_password
from shortlink_app.services.resolver import (
    LookupFailed,
    ResolutionStatus,
    SlugResolver,
)
from shortlink_app.timeutils import utcnow


def resolve(session_factory, slug, **kwargs):
    async def run():
        async with session_factory() as db:
            return await SlugResolver(db).resolve(slug, **kwargs)

    return asyncio.run(run())


def verify(session_factory, slug, candidate):
    async def run():
        async with session_factory() as db:
            return await SlugResolver(db).verify_password(slug, candidate)

    return asyncio.run(run())


class TestResolve:
    """Test the resolution states"""

    def test_ready(self, session_factory, make_link):
        link = make_link(slug="abc123", target_url="https://example.com/landing")

        resolution = resolve(session_factory, "abc123")

        assert resolution.status == ResolutionStatus.READY
        assert resolution.is_ready
        assert resolution.target_url == "https://example.com/landing"
        assert resolution.link_id == link.id

    def test_not_found(self, session_factory):
        resolution = resolve(session_factory, "nosuch")

        assert resolution.status == ResolutionStatus.NOT_FOUND
        assert resolution.target_url is None

    def test_soft_deleted_is_not_found(self, session_factory, make_link):
        make_link(slug="gone", deleted_at=utcnow())

        assert resolve(session_factory, "gone").status == ResolutionStatus.NOT_FOUND

    def test_expired(self, session_factory, make_link):
        make_link(slug="xyz", expiry_at=utcnow() - timedelta(seconds=1))

        resolution = resolve(session_factory, "xyz")

        assert resolution.status == ResolutionStatus.EXPIRED
        assert resolution.target_url is None

    def test_future_expiry_is_ready(self, session_factory, make_link):
        make_link(slug="xyz", expiry_at=utcnow() + timedelta(hours=1))

        assert resolve(session_factory, "xyz").status == ResolutionStatus.READY

    def test_expiry_wins_over_password(self, session_factory, make_link):
        make_link(
            slug="xyz",
            expiry_at=utcnow() - timedelta(days=1),
            require_password=True,
            password_hash=hash_password("hunter2"),
        )

        assert resolve(session_factory, "xyz").status == ResolutionStatus.EXPIRED

    def test_password_required(self, session_factory, make_link):
        make_link(slug="secret", require_password=True, password_hash=hash_password("hunter2"))

        resolution = resolve(session_factory, "secret")

        assert resolution.status == ResolutionStatus.PASSWORD_REQUIRED
        assert resolution.target_url is None

    def test_password_verified_is_ready(self, session_factory, make_link):
        make_link(
            slug="secret",
            target_url="https://example.com/private",
            require_password=True,
            password_hash=hash_password("hunter2"),
        )

        resolution = resolve(session_factory, "secret", password_verified=True)

        assert resolution.status == ResolutionStatus.READY
        assert resolution.target_url == "https://example.com/private"

    def test_newest_live_row_wins(self, session_factory, make_link):
        now = utcnow()
        make_link(slug="dup", target_url="https://example.com/old", created_at=now - timedelta(days=2))
        newest = make_link(slug="dup", target_url="https://example.com/new", created_at=now)

        resolution = resolve(session_factory, "dup")

        assert resolution.link_id == newest.id
        assert resolution.target_url == "https://example.com/new"

    def test_deleted_newer_row_is_skipped(self, session_factory, make_link):
        now = utcnow()
        live = make_link(slug="dup", target_url="https://example.com/live", created_at=now - timedelta(days=2))
        make_link(slug="dup", target_url="https://example.com/deleted", created_at=now, deleted_at=now)

        assert resolve(session_factory, "dup").link_id == live.id

    def test_expired_newer_row_is_skipped(self, session_factory, make_link):
        now = utcnow()
        live = make_link(slug="dup", target_url="https://example.com/live", created_at=now - timedelta(days=2))
        make_link(slug="dup", target_url="https://example.com/stale", created_at=now,
                  expiry_at=now - timedelta(hours=1))

        resolution = resolve(session_factory, "dup")

        assert resolution.status == ResolutionStatus.READY
        assert resolution.link_id == live.id

    def test_only_expired_rows_is_expired(self, session_factory, make_link):
        now = utcnow()
        make_link(slug="dup", created_at=now - timedelta(days=2), expiry_at=now - timedelta(days=1))
        make_link(slug="dup", created_at=now, expiry_at=now - timedelta(hours=1))

        assert resolve(session_factory, "dup").status == ResolutionStatus.EXPIRED

    def test_resolution_has_no_side_effects(self, session_factory, make_link, load_clicks):
        link = make_link(slug="abc123")

        for _ in range(3):
            resolve(session_factory, "abc123")

        click_count, events = load_clicks(link.id)
        assert click_count == 0
        assert events == []


class TestLookupFailure:
    """Test datastore failures during lookup"""

    def test_timeout_is_lookup_failed(self, session_factory, make_link, monkeypatch):
        make_link(slug="abc123")

        async def slow_lookup(self, slug):
            await asyncio.sleep(1)

        monkeypatch.setattr(SlugResolver, "_find_live_link", slow_lookup)

        async def run():
            async with session_factory() as db:
                return await SlugResolver(db, lookup_timeout=0.02).resolve("abc123")

        assert asyncio.run(run()).status == ResolutionStatus.LOOKUP_FAILED

    def test_verify_password_propagates_lookup_failure(self, session_factory, monkeypatch):
        from sqlalchemy.exc import OperationalError

        async def broken_lookup(self, slug):
            raise OperationalError("SELECT", {}, Exception("connection refused"))

        monkeypatch.setattr(SlugResolver, "_find_live_link", broken_lookup)

        with pytest.raises(LookupFailed):
            verify(session_factory, "secret", "hunter2")


class TestVerifyPassword:
    """Test password verification against the stored hash"""

    def test_correct_password(self, session_factory, make_link):
        make_link(slug="secret", require_password=True, password_hash=hash_password("hunter2"))

        assert verify(session_factory, "secret", "hunter2") is True

    def test_wrong_password(self, session_factory, make_link):
        make_link(slug="secret", require_password=True, password_hash=hash_password("hunter2"))

        assert verify(session_factory, "secret", "Hunter2") is False

    def test_empty_password(self, session_factory, make_link):
        make_link(slug="secret", require_password=True, password_hash=hash_password("hunter2"))

        assert verify(session_factory, "secret", "") is False

    def test_unknown_slug(self, session_factory):
        assert verify(session_factory, "nosuch", "hunter2") is False

    def test_link_without_password(self, session_factory, make_link):
        make_link(slug="abc123")

        assert verify(session_factory, "abc123", "hunter2") is False
