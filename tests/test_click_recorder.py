"""
Tests for click context extraction and best-effort recording.
"""
import asyncio

from starlette.requests import Request

from shortlink_app.config import settings
from shortlink_app.queue.models import ClickContext
from shortlink_app.services.click_recorder import (
    IP_HASH_LENGTH,
    ClickRecorder,
    build_click_context,
    client_address,
    derive_ip_hash,
    fingerprint,
    hash_value,
)


def make_request(headers=None, client=("198.51.100.4", 52100)):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/abc123",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestClientAddress:
    """Test address extraction and hashing"""

    def test_first_forwarded_address_wins(self):
        request = make_request({"x-forwarded-for": "203.0.113.7, 10.0.0.1"})
        assert client_address(request) == "203.0.113.7"

    def test_real_ip_fallback(self):
        request = make_request({"x-real-ip": "203.0.113.9"})
        assert client_address(request) == "203.0.113.9"

    def test_garbage_forwarded_header_falls_through(self):
        request = make_request({"x-forwarded-for": "unknown"})
        assert client_address(request) == "198.51.100.4"

    def test_forwarded_headers_ignored_when_untrusted(self, monkeypatch):
        monkeypatch.setattr(settings, "trust_proxy_headers", False)
        request = make_request({"x-forwarded-for": "203.0.113.7"})
        assert client_address(request) == "198.51.100.4"

    def test_ipv6(self):
        request = make_request({"x-forwarded-for": "2001:db8::1"})
        assert client_address(request) == "2001:db8::1"

    def test_no_address(self):
        assert client_address(make_request(client=None)) is None
        assert client_address(make_request(client=("testclient", 50000))) is None

    def test_hash_is_truncated_and_stable(self):
        digest = hash_value("203.0.113.7", "pepper")
        assert len(digest) == IP_HASH_LENGTH
        assert digest == hash_value("203.0.113.7", "pepper")
        assert digest != hash_value("203.0.113.7", "other")
        assert "203.0.113.7" not in digest


class TestFingerprint:
    """Test the header fingerprint used when no address is known"""

    def test_used_without_address(self):
        headers = {"user-agent": "Mozilla/5.0", "accept-language": "en-US"}
        request = make_request(headers, client=None)

        assert derive_ip_hash(request) == fingerprint(request)
        assert len(derive_ip_hash(request)) == IP_HASH_LENGTH

    def test_differs_from_address_hash(self):
        request = make_request({"user-agent": "Mozilla/5.0"})

        assert derive_ip_hash(request) == hash_value("198.51.100.4", settings.ip_hash_salt)
        assert fingerprint(request) != derive_ip_hash(request)

    def test_no_signals(self):
        request = make_request(client=None)

        assert fingerprint(request) is None
        assert derive_ip_hash(request) is None

    def test_distinguishes_visitors(self):
        first = make_request({"user-agent": "Mozilla/5.0", "accept-language": "en-US"}, client=None)
        second = make_request({"user-agent": "Mozilla/5.0", "accept-language": "de-DE"}, client=None)

        assert fingerprint(first) != fingerprint(second)


class TestBuildClickContext:
    """Test request metadata capture"""

    def test_captures_headers(self):
        request = make_request({
            "user-agent": "Mozilla/5.0",
            "referer": "https://news.ycombinator.com/",
            "cf-ipcountry": "DE",
            "cf-ipcity": "Berlin",
        })

        context = build_click_context(request, url_id=7, slug="abc123")

        assert context.url_id == 7
        assert context.slug == "abc123"
        assert context.user_agent == "Mozilla/5.0"
        assert context.referrer == "https://news.ycombinator.com/"
        assert context.country == "DE"
        assert context.city == "Berlin"
        assert context.timestamp.tzinfo is not None

    def test_missing_headers_are_none(self):
        context = build_click_context(make_request(), url_id=7, slug="abc123")

        assert context.user_agent is None
        assert context.referrer is None
        assert context.country is None
        assert context.city is None

    def test_unknown_country(self):
        request = make_request({"cf-ipcountry": "XX"})
        assert build_click_context(request, url_id=7, slug="abc123").country is None


class TestClickRecorder:
    """Test persistence of clicks"""

    def test_records_count_and_event(self, session_factory, make_link, load_clicks):
        link = make_link(slug="abc123")
        context = ClickContext(
            url_id=link.id,
            slug="abc123",
            ip_hash="3f2a9c0d1e7b6a55",
            user_agent="Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0",
            country="FR",
        )

        ok = asyncio.run(ClickRecorder(session_factory).record(link.id, context))

        assert ok is True
        click_count, events = load_clicks(link.id)
        assert click_count == 1
        assert events[0].ip_hash == "3f2a9c0d1e7b6a55"
        assert events[0].country == "FR"
        assert (events[0].device, events[0].browser, events[0].os) == ("Desktop", "Firefox", "Linux")

    def test_missing_user_agent_stores_nulls(self, session_factory, make_link, load_clicks):
        link = make_link(slug="abc123")
        context = ClickContext(url_id=link.id, slug="abc123")

        asyncio.run(ClickRecorder(session_factory).record(link.id, context))

        _, events = load_clicks(link.id)
        assert (events[0].device, events[0].browser, events[0].os) == (None, None, None)

    def test_concurrent_clicks_are_all_counted(self, session_factory, make_link, load_clicks):
        link = make_link(slug="abc123")
        recorder = ClickRecorder(session_factory)

        async def burst():
            return await asyncio.gather(*(
                recorder.record(link.id, ClickContext(url_id=link.id, slug="abc123"))
                for _ in range(10)
            ))

        results = asyncio.run(burst())

        assert all(results)
        click_count, events = load_clicks(link.id)
        assert click_count == 10
        assert len(events) == 10

    def test_database_failure_is_swallowed(self):
        def broken_factory():
            raise RuntimeError("no database")

        recorder = ClickRecorder(broken_factory)
        context = ClickContext(url_id=1, slug="abc123")

        assert asyncio.run(recorder.record(1, context)) is False

    def test_timeout_is_swallowed(self, session_factory, monkeypatch):
        async def slow_record(self, url_id, context):
            await asyncio.sleep(1)
            return True

        monkeypatch.setattr(ClickRecorder, "_record", slow_record)
        recorder = ClickRecorder(session_factory, timeout=0.02)
        context = ClickContext(url_id=1, slug="abc123")

        assert asyncio.run(recorder.record(1, context)) is False
