"""
Click recording: the best-effort analytics side channel of a redirect.

Two halves:
- `build_click_context(request)` runs on the request path. Header parsing
  and hashing only, no I/O.
- `ClickRecorder.record(url_id, context)` runs after the response has been
  sent (Starlette background task) or inside the queue worker. It never
  raises: every failure is logged and dropped.
"""

import asyncio
import hashlib
import ipaddress
import logging
from typing import Optional

from fastapi import Request
from sqlalchemy import update
from sqlalchemy.ext.asyncio import async_sessionmaker

from shortlink_app.config import settings
from shortlink_app.models import ClickEvent, ShortLink
from shortlink_app.queue.models import ClickContext
from shortlink_app.services.user_agent import classify_user_agent

logger = logging.getLogger(__name__)

IP_HASH_LENGTH = 16

# Headers that together approximate a visitor when no address is available
FINGERPRINT_HEADERS = (
    "user-agent",
    "accept-language",
    "sec-ch-ua-platform",
    "sec-ch-viewport-width",
    "sec-ch-dpr",
)

UNKNOWN_COUNTRY_CODES = {"", "XX"}


def hash_value(value: str, salt: str = "") -> str:
    return hashlib.sha256(f"{salt}{value}".encode("utf-8")).hexdigest()[:IP_HASH_LENGTH]


def _valid_ip(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    value = value.strip()
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return None
    return value


def client_address(request: Request) -> Optional[str]:
    """
    Best known client address.

    Forwarded headers are only honoured when `trust_proxy_headers` is on
    (the service sits behind an edge that overwrites them).
    """
    if settings.trust_proxy_headers:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            address = _valid_ip(forwarded_for.split(",")[0])
            if address:
                return address
        address = _valid_ip(request.headers.get("x-real-ip"))
        if address:
            return address

    if request.client:
        return _valid_ip(request.client.host)
    return None


def fingerprint(request: Request) -> Optional[str]:
    """
    Hash of a handful of request headers, used when no address is known.

    This only separates visitors roughly. It is not an identity and not a
    security control, and it is never comparable to an address hash.
    """
    signals = [request.headers.get(name, "") for name in FINGERPRINT_HEADERS]
    if not any(signals):
        return None
    return hash_value("fp|" + "|".join(signals), settings.ip_hash_salt)


def derive_ip_hash(request: Request) -> Optional[str]:
    address = client_address(request)
    if address:
        return hash_value(address, settings.ip_hash_salt)
    return fingerprint(request)


def _geo_header(request: Request, name: str) -> Optional[str]:
    value = request.headers.get(name)
    return value.strip() if value and value.strip() else None


def build_click_context(request: Request, url_id: int, slug: str) -> ClickContext:
    country = _geo_header(request, settings.geo_country_header)
    if country is not None and country.upper() in UNKNOWN_COUNTRY_CODES:
        country = None

    return ClickContext(
        url_id=url_id,
        slug=slug,
        ip_hash=derive_ip_hash(request),
        user_agent=request.headers.get("user-agent") or None,
        referrer=request.headers.get("referer") or None,
        country=country,
        city=_geo_header(request, settings.geo_city_header),
    )


class ClickRecorder:
    """
    Persists clicks: bump `click_count`, append a ClickEvent.

    Uses its own sessions from `session_factory`; the request session is
    gone by the time this runs.
    """

    def __init__(self, session_factory: async_sessionmaker, timeout: Optional[float] = None):
        self.session_factory = session_factory
        self.timeout = settings.click_recording_timeout if timeout is None else timeout

    async def record(self, url_id: int, context: ClickContext) -> bool:
        """
        Record one click. Returns True if both writes went through.

        Never raises; failures are logged and reported through the return
        value only.
        """
        try:
            return await asyncio.wait_for(self._record(url_id, context), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Click recording timed out for slug=%s url_id=%s", context.slug, url_id)
        except Exception:
            logger.exception("Click recording failed for slug=%s url_id=%s", context.slug, url_id)
        return False

    async def _record(self, url_id: int, context: ClickContext) -> bool:
        agent = classify_user_agent(context.user_agent)
        counted = await self._increment(url_id, context.slug)
        stored = await self._insert(url_id, context, agent)
        if counted and stored:
            logger.debug("Tracked click for slug=%s", context.slug)
        return counted and stored

    async def _increment(self, url_id: int, slug: str) -> bool:
        # Atomic at the database level; concurrent redirects don't lose counts
        try:
            async with self.session_factory() as db:
                await db.execute(
                    update(ShortLink)
                    .where(ShortLink.id == url_id)
                    .values(click_count=ShortLink.click_count + 1)
                    .execution_options(synchronize_session=False)
                )
                await db.commit()
            return True
        except Exception:
            logger.exception("Failed to increment click_count for slug=%s", slug)
            return False

    async def _insert(self, url_id: int, context: ClickContext, agent) -> bool:
        try:
            async with self.session_factory() as db:
                db.add(ClickEvent(
                    url_id=url_id,
                    created_at=context.timestamp,
                    ip_hash=context.ip_hash,
                    user_agent=context.user_agent,
                    referrer=context.referrer,
                    country=context.country,
                    city=context.city,
                    device=agent.device,
                    browser=agent.browser,
                    os=agent.os,
                ))
                await db.commit()
            return True
        except Exception:
            logger.exception("Failed to store click event for slug=%s", context.slug)
            return False
