import logging
import re
from collections import Counter
from datetime import timedelta
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink_app.config import settings
from shortlink_app.exceptions import (
    GuestLimitExceededError,
    InvalidSlugError,
    InvalidTargetError,
    LinkNotFoundError,
    SlugUnavailableError,
)
from shortlink_app.models import ClickEvent, ShortLink
from shortlink_app.schemas.analytics import AnalyticsSummary, CountEntry, DailyClicks
from shortlink_app.schemas.link import LinkCreate, LinkStats
from shortlink_app.services.passwords import hash_password
from shortlink_app.services.slug_factory import SlugFactory
from shortlink_app.services.slug_strategies import SlugStrategy, slug_in_use
from shortlink_app.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{3,50}$")

# Application paths that must never be handed out as slugs
RESERVED_SLUGS = frozenset({
    "auth", "dashboard", "profile", "settings", "privacy", "terms",
    "sitemap", "accessibility", "cookies", "about", "contact", "blog",
    "careers", "help", "status", "docs", "redoc", "openapi.json", "api",
    "admin", "health",
})


def validate_target_url(target_url: str) -> str:
    parsed = urlparse(target_url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise InvalidTargetError("Target URL must be an absolute http or https URL")
    return target_url


def validate_slug(slug: str) -> str:
    if slug.lower() in RESERVED_SLUGS:
        raise InvalidSlugError(f"Slug '{slug}' is reserved")
    if not SLUG_PATTERN.match(slug):
        raise InvalidSlugError(
            "Slug must be 3-50 characters of letters, digits, '-' or '_'"
        )
    return slug


def referrer_host(referrer: Optional[str]) -> str:
    if not referrer:
        return "Direct"
    host = urlparse(referrer).hostname
    return host or "Direct"


def _count_entries(counter: Counter) -> List[CountEntry]:
    return [CountEntry(name=name, value=value) for name, value in counter.most_common()]


class LinkService:
    """
    Link management: creation, lifecycle (soft delete, restore, permanent
    delete), password changes, guest migration and analytics.

    The redirect path doesn't go through here; see SlugResolver.
    """

    def __init__(self, db: AsyncSession, slug_strategy: Optional[SlugStrategy] = None):
        self.db = db
        self.slug_strategy = slug_strategy or SlugFactory.create_strategy()

    async def _get(self, link_id: int) -> ShortLink:
        link = await self.db.get(ShortLink, link_id)
        if link is None:
            raise LinkNotFoundError(f"Link {link_id} not found")
        return link

    async def _check_guest_limit(self, guest_session_id: str) -> None:
        window_start = utcnow() - timedelta(hours=settings.guest_limit_window_hours)
        result = await self.db.execute(
            select(func.count(ShortLink.id)).where(
                ShortLink.guest_session_id == guest_session_id,
                ShortLink.is_guest.is_(True),
                ShortLink.guest_created_at >= window_start,
            )
        )
        if result.scalar_one() >= settings.guest_link_limit:
            raise GuestLimitExceededError(
                f"Guest sessions may create at most {settings.guest_link_limit} links "
                f"per {settings.guest_limit_window_hours} hours"
            )

    async def create_link(self, data: LinkCreate) -> ShortLink:
        """
        Create a link.

        A custom slug is validated and must be free among live links. Without
        one, the configured strategy picks it after the row has an id.
        Requests carrying a guest session and no owner become guest links
        with the fixed guest expiry.
        """
        validate_target_url(data.target_url)

        if data.slug is not None:
            validate_slug(data.slug)
            if await slug_in_use(self.db, data.slug):
                raise SlugUnavailableError(f"Slug '{data.slug}' is already in use")

        now = utcnow()
        is_guest = data.owner_id is None and data.guest_session_id is not None
        expiry_at = data.expiry_at
        if is_guest:
            await self._check_guest_limit(data.guest_session_id)
            expiry_at = now + timedelta(days=settings.guest_retention_days)

        link = ShortLink(
            slug=data.slug,
            target_url=data.target_url,
            owner_id=data.owner_id,
            title=data.title,
            description=data.description,
            is_public=data.is_public,
            click_count=0,
            created_at=now,
            updated_at=now,
            expiry_at=expiry_at,
            is_guest=is_guest,
            guest_session_id=data.guest_session_id if is_guest else None,
            guest_created_at=now if is_guest else None,
        )
        if data.password:
            link.require_password = True
            link.password_hash = hash_password(data.password)

        self.db.add(link)
        try:
            if link.slug is None:
                await self.db.flush()  # Need the id for base62
                link.slug = await self.slug_strategy.generate(link.id, self.db)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(link)
        logger.info("Created link id=%s slug=%s guest=%s", link.id, link.slug, is_guest)
        return link

    async def get_link(self, link_id: int) -> ShortLink:
        return await self._get(link_id)

    async def get_stats(self, link_id: int) -> LinkStats:
        link = await self._get(link_id)
        result = await self.db.execute(
            select(func.max(ClickEvent.created_at)).where(ClickEvent.url_id == link_id)
        )
        return LinkStats(
            id=link.id,
            slug=link.slug,
            click_count=link.click_count,
            created_at=link.created_at,
            last_clicked_at=as_utc(result.scalar_one_or_none()),
        )

    async def soft_delete(self, link_id: int) -> ShortLink:
        link = await self._get(link_id)
        if link.deleted_at is None:
            link.deleted_at = utcnow()
            await self.db.commit()
            logger.info("Soft-deleted link id=%s slug=%s", link.id, link.slug)
        return link

    async def restore(self, link_id: int) -> ShortLink:
        link = await self._get(link_id)
        if link.deleted_at is None:
            return link
        if await slug_in_use(self.db, link.slug):
            raise SlugUnavailableError(
                f"Slug '{link.slug}' has been taken by another link"
            )
        link.deleted_at = None
        await self.db.commit()
        logger.info("Restored link id=%s slug=%s", link.id, link.slug)
        return link

    async def permanent_delete(self, link_id: int) -> None:
        """Remove the link and its click events for good"""
        link = await self._get(link_id)
        await self.db.execute(delete(ClickEvent).where(ClickEvent.url_id == link.id))
        await self.db.execute(delete(ShortLink).where(ShortLink.id == link.id))
        await self.db.commit()
        logger.info("Permanently deleted link id=%s slug=%s", link_id, link.slug)

    async def set_password(self, link_id: int, password: Optional[str]) -> ShortLink:
        link = await self._get(link_id)
        if password:
            link.require_password = True
            link.password_hash = hash_password(password)
        else:
            link.require_password = False
            link.password_hash = None
        await self.db.commit()
        return link

    async def migrate_guest_links(self, guest_session_id: str, user_id: str) -> Tuple[int, List[int]]:
        """
        Hand a guest session's live links over to `user_id`.

        The forced guest expiry is dropped with the guest flag, so migrated
        links no longer go dark after the retention window.
        """
        result = await self.db.execute(
            select(ShortLink.id).where(
                ShortLink.guest_session_id == guest_session_id,
                ShortLink.is_guest.is_(True),
                ShortLink.deleted_at.is_(None),
                or_(ShortLink.expiry_at.is_(None), ShortLink.expiry_at > utcnow()),
            )
        )
        url_ids = list(result.scalars().all())
        if url_ids:
            await self.db.execute(
                update(ShortLink)
                .where(ShortLink.id.in_(url_ids))
                .values(
                    owner_id=user_id,
                    is_guest=False,
                    guest_session_id=None,
                    guest_created_at=None,
                    expiry_at=None,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        logger.info("Migrated %d guest links to user=%s", len(url_ids), user_id)
        return len(url_ids), url_ids

    async def get_analytics(self, link_id: int, days: int = 30) -> AnalyticsSummary:
        """
        Aggregate a link's click events.

        Category breakdowns cover all clicks; `clicks_over_time` covers the
        last `days` days (today included) with missing days filled with 0.
        """
        link = await self._get(link_id)
        where = ClickEvent.url_id == link.id

        totals = await self.db.execute(
            select(
                func.count(ClickEvent.id),
                func.count(func.distinct(ClickEvent.ip_hash)),
                func.count(func.distinct(ClickEvent.country)),
            ).where(where)
        )
        total_clicks, unique_visitors, unique_countries = totals.one()

        async def breakdown(column) -> Counter:
            rows = await self.db.execute(
                select(column, func.count(ClickEvent.id)).where(where).group_by(column)
            )
            counter = Counter()
            for value, count in rows.all():
                counter[value or "Unknown"] += count
            return counter

        referrers = Counter()
        rows = await self.db.execute(
            select(ClickEvent.referrer, func.count(ClickEvent.id)).where(where).group_by(ClickEvent.referrer)
        )
        for referrer, count in rows.all():
            referrers[referrer_host(referrer)] += count

        today = utcnow().date()
        first_day = today - timedelta(days=days - 1)
        daily = Counter()
        rows = await self.db.execute(
            select(ClickEvent.created_at).where(
                where, ClickEvent.created_at >= utcnow() - timedelta(days=days)
            )
        )
        for (created_at,) in rows.all():
            day = as_utc(created_at).date()
            if day >= first_day:
                daily[day] += 1

        window = [first_day + timedelta(days=offset) for offset in range(days)]

        return AnalyticsSummary(
            link_id=link.id,
            slug=link.slug,
            total_clicks=total_clicks,
            unique_visitors=unique_visitors,
            unique_countries=unique_countries,
            days=days,
            clicks_over_time=[DailyClicks(day=day, clicks=daily[day]) for day in window],
            devices=_count_entries(await breakdown(ClickEvent.device)),
            browsers=_count_entries(await breakdown(ClickEvent.browser)),
            operating_systems=_count_entries(await breakdown(ClickEvent.os)),
            countries=_count_entries(await breakdown(ClickEvent.country)),
            referrers=_count_entries(referrers),
        )
