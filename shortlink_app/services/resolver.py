"""
Slug resolution for the redirect path.

    LOOKUP -> NOT_FOUND | EXPIRED | PASSWORD_REQUIRED | READY
           -> LOOKUP_FAILED (datastore error or timeout)

Resolution has no side effects. Click recording happens in the router
once READY has been reached. The resolver has no idea about reserved words;
that check belongs to link creation.
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import case, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink_app.config import settings
from shortlink_app.models import ShortLink
from shortlink_app.services.passwords import check_password
from shortlink_app.timeutils import utcnow

logger = logging.getLogger(__name__)


class ResolutionStatus(str, Enum):
    READY = "ready"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    PASSWORD_REQUIRED = "password_required"
    LOOKUP_FAILED = "lookup_failed"


class Resolution(BaseModel):
    status: ResolutionStatus
    slug: str
    target_url: Optional[str] = None
    link_id: Optional[int] = None

    @property
    def is_ready(self) -> bool:
        return self.status == ResolutionStatus.READY


class LookupFailed(Exception):
    """Datastore unreachable, erroring or too slow during slug lookup"""


class SlugResolver:
    """
    Resolves slugs against live (not soft-deleted) links.

    Args:
        db: Request-scoped session
        lookup_timeout: Seconds before a lookup counts as failed
    """

    def __init__(self, db: AsyncSession, lookup_timeout: Optional[float] = None):
        self.db = db
        if lookup_timeout is None:
            lookup_timeout = settings.lookup_timeout_ms / 1000
        self.lookup_timeout = lookup_timeout

    async def _find_live_link(self, slug: str) -> Optional[ShortLink]:
        # Unexpired rows first; an expired row only answers when nothing else does
        unexpired = or_(ShortLink.expiry_at.is_(None), ShortLink.expiry_at > utcnow())
        result = await self.db.execute(
            select(ShortLink)
            .where(ShortLink.slug == slug, ShortLink.deleted_at.is_(None))
            .order_by(
                case((unexpired, 0), else_=1),
                ShortLink.created_at.desc(),
                ShortLink.id.desc(),
            )
            .limit(1)
        )
        return result.scalars().first()

    async def lookup(self, slug: str) -> Optional[ShortLink]:
        """
        Fetch the live link for `slug` within the lookup budget.

        Raises:
            LookupFailed: on timeout or any datastore error
        """
        try:
            return await asyncio.wait_for(self._find_live_link(slug), timeout=self.lookup_timeout)
        except asyncio.TimeoutError as e:
            logger.error(
                "Slug lookup timed out after %.0fms: slug=%s at=%s",
                self.lookup_timeout * 1000, slug, utcnow().isoformat(),
            )
            raise LookupFailed(slug) from e
        except SQLAlchemyError as e:
            logger.error(
                "Slug lookup failed: slug=%s at=%s error=%s",
                slug, utcnow().isoformat(), e,
            )
            raise LookupFailed(slug) from e

    async def resolve(self, slug: str, password_verified: bool = False) -> Resolution:
        """
        Resolve `slug` to a redirect target or a terminal state.

        Args:
            slug: Taken verbatim from the request path (case-sensitive)
            password_verified: The caller already passed the password gate
                for this request (or holds an unlock grant)
        """
        try:
            link = await self.lookup(slug)
        except LookupFailed:
            return Resolution(status=ResolutionStatus.LOOKUP_FAILED, slug=slug)

        if link is None:
            return Resolution(status=ResolutionStatus.NOT_FOUND, slug=slug)

        if link.is_expired():
            logger.info("Link expired: slug=%s", slug)
            return Resolution(status=ResolutionStatus.EXPIRED, slug=slug, link_id=link.id)

        if link.require_password and not password_verified:
            return Resolution(status=ResolutionStatus.PASSWORD_REQUIRED, slug=slug, link_id=link.id)

        return Resolution(
            status=ResolutionStatus.READY,
            slug=slug,
            target_url=link.target_url,
            link_id=link.id,
        )

    async def verify_password(self, slug: str, candidate: str) -> bool:
        """
        Check `candidate` against the stored hash of the live link `slug`.

        False for unknown slugs, links without a password and empty
        candidates. Datastore failures propagate as LookupFailed so they
        aren't reported as a wrong password.
        """
        link = await self.lookup(slug)
        if link is None or not link.require_password or not link.password_hash:
            return False
        return check_password(candidate, link.password_hash)
