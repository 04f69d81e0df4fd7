"""
Slug generation strategies for links created without a custom slug.
Uses Strategy Pattern to allow different generation algorithms.
"""

import secrets
import string
from abc import ABC, abstractmethod

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink_app.exceptions import SlugGenerationError
from shortlink_app.models import ShortLink
from shortlink_app.timeutils import utcnow


async def slug_in_use(db: AsyncSession, slug: str) -> bool:
    """True if a live (not deleted, not expired) link owns `slug`"""
    result = await db.execute(
        select(ShortLink.id).where(
            ShortLink.slug == slug,
            ShortLink.deleted_at.is_(None),
            or_(ShortLink.expiry_at.is_(None), ShortLink.expiry_at > utcnow()),
        ).limit(1)
    )
    return result.first() is not None


class SlugStrategy(ABC):
    """Abstract base class for slug generation strategies"""

    @abstractmethod
    async def generate(self, link_id: int, db: AsyncSession) -> str:
        """
        Generate a slug.

        Args:
            link_id: The database ID of the (flushed, uncommitted) link
            db: Session for strategies that need to check uniqueness

        Returns:
            A slug no live link is using
        """
        pass


class RandomSlugStrategy(SlugStrategy):
    """
    Random alphanumeric slug, checked against live links.

    Pros: Unpredictable, doesn't leak link volume
    Cons: One uniqueness query per attempt
    """

    def __init__(self, length: int = 6, max_retries: int = 5):
        self.length = length
        self.max_retries = max_retries
        self.characters = string.ascii_letters + string.digits

    async def generate(self, link_id: int, db: AsyncSession) -> str:
        for attempt in range(self.max_retries):
            slug = self._generate_random_string()
            if not await slug_in_use(db, slug):
                return slug

        raise SlugGenerationError(
            f"Could not generate unique slug after {self.max_retries} attempts"
        )

    def _generate_random_string(self) -> str:
        return ''.join(secrets.choice(self.characters) for _ in range(self.length))


class Base62SlugStrategy(SlugStrategy):
    """
    Base62 encoding of the salted link id.

    Pros: No collisions between generated slugs, no extra queries
    Cons: Sequential if the salt is known; can clash with a custom slug
    """

    BASE62_CHARS = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"

    def __init__(self, salt: int = 238328, max_length: int = 6):
        self.salt = salt
        self.max_length = max_length

    async def generate(self, link_id: int, db: AsyncSession) -> str:
        encoded = self._base62_encode(link_id + self.salt)

        # Truncating would create duplicates
        if len(encoded) > self.max_length:
            raise SlugGenerationError(
                f"Generated slug '{encoded}' exceeds max length {self.max_length} "
                f"for link id {link_id}. Increase slug_max_length."
            )

        # Someone may have picked this as a custom slug
        if await slug_in_use(db, encoded):
            raise SlugGenerationError(f"Generated slug '{encoded}' is already taken")

        return encoded

    def _base62_encode(self, number: int) -> str:
        if number == 0:
            return self.BASE62_CHARS[0]

        result = ""
        while number > 0:
            result = self.BASE62_CHARS[number % 62] + result
            number //= 62

        return result
