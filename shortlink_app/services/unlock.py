"""
Unlock grants: remembering a successful password check for a while.

After a correct password the client gets a random token in a cookie and
the cache holds `unlock:{token}:{slug}` for `unlock_ttl` seconds. A later
GET for the same slug with that cookie skips the challenge. Without the
cookie, or once the entry expires, the password is asked for again.
"""

import secrets
from typing import Optional

from shortlink_app.cache.strategies import CacheStrategy
from shortlink_app.config import settings


class UnlockGrants:
    def __init__(self, cache: CacheStrategy, ttl: Optional[int] = None):
        self.cache = cache
        self.ttl = settings.unlock_ttl if ttl is None else ttl

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    @staticmethod
    def _key(token: str, slug: str) -> str:
        return f"unlock:{token}:{slug}"

    @staticmethod
    def new_token() -> str:
        return secrets.token_urlsafe(24)

    async def grant(self, token: str, slug: str) -> bool:
        if not self.enabled:
            return False
        return await self.cache.set(self._key(token, slug), "1", ttl=self.ttl)

    async def is_unlocked(self, token: Optional[str], slug: str) -> bool:
        if not self.enabled or not token:
            return False
        return await self.cache.exists(self._key(token, slug))
