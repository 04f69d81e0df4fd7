"""
FastAPI dependencies for dependency injection.

Singleton cache and queue instances plus per-request services. Tests
override `get_db`, `get_session_factory` and `get_cache` to run against
isolated backends.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortlink_app.cache.factory import CacheFactory, CacheBackend
from shortlink_app.cache.strategies import CacheStrategy
from shortlink_app.database.connection import get_db, get_session_factory
from shortlink_app.queue.factory import QueueFactory, QueueBackend
from shortlink_app.queue.strategies import QueueStrategy
from shortlink_app.services.click_recorder import ClickRecorder
from shortlink_app.services.link_service import LinkService
from shortlink_app.services.resolver import SlugResolver
from shortlink_app.services.unlock import UnlockGrants
from shortlink_app.config import settings


@lru_cache()
def get_cache() -> CacheStrategy:
    """Cache instance (singleton) chosen by settings.cache_backend"""
    return CacheFactory.create(CacheBackend(settings.cache_backend))


@lru_cache()
def get_queue() -> QueueStrategy:
    """Queue instance (singleton) chosen by settings.queue_backend"""
    return QueueFactory.create(QueueBackend(settings.queue_backend))


def get_resolver(db: AsyncSession = Depends(get_db)) -> SlugResolver:
    return SlugResolver(db)


def get_link_service(db: AsyncSession = Depends(get_db)) -> LinkService:
    return LinkService(db)


def get_click_recorder(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> ClickRecorder:
    return ClickRecorder(session_factory)


def get_unlock_grants(cache: CacheStrategy = Depends(get_cache)) -> UnlockGrants:
    return UnlockGrants(cache)
