"""
Test configuration and fixtures for the short link service.
This centralizes all test setup, making individual tests clean.

Every test gets its own SQLite file. Async setup runs through `asyncio.run`
and the connection pool is disabled, so no connection outlives the event
loop that opened it.
"""

import asyncio
import os

# Settings are read at import time
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["CACHE_BACKEND"] = "memory"
os.environ["QUEUE_BACKEND"] = "memory"
os.environ["CLICK_PIPELINE"] = "background"
os.environ["SLUG_STRATEGY"] = "random"
os.environ["ADMIN_TOKEN"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from main import app
from shortlink_app.cache.factory import CacheFactory
from shortlink_app.cache.strategies import InMemoryCache
from shortlink_app.database.connection import Base, get_db, get_session_factory
from shortlink_app.dependencies import get_cache, get_queue
from shortlink_app.models import ClickEvent, ShortLink
from shortlink_app.queue.factory import QueueFactory
from shortlink_app.queue.strategies import InMemoryQueue
from shortlink_app.services.slug_factory import SlugFactory


@pytest.fixture(autouse=True)
def reset_singletons():
    """Factories cache instances built from settings; tests change settings"""
    SlugFactory.clear_instances()
    CacheFactory.clear_instance()
    QueueFactory.clear_instance()
    get_cache.cache_clear()
    get_queue.cache_clear()
    yield
    SlugFactory.clear_instances()
    CacheFactory.clear_instance()
    QueueFactory.clear_instance()
    get_cache.cache_clear()
    get_queue.cache_clear()


@pytest.fixture(scope="function")
def session_factory(tmp_path):
    """Session factory bound to a fresh database with the schema created"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )

    async def create_schema():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_schema())
    yield async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    asyncio.run(engine.dispose())


@pytest.fixture
def cache():
    return InMemoryCache()


@pytest.fixture
def queue():
    return InMemoryQueue()


@pytest.fixture(scope="function")
def client(session_factory, cache, queue):
    """
    Create a test client with database, cache and queue dependencies overridden.
    This is the main fixture that tests will use.

    Background tasks (click recording) have finished by the time a request
    call returns.
    """
    async def override_get_db():
        async with session_factory() as db:
            yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_queue] = lambda: queue

    with TestClient(app) as test_client:
        yield test_client

    # Clean up overrides
    app.dependency_overrides.clear()


@pytest.fixture
def make_link(session_factory):
    """Insert a ShortLink row directly, bypassing creation rules"""
    def _make(**fields):
        fields.setdefault("target_url", "https://example.com/landing")

        async def insert():
            async with session_factory() as db:
                link = ShortLink(**fields)
                db.add(link)
                await db.commit()
                await db.refresh(link)
                return link

        return asyncio.run(insert())

    return _make


@pytest.fixture
def load_clicks(session_factory):
    """Return (click_count, [ClickEvent, ...]) for a link id"""
    def _load(link_id):
        async def query():
            async with session_factory() as db:
                link = await db.get(ShortLink, link_id)
                result = await db.execute(
                    select(ClickEvent).where(ClickEvent.url_id == link_id).order_by(ClickEvent.id)
                )
                count = link.click_count if link is not None else None
                return count, list(result.scalars().all())

        return asyncio.run(query())

    return _load
