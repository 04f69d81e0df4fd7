"""
Database engine and session handling.

One async engine per process; its connection pool is the only state shared
between requests. Request handlers get a session through `get_db`, background
work (click recording, workers, jobs) opens its own from `SessionLocal`.
"""

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from shortlink_app.config import settings


def _engine_kwargs(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {}
    # Pooled drivers (postgresql+asyncpg, mysql+aiomysql, ...)
    return {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,
    }


engine = create_async_engine(settings.database_url, **_engine_kwargs(settings.database_url))
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
Base = declarative_base()


async def init_models(bind=engine):
    """Create tables that don't exist yet"""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    async with SessionLocal() as db:
        yield db


def get_session_factory() -> async_sessionmaker:
    """Session factory for work that outlives the request"""
    return SessionLocal
