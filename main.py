import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink_app.config import settings
from shortlink_app.database.connection import engine, get_db, init_models
from shortlink_app.api.v1 import admin, links, redirect
from shortlink_app.schemas.analytics import HealthStatus

# Import models to ensure they're registered with Base
from shortlink_app.models import ShortLink, ClickEvent  # noqa: F401

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.auto_create_tables:
        await init_models()
    logger.info("%s %s started (%s)", settings.app_name, settings.app_version, settings.environment)
    yield
    await engine.dispose()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Short link service: slug resolution, redirects and click analytics",
    debug=settings.debug,
    lifespan=lifespan,
)


@app.get("/")
def read_root():
    """Root endpoint with API information"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health", response_model=HealthStatus)
async def health_check(db: AsyncSession = Depends(get_db)):
    """Health check endpoint; reports degraded when the database is unreachable"""
    try:
        await db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        database = "unavailable"

    return HealthStatus(
        status="healthy" if database == "ok" else "degraded",
        environment=settings.environment,
        database=database,
    )


######## Include routers
app.include_router(links.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")
# Catch-all slug routes go last
app.include_router(redirect.router)
