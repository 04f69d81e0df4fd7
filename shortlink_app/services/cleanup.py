"""
Guest link cleanup.

Soft-deletes guest links older than the retention window in one UPDATE.
Triggered from outside (cron, platform scheduler) either through the admin
endpoint or by running this module:

    python -m shortlink_app.services.cleanup [--days N]
"""

import argparse
import asyncio
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink_app.config import settings
from shortlink_app.models import ShortLink
from shortlink_app.timeutils import utcnow

logger = logging.getLogger(__name__)


async def cleanup_guest_links(db: AsyncSession, days_old: Optional[int] = None) -> int:
    """
    Soft-delete guest links created more than `days_old` days ago.

    Already deleted rows are excluded, so a second run in the same window
    affects nothing.

    Returns:
        Number of links soft-deleted by this run
    """
    if days_old is None:
        days_old = settings.guest_retention_days

    now = utcnow()
    cutoff = now - timedelta(days=days_old)
    logger.info("Starting guest link cleanup (older than %d days)", days_old)

    result = await db.execute(
        update(ShortLink)
        .where(
            ShortLink.is_guest.is_(True),
            ShortLink.deleted_at.is_(None),
            ShortLink.guest_created_at < cutoff,
        )
        .values(deleted_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    deleted_count = result.rowcount or 0
    logger.info("Guest link cleanup completed: %d links soft-deleted", deleted_count)
    return deleted_count


async def main(days_old: Optional[int] = None) -> int:
    from shortlink_app.database.connection import SessionLocal, engine

    try:
        async with SessionLocal() as db:
            return await cleanup_guest_links(db, days_old)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Soft-delete expired guest links")
    parser.add_argument("--days", type=int, default=None, help="Retention window in days")
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level)
    count = asyncio.run(main(args.days))
    print(f"deleted_count={count}")
