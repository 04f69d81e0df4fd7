import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink_app.config import settings
from shortlink_app.database.connection import get_db
from shortlink_app.schemas.analytics import CleanupResult
from shortlink_app.services.cleanup import cleanup_guest_links
from shortlink_app.timeutils import utcnow

logger = logging.getLogger(__name__)


def require_admin_token(x_admin_token: Optional[str] = Header(None)):
    """Checks X-Admin-Token when an admin token is configured"""
    if not settings.admin_token:
        return
    if not hmac.compare_digest(x_admin_token or "", settings.admin_token):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin token")


router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_token)])


# GET for manual checks, POST for schedulers
@router.api_route("/cleanup-guest-links", methods=["GET", "POST"], response_model=CleanupResult)
async def cleanup_guest_links_endpoint(
    days: Optional[int] = Query(None, ge=0, description="Retention window, defaults to settings"),
    db: AsyncSession = Depends(get_db),
):
    """Soft-delete guest links older than the retention window"""
    days_old = settings.guest_retention_days if days is None else days
    try:
        deleted_count = await cleanup_guest_links(db, days_old)
    except SQLAlchemyError as e:
        logger.exception("Guest link cleanup failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Guest link cleanup failed",
        ) from e

    return CleanupResult(
        success=True,
        deleted_count=deleted_count,
        days_old=days_old,
        timestamp=utcnow(),
    )
