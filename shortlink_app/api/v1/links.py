from fastapi import APIRouter, Depends, HTTPException, Query, status

from shortlink_app.dependencies import get_link_service
from shortlink_app.exceptions import (
    GuestLimitExceededError,
    InvalidSlugError,
    InvalidTargetError,
    LinkError,
    LinkNotFoundError,
    SlugGenerationError,
    SlugUnavailableError,
)
from shortlink_app.schemas.analytics import AnalyticsSummary
from shortlink_app.schemas.link import (
    GuestMigration,
    GuestMigrationResult,
    LinkCreate,
    LinkResponse,
    LinkStats,
    PasswordUpdate,
)
from shortlink_app.services.link_service import LinkService

router = APIRouter(prefix="/links", tags=["links"])

ERROR_STATUS = {
    LinkNotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidSlugError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidTargetError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    SlugUnavailableError: status.HTTP_409_CONFLICT,
    GuestLimitExceededError: status.HTTP_429_TOO_MANY_REQUESTS,
    SlugGenerationError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _http_error(exc: LinkError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST),
        detail=str(exc),
    )


@router.post("/", response_model=LinkResponse, status_code=status.HTTP_201_CREATED)
async def create_link(
    link_data: LinkCreate,
    link_service: LinkService = Depends(get_link_service)
):
    """Create a link (custom or generated slug, optional expiry and password)"""
    try:
        return await link_service.create_link(link_data)
    except LinkError as e:
        raise _http_error(e) from e


@router.post("/migrate-guest", response_model=GuestMigrationResult)
async def migrate_guest_links(
    migration: GuestMigration,
    link_service: LinkService = Depends(get_link_service)
):
    """Move a guest session's live links to a signed-in user"""
    count, url_ids = await link_service.migrate_guest_links(
        migration.guest_session_id, migration.user_id
    )
    return GuestMigrationResult(migrated_count=count, url_ids=url_ids)


@router.get("/{link_id}", response_model=LinkResponse)
async def get_link(
    link_id: int,
    link_service: LinkService = Depends(get_link_service)
):
    try:
        return await link_service.get_link(link_id)
    except LinkError as e:
        raise _http_error(e) from e


@router.get("/{link_id}/stats", response_model=LinkStats)
async def get_link_stats(
    link_id: int,
    link_service: LinkService = Depends(get_link_service)
):
    try:
        return await link_service.get_stats(link_id)
    except LinkError as e:
        raise _http_error(e) from e


@router.get("/{link_id}/analytics", response_model=AnalyticsSummary)
async def get_link_analytics(
    link_id: int,
    days: int = Query(30, ge=1, le=365, description="Days covered by clicks_over_time"),
    link_service: LinkService = Depends(get_link_service)
):
    try:
        return await link_service.get_analytics(link_id, days=days)
    except LinkError as e:
        raise _http_error(e) from e


@router.put("/{link_id}/password", response_model=LinkResponse)
async def set_link_password(
    link_id: int,
    password_data: PasswordUpdate,
    link_service: LinkService = Depends(get_link_service)
):
    """Set, change or (with null) remove the link password"""
    try:
        return await link_service.set_password(link_id, password_data.password)
    except LinkError as e:
        raise _http_error(e) from e


@router.delete("/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_link(
    link_id: int,
    link_service: LinkService = Depends(get_link_service)
):
    """Soft delete; the link stops resolving but can be restored"""
    try:
        await link_service.soft_delete(link_id)
    except LinkError as e:
        raise _http_error(e) from e


@router.post("/{link_id}/restore", response_model=LinkResponse)
async def restore_link(
    link_id: int,
    link_service: LinkService = Depends(get_link_service)
):
    try:
        return await link_service.restore(link_id)
    except LinkError as e:
        raise _http_error(e) from e


@router.delete("/{link_id}/permanent", status_code=status.HTTP_204_NO_CONTENT)
async def permanently_delete_link(
    link_id: int,
    link_service: LinkService = Depends(get_link_service)
):
    """Delete the link and all of its click events"""
    try:
        await link_service.permanent_delete(link_id)
    except LinkError as e:
        raise _http_error(e) from e
