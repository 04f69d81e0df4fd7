import html
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from shortlink_app.config import settings
from shortlink_app.dependencies import get_click_recorder, get_queue, get_resolver, get_unlock_grants
from shortlink_app.queue.models import ClickContext
from shortlink_app.queue.strategies import QueueStrategy
from shortlink_app.services.click_recorder import ClickRecorder, build_click_context
from shortlink_app.services.resolver import (
    LookupFailed,
    Resolution,
    ResolutionStatus,
    SlugResolver,
)
from shortlink_app.services.unlock import UnlockGrants

logger = logging.getLogger(__name__)

router = APIRouter(tags=["redirect"])

# Targets can change state at any time; intermediaries must not keep redirects
NO_CACHE_HEADERS = {"Cache-Control": "no-cache, no-store, must-revalidate"}

CHALLENGE_PAGE = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>Password Protected Link</title></head>
<body>
  <h1>Password Protected Link</h1>
  <p>This link is password protected. Please enter the password to continue.</p>
  {error}
  <form method="post" action="/{slug}">
    <label for="password">Password</label>
    <input id="password" name="password" type="password" autofocus required>
    <button type="submit">Continue</button>
  </form>
  <p>Don't have the password? Contact the link owner.</p>
</body>
</html>
"""


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


def _password_challenge(request: Request, slug: str, error: Optional[str] = None) -> Response:
    """403 with a password form for browsers, JSON for API clients"""
    if _wants_html(request):
        error_html = f'<p role="alert">{html.escape(error)}</p>' if error else ""
        return HTMLResponse(
            CHALLENGE_PAGE.format(slug=html.escape(slug), error=error_html),
            status_code=status.HTTP_403_FORBIDDEN,
            headers=NO_CACHE_HEADERS,
        )
    return JSONResponse(
        {"detail": error or "Password required", "password_required": True},
        status_code=status.HTTP_403_FORBIDDEN,
        headers=NO_CACHE_HEADERS,
    )


def _resolution_error(resolution: Resolution) -> HTTPException:
    if resolution.status == ResolutionStatus.EXPIRED:
        return HTTPException(status_code=status.HTTP_410_GONE, detail="This link has expired")
    if resolution.status == ResolutionStatus.LOOKUP_FAILED:
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Link lookup failed, please try again",
        )
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Link not found")


async def _publish_click(queue: QueueStrategy, context: ClickContext):
    if not await queue.publish(settings.queue_name, context):
        logger.warning("Failed to queue click for slug=%s", context.slug)


def _schedule_click(
    request: Request,
    background_tasks: BackgroundTasks,
    resolution: Resolution,
    recorder: ClickRecorder,
    queue: QueueStrategy,
):
    """
    Queue click recording to run after the response is sent.

    Nothing in here may fail the redirect.
    """
    try:
        context = build_click_context(request, resolution.link_id, resolution.slug)
    except Exception:
        logger.exception("Could not build click context for slug=%s", resolution.slug)
        return

    if settings.click_pipeline == "queue":
        background_tasks.add_task(_publish_click, queue, context)
    else:
        background_tasks.add_task(recorder.record, resolution.link_id, context)


def _redirect(resolution: Resolution) -> RedirectResponse:
    return RedirectResponse(
        url=resolution.target_url,
        status_code=status.HTTP_302_FOUND,
        headers=NO_CACHE_HEADERS,
    )


async def _read_password(request: Request) -> str:
    """Password from a form post or a JSON body"""
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith("application/json"):
            body = await request.json()
            password = body.get("password") if isinstance(body, dict) else None
        else:
            form = await request.form()
            password = form.get("password")
    except ValueError:
        return ""
    return password if isinstance(password, str) else ""


@router.get("/{slug}")
async def redirect_to_target(
    slug: str,
    request: Request,
    background_tasks: BackgroundTasks,
    resolver: SlugResolver = Depends(get_resolver),
    recorder: ClickRecorder = Depends(get_click_recorder),
    queue: QueueStrategy = Depends(get_queue),
    unlocks: UnlockGrants = Depends(get_unlock_grants),
):
    """
    Redirect to the link target.

    Flow:
    1. Resolve the slug (bounded lookup, no side effects)
    2. Map terminal states to 404 / 410 / 403 challenge / 503
    3. Schedule click recording as a background task
    4. 302 immediately; the visitor never waits for analytics
    """
    resolution = await resolver.resolve(slug)

    # The cache is only consulted for protected links
    if resolution.status == ResolutionStatus.PASSWORD_REQUIRED:
        token = request.cookies.get(settings.unlock_cookie_name)
        if not await unlocks.is_unlocked(token, slug):
            return _password_challenge(request, slug)
        resolution = await resolver.resolve(slug, password_verified=True)

    if not resolution.is_ready:
        raise _resolution_error(resolution)

    _schedule_click(request, background_tasks, resolution, recorder, queue)
    return _redirect(resolution)


@router.post("/{slug}")
async def unlock_and_redirect(
    slug: str,
    request: Request,
    background_tasks: BackgroundTasks,
    resolver: SlugResolver = Depends(get_resolver),
    recorder: ClickRecorder = Depends(get_click_recorder),
    queue: QueueStrategy = Depends(get_queue),
    unlocks: UnlockGrants = Depends(get_unlock_grants),
):
    """
    Password step for protected links.

    A correct password releases the redirect for this request and, when
    unlock grants are enabled, sets a cookie so the next GET skips the
    challenge. A wrong or missing password gets the challenge again with a
    generic error.
    """
    password = await _read_password(request)
    resolution = await resolver.resolve(slug)
    unlocked = False

    if resolution.status == ResolutionStatus.PASSWORD_REQUIRED:
        try:
            valid = await resolver.verify_password(slug, password)
        except LookupFailed:
            raise _resolution_error(
                Resolution(status=ResolutionStatus.LOOKUP_FAILED, slug=slug)
            )
        if not valid:
            logger.info("Incorrect password attempt for slug=%s", slug)
            return _password_challenge(request, slug, error="Invalid password")

        resolution = await resolver.resolve(slug, password_verified=True)
        unlocked = True

    if not resolution.is_ready:
        raise _resolution_error(resolution)

    _schedule_click(request, background_tasks, resolution, recorder, queue)
    response = _redirect(resolution)

    if unlocked and unlocks.enabled:
        token = request.cookies.get(settings.unlock_cookie_name) or unlocks.new_token()
        if await unlocks.grant(token, slug):
            response.set_cookie(
                key=settings.unlock_cookie_name,
                value=token,
                max_age=unlocks.ttl,
                httponly=True,
                samesite="lax",
                secure=settings.base_url.startswith("https://"),
            )
    return response
