"""Notification routes."""

import logging

from fastapi import APIRouter, Query, Request

from app.core.rate_limit import DEFAULT_RATE_LIMIT, limiter
from app.core.rbac import CurrentUser, Fetcher
from app.schemas.notifications import NotificationBadge, NotificationFilter, NotificationResponse
from app.services.notification_poller import badge_from_response, notification_poller
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter()

_service = NotificationService()


@router.get("/", response_model=NotificationResponse)
@limiter.limit(DEFAULT_RATE_LIMIT)
async def list_notifications(
    request: Request,
    current_user: CurrentUser,
    fetcher: Fetcher,
    type: NotificationFilter = Query(NotificationFilter.ALL, description="Restrict to one category"),
):
    """Current operational alerts, most urgent first."""
    response = await _service.get_notifications(fetcher, type_filter=type)
    logger.debug(
        f"{current_user.username}: {response.summary.total} notifications "
        f"({response.summary.urgent} urgent, filter={type.value})"
    )
    return response


@router.get("/badge", response_model=NotificationBadge)
@limiter.limit(DEFAULT_RATE_LIMIT)
async def notification_badge(request: Request, current_user: CurrentUser, fetcher: Fetcher):
    """Badge counts from the background poller, or freshly derived when it has not run."""
    if notification_poller.latest is not None:
        return notification_poller.latest
    response = await _service.get_notifications(fetcher)
    return badge_from_response(response)
