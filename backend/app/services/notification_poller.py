"""Periodic notification refresh.

Re-derives notifications on a fixed interval and keeps the latest badge
counts in memory for the navigation bar. Started from the application
lifespan when the NOTIFICATION_POLLER_ENABLED flag is on.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from app.core.clock import hotel_now
from app.core.config import settings
from app.schemas.notifications import NotificationBadge, NotificationResponse
from app.services.backend_client import BackendClient, BackendSession, FetchFailure
from app.services.entity_fetcher import EntityFetcher
from app.services.entity_sources import DatabaseEntitySource, RestEntitySource
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


def badge_from_response(response: NotificationResponse) -> NotificationBadge:
    return NotificationBadge(
        total=response.summary.total,
        urgent=response.summary.urgent,
        refreshed_at=hotel_now(),
        degraded=bool(response.degraded_sources),
    )


class ServiceFetcherFactory:
    """Builds fetchers for background work, outside any user request.

    Database mode opens a short-lived session per refresh. REST mode logs
    in once with the service account and logs in again after the backend
    clears the session.
    """

    def __init__(self, client: Optional[BackendClient] = None):
        self.client = client or BackendClient()
        self._session: Optional[BackendSession] = None

    @asynccontextmanager
    async def __call__(self) -> AsyncIterator[EntityFetcher]:
        if settings.entity_source == "database":
            from app.db.session import SessionLocal

            db = SessionLocal()
            try:
                yield EntityFetcher(DatabaseEntitySource(db))
            finally:
                db.close()
            return

        if self._session is None or not self._session.is_authenticated:
            if not settings.backend_username:
                raise FetchFailure("No backend service account configured for polling")
            self._session = await self.client.login(settings.backend_username, settings.backend_password)
        yield EntityFetcher(RestEntitySource(self.client, self._session))


class NotificationPoller:
    """Background task that refreshes notification badge counts."""

    def __init__(
        self,
        fetcher_factory=None,
        service: Optional[NotificationService] = None,
        interval_seconds: Optional[float] = None,
    ):
        self.fetcher_factory = fetcher_factory or ServiceFetcherFactory()
        self.service = service or NotificationService()
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None else settings.notification_poll_interval_seconds
        )
        self.latest: Optional[NotificationBadge] = None
        self.refresh_count = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self) -> Optional[NotificationBadge]:
        """Derive notifications once and store the badge counts."""
        try:
            async with self.fetcher_factory() as fetcher:
                response = await self.service.get_notifications(fetcher)
        except FetchFailure as e:
            logger.warning(f"Notification refresh skipped: {e}")
            return self.latest

        self.latest = badge_from_response(response)
        self.refresh_count += 1
        logger.debug(f"Notification badge refreshed: total={self.latest.total} urgent={self.latest.urgent}")
        return self.latest

    async def _run(self) -> None:
        while True:
            try:
                await self.refresh()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Notification refresh failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="notification-poller")
        logger.info(f"Notification poller started (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Notification poller stopped")


notification_poller = NotificationPoller()
