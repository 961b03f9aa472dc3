"""Tests for the background notification poller."""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

import pytest

from app.services.backend_client import FetchFailure
from app.services.entity_fetcher import EntityFetcher
from app.services.entity_sources.base import EntityKind, EntitySource
from app.services.notification_poller import NotificationPoller


class RecordingSource(EntitySource):
    source_name = "recording"

    def __init__(self, records=None):
        self.records = records or {}

    async def list(self, kind, filters=None):
        return self.records.get(kind, [])


def factory_for(source):
    @asynccontextmanager
    async def _factory():
        yield EntityFetcher(source)
    return _factory


class TestNotificationPoller:
    @pytest.mark.asyncio
    async def test_refresh_stores_badge(self):
        """A refresh derives notifications and keeps the badge counts."""
        source = RecordingSource({
            EntityKind.HOUSEKEEPING_TASKS: [{
                "id": 1, "room_id": 1, "task_type": "cleaning", "status": "pending",
                "created_at": (datetime.now(timezone.utc) - timedelta(hours=30)).isoformat(),
            }],
        })
        poller = NotificationPoller(fetcher_factory=factory_for(source), interval_seconds=60)
        badge = await poller.refresh()
        assert badge.total == 1
        assert badge.urgent == 1
        assert badge.degraded is False
        assert poller.latest is badge
        assert poller.refresh_count == 1

    @pytest.mark.asyncio
    async def test_failed_login_keeps_previous_badge(self):
        """If no fetcher can be built the last badge is kept."""
        @asynccontextmanager
        async def failing_factory():
            raise FetchFailure("No backend service account configured for polling")
            yield

        poller = NotificationPoller(fetcher_factory=failing_factory, interval_seconds=60)
        assert await poller.refresh() is None
        assert poller.refresh_count == 0

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        """The poller refreshes on its interval and stops cleanly."""
        poller = NotificationPoller(fetcher_factory=factory_for(RecordingSource()), interval_seconds=0.01)
        poller.start()
        assert poller.running
        for _ in range(100):
            if poller.refresh_count >= 2:
                break
            await asyncio.sleep(0.01)
        await poller.stop()
        assert not poller.running
        assert poller.refresh_count >= 2

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        poller = NotificationPoller(fetcher_factory=factory_for(RecordingSource()), interval_seconds=1)
        await poller.stop()
        assert not poller.running
