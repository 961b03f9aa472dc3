# Services module

from app.services.backend_client import (
    BackendClient,
    BackendSession,
    SessionStore,
    session_store,
)
from app.services.entity_fetcher import (
    EntityFetcher,
    FetchResult,
    OperationalSnapshot,
)

# Notifications
from app.services.notification_service import (
    NotificationPolicy,
    NotificationService,
)
from app.services.notification_poller import (
    NotificationPoller,
    notification_poller,
)

# Reporting
from app.services.reporting_service import (
    ReportingService,
    ReportRange,
    ReportRangeError,
    resolve_range,
)

__all__ = [
    # Backend access
    "BackendClient",
    "BackendSession",
    "SessionStore",
    "session_store",
    "EntityFetcher",
    "FetchResult",
    "OperationalSnapshot",
    # Notifications
    "NotificationPolicy",
    "NotificationService",
    "NotificationPoller",
    "notification_poller",
    # Reporting
    "ReportingService",
    "ReportRange",
    "ReportRangeError",
    "resolve_range",
]
