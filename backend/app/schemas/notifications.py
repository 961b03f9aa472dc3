"""Derived notification schemas."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from app.schemas.common import CamelModel, Money


class NotificationType(str, Enum):
    CHECKIN = "checkin"
    CHECKOUT = "checkout"
    HOUSEKEEPING = "housekeeping"
    MAINTENANCE = "maintenance"
    PAYMENT = "payment"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Higher is more important."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    NotificationPriority.LOW: 0,
    NotificationPriority.MEDIUM: 1,
    NotificationPriority.HIGH: 2,
    NotificationPriority.URGENT: 3,
}


class NotificationFilter(str, Enum):
    """Category a caller may restrict the notification list to."""
    ALL = "all"
    CHECKINS = "checkins"
    CHECKOUTS = "checkouts"
    HOUSEKEEPING = "housekeeping"
    MAINTENANCE = "maintenance"
    PAYMENTS = "payments"


class NotificationDetails(CamelModel):
    """Type-specific payload; only the relevant fields are set."""
    confirmation_number: Optional[str] = None
    phone: Optional[str] = None
    guests: Optional[int] = None
    room_number: Optional[str] = None
    room_type: Optional[str] = None
    outstanding_amount: Optional[Money] = None
    days_overdue: Optional[int] = None
    failed_payments: Optional[int] = None
    assigned_to: Optional[str] = None
    hours_old: Optional[int] = None
    created_at: Optional[datetime] = None
    status: Optional[str] = None
    notes: Optional[str] = None


class Notification(CamelModel):
    """Computed alert; never persisted."""
    id: str
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority
    action_required: bool
    timestamp: datetime
    details: NotificationDetails = Field(default_factory=NotificationDetails)


class NotificationSummary(CamelModel):
    total: int = 0
    urgent: int = 0
    high: int = 0
    action_required: int = 0


class DegradedSource(CamelModel):
    """An entity collection that could not be fetched and was treated as empty."""
    source: str
    reason: str


class NotificationResponse(CamelModel):
    notifications: List[Notification]
    summary: NotificationSummary
    degraded_sources: List[DegradedSource] = Field(default_factory=list)


class NotificationBadge(CamelModel):
    """Badge counts for the navigation bar."""
    total: int
    urgent: int
    refreshed_at: Optional[datetime] = None
    degraded: bool = False
