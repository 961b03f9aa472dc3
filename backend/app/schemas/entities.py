"""Canonical hotel entities.

Every entity source is normalized into these models before any business
rule sees it (see app.services.normalization).
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, model_validator

logger = logging.getLogger(__name__)


class ReservationStatus(str, Enum):
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class PaymentStatus(str, Enum):
    """Payment state of a reservation as a whole."""
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    FAILED = "failed"


class RoomStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    DIRTY = "dirty"
    MAINTENANCE = "maintenance"
    BLOCKED = "blocked"


class TaskType(str, Enum):
    CLEANING = "cleaning"
    MAINTENANCE = "maintenance"
    INSPECTION = "inspection"
    DEEP_CLEAN = "deep_clean"


class TaskPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    ONLINE = "online"


class PaymentType(str, Enum):
    DEPOSIT = "deposit"
    FULL_PAYMENT = "full_payment"
    REFUND = "refund"
    PARTIAL_PAYMENT = "partial_payment"


class PaymentRecordStatus(str, Enum):
    """State of a single payment transaction."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class Reservation(BaseModel):
    """A guest's stay."""
    id: int
    confirmation_number: str
    guest_id: Optional[int] = None
    guest_name: Optional[str] = None
    guest_phone: Optional[str] = None
    room_id: Optional[int] = None
    room_number: Optional[str] = None
    room_type: Optional[str] = None
    check_in_date: date
    check_out_date: date
    number_of_guests: int = 1
    number_of_nights: int
    room_rate: Decimal = Decimal("0")
    total_amount: Decimal
    paid_amount: Decimal = Decimal("0")
    status: ReservationStatus
    payment_status: PaymentStatus = PaymentStatus.PENDING
    special_requests: Optional[str] = None
    notes: Optional[str] = None
    source: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None

    @property
    def outstanding_amount(self) -> Decimal:
        return self.total_amount - self.paid_amount

    @property
    def has_outstanding_balance(self) -> bool:
        return self.paid_amount < self.total_amount

    def warnings(self) -> List[str]:
        """Data-quality warnings for display; never enforced."""
        problems = []
        if self.check_out_date <= self.check_in_date:
            problems.append("check-out date is not after check-in date")
        if self.paid_amount > self.total_amount:
            problems.append("paid amount exceeds total amount")
        return problems


class Room(BaseModel):
    """A sellable room."""
    id: int
    room_number: str
    room_type: str
    floor: Optional[int] = None
    max_occupancy: Optional[int] = None
    base_rate: Decimal = Decimal("0")
    status: RoomStatus
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None


class HousekeepingTask(BaseModel):
    """Cleaning, inspection or maintenance work on a room."""
    id: int
    room_id: Optional[int] = None
    room_number: Optional[str] = None
    room_type: Optional[str] = None
    task_type: TaskType
    priority: TaskPriority = TaskPriority.NORMAL
    status: TaskStatus
    assigned_to: Optional[str] = None
    description: Optional[str] = None
    estimated_duration: Optional[int] = None  # minutes
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def drop_inconsistent_timestamps(self) -> "HousekeepingTask":
        # completed_at only for completed tasks, started_at only once work began
        if self.completed_at is not None and self.status != TaskStatus.COMPLETED:
            logger.warning(f"Housekeeping task {self.id}: completed_at set while {self.status.value}, ignoring")
            self.completed_at = None
        if self.started_at is not None and self.status not in (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED):
            logger.warning(f"Housekeeping task {self.id}: started_at set while {self.status.value}, ignoring")
            self.started_at = None
        return self


class Payment(BaseModel):
    """A single payment transaction against a reservation."""
    id: int
    reservation_id: int
    amount: Decimal
    payment_method: PaymentMethod
    payment_type: PaymentType
    status: PaymentRecordStatus = PaymentRecordStatus.COMPLETED
    transaction_id: Optional[str] = None
    processed_by: Optional[str] = None
    created_at: Optional[datetime] = None
