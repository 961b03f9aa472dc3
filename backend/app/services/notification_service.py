"""
Notification Service
Derives prioritized operational alerts for the front office

Rules:
- Check-ins due (today or overdue)
- Check-outs due (today or overdue)
- Outstanding balances, escalating with days since check-out
- Stale housekeeping and maintenance tasks, escalating with age
- Rooms out of service

Notifications are computed from a fresh snapshot on every call and are
never stored.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Set

from app.core.clock import hotel_now
from app.core.config import Settings, settings
from app.schemas.entities import (
    HousekeepingTask,
    Payment,
    PaymentRecordStatus,
    Reservation,
    ReservationStatus,
    Room,
    RoomStatus,
    TaskPriority,
    TaskStatus,
    TaskType,
)
from app.schemas.notifications import (
    Notification,
    NotificationDetails,
    NotificationFilter,
    NotificationPriority,
    NotificationResponse,
    NotificationSummary,
    NotificationType,
)
from app.services.entity_fetcher import EntityFetcher, OperationalSnapshot
from app.services.entity_sources.base import EntityKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationPolicy:
    """Escalation thresholds. Values are policy, not business truth."""
    task_high_hours: int = 4
    task_urgent_hours: int = 24
    payment_high_days: int = 2
    payment_urgent_days: int = 7

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "NotificationPolicy":
        return cls(
            task_high_hours=config.notify_task_high_hours,
            task_urgent_hours=config.notify_task_urgent_hours,
            payment_high_days=config.notify_payment_high_days,
            payment_urgent_days=config.notify_payment_urgent_days,
        )


# Which notification types each filter lets through
FILTER_TYPES: Dict[NotificationFilter, Set[NotificationType]] = {
    NotificationFilter.ALL: set(NotificationType),
    NotificationFilter.CHECKINS: {NotificationType.CHECKIN},
    NotificationFilter.CHECKOUTS: {NotificationType.CHECKOUT},
    NotificationFilter.HOUSEKEEPING: {NotificationType.HOUSEKEEPING},
    NotificationFilter.MAINTENANCE: {NotificationType.MAINTENANCE},
    NotificationFilter.PAYMENTS: {NotificationType.PAYMENT},
}

# Which collections each filter needs
FILTER_SOURCES: Dict[NotificationFilter, List[EntityKind]] = {
    NotificationFilter.ALL: list(EntityKind),
    NotificationFilter.CHECKINS: [EntityKind.RESERVATIONS, EntityKind.ROOMS],
    NotificationFilter.CHECKOUTS: [EntityKind.RESERVATIONS, EntityKind.ROOMS],
    NotificationFilter.HOUSEKEEPING: [EntityKind.HOUSEKEEPING_TASKS, EntityKind.ROOMS],
    NotificationFilter.MAINTENANCE: [EntityKind.HOUSEKEEPING_TASKS, EntityKind.ROOMS],
    NotificationFilter.PAYMENTS: [EntityKind.RESERVATIONS, EntityKind.PAYMENTS, EntityKind.ROOMS],
}

OPEN_TASK_STATUSES = [TaskStatus.PENDING.value, TaskStatus.IN_PROGRESS.value]
OUT_OF_SERVICE_STATUSES = {RoomStatus.MAINTENANCE, RoomStatus.BLOCKED}

CURRENCY_SYMBOLS = {"IDR": "Rp"}


def format_money(amount: Decimal, config: Settings = settings) -> str:
    """Display an amount the way the front office reads it, e.g. "Rp 1.000.000"."""
    exponent = Decimal(1).scaleb(-config.currency_decimals)
    rounded = amount.quantize(exponent, rounding=ROUND_HALF_UP)
    text = f"{rounded:,.{config.currency_decimals}f}"
    if config.currency_code == "IDR":
        # Indonesian grouping: dots for thousands, comma for decimals
        text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    symbol = CURRENCY_SYMBOLS.get(config.currency_code, config.currency_code)
    return f"{symbol} {text}"


def date_priority(due: date, today: date) -> NotificationPriority:
    """Overdue is urgent, due today is high, anything later is medium."""
    if due < today:
        return NotificationPriority.URGENT
    if due == today:
        return NotificationPriority.HIGH
    return NotificationPriority.MEDIUM


def summarize(notifications: Iterable[Notification]) -> NotificationSummary:
    notifications = list(notifications)
    return NotificationSummary(
        total=len(notifications),
        urgent=sum(1 for n in notifications if n.priority == NotificationPriority.URGENT),
        high=sum(1 for n in notifications if n.priority == NotificationPriority.HIGH),
        action_required=sum(1 for n in notifications if n.action_required),
    )


def sort_notifications(notifications: Iterable[Notification]) -> List[Notification]:
    """Priority descending, then most recent trigger first."""
    return sorted(
        notifications,
        key=lambda n: (n.priority.rank, n.timestamp),
        reverse=True,
    )


class NotificationService:
    """Turns an operational snapshot into a sorted notification list."""

    def __init__(self, policy: Optional[NotificationPolicy] = None):
        self.policy = policy or NotificationPolicy.from_settings()

    async def get_notifications(
        self,
        fetcher: EntityFetcher,
        type_filter: NotificationFilter = NotificationFilter.ALL,
        now: Optional[datetime] = None,
    ) -> NotificationResponse:
        """Fetch what the filter needs and derive notifications from it."""
        kinds = FILTER_SOURCES[type_filter]
        snapshot = await fetcher.snapshot(
            kinds,
            filters={EntityKind.HOUSEKEEPING_TASKS: {"status": OPEN_TASK_STATUSES}},
        )
        return self.build_response(snapshot, now=now, type_filter=type_filter)

    def build_response(
        self,
        snapshot: OperationalSnapshot,
        now: Optional[datetime] = None,
        type_filter: NotificationFilter = NotificationFilter.ALL,
    ) -> NotificationResponse:
        notifications = self.derive(
            reservations=snapshot.reservations,
            housekeeping_tasks=snapshot.housekeeping_tasks,
            payments=snapshot.payments,
            rooms=snapshot.rooms,
            now=now,
            type_filter=type_filter,
        )
        return NotificationResponse(
            notifications=notifications,
            summary=summarize(notifications),
            degraded_sources=snapshot.degraded_sources,
        )

    def derive(
        self,
        reservations: Iterable[Reservation] = (),
        housekeeping_tasks: Iterable[HousekeepingTask] = (),
        payments: Iterable[Payment] = (),
        rooms: Iterable[Room] = (),
        now: Optional[datetime] = None,
        type_filter: NotificationFilter = NotificationFilter.ALL,
    ) -> List[Notification]:
        """Apply every rule the filter allows, then sort."""
        now = now or hotel_now()
        today = now.date()
        reservations = list(reservations)
        rooms = list(rooms)
        rooms_by_id = {room.id: room for room in rooms}
        wanted = FILTER_TYPES[type_filter]

        notifications: List[Notification] = []
        if NotificationType.CHECKIN in wanted:
            notifications.extend(self._checkins(reservations, rooms_by_id, today, now))
        if NotificationType.CHECKOUT in wanted:
            notifications.extend(self._checkouts(reservations, rooms_by_id, today, now))
        if NotificationType.PAYMENT in wanted:
            notifications.extend(self._outstanding_balances(reservations, payments, rooms_by_id, today, now))
        if wanted & {NotificationType.HOUSEKEEPING, NotificationType.MAINTENANCE}:
            task_notifications = self._stale_tasks(housekeeping_tasks, rooms_by_id, now)
            notifications.extend(n for n in task_notifications if n.type in wanted)
        if NotificationType.MAINTENANCE in wanted:
            notifications.extend(self._rooms_out_of_service(rooms, now))

        logger.debug(f"Derived {len(notifications)} notifications (filter={type_filter.value})")
        return sort_notifications(notifications)

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _checkins(self, reservations, rooms_by_id, today: date, now: datetime) -> List[Notification]:
        results = []
        for res in reservations:
            if res.status != ReservationStatus.CONFIRMED or res.check_in_date > today:
                continue
            priority = date_priority(res.check_in_date, today)
            room_number, room_type = self._room_label(res, rooms_by_id)
            results.append(Notification(
                id=f"checkin-{res.id}",
                type=NotificationType.CHECKIN,
                priority=priority,
                title="Overdue Check-in" if priority == NotificationPriority.URGENT else "Check-in Today",
                message=f"{res.guest_name or 'Guest'} - Room {room_number or 'unassigned'}",
                details=NotificationDetails(
                    confirmation_number=res.confirmation_number,
                    phone=res.guest_phone,
                    guests=res.number_of_guests,
                    room_number=room_number,
                    room_type=room_type,
                ),
                timestamp=self._at_midnight(res.check_in_date, now),
                action_required=True,
            ))
        return results

    def _checkouts(self, reservations, rooms_by_id, today: date, now: datetime) -> List[Notification]:
        results = []
        for res in reservations:
            if res.status != ReservationStatus.CHECKED_IN or res.check_out_date > today:
                continue
            priority = date_priority(res.check_out_date, today)
            room_number, room_type = self._room_label(res, rooms_by_id)
            outstanding = res.outstanding_amount if res.has_outstanding_balance else Decimal("0")
            results.append(Notification(
                id=f"checkout-{res.id}",
                type=NotificationType.CHECKOUT,
                priority=priority,
                title="Overdue Check-out" if priority == NotificationPriority.URGENT else "Check-out Today",
                message=f"{res.guest_name or 'Guest'} - Room {room_number or 'unassigned'}",
                details=NotificationDetails(
                    confirmation_number=res.confirmation_number,
                    phone=res.guest_phone,
                    room_number=room_number,
                    room_type=room_type,
                    outstanding_amount=outstanding,
                ),
                timestamp=self._at_midnight(res.check_out_date, now),
                action_required=True,
            ))
        return results

    def _outstanding_balances(self, reservations, payments, rooms_by_id, today: date, now: datetime) -> List[Notification]:
        failed_by_reservation: Dict[int, int] = {}
        for payment in payments:
            if payment.status == PaymentRecordStatus.FAILED:
                failed_by_reservation[payment.reservation_id] = failed_by_reservation.get(payment.reservation_id, 0) + 1

        results = []
        for res in reservations:
            if res.status == ReservationStatus.CANCELLED or not res.has_outstanding_balance:
                continue
            # The balance falls due at check-out
            days_overdue = max(0, (today - res.check_out_date).days)
            if days_overdue > self.policy.payment_urgent_days:
                priority = NotificationPriority.URGENT
            elif days_overdue > self.policy.payment_high_days:
                priority = NotificationPriority.HIGH
            else:
                priority = NotificationPriority.MEDIUM

            balance = res.outstanding_amount
            room_number, _ = self._room_label(res, rooms_by_id)
            results.append(Notification(
                id=f"payment-{res.id}",
                type=NotificationType.PAYMENT,
                priority=priority,
                title="Outstanding Payment",
                message=f"{res.guest_name or 'Guest'} - {format_money(balance)} due",
                details=NotificationDetails(
                    confirmation_number=res.confirmation_number,
                    room_number=room_number,
                    phone=res.guest_phone,
                    outstanding_amount=balance,
                    days_overdue=days_overdue,
                    failed_payments=failed_by_reservation.get(res.id, 0),
                ),
                timestamp=self._at_midnight(res.check_out_date, now),
                action_required=True,
            ))
        return results

    def _stale_tasks(self, tasks, rooms_by_id, now: datetime) -> List[Notification]:
        results = []
        for task in tasks:
            if task.status not in (TaskStatus.PENDING, TaskStatus.IN_PROGRESS):
                continue
            elapsed = (now - task.created_at).total_seconds()
            hours_old = max(0, math.ceil(elapsed / 3600))

            if task.priority == TaskPriority.URGENT or hours_old > self.policy.task_urgent_hours:
                priority = NotificationPriority.URGENT
            elif task.priority == TaskPriority.HIGH or hours_old > self.policy.task_high_hours:
                priority = NotificationPriority.HIGH
            else:
                priority = NotificationPriority.MEDIUM

            is_maintenance = task.task_type == TaskType.MAINTENANCE
            kind = "Maintenance" if is_maintenance else "Housekeeping"
            overdue = hours_old > self.policy.task_urgent_hours
            room = rooms_by_id.get(task.room_id)
            room_number = task.room_number or (room.room_number if room else None)
            room_type = task.room_type or (room.room_type if room else None)

            results.append(Notification(
                id=f"{'maintenance' if is_maintenance else 'housekeeping'}-{task.id}",
                type=NotificationType.MAINTENANCE if is_maintenance else NotificationType.HOUSEKEEPING,
                priority=priority,
                title=f"Overdue {kind} Task" if overdue else f"Pending {kind} Task",
                message=f"{task.task_type.value} - Room {room_number or 'unknown'}",
                details=NotificationDetails(
                    assigned_to=task.assigned_to or "Unassigned",
                    hours_old=hours_old,
                    created_at=task.created_at,
                    room_number=room_number,
                    room_type=room_type,
                    status=task.status.value,
                ),
                timestamp=task.created_at,
                action_required=True,
            ))
        return results

    def _rooms_out_of_service(self, rooms, now: datetime) -> List[Notification]:
        results = []
        for room in rooms:
            if room.status not in OUT_OF_SERVICE_STATUSES:
                continue
            results.append(Notification(
                id=f"room-{room.id}",
                type=NotificationType.MAINTENANCE,
                priority=NotificationPriority.MEDIUM,
                title="Room Out of Service",
                message=f"Room {room.room_number} ({room.room_type}) - {room.status.value}",
                details=NotificationDetails(
                    room_number=room.room_number,
                    room_type=room.room_type,
                    status=room.status.value,
                    notes=room.notes,
                ),
                timestamp=room.updated_at or now,
                action_required=False,
            ))
        return results

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _room_label(res: Reservation, rooms_by_id: Dict[int, Room]):
        room = rooms_by_id.get(res.room_id) if res.room_id is not None else None
        room_number = res.room_number or (room.room_number if room else None)
        room_type = res.room_type or (room.room_type if room else None)
        return room_number, room_type

    @staticmethod
    def _at_midnight(day: date, now: datetime) -> datetime:
        return datetime.combine(day, time.min, tzinfo=now.tzinfo)
