"""Entity source backed by the local SQL mirror of the hotel database."""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.models.hotel import HousekeepingTask, Payment, Reservation, Room
from app.services.backend_client import FetchFailure
from app.services.entity_sources.base import EntityKind, EntitySource, status_values

logger = logging.getLogger(__name__)


def _as_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


class DatabaseEntitySource(EntitySource):
    """Reads entities straight from the hotel tables."""

    source_name = "database"

    def __init__(self, db: Session):
        self.db = db

    async def list(
        self,
        kind: EntityKind,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        loaders = {
            EntityKind.RESERVATIONS: self._reservations,
            EntityKind.ROOMS: self._rooms,
            EntityKind.HOUSEKEEPING_TASKS: self._housekeeping_tasks,
            EntityKind.PAYMENTS: self._payments,
        }
        try:
            return loaders[kind](filters or {})
        except SQLAlchemyError as e:
            self.db.rollback()
            raise FetchFailure(f"Database error reading {kind.value}: {e}") from e

    def _reservations(self, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        query = self.db.query(Reservation).options(
            joinedload(Reservation.guest),
            joinedload(Reservation.room),
        )
        statuses = status_values(filters)
        if statuses:
            query = query.filter(Reservation.status.in_(statuses))
        if filters.get("check_in_from"):
            query = query.filter(Reservation.check_in_date >= _as_date(filters["check_in_from"]))
        if filters.get("check_in_to"):
            query = query.filter(Reservation.check_in_date <= _as_date(filters["check_in_to"]))

        rows = []
        for r in query.order_by(Reservation.check_in_date.desc()).all():
            rows.append({
                "id": r.id,
                "confirmation_number": r.confirmation_number,
                "guest_id": r.guest_id,
                "guest_name": r.guest.full_name if r.guest else None,
                "guest_phone": r.guest.phone if r.guest else None,
                "room_id": r.room_id,
                "room_number": r.room.room_number if r.room else None,
                "room_type": r.room.room_type if r.room else None,
                "check_in_date": r.check_in_date,
                "check_out_date": r.check_out_date,
                "number_of_guests": r.number_of_guests,
                "number_of_nights": r.number_of_nights,
                "room_rate": r.room_rate,
                "total_amount": r.total_amount,
                "paid_amount": r.paid_amount,
                "status": r.status,
                "payment_status": r.payment_status,
                "special_requests": r.special_requests,
                "notes": r.notes,
                "source": r.source,
                "created_at": r.created_at,
                "updated_at": r.updated_at,
                "checked_in_at": r.checked_in_at,
                "checked_out_at": r.checked_out_at,
            })
        return rows

    def _rooms(self, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        query = self.db.query(Room)
        statuses = status_values(filters)
        if statuses:
            query = query.filter(Room.status.in_(statuses))
        return [
            {
                "id": room.id,
                "room_number": room.room_number,
                "room_type": room.room_type,
                "floor": room.floor,
                "max_occupancy": room.max_occupancy,
                "base_rate": room.base_rate,
                "status": room.status,
                "notes": room.notes,
                "updated_at": room.updated_at,
            }
            for room in query.order_by(Room.room_number).all()
        ]

    def _housekeeping_tasks(self, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        query = self.db.query(HousekeepingTask).options(joinedload(HousekeepingTask.room))
        statuses = status_values(filters)
        if statuses:
            query = query.filter(HousekeepingTask.status.in_(statuses))
        return [
            {
                "id": t.id,
                "room_id": t.room_id,
                "room_number": t.room.room_number if t.room else None,
                "room_type": t.room.room_type if t.room else None,
                "task_type": t.task_type,
                "priority": t.priority,
                "status": t.status,
                "assigned_to": t.assigned_to,
                "description": t.description,
                "estimated_duration": t.estimated_duration,
                "started_at": t.started_at,
                "completed_at": t.completed_at,
                "notes": t.notes,
                "created_by": t.created_by,
                "created_at": t.created_at,
                "updated_at": t.updated_at,
            }
            for t in query.order_by(HousekeepingTask.created_at).all()
        ]

    def _payments(self, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        query = self.db.query(Payment)
        statuses = status_values(filters)
        if statuses:
            query = query.filter(Payment.status.in_(statuses))
        if filters.get("reservation_id") is not None:
            query = query.filter(Payment.reservation_id == int(filters["reservation_id"]))
        return [
            {
                "id": p.id,
                "reservation_id": p.reservation_id,
                "amount": p.amount,
                "payment_method": p.payment_method,
                "payment_type": p.payment_type,
                "status": p.status,
                "transaction_id": p.transaction_id,
                "processed_by": p.processed_by,
                "created_at": p.created_at,
            }
            for p in query.order_by(Payment.created_at).all()
        ]
