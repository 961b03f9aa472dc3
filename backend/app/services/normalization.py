"""Normalization of raw entity records into canonical entities.

This is the only place that knows about alternate field spellings,
nested guest/room objects, string money and naive timestamps. Records
that still fail validation are skipped with a warning so one bad row
never takes down a whole collection.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ValidationError

from app.schemas.entities import HousekeepingTask, Payment, Reservation, Room
from app.services.entity_sources.base import EntityKind

logger = logging.getLogger(__name__)


# canonical field -> accepted spellings, first match wins
RESERVATION_FIELDS: Dict[str, Tuple[str, ...]] = {
    "id": ("id", "pk", "reservation_id"),
    "confirmation_number": ("confirmation_number", "confirmationNumber", "reservation_number",
                            "reservationNumber", "booking_number", "booking_reference"),
    "guest_id": ("guest_id", "guestId", "guest"),
    "guest_name": ("guest_name", "guestName"),
    "guest_phone": ("guest_phone", "guestPhone", "phone"),
    "room_id": ("room_id", "roomId", "room"),
    "room_number": ("room_number", "roomNumber"),
    "room_type": ("room_type", "roomType"),
    "check_in_date": ("check_in_date", "checkInDate", "check_in", "checkIn", "arrival_date"),
    "check_out_date": ("check_out_date", "checkOutDate", "check_out", "checkOut", "departure_date"),
    "number_of_guests": ("number_of_guests", "numberOfGuests", "guests", "adults"),
    "number_of_nights": ("number_of_nights", "numberOfNights", "nights"),
    "room_rate": ("room_rate", "roomRate", "rate", "nightly_rate"),
    "total_amount": ("total_amount", "totalAmount", "total_price", "total"),
    "paid_amount": ("paid_amount", "paidAmount", "amount_paid", "deposit_paid"),
    "status": ("status", "reservation_status"),
    "payment_status": ("payment_status", "paymentStatus"),
    "special_requests": ("special_requests", "specialRequests"),
    "notes": ("notes",),
    "source": ("source", "booking_source"),
    "created_at": ("created_at", "createdAt"),
    "updated_at": ("updated_at", "updatedAt"),
    "checked_in_at": ("checked_in_at", "checkedInAt", "actual_check_in"),
    "checked_out_at": ("checked_out_at", "checkedOutAt", "actual_check_out"),
}

ROOM_FIELDS: Dict[str, Tuple[str, ...]] = {
    "id": ("id", "pk"),
    "room_number": ("room_number", "roomNumber", "number"),
    "room_type": ("room_type", "roomType", "type", "room_type_name"),
    "floor": ("floor",),
    "max_occupancy": ("max_occupancy", "maxOccupancy", "capacity"),
    "base_rate": ("base_rate", "baseRate", "base_price", "price"),
    "status": ("status",),
    "notes": ("notes",),
    "updated_at": ("updated_at", "updatedAt"),
}

TASK_FIELDS: Dict[str, Tuple[str, ...]] = {
    "id": ("id", "pk"),
    "room_id": ("room_id", "roomId", "room"),
    "room_number": ("room_number", "roomNumber"),
    "room_type": ("room_type", "roomType"),
    "task_type": ("task_type", "taskType", "type"),
    "priority": ("priority",),
    "status": ("status",),
    "assigned_to": ("assigned_to", "assignedTo", "assignee"),
    "description": ("description",),
    "estimated_duration": ("estimated_duration", "estimatedDuration"),
    "started_at": ("started_at", "startedAt"),
    "completed_at": ("completed_at", "completedAt"),
    "notes": ("notes",),
    "created_by": ("created_by", "createdBy"),
    "created_at": ("created_at", "createdAt"),
    "updated_at": ("updated_at", "updatedAt"),
}

PAYMENT_FIELDS: Dict[str, Tuple[str, ...]] = {
    "id": ("id", "pk"),
    "reservation_id": ("reservation_id", "reservationId", "reservation", "booking"),
    "amount": ("amount",),
    "payment_method": ("payment_method", "paymentMethod", "method"),
    "payment_type": ("payment_type", "paymentType", "type"),
    "status": ("status",),
    "transaction_id": ("transaction_id", "transactionId"),
    "processed_by": ("processed_by", "processedBy"),
    "created_at": ("created_at", "createdAt"),
}

MONEY_FIELDS = {"room_rate", "total_amount", "paid_amount", "base_rate", "amount"}
DATE_FIELDS = {"check_in_date", "check_out_date"}
DATETIME_FIELDS = {"created_at", "updated_at", "checked_in_at", "checked_out_at", "started_at", "completed_at"}
ENUM_FIELDS = {"status", "payment_status", "task_type", "priority", "payment_method", "payment_type"}

# upstream enum spellings that differ from ours
ENUM_SYNONYMS = {
    "checked-in": "checked_in",
    "checkedin": "checked_in",
    "checked-out": "checked_out",
    "checkedout": "checked_out",
    "no-show": "no_show",
    "noshow": "no_show",
    "canceled": "cancelled",
    "in-progress": "in_progress",
    "inprogress": "in_progress",
    "deep-clean": "deep_clean",
    "bank-transfer": "bank_transfer",
    "transfer": "bank_transfer",
    "credit_card": "card",
    "debit_card": "card",
    "full": "full_payment",
    "out_of_order": "maintenance",
    "out_of_service": "blocked",
    "vacant": "available",
}


def parse_money(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # via str() so 0.1 stays 0.1
        return Decimal(str(value))
    try:
        return Decimal(str(value).replace(",", "").strip())
    except InvalidOperation:
        raise ValueError(f"not a monetary amount: {value!r}")


def parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value)
    # "2026-10-19T00:00:00Z" style timestamps carry the date first
    return date.fromisoformat(text[:10])


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a timestamp; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_enum(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    key = value.strip().lower().replace(" ", "_")
    return ENUM_SYNONYMS.get(key, key)


def _pick(raw: Dict[str, Any], spellings: Iterable[str]) -> Any:
    for name in spellings:
        if name in raw and raw[name] is not None:
            return raw[name]
    return None


def _remap(raw: Dict[str, Any], fields: Dict[str, Tuple[str, ...]]) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for canonical, spellings in fields.items():
        value = _pick(raw, spellings)
        if value is None:
            continue
        if canonical in MONEY_FIELDS:
            value = parse_money(value)
        elif canonical in DATE_FIELDS:
            value = parse_date(value)
        elif canonical in DATETIME_FIELDS:
            value = parse_datetime(value)
        elif canonical in ENUM_FIELDS:
            value = normalize_enum(value)
        data[canonical] = value
    return data


def _flatten_reference(data: Dict[str, Any], id_key: str, ref: Any, mapping: Dict[str, Tuple[str, ...]]) -> None:
    """Expand a nested guest/room object into flat reference fields."""
    if not isinstance(ref, dict):
        return
    data[id_key] = ref.get("id", ref.get("pk"))
    for target, spellings in mapping.items():
        if data.get(target) is None:
            value = _pick(ref, spellings)
            if value is not None:
                data[target] = value


def _guest_name(guest: Dict[str, Any]) -> Optional[str]:
    name = _pick(guest, ("full_name", "fullName", "name"))
    if name:
        return str(name)
    first = _pick(guest, ("first_name", "firstName")) or ""
    last = _pick(guest, ("last_name", "lastName")) or ""
    return f"{first} {last}".strip() or None


def _room_type_label(value: Any) -> Optional[str]:
    """A room type given as a plain value or as a nested {id, name, code} object."""
    if value is None:
        return None
    if isinstance(value, dict):
        label = _pick(value, ("name", "code")) or value.get("id")
        return str(label) if label is not None else None
    return str(value)


def normalize_reservation(raw: Dict[str, Any]) -> Reservation:
    data = _remap(raw, RESERVATION_FIELDS)

    guest = raw.get("guest")
    if isinstance(guest, dict):
        _flatten_reference(data, "guest_id", guest, {"guest_phone": ("phone", "phone_number", "mobile")})
        data.setdefault("guest_name", _guest_name(guest))
    room = raw.get("room")
    if isinstance(room, dict):
        _flatten_reference(data, "room_id", room, {
            "room_number": ROOM_FIELDS["room_number"],
            "room_type": ROOM_FIELDS["room_type"],
        })
    if data.get("room_type") is not None:
        data["room_type"] = _room_type_label(data["room_type"])

    if data.get("number_of_nights") is None and data.get("check_in_date") and data.get("check_out_date"):
        data["number_of_nights"] = max((data["check_out_date"] - data["check_in_date"]).days, 0)
    if data.get("total_amount") is None and data.get("room_rate") is not None and data.get("number_of_nights") is not None:
        data["total_amount"] = data["room_rate"] * data["number_of_nights"]
    if data.get("confirmation_number") is None and data.get("id") is not None:
        data["confirmation_number"] = f"RES-{data['id']}"

    return Reservation.model_validate(data)


def normalize_room(raw: Dict[str, Any]) -> Room:
    data = _remap(raw, ROOM_FIELDS)
    if data.get("room_type") is not None:
        data["room_type"] = _room_type_label(data["room_type"])
    if data.get("room_number") is not None:
        data["room_number"] = str(data["room_number"])
    return Room.model_validate(data)


def normalize_housekeeping_task(raw: Dict[str, Any]) -> HousekeepingTask:
    data = _remap(raw, TASK_FIELDS)
    room = raw.get("room")
    if isinstance(room, dict):
        _flatten_reference(data, "room_id", room, {
            "room_number": ROOM_FIELDS["room_number"],
            "room_type": ROOM_FIELDS["room_type"],
        })
    if data.get("room_type") is not None:
        data["room_type"] = _room_type_label(data["room_type"])
    if data.get("room_number") is not None:
        data["room_number"] = str(data["room_number"])
    assignee = data.get("assigned_to")
    if isinstance(assignee, dict):
        data["assigned_to"] = _guest_name(assignee) or assignee.get("username")
    elif assignee is not None:
        data["assigned_to"] = str(assignee)
    return HousekeepingTask.model_validate(data)


def normalize_payment(raw: Dict[str, Any]) -> Payment:
    data = _remap(raw, PAYMENT_FIELDS)
    reservation = raw.get("reservation")
    if isinstance(reservation, dict):
        data["reservation_id"] = reservation.get("id", reservation.get("pk"))
    return Payment.model_validate(data)


NORMALIZERS: Dict[EntityKind, Callable[[Dict[str, Any]], BaseModel]] = {
    EntityKind.RESERVATIONS: normalize_reservation,
    EntityKind.ROOMS: normalize_room,
    EntityKind.HOUSEKEEPING_TASKS: normalize_housekeeping_task,
    EntityKind.PAYMENTS: normalize_payment,
}


def normalize_records(kind: EntityKind, records: Iterable[Dict[str, Any]]) -> List[Any]:
    """Normalize a collection, skipping records that cannot be mapped."""
    normalizer = NORMALIZERS[kind]
    items = []
    skipped = 0
    for raw in records:
        if not isinstance(raw, dict):
            skipped += 1
            continue
        try:
            items.append(normalizer(raw))
        except (ValidationError, ValueError, TypeError) as e:
            skipped += 1
            logger.warning(f"Skipping malformed {kind.value} record {raw.get('id', '?')}: {e}")
    if skipped:
        logger.warning(f"Skipped {skipped} of {skipped + len(items)} {kind.value} records during normalization")
    return items
