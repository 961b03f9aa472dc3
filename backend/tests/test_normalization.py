"""Tests for mapping raw backend records onto canonical entities."""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from app.schemas.entities import (
    PaymentRecordStatus,
    ReservationStatus,
    RoomStatus,
    TaskPriority,
    TaskStatus,
    TaskType,
)
from app.services.entity_sources.base import EntityKind
from app.services.normalization import (
    normalize_enum,
    normalize_housekeeping_task,
    normalize_payment,
    normalize_records,
    normalize_reservation,
    normalize_room,
    parse_datetime,
    parse_money,
)


class TestParsers:
    def test_money_from_strings_and_floats(self):
        """Money is parsed into Decimal without float noise."""
        assert parse_money("1500000.00") == Decimal("1500000.00")
        assert parse_money("1,500,000") == Decimal("1500000")
        assert parse_money(0.1) == Decimal("0.1")
        assert parse_money(None) is None

    def test_invalid_money(self):
        with pytest.raises(ValueError):
            parse_money("lots")

    def test_naive_datetime_taken_as_utc(self):
        parsed = parse_datetime("2026-10-19T08:30:00")
        assert parsed == datetime(2026, 10, 19, 8, 30, tzinfo=timezone.utc)

    def test_zulu_suffix(self):
        parsed = parse_datetime("2026-10-19T08:30:00Z")
        assert parsed.tzinfo is not None
        assert parsed.hour == 8

    def test_enum_synonyms(self):
        assert normalize_enum("Checked-In") == "checked_in"
        assert normalize_enum("canceled") == "cancelled"
        assert normalize_enum("In Progress") == "in_progress"
        assert normalize_enum("out_of_order") == "maintenance"


class TestReservationNormalization:
    def test_snake_case_record(self):
        """A record already in canonical shape passes through."""
        res = normalize_reservation({
            "id": 1,
            "confirmation_number": "RES-0001",
            "guest_name": "Budi Santoso",
            "check_in_date": "2026-10-19",
            "check_out_date": "2026-10-21",
            "number_of_nights": 2,
            "total_amount": "1000000.00",
            "paid_amount": "0",
            "status": "confirmed",
        })
        assert res.status == ReservationStatus.CONFIRMED
        assert res.total_amount == Decimal("1000000.00")
        assert res.check_in_date == date(2026, 10, 19)

    def test_camel_case_with_nested_guest_and_room(self):
        """camelCase keys and nested guest/room objects are flattened."""
        res = normalize_reservation({
            "id": 7,
            "reservationNumber": "BK-7",
            "guest": {"id": 3, "first_name": "Siti", "last_name": "Rahma", "phone": "+62811"},
            "room": {"id": 12, "number": "305", "room_type": "suite"},
            "checkIn": "2026-10-19T14:00:00Z",
            "checkOut": "2026-10-22T12:00:00Z",
            "roomRate": 750000,
            "status": "checked-in",
        })
        assert res.confirmation_number == "BK-7"
        assert res.guest_id == 3
        assert res.guest_name == "Siti Rahma"
        assert res.guest_phone == "+62811"
        assert res.room_id == 12
        assert res.room_number == "305"
        assert res.room_type == "suite"
        assert res.number_of_nights == 3
        assert res.total_amount == Decimal("2250000")
        assert res.status == ReservationStatus.CHECKED_IN

    def test_missing_confirmation_number_derived(self):
        res = normalize_reservation({
            "id": 9, "check_in": "2026-10-19", "check_out": "2026-10-20",
            "total_amount": 100, "status": "confirmed",
        })
        assert res.confirmation_number == "RES-9"

    def test_nested_room_type_object(self):
        """A room type given as an object keeps its name, not its repr."""
        res = normalize_reservation({
            "id": 10, "check_in": "2026-10-19", "check_out": "2026-10-20", "total_amount": 100,
            "status": "confirmed",
            "room": {"id": 2, "room_number": "202", "room_type": {"id": 3, "name": "Suite"}},
        })
        assert res.room_number == "202"
        assert res.room_type == "Suite"


class TestOtherEntities:
    def test_room_with_nested_type(self):
        room = normalize_room({"id": 1, "number": 101, "room_type": {"id": 2, "name": "Deluxe"},
                               "status": "out_of_service"})
        assert room.room_number == "101"
        assert room.room_type == "Deluxe"
        assert room.status == RoomStatus.BLOCKED

    def test_task_with_assignee_object(self):
        task = normalize_housekeeping_task({
            "id": 4,
            "room": {"id": 1, "room_number": "101"},
            "type": "Deep-Clean",
            "priority": "HIGH",
            "status": "in-progress",
            "assignee": {"first_name": "Ani", "last_name": "Wijaya"},
            "createdAt": "2026-10-19T01:00:00Z",
        })
        assert task.room_id == 1
        assert task.room_number == "101"
        assert task.task_type == TaskType.DEEP_CLEAN
        assert task.priority == TaskPriority.HIGH
        assert task.status == TaskStatus.IN_PROGRESS
        assert task.assigned_to == "Ani Wijaya"

    def test_task_room_type_object(self):
        task = normalize_housekeeping_task({
            "id": 6, "room": {"id": 1, "room_number": "101", "room_type": {"id": 2, "code": "DLX"}},
            "task_type": "cleaning", "status": "pending", "created_at": "2026-10-19T01:00:00Z",
        })
        assert task.room_type == "DLX"

    def test_inconsistent_completed_at_dropped(self):
        """completed_at on a pending task is ignored rather than rejected."""
        task = normalize_housekeeping_task({
            "id": 5, "room_id": 1, "task_type": "cleaning", "status": "pending",
            "created_at": "2026-10-19T01:00:00Z", "completed_at": "2026-10-19T02:00:00Z",
        })
        assert task.completed_at is None

    def test_payment_with_nested_reservation(self):
        payment = normalize_payment({
            "id": 1, "reservation": {"id": 7}, "amount": "500000", "method": "credit_card",
            "payment_type": "deposit", "status": "failed",
        })
        assert payment.reservation_id == 7
        assert payment.status == PaymentRecordStatus.FAILED


class TestNormalizeRecords:
    def test_bad_records_skipped(self, caplog):
        """Malformed records are dropped with a warning; valid ones survive."""
        records = [
            {"id": 1, "room_number": "101", "room_type": "deluxe", "status": "available"},
            {"id": 2, "room_number": "102", "room_type": "deluxe", "status": "exploded"},
            "not a record",
            {"id": 3, "room_number": "103", "room_type": "standard", "status": "occupied"},
        ]
        rooms = normalize_records(EntityKind.ROOMS, records)
        assert [r.id for r in rooms] == [1, 3]
        assert "Skipped 2 of 4 rooms records" in caplog.text

    def test_empty_collection(self):
        assert normalize_records(EntityKind.PAYMENTS, []) == []
