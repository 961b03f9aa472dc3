"""Pytest configuration and fixtures."""

import os

# Keep the app's own engine off disk; tests use their own in-memory engine below
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.clock import hotel_timezone, hotel_today
from app.core.config import settings
from app.core.security import create_access_token, get_password_hash
from app.db.base import Base
from app.db.session import get_db
from app.main import app
# Import all models to ensure they're registered with Base.metadata
from app.models import *
from app.models.hotel import Guest, HousekeepingTask, Payment, Reservation, Room, Staff

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def database_mode():
    """Read entities from the local database for the duration of a test."""
    previous = settings.entity_source
    settings.entity_source = "database"
    yield
    settings.entity_source = previous


@pytest.fixture
def rest_mode():
    """Read entities from the REST backend for the duration of a test."""
    previous = settings.entity_source
    settings.entity_source = "rest"
    yield
    settings.entity_source = previous


@pytest.fixture(scope="function")
def client(db_session: Session, database_mode) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # Disable rate limiters during tests to avoid flaky failures
    from app.core.rate_limit import limiter as global_limiter
    global_limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    global_limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture
def test_staff(db_session: Session) -> Staff:
    """Create a front desk staff account."""
    staff = Staff(
        username="frontdesk",
        email="frontdesk@example.com",
        first_name="Dewi",
        last_name="Lestari",
        role="front_desk",
        department="front_office",
        password_hash=get_password_hash("testpass123"),
        is_active=True,
    )
    db_session.add(staff)
    db_session.commit()
    db_session.refresh(staff)
    return staff


@pytest.fixture
def auth_token(test_staff: Staff) -> str:
    """Get an authentication token for the test staff member."""
    return create_access_token(
        data={"sub": str(test_staff.id), "username": test_staff.username, "role": test_staff.role}
    )


@pytest.fixture
def auth_headers(auth_token: str) -> dict:
    """Get authentication headers."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def today() -> date:
    return hotel_today()


@pytest.fixture
def now() -> datetime:
    """A fixed hotel-local 'now' for rule tests."""
    return datetime(2026, 10, 19, 14, 0, tzinfo=hotel_timezone())


@pytest.fixture
def test_guest(db_session: Session) -> Guest:
    guest = Guest(first_name="Budi", last_name="Santoso", email="budi@example.com", phone="+628123456789")
    db_session.add(guest)
    db_session.commit()
    db_session.refresh(guest)
    return guest


@pytest.fixture
def test_rooms(db_session: Session) -> list:
    """Ten rooms: seven occupied, two available, one in maintenance."""
    statuses = ["occupied"] * 7 + ["available"] * 2 + ["maintenance"]
    rooms = []
    for i, status in enumerate(statuses, start=1):
        room = Room(
            room_number=f"{100 + i}",
            room_type="deluxe" if i % 2 else "standard",
            floor=1,
            max_occupancy=2,
            base_rate=Decimal("500000"),
            status=status,
        )
        db_session.add(room)
        rooms.append(room)
    db_session.commit()
    for room in rooms:
        db_session.refresh(room)
    return rooms


@pytest.fixture
def make_reservation(db_session: Session, test_guest: Guest, test_rooms: list):
    """Factory for reservations in the test database."""
    counter = {"n": 0}

    def _make(check_in: date, nights: int = 1, status: str = "confirmed",
              total: str = "1000000", paid: str = "0", room_index: int = 0) -> Reservation:
        counter["n"] += 1
        reservation = Reservation(
            confirmation_number=f"RES-T{counter['n']:03d}",
            guest_id=test_guest.id,
            room_id=test_rooms[room_index].id,
            check_in_date=check_in,
            check_out_date=check_in + timedelta(days=nights),
            number_of_guests=2,
            number_of_nights=nights,
            room_rate=Decimal(total) / nights,
            total_amount=Decimal(total),
            paid_amount=Decimal(paid),
            status=status,
            payment_status="paid" if Decimal(paid) >= Decimal(total) else "pending",
        )
        db_session.add(reservation)
        db_session.commit()
        db_session.refresh(reservation)
        return reservation

    return _make


@pytest.fixture
def make_task(db_session: Session, test_rooms: list):
    """Factory for housekeeping tasks created some hours ago."""
    def _make(hours_ago: float, task_type: str = "cleaning", priority: str = "normal",
              status: str = "pending", room_index: int = 0) -> HousekeepingTask:
        task = HousekeepingTask(
            room_id=test_rooms[room_index].id,
            task_type=task_type,
            priority=priority,
            status=status,
            created_by="supervisor",
            # SQLite drops the offset, so store UTC
            created_at=datetime.now(timezone.utc) - timedelta(hours=hours_ago),
        )
        db_session.add(task)
        db_session.commit()
        db_session.refresh(task)
        return task

    return _make


@pytest.fixture
def make_payment(db_session: Session):
    def _make(reservation: Reservation, amount: str, status: str = "completed") -> Payment:
        payment = Payment(
            reservation_id=reservation.id,
            amount=Decimal(amount),
            payment_method="card",
            payment_type="deposit",
            status=status,
        )
        db_session.add(payment)
        db_session.commit()
        db_session.refresh(payment)
        return payment

    return _make
