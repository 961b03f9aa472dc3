"""Hotel operations models - local SQL mirror of the property database.

Status and type columns are plain strings, exactly as the property
database stores them; the normalization layer maps them onto the
canonical enums.
"""

from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, Text, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin


class Room(Base, TimestampMixin):
    """Guest room."""
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    room_number = Column(String(20), nullable=False, unique=True)
    room_type = Column(String(50), nullable=False)  # single, double, suite, deluxe
    floor = Column(Integer, nullable=False)
    max_occupancy = Column(Integer, nullable=False)
    base_rate = Column(Numeric(14, 2), nullable=False)  # per night
    status = Column(String(20), nullable=False, default="available")
    amenities = Column(Text, nullable=True)  # JSON string
    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    reservations = relationship("Reservation", back_populates="room")
    housekeeping_tasks = relationship("HousekeepingTask", back_populates="room")


class Guest(Base, TimestampMixin):
    """Hotel guest profile."""
    __tablename__ = "guests"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(50), nullable=True)
    id_type = Column(String(30), nullable=True)  # passport, driver_license, national_id
    id_number = Column(String(50), nullable=True)
    nationality = Column(String(50), nullable=True)
    special_requests = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    reservations = relationship("Reservation", back_populates="guest")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Reservation(Base, TimestampMixin):
    """Room reservation."""
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    confirmation_number = Column(String(50), nullable=False, unique=True)
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=False)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    check_in_date = Column(Date, nullable=False, index=True)
    check_out_date = Column(Date, nullable=False, index=True)
    number_of_guests = Column(Integer, nullable=False, default=1)
    number_of_nights = Column(Integer, nullable=False)
    room_rate = Column(Numeric(14, 2), nullable=False)  # per night at booking time
    total_amount = Column(Numeric(14, 2), nullable=False)
    paid_amount = Column(Numeric(14, 2), nullable=False, default=0)
    # confirmed, checked_in, checked_out, cancelled, no_show
    status = Column(String(20), nullable=False, default="confirmed", index=True)
    payment_status = Column(String(20), nullable=False, default="pending")
    special_requests = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    source = Column(String(20), nullable=True, default="front_desk")  # front_desk, online, phone, walk_in
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    checked_out_at = Column(DateTime(timezone=True), nullable=True)

    guest = relationship("Guest", back_populates="reservations")
    room = relationship("Room", back_populates="reservations")
    payments = relationship("Payment", back_populates="reservation")


class HousekeepingTask(Base, TimestampMixin):
    """Housekeeping or maintenance task for a room."""
    __tablename__ = "housekeeping_tasks"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    task_type = Column(String(20), nullable=False)  # cleaning, maintenance, inspection, deep_clean
    priority = Column(String(10), nullable=False, default="normal")  # low, normal, high, urgent
    status = Column(String(20), nullable=False, default="pending", index=True)
    assigned_to = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    estimated_duration = Column(Integer, nullable=True)  # minutes
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(100), nullable=False)

    room = relationship("Room", back_populates="housekeeping_tasks")


class Payment(Base, TimestampMixin):
    """Payment recorded against a reservation."""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    reservation_id = Column(Integer, ForeignKey("reservations.id"), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    payment_method = Column(String(20), nullable=False)  # cash, card, bank_transfer, online
    payment_type = Column(String(20), nullable=False)  # deposit, full_payment, refund, partial_payment
    transaction_id = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default="completed")
    notes = Column(Text, nullable=True)
    processed_by = Column(String(100), nullable=True)

    reservation = relationship("Reservation", back_populates="payments")


class Staff(Base, TimestampMixin):
    """Staff account used for dashboard logins."""
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    role = Column(String(30), nullable=False)  # admin, manager, front_desk, housekeeping, maintenance
    department = Column(String(50), nullable=True)
    phone = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    password_hash = Column(String(255), nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)
