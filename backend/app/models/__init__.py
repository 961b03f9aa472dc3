"""SQLAlchemy models."""

from app.models.hotel import (
    Room,
    Guest,
    Reservation,
    HousekeepingTask,
    Payment,
    Staff,
)

__all__ = [
    "Room",
    "Guest",
    "Reservation",
    "HousekeepingTask",
    "Payment",
    "Staff",
]
