"""Abstract base class for entity sources."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional


class EntityKind(str, Enum):
    RESERVATIONS = "reservations"
    ROOMS = "rooms"
    HOUSEKEEPING_TASKS = "housekeeping_tasks"
    PAYMENTS = "payments"


class EntitySource(ABC):
    """Generic read capability over the hotel's operational entities.

    Implementations return raw records (plain dicts in whatever shape the
    source produces) and raise FetchFailure when the source cannot be
    read. An empty list always means "no records".

    Supported filters:
        status: a single value or a list of values (all kinds)
        check_in_from / check_in_to: ISO dates (reservations)
        reservation_id: (payments)
    """

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return the source name (e.g., 'rest', 'database')."""

    @abstractmethod
    async def list(
        self,
        kind: EntityKind,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """List raw records of one entity kind."""


def status_values(filters: Optional[Dict[str, Any]]) -> List[str]:
    """Normalize the status filter to a list of strings."""
    if not filters or filters.get("status") is None:
        return []
    status = filters["status"]
    if isinstance(status, (list, tuple, set)):
        return [str(s) for s in status]
    return [str(status)]
