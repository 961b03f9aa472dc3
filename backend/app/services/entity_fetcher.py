"""Concurrent entity fetching with explicit degraded results.

A failed read never raises out of here: it becomes a degraded
FetchResult carrying an empty collection (or, for a truncated one, the
records that were read) and the reason, so the notification and
reporting services can still produce partial output while callers can
tell fallback data from real data.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, Iterable, List, Optional, TypeVar

from app.schemas.entities import HousekeepingTask, Payment, Reservation, Room
from app.schemas.notifications import DegradedSource
from app.services.backend_client import BackendAuthError, FetchFailure, PartialCollectionError
from app.services.entity_sources.base import EntityKind, EntitySource
from app.services.normalization import normalize_records

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FetchStatus(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"


@dataclass
class FetchResult(Generic[T]):
    """Outcome of reading one entity collection."""
    kind: EntityKind
    items: List[T] = field(default_factory=list)
    status: FetchStatus = FetchStatus.OK
    reason: Optional[str] = None
    auth_failed: bool = False

    @classmethod
    def ok(cls, kind: EntityKind, items: List[T]) -> "FetchResult[T]":
        return cls(kind=kind, items=items)

    @classmethod
    def degraded(cls, kind: EntityKind, reason: str, auth_failed: bool = False) -> "FetchResult[T]":
        return cls(kind=kind, items=[], status=FetchStatus.DEGRADED, reason=reason, auth_failed=auth_failed)

    @classmethod
    def partial(cls, kind: EntityKind, items: List[T], reason: str) -> "FetchResult[T]":
        """Some records were read but the collection is incomplete."""
        return cls(kind=kind, items=items, status=FetchStatus.DEGRADED, reason=reason)

    @property
    def is_degraded(self) -> bool:
        return self.status == FetchStatus.DEGRADED


@dataclass
class OperationalSnapshot:
    """Everything one notification or report computation reads."""
    results: Dict[EntityKind, FetchResult] = field(default_factory=dict)

    def _items(self, kind: EntityKind) -> List[Any]:
        result = self.results.get(kind)
        return result.items if result else []

    @property
    def reservations(self) -> List[Reservation]:
        return self._items(EntityKind.RESERVATIONS)

    @property
    def rooms(self) -> List[Room]:
        return self._items(EntityKind.ROOMS)

    @property
    def housekeeping_tasks(self) -> List[HousekeepingTask]:
        return self._items(EntityKind.HOUSEKEEPING_TASKS)

    @property
    def payments(self) -> List[Payment]:
        return self._items(EntityKind.PAYMENTS)

    @property
    def degraded_sources(self) -> List[DegradedSource]:
        return [
            DegradedSource(source=kind.value, reason=result.reason or "unknown error")
            for kind, result in self.results.items()
            if result.is_degraded
        ]

    @property
    def auth_failed(self) -> bool:
        return any(result.auth_failed for result in self.results.values())


class EntityFetcher:
    """Reads entity collections from a source and normalizes them."""

    def __init__(self, source: EntitySource):
        self.source = source

    async def fetch(self, kind: EntityKind, filters: Optional[Dict[str, Any]] = None) -> FetchResult:
        """Fetch and normalize one collection, degrading on failure."""
        try:
            records = await self.source.list(kind, filters)
        except BackendAuthError as e:
            logger.warning(f"Fetching {kind.value} from {self.source.source_name} failed, session rejected: {e}")
            return FetchResult.degraded(kind, str(e), auth_failed=True)
        except PartialCollectionError as e:
            logger.warning(f"Fetching {kind.value} from {self.source.source_name} was incomplete: {e}")
            return FetchResult.partial(kind, normalize_records(kind, e.records), str(e))
        except FetchFailure as e:
            logger.warning(f"Fetching {kind.value} from {self.source.source_name} failed, treating as empty: {e}")
            return FetchResult.degraded(kind, str(e))

        return FetchResult.ok(kind, normalize_records(kind, records))

    async def snapshot(
        self,
        kinds: Iterable[EntityKind],
        filters: Optional[Dict[EntityKind, Dict[str, Any]]] = None,
    ) -> OperationalSnapshot:
        """Fetch several collections concurrently and wait for all of them."""
        kinds = list(dict.fromkeys(kinds))
        filters = filters or {}
        results = await asyncio.gather(
            *(self.fetch(kind, filters.get(kind)) for kind in kinds)
        )
        snapshot = OperationalSnapshot(results={r.kind: r for r in results})

        degraded = [r.kind.value for r in results if r.is_degraded]
        if degraded:
            logger.warning(f"Snapshot degraded for: {', '.join(degraded)}")
        return snapshot
