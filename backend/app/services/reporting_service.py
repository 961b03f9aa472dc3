"""
Reporting Service
Occupancy, ADR, RevPAR and status breakdowns over a date range

All arithmetic is done in Decimal at full precision. Rounding happens
only when a result is converted to its response schema.
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Tuple

from app.core.clock import hotel_today
from app.core.config import settings
from app.schemas.entities import Reservation, ReservationStatus, Room, RoomStatus
from app.schemas.notifications import DegradedSource
from app.schemas.reports import (
    DailyOccupancy,
    DailyRevenue,
    DashboardReport,
    DateRange,
    OccupancyReport,
    ReservationSummary,
    RevenueReport,
    RoomStatusReport,
    RoomTypeRevenue,
    RoomTypeStatusCount,
    StatusCount,
)
from app.services.entity_fetcher import EntityFetcher
from app.services.entity_sources.base import EntityKind

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")

EXCLUDED_FROM_REVENUE = {ReservationStatus.CANCELLED, ReservationStatus.NO_SHOW}
ARRIVING_STATUSES = {ReservationStatus.CONFIRMED, ReservationStatus.CHECKED_IN}
DEPARTING_STATUSES = {ReservationStatus.CHECKED_IN, ReservationStatus.CHECKED_OUT}
STAYED_STATUSES = [ReservationStatus.CHECKED_IN.value, ReservationStatus.CHECKED_OUT.value]


class ReportRangeError(ValueError):
    """Requested range is longer than reports allow."""


def round_percent(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_money(value: Decimal) -> Decimal:
    exponent = Decimal(1).scaleb(-settings.currency_decimals)
    return value.quantize(exponent, rounding=ROUND_HALF_UP)


def safe_divide(numerator: Decimal, denominator) -> Decimal:
    """numerator / denominator, or 0 when the denominator is not positive."""
    if denominator <= 0:
        return ZERO
    return Decimal(numerator) / Decimal(denominator)


def occupancy_percent(occupied: int, total: int) -> Decimal:
    return safe_divide(Decimal(occupied) * HUNDRED, total)


@dataclass(frozen=True)
class ReportRange:
    """Inclusive [start, end]. A range with end < start is empty."""
    start: date
    end: date
    supplied: bool = True

    @property
    def days(self) -> int:
        return max(0, (self.end - self.start).days + 1)

    @property
    def is_empty(self) -> bool:
        return self.end < self.start

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def each_day(self) -> List[date]:
        return [self.start + timedelta(days=i) for i in range(self.days)]

    def to_schema(self) -> DateRange:
        return DateRange(**{"from": self.start, "to": self.end})


def resolve_range(
    from_date: Optional[date],
    to_date: Optional[date],
    default_days: int,
    today: Optional[date] = None,
) -> ReportRange:
    """Fill in a missing bound; with no bounds, cover the last default_days days."""
    today = today or hotel_today()
    if from_date is None and to_date is None:
        start = today - timedelta(days=max(default_days - 1, 0))
        return ReportRange(start=start, end=today, supplied=False)
    if to_date is None:
        to_date = today
    if from_date is None:
        from_date = to_date
    return ReportRange(start=from_date, end=to_date)


def with_room_details(reservations: Iterable[Reservation], rooms: Iterable[Room]) -> List[Reservation]:
    """Fill room number and type from the rooms list where the reservation only carries a room id."""
    rooms_by_id = {room.id: room for room in rooms}
    result = []
    for r in reservations:
        room = rooms_by_id.get(r.room_id) if r.room_id is not None else None
        if room is not None and (r.room_number is None or r.room_type is None):
            r = r.model_copy(update={
                "room_number": r.room_number or room.room_number,
                "room_type": r.room_type or room.room_type,
            })
        result.append(r)
    return result


# ============================================================================
# Full-precision results
# ============================================================================

@dataclass
class DashboardMetrics:
    total_rooms: int = 0
    available_rooms: int = 0
    occupied_rooms: int = 0
    occupancy_rate: Decimal = ZERO
    today_check_ins: int = 0
    today_check_outs: int = 0
    revenue: Decimal = ZERO
    collected_revenue: Decimal = ZERO
    room_nights: int = 0
    adr: Decimal = ZERO
    revpar: Decimal = ZERO
    recent_reservations: List[Reservation] = field(default_factory=list)

    def to_response(self, date_range: ReportRange, degraded: List[DegradedSource] = None) -> DashboardReport:
        return DashboardReport(
            total_rooms=self.total_rooms,
            available_rooms=self.available_rooms,
            occupied_rooms=self.occupied_rooms,
            occupancy_rate=round_percent(self.occupancy_rate),
            today_check_ins=self.today_check_ins,
            today_check_outs=self.today_check_outs,
            revenue=round_money(self.revenue),
            collected_revenue=round_money(self.collected_revenue),
            room_nights=self.room_nights,
            adr=round_money(self.adr),
            revpar=round_money(self.revpar),
            recent_reservations=[
                ReservationSummary(
                    id=r.id,
                    confirmation_number=r.confirmation_number,
                    guest_name=r.guest_name,
                    room_number=r.room_number,
                    check_in_date=r.check_in_date,
                    check_out_date=r.check_out_date,
                    status=r.status.value,
                    total_amount=round_money(r.total_amount),
                )
                for r in self.recent_reservations
            ],
            date_range=date_range.to_schema(),
            degraded_sources=degraded or [],
        )


@dataclass
class RoomStatusMetrics:
    by_status: Dict[str, int] = field(default_factory=dict)
    by_type: Dict[Tuple[str, str], int] = field(default_factory=dict)

    def to_response(self, degraded: List[DegradedSource] = None) -> RoomStatusReport:
        return RoomStatusReport(
            room_status_data=[StatusCount(status=s, count=c) for s, c in self.by_status.items()],
            rooms_by_type=[
                RoomTypeStatusCount(room_type=t, status=s, count=c)
                for (t, s), c in self.by_type.items()
            ],
            degraded_sources=degraded or [],
        )


@dataclass
class NightOccupancy:
    day: date
    occupied: int
    total: int

    @property
    def rate(self) -> Decimal:
        return occupancy_percent(self.occupied, self.total)


@dataclass
class OccupancyMetrics:
    nights: List[NightOccupancy] = field(default_factory=list)

    @property
    def average_rate(self) -> Decimal:
        if not self.nights:
            return ZERO
        return sum((n.rate for n in self.nights), ZERO) / len(self.nights)

    def to_response(self, date_range: ReportRange, degraded: List[DegradedSource] = None) -> OccupancyReport:
        return OccupancyReport(
            occupancy_data=[
                DailyOccupancy(
                    date=n.day,
                    occupied=n.occupied,
                    total=n.total,
                    occupancy_rate=round_percent(n.rate),
                )
                for n in self.nights
            ],
            average_occupancy_rate=round_percent(self.average_rate),
            date_range=date_range.to_schema(),
            degraded_sources=degraded or [],
        )


@dataclass
class RevenueBucket:
    revenue: Decimal = ZERO
    expected: Decimal = ZERO
    bookings: int = 0


@dataclass
class RevenueMetrics:
    by_day: Dict[date, RevenueBucket] = field(default_factory=dict)
    by_room_type: Dict[str, RevenueBucket] = field(default_factory=dict)

    def to_response(self, date_range: ReportRange, degraded: List[DegradedSource] = None) -> RevenueReport:
        room_types = sorted(self.by_room_type.items(), key=lambda item: item[1].revenue, reverse=True)
        return RevenueReport(
            revenue_data=[
                DailyRevenue(
                    date=day,
                    revenue=round_money(b.revenue),
                    expected=round_money(b.expected),
                    bookings=b.bookings,
                )
                for day, b in sorted(self.by_day.items())
            ],
            revenue_by_room_type=[
                RoomTypeRevenue(room_type=name, revenue=round_money(b.revenue), bookings=b.bookings)
                for name, b in room_types
            ],
            date_range=date_range.to_schema(),
            degraded_sources=degraded or [],
        )


# ============================================================================
# Aggregations
# ============================================================================

class ReportingService:
    """Computes report metrics from rooms and reservations."""

    def __init__(self, recent_limit: Optional[int] = None):
        self.recent_limit = recent_limit if recent_limit is not None else settings.recent_reservations_limit

    def dashboard_metrics(
        self,
        rooms: Iterable[Room],
        reservations: Iterable[Reservation],
        date_range: ReportRange,
        today: date,
    ) -> DashboardMetrics:
        rooms = list(rooms)
        reservations = list(reservations)
        metrics = DashboardMetrics()

        metrics.total_rooms = len(rooms)
        metrics.occupied_rooms = sum(1 for r in rooms if r.status == RoomStatus.OCCUPIED)
        metrics.available_rooms = sum(1 for r in rooms if r.status == RoomStatus.AVAILABLE)
        metrics.occupancy_rate = occupancy_percent(metrics.occupied_rooms, metrics.total_rooms)

        metrics.today_check_ins = sum(
            1 for r in reservations if r.check_in_date == today and r.status in ARRIVING_STATUSES
        )
        metrics.today_check_outs = sum(
            1 for r in reservations if r.check_out_date == today and r.status in DEPARTING_STATUSES
        )

        revenue_set = [
            r for r in reservations
            if date_range.contains(r.check_in_date) and r.status not in EXCLUDED_FROM_REVENUE
        ]
        metrics.revenue = sum((r.total_amount for r in revenue_set), ZERO)
        metrics.collected_revenue = sum((r.paid_amount for r in revenue_set), ZERO)
        metrics.room_nights = sum(r.number_of_nights for r in revenue_set)
        metrics.adr = safe_divide(metrics.revenue, metrics.room_nights)
        metrics.revpar = safe_divide(metrics.revenue, metrics.total_rooms * date_range.days)

        recent_pool = revenue_set if date_range.supplied else reservations
        recent = sorted(recent_pool, key=lambda r: r.check_in_date, reverse=True)[:self.recent_limit]
        metrics.recent_reservations = with_room_details(recent, rooms)
        return metrics

    def room_status_metrics(self, rooms: Iterable[Room]) -> RoomStatusMetrics:
        rooms = list(rooms)
        by_status = Counter(r.status.value for r in rooms)
        by_type = Counter((r.room_type, r.status.value) for r in rooms)
        return RoomStatusMetrics(by_status=dict(by_status), by_type=dict(by_type))

    def occupancy_metrics(
        self,
        rooms: Iterable[Room],
        reservations: Iterable[Reservation],
        date_range: ReportRange,
    ) -> OccupancyMetrics:
        total = len(list(rooms))
        stays = [
            r for r in reservations
            if r.status in (ReservationStatus.CHECKED_IN, ReservationStatus.CHECKED_OUT)
        ]
        nights = []
        for day in date_range.each_day():
            occupied = sum(1 for r in stays if r.check_in_date <= day < r.check_out_date)
            nights.append(NightOccupancy(day=day, occupied=occupied, total=total))
        return OccupancyMetrics(nights=nights)

    def revenue_metrics(
        self,
        reservations: Iterable[Reservation],
        date_range: ReportRange,
        rooms: Iterable[Room] = (),
    ) -> RevenueMetrics:
        reservations = with_room_details(reservations, rooms)
        by_day: Dict[date, RevenueBucket] = defaultdict(RevenueBucket)
        by_room_type: Dict[str, RevenueBucket] = defaultdict(RevenueBucket)
        for r in reservations:
            if r.status != ReservationStatus.CHECKED_OUT or not date_range.contains(r.check_out_date):
                continue
            day = by_day[r.check_out_date]
            day.revenue += r.paid_amount
            day.expected += r.total_amount
            day.bookings += 1

            room_type = by_room_type[r.room_type or "Unknown"]
            room_type.revenue += r.paid_amount
            room_type.expected += r.total_amount
            room_type.bookings += 1
        return RevenueMetrics(by_day=dict(by_day), by_room_type=dict(by_room_type))

    # ------------------------------------------------------------------
    # Fetch + compute
    # ------------------------------------------------------------------

    async def dashboard(
        self,
        fetcher: EntityFetcher,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> DashboardReport:
        today = today or hotel_today()
        # No range means "today", but recent reservations then span everything
        date_range = resolve_range(from_date, to_date, default_days=1, today=today)
        snapshot = await fetcher.snapshot([EntityKind.ROOMS, EntityKind.RESERVATIONS])
        metrics = self.dashboard_metrics(snapshot.rooms, snapshot.reservations, date_range, today)
        logger.debug(
            f"Dashboard {date_range.start}..{date_range.end}: "
            f"occupancy={metrics.occupancy_rate}, revenue={metrics.revenue}, nights={metrics.room_nights}"
        )
        return metrics.to_response(date_range, snapshot.degraded_sources)

    async def rooms(self, fetcher: EntityFetcher) -> RoomStatusReport:
        snapshot = await fetcher.snapshot([EntityKind.ROOMS])
        return self.room_status_metrics(snapshot.rooms).to_response(snapshot.degraded_sources)

    async def occupancy(
        self,
        fetcher: EntityFetcher,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> OccupancyReport:
        date_range = resolve_range(from_date, to_date, settings.report_default_days, today)
        self._check_length(date_range)
        snapshot = await fetcher.snapshot(
            [EntityKind.ROOMS, EntityKind.RESERVATIONS],
            filters={EntityKind.RESERVATIONS: {"status": STAYED_STATUSES}},
        )
        metrics = self.occupancy_metrics(snapshot.rooms, snapshot.reservations, date_range)
        return metrics.to_response(date_range, snapshot.degraded_sources)

    async def revenue(
        self,
        fetcher: EntityFetcher,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> RevenueReport:
        date_range = resolve_range(from_date, to_date, settings.report_default_days, today)
        snapshot = await fetcher.snapshot(
            [EntityKind.ROOMS, EntityKind.RESERVATIONS],
            filters={EntityKind.RESERVATIONS: {"status": ReservationStatus.CHECKED_OUT.value}},
        )
        metrics = self.revenue_metrics(snapshot.reservations, date_range, snapshot.rooms)
        return metrics.to_response(date_range, snapshot.degraded_sources)

    @staticmethod
    def _check_length(date_range: ReportRange) -> None:
        if date_range.days > settings.report_max_days:
            raise ReportRangeError(
                f"Date range spans {date_range.days} days; at most {settings.report_max_days} allowed"
            )
