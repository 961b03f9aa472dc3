"""Tests for report aggregation: occupancy, ADR, RevPAR, breakdowns and ranges."""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

from app.schemas.entities import Reservation, Room
from app.services.entity_fetcher import EntityFetcher, FetchResult, OperationalSnapshot
from app.services.entity_sources.base import EntityKind, EntitySource
from app.services.reporting_service import (
    ReportingService,
    ReportRange,
    ReportRangeError,
    resolve_range,
    round_money,
    round_percent,
    safe_divide,
)

TODAY = date(2026, 10, 19)


def rooms(occupied=7, available=3, room_type="deluxe"):
    result = []
    for i in range(occupied + available):
        result.append(Room(
            id=i + 1,
            room_number=f"{101 + i}",
            room_type=room_type,
            status="occupied" if i < occupied else "available",
        ))
    return result


def stay(id, check_in, nights, total, paid="0", status="confirmed", room_type="deluxe"):
    return Reservation(
        id=id,
        confirmation_number=f"RES-{id:04d}",
        guest_name=f"Guest {id}",
        room_type=room_type,
        check_in_date=check_in,
        check_out_date=check_in + timedelta(days=nights),
        number_of_nights=nights,
        total_amount=Decimal(total),
        paid_amount=Decimal(paid),
        status=status,
    )


@pytest.fixture
def service():
    return ReportingService(recent_limit=5)


class TestDashboardMetrics:
    def test_occupancy_seven_of_ten(self, service):
        """10 rooms with 7 occupied is 70% occupancy."""
        metrics = service.dashboard_metrics(rooms(7, 3), [], ReportRange(TODAY, TODAY), TODAY)
        assert metrics.total_rooms == 10
        assert metrics.occupied_rooms == 7
        assert metrics.available_rooms == 3
        assert round_percent(metrics.occupancy_rate) == 70

    def test_adr_from_revenue_set(self, service):
        """Two stays of 2 and 3 nights totalling 4,000,000 give ADR 800,000."""
        reservations = [
            stay(1, TODAY, 2, "1000000"),
            stay(2, TODAY + timedelta(days=1), 3, "3000000"),
        ]
        date_range = ReportRange(TODAY, TODAY + timedelta(days=6))
        metrics = service.dashboard_metrics(rooms(), reservations, date_range, TODAY)
        assert metrics.room_nights == 5
        assert metrics.revenue == Decimal("4000000")
        assert metrics.adr == Decimal("800000")

    def test_revpar_uses_inclusive_days(self, service):
        """RevPAR divides by total rooms times the inclusive number of days."""
        reservations = [stay(1, TODAY, 2, "2000000")]
        date_range = ReportRange(TODAY, TODAY + timedelta(days=1))  # 2 days
        metrics = service.dashboard_metrics(rooms(5, 5), reservations, date_range, TODAY)
        assert metrics.revpar == Decimal("100000")

    def test_cancelled_and_no_show_excluded_from_revenue(self, service):
        """Cancelled and no-show reservations do not count as revenue."""
        reservations = [
            stay(1, TODAY, 1, "1000000"),
            stay(2, TODAY, 1, "5000000", status="cancelled"),
            stay(3, TODAY, 1, "7000000", status="no_show"),
        ]
        metrics = service.dashboard_metrics(rooms(), reservations, ReportRange(TODAY, TODAY), TODAY)
        assert metrics.revenue == Decimal("1000000")
        assert metrics.room_nights == 1

    def test_revenue_range_is_inclusive(self, service):
        """Check-ins on both range bounds count; outside does not."""
        start, end = TODAY - timedelta(days=2), TODAY
        reservations = [
            stay(1, start, 1, "100"),
            stay(2, end, 1, "200"),
            stay(3, start - timedelta(days=1), 1, "400"),
            stay(4, end + timedelta(days=1), 1, "800"),
        ]
        metrics = service.dashboard_metrics(rooms(), reservations, ReportRange(start, end), TODAY)
        assert metrics.revenue == Decimal("300")

    def test_collected_revenue(self, service):
        """Collected revenue sums what has been paid in the revenue set."""
        reservations = [stay(1, TODAY, 1, "1000000", paid="250000"), stay(2, TODAY, 1, "1000000", paid="1000000")]
        metrics = service.dashboard_metrics(rooms(), reservations, ReportRange(TODAY, TODAY), TODAY)
        assert metrics.collected_revenue == Decimal("1250000")

    def test_today_arrivals_and_departures(self, service):
        """Arrivals count confirmed/checked-in; departures count checked-in/checked-out."""
        reservations = [
            stay(1, TODAY, 1, "1", status="confirmed"),
            stay(2, TODAY, 1, "1", status="checked_in"),
            stay(3, TODAY, 1, "1", status="cancelled"),
            stay(4, TODAY - timedelta(days=1), 1, "1", status="checked_in"),
            stay(5, TODAY - timedelta(days=2), 2, "1", status="checked_out"),
            stay(6, TODAY - timedelta(days=1), 1, "1", status="confirmed"),
        ]
        metrics = service.dashboard_metrics(rooms(), reservations, ReportRange(TODAY, TODAY), TODAY)
        assert metrics.today_check_ins == 2
        assert metrics.today_check_outs == 2

    def test_empty_inputs_are_zero(self, service):
        """Empty collections give zero occupancy, ADR and RevPAR without raising."""
        metrics = service.dashboard_metrics([], [], ReportRange(TODAY, TODAY), TODAY)
        assert metrics.occupancy_rate == 0
        assert metrics.adr == 0
        assert metrics.revpar == 0
        assert metrics.recent_reservations == []

    def test_inverted_range_is_empty(self, service):
        """to < from gives zero revenue, zero RevPAR and no recent reservations."""
        reservations = [stay(1, TODAY, 1, "1000000")]
        date_range = ReportRange(TODAY, TODAY - timedelta(days=3))
        metrics = service.dashboard_metrics(rooms(), reservations, date_range, TODAY)
        assert metrics.revenue == 0
        assert metrics.revpar == 0
        assert metrics.recent_reservations == []

    def test_recent_reservations_sorted_and_limited(self, service):
        """Recent reservations are the newest check-ins, at most five."""
        reservations = [stay(i, TODAY - timedelta(days=i), 1, "1") for i in range(8)]
        date_range = ReportRange(TODAY - timedelta(days=30), TODAY)
        metrics = service.dashboard_metrics(rooms(), reservations, date_range, TODAY)
        assert [r.id for r in metrics.recent_reservations] == [0, 1, 2, 3, 4]

    def test_recent_reservations_without_range_use_all(self, service):
        """With no requested range, recent reservations ignore the revenue window."""
        reservations = [stay(1, TODAY + timedelta(days=10), 1, "1"), stay(2, TODAY - timedelta(days=10), 1, "1")]
        date_range = ReportRange(TODAY, TODAY, supplied=False)
        metrics = service.dashboard_metrics(rooms(), reservations, date_range, TODAY)
        assert metrics.revenue == 0
        assert [r.id for r in metrics.recent_reservations] == [1, 2]

    def test_response_rounds_only_at_display(self, service):
        """Full precision is kept internally; the response rounds half up."""
        reservations = [stay(1, TODAY, 3, "1000000")]
        metrics = service.dashboard_metrics(rooms(2, 1), reservations, ReportRange(TODAY, TODAY), TODAY)
        assert metrics.adr == Decimal("1000000") / 3
        response = metrics.to_response(ReportRange(TODAY, TODAY))
        assert response.adr == Decimal("333333")
        assert response.occupancy_rate == 67
        data = response.model_dump(mode="json", by_alias=True)
        assert data["dateRange"] == {"from": "2026-10-19", "to": "2026-10-19"}
        assert data["occupancyRate"] == 67


class TestRoomStatusMetrics:
    def test_breakdowns(self, service):
        """Rooms are counted by status and by type/status."""
        inventory = rooms(2, 1, room_type="deluxe") + [
            Room(id=50, room_number="301", room_type="suite", status="maintenance"),
        ]
        metrics = service.room_status_metrics(inventory)
        assert metrics.by_status == {"occupied": 2, "available": 1, "maintenance": 1}
        assert metrics.by_type[("deluxe", "occupied")] == 2
        assert metrics.by_type[("suite", "maintenance")] == 1

    def test_empty(self, service):
        response = service.room_status_metrics([]).to_response()
        assert response.room_status_data == []
        assert response.rooms_by_type == []


class TestOccupancyMetrics:
    def test_per_night_counts(self, service):
        """A stay occupies each night from check-in up to, not including, check-out."""
        reservations = [
            stay(1, TODAY, 2, "1", status="checked_out"),
            stay(2, TODAY + timedelta(days=1), 1, "1", status="checked_in"),
            stay(3, TODAY, 3, "1", status="confirmed"),
        ]
        date_range = ReportRange(TODAY, TODAY + timedelta(days=2))
        metrics = service.occupancy_metrics(rooms(0, 4), reservations, date_range)
        assert [n.occupied for n in metrics.nights] == [1, 2, 0]
        assert [round_percent(n.rate) for n in metrics.nights] == [25, 50, 0]
        assert round_percent(metrics.average_rate) == 25

    def test_no_rooms(self, service):
        """Zero rooms give zero rates."""
        metrics = service.occupancy_metrics([], [], ReportRange(TODAY, TODAY))
        assert metrics.nights[0].rate == 0
        assert metrics.average_rate == 0

    def test_inverted_range_has_no_nights(self, service):
        metrics = service.occupancy_metrics(rooms(), [], ReportRange(TODAY, TODAY - timedelta(days=1)))
        assert metrics.nights == []
        assert metrics.average_rate == 0


class TestRevenueMetrics:
    def test_grouped_by_checkout_and_room_type(self, service):
        """Checked-out stays are grouped by check-out date and room type."""
        reservations = [
            stay(1, TODAY - timedelta(days=2), 2, "1000000", paid="1000000", status="checked_out"),
            stay(2, TODAY - timedelta(days=1), 1, "500000", paid="400000", status="checked_out",
                 room_type="standard"),
            stay(3, TODAY - timedelta(days=4), 1, "2000000", paid="2000000", status="checked_out",
                 room_type="suite"),
            stay(4, TODAY, 1, "9000000", status="checked_in"),
        ]
        date_range = ReportRange(TODAY - timedelta(days=2), TODAY)
        response = service.revenue_metrics(reservations, date_range).to_response(date_range)

        assert len(response.revenue_data) == 1
        day = response.revenue_data[0]
        assert day.date == TODAY
        assert day.revenue == Decimal("1400000")
        assert day.expected == Decimal("1500000")
        assert day.bookings == 2

        assert [r.room_type for r in response.revenue_by_room_type] == ["deluxe", "standard"]

    def test_room_type_looked_up_by_room_id(self, service):
        """Stays that only carry a room id are grouped under that room's type."""
        booking = stay(1, TODAY - timedelta(days=1), 1, "500000", paid="500000", status="checked_out",
                       room_type=None).model_copy(update={"room_id": 3})
        inventory = rooms(2, 2, room_type="suite")
        date_range = ReportRange(TODAY - timedelta(days=1), TODAY)
        response = service.revenue_metrics([booking], date_range, inventory).to_response(date_range)
        assert [(r.room_type, r.revenue) for r in response.revenue_by_room_type] == [("suite", Decimal("500000"))]

    def test_empty(self, service):
        date_range = ReportRange(TODAY, TODAY)
        response = service.revenue_metrics([], date_range).to_response(date_range)
        assert response.revenue_data == []
        assert response.revenue_by_room_type == []


class TestRanges:
    def test_default_range_covers_last_days(self):
        """No bounds means the last N days ending today."""
        r = resolve_range(None, None, default_days=30, today=TODAY)
        assert r.end == TODAY
        assert r.days == 30
        assert r.supplied is False

    def test_missing_bound_filled(self):
        r = resolve_range(TODAY - timedelta(days=5), None, default_days=30, today=TODAY)
        assert (r.start, r.end) == (TODAY - timedelta(days=5), TODAY)
        r = resolve_range(None, TODAY - timedelta(days=5), default_days=30, today=TODAY)
        assert r.days == 1

    def test_inverted_range(self):
        r = ReportRange(TODAY, TODAY - timedelta(days=1))
        assert r.is_empty
        assert r.days == 0
        assert r.each_day() == []

    def test_helpers(self):
        assert safe_divide(Decimal("10"), 0) == 0
        assert safe_divide(Decimal("10"), 4) == Decimal("2.5")
        assert round_percent(Decimal("69.5")) == 70
        assert round_money(Decimal("2.5")) == Decimal("3")


class TestFetchAndCompute:
    @pytest.mark.asyncio
    async def test_dashboard_reports_degraded_sources(self, service):
        """A failed room fetch still yields a dashboard, flagged as degraded."""
        fetcher = EntityFetcher(source=None)
        fetcher.snapshot = AsyncMock(return_value=OperationalSnapshot(results={
            EntityKind.ROOMS: FetchResult.degraded(EntityKind.ROOMS, "backend unavailable"),
            EntityKind.RESERVATIONS: FetchResult.ok(EntityKind.RESERVATIONS, [stay(1, TODAY, 2, "1000000")]),
        }))
        report = await service.dashboard(fetcher, today=TODAY)
        assert report.total_rooms == 0
        assert report.occupancy_rate == 0
        assert report.revpar == 0
        assert report.revenue == Decimal("1000000")
        assert report.degraded_sources[0].source == "rooms"

    @pytest.mark.asyncio
    async def test_occupancy_rejects_huge_range(self, service):
        """Occupancy reports refuse ranges longer than the configured maximum."""
        fetcher = EntityFetcher(source=None)
        fetcher.snapshot = AsyncMock()
        with pytest.raises(ReportRangeError):
            await service.occupancy(fetcher, TODAY - timedelta(days=5000), TODAY, today=TODAY)
        fetcher.snapshot.assert_not_called()

    @pytest.mark.asyncio
    async def test_revenue_joins_flat_room_reference(self, service):
        """A backend reservation with "room": <id> takes its type from the rooms collection."""
        source = _RecordSource({
            EntityKind.ROOMS: [{"id": 1, "room_number": "201", "room_type": "suite", "status": "occupied"}],
            EntityKind.RESERVATIONS: [{
                "id": 9,
                "room": 1,
                "checkIn": (TODAY - timedelta(days=2)).isoformat(),
                "checkOut": (TODAY - timedelta(days=1)).isoformat(),
                "total_amount": "500",
                "paid_amount": "500",
                "status": "checked_out",
            }],
        })
        report = await service.revenue(EntityFetcher(source), TODAY - timedelta(days=7), TODAY, today=TODAY)
        assert [(r.room_type, r.revenue) for r in report.revenue_by_room_type] == [("suite", Decimal("500"))]
        assert report.degraded_sources == []

    @pytest.mark.asyncio
    async def test_recent_reservations_get_room_number(self, service):
        source = _RecordSource({
            EntityKind.ROOMS: [{"id": 1, "room_number": "201", "room_type": "suite", "status": "occupied"}],
            EntityKind.RESERVATIONS: [{
                "id": 9,
                "room": 1,
                "checkIn": TODAY.isoformat(),
                "checkOut": (TODAY + timedelta(days=1)).isoformat(),
                "total_amount": "500",
                "status": "checked_in",
            }],
        })
        report = await service.dashboard(EntityFetcher(source), today=TODAY)
        assert report.recent_reservations[0].room_number == "201"


class _RecordSource(EntitySource):
    """Serves fixed raw records per kind, ignoring filters."""

    source_name = "records"

    def __init__(self, records):
        self.records = records

    async def list(self, kind, filters=None):
        return self.records.get(kind, [])
