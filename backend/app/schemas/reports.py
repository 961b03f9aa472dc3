"""Report response schemas.

Values here are display values: occupancy is a whole percentage and money
is rounded to the currency's minor unit.
"""

from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import Field

from app.schemas.common import CamelModel, Money
from app.schemas.notifications import DegradedSource


class ReportType(str, Enum):
    DASHBOARD = "dashboard"
    ROOMS = "rooms"
    OCCUPANCY = "occupancy"
    REVENUE = "revenue"


class DateRange(CamelModel):
    from_: date = Field(alias="from")
    to: date


class ReservationSummary(CamelModel):
    id: int
    confirmation_number: str
    guest_name: Optional[str] = None
    room_number: Optional[str] = None
    check_in_date: date
    check_out_date: date
    status: str
    total_amount: Money


class DashboardReport(CamelModel):
    total_rooms: int
    available_rooms: int
    occupied_rooms: int
    occupancy_rate: int
    today_check_ins: int
    today_check_outs: int
    revenue: Money
    collected_revenue: Money
    room_nights: int
    adr: Money
    revpar: Money
    recent_reservations: List[ReservationSummary]
    date_range: DateRange
    degraded_sources: List[DegradedSource] = Field(default_factory=list)


class StatusCount(CamelModel):
    status: str
    count: int


class RoomTypeStatusCount(CamelModel):
    room_type: str
    status: str
    count: int


class RoomStatusReport(CamelModel):
    room_status_data: List[StatusCount]
    rooms_by_type: List[RoomTypeStatusCount]
    degraded_sources: List[DegradedSource] = Field(default_factory=list)


class DailyOccupancy(CamelModel):
    date: date
    occupied: int
    total: int
    occupancy_rate: int


class OccupancyReport(CamelModel):
    occupancy_data: List[DailyOccupancy]
    average_occupancy_rate: int
    date_range: DateRange
    degraded_sources: List[DegradedSource] = Field(default_factory=list)


class DailyRevenue(CamelModel):
    date: date
    revenue: Money
    expected: Money
    bookings: int


class RoomTypeRevenue(CamelModel):
    room_type: str
    revenue: Money
    bookings: int


class RevenueReport(CamelModel):
    revenue_data: List[DailyRevenue]
    revenue_by_room_type: List[RoomTypeRevenue]
    date_range: DateRange
    degraded_sources: List[DegradedSource] = Field(default_factory=list)
