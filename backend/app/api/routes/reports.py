"""Reporting routes: dashboard metrics, room status, occupancy and revenue."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status

from app.core.rate_limit import DEFAULT_RATE_LIMIT, limiter
from app.core.rbac import CurrentUser, Fetcher
from app.schemas.reports import ReportType
from app.services.reporting_service import ReportingService, ReportRangeError

logger = logging.getLogger(__name__)

router = APIRouter()

_service = ReportingService()


@router.get("/")
@limiter.limit(DEFAULT_RATE_LIMIT)
async def get_report(
    request: Request,
    current_user: CurrentUser,
    fetcher: Fetcher,
    type: str = Query("dashboard", description="dashboard, rooms, occupancy or revenue"),
    from_date: Optional[date] = Query(None, alias="fromDate"),
    to_date: Optional[date] = Query(None, alias="toDate"),
):
    """Compute one report over the optional date range."""
    try:
        report_type = ReportType(type)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid report type '{type}'. Expected one of: {', '.join(t.value for t in ReportType)}",
        )

    try:
        if report_type == ReportType.DASHBOARD:
            report = await _service.dashboard(fetcher, from_date, to_date)
        elif report_type == ReportType.ROOMS:
            report = await _service.rooms(fetcher)
        elif report_type == ReportType.OCCUPANCY:
            report = await _service.occupancy(fetcher, from_date, to_date)
        else:
            report = await _service.revenue(fetcher, from_date, to_date)
    except ReportRangeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.debug(f"{current_user.username} requested {report_type.value} report ({from_date}..{to_date})")
    return report.model_dump(mode="json", by_alias=True)
