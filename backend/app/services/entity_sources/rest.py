"""Entity source backed by the hotel REST backend."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from app.core.config import settings
from app.services.backend_client import (
    BackendClient,
    BackendResponseError,
    BackendSession,
    PartialCollectionError,
)
from app.services.entity_sources.base import EntityKind, EntitySource, status_values

logger = logging.getLogger(__name__)


def _paths() -> Dict[EntityKind, str]:
    return {
        EntityKind.RESERVATIONS: settings.backend_reservations_path,
        EntityKind.ROOMS: settings.backend_rooms_path,
        EntityKind.HOUSEKEEPING_TASKS: settings.backend_housekeeping_path,
        EntityKind.PAYMENTS: settings.backend_payments_path,
    }


def unwrap_collection(payload: Any) -> List[Dict[str, Any]]:
    """Accept a bare list or the common paginated envelopes."""
    return unwrap_page(payload)[0]


def unwrap_page(payload: Any) -> Tuple[List[Dict[str, Any]], Optional[str]]:
    """Records of one page plus the link to the next page, if any."""
    if isinstance(payload, list):
        return payload, None
    if isinstance(payload, dict):
        for key in ("results", "items", "data"):
            if isinstance(payload.get(key), list):
                return payload[key], payload.get("next") or None
    raise BackendResponseError("Unexpected collection payload from backend", 200)


class RestEntitySource(EntitySource):
    """Reads entities for one backend session."""

    source_name = "rest"

    def __init__(self, client: BackendClient, session: BackendSession, max_pages: Optional[int] = None):
        self.client = client
        self.session = session
        self.max_pages = max_pages or settings.backend_max_pages

    def _params(self, kind: EntityKind, filters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        statuses = status_values(filters)
        if statuses:
            name = settings.backend_status_param
            if name.endswith("__in"):
                params[name] = ",".join(statuses)
            else:
                # Repeated parameter: status=a&status=b
                params[name] = statuses if len(statuses) > 1 else statuses[0]
        if not filters:
            return params
        if kind == EntityKind.RESERVATIONS:
            if filters.get("check_in_from"):
                params["check_in_date__gte"] = str(filters["check_in_from"])
            if filters.get("check_in_to"):
                params["check_in_date__lte"] = str(filters["check_in_to"])
        if kind == EntityKind.PAYMENTS and filters.get("reservation_id") is not None:
            params["reservation"] = filters["reservation_id"]
        return params

    async def list(
        self,
        kind: EntityKind,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        payload = await self.client.get_json(_paths()[kind], self.session, params=self._params(kind, filters))
        records, next_url = unwrap_page(payload)
        records = list(records)

        pages = 1
        while next_url:
            if pages >= self.max_pages:
                logger.warning(
                    f"Stopped following {kind.value} pages after {pages}; "
                    f"{len(records)} records read, more remain"
                )
                raise PartialCollectionError(
                    f"Collection truncated after {pages} pages ({len(records)} records)", records
                )
            # The next link already carries the query string
            page, next_url = unwrap_page(await self.client.get_json(next_url, self.session))
            records.extend(page)
            pages += 1

        logger.debug(f"Fetched {len(records)} {kind.value} from backend ({pages} page(s))")
        return records
