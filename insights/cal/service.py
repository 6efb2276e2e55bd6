"""Bookings service: fetch, normalize and map Cal.com bookings.

Each call runs the whole pipeline for one request (build query, fetch,
normalize, map) and keeps nothing between calls.
"""
import logging
from dataclasses import dataclass

import httpx

from insights.cal.client import fetch_bookings
from insights.cal.mapper import (
    map_bookings_to_meeting_collection,
    map_normalized_to_meeting,
    total_items_of,
)
from insights.cal.normalize import normalize_bookings_response
from insights.cal.query import QueryInput, validate_query
from insights.core.config import Settings, settings as default_settings
from insights.core.errors import AppError, ShapeError, UpstreamError, ValidationError
from insights.schemas.booking import Meeting, MeetingRecord, NormalizedResponse, RawBooking
from insights.schemas.query import BOOKING_STATUSES

logger = logging.getLogger(__name__)


@dataclass
class TopUpdatedResult:
    """Outcome of ``fetch_top_updated``; check ``error`` before using ``data``."""

    data: list[RawBooking] | None
    total_items: int | None
    error: Exception | None


@dataclass
class StatusSummary:
    status: str
    total_items: int


class BookingsService:
    """Read-only access to a user's Cal.com bookings."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings = default_settings,
        base_url: str | None = None,
        api_version: str | None = None,
    ):
        self.client = client
        self.settings = settings
        self.base_url = base_url
        self.api_version = api_version

    async def fetch_normalized(
        self, access_token: str, query: QueryInput | None = None
    ) -> NormalizedResponse:
        payload = await fetch_bookings(
            self.client,
            access_token,
            query,
            base_url=self.base_url,
            api_version=self.api_version,
            settings=self.settings,
        )
        return normalize_bookings_response(payload)

    async def fetch_bookings(
        self, access_token: str, query: QueryInput | None = None
    ) -> Meeting:
        """Fetch one page of bookings as a ``Meeting`` envelope with pagination."""
        parsed = validate_query(query) if query is not None else None
        params = sorted(parsed.to_params()) if parsed is not None else []
        logger.info(f"Fetching Cal.com bookings, params={params}")

        result = await self.fetch_normalized(access_token, parsed)
        meeting = map_normalized_to_meeting(result, parsed)

        logger.info(
            f"Fetched {len(meeting.data)} bookings "
            f"(total {meeting.pagination.total_items})"
        )
        return meeting

    async def fetch_top_updated(
        self, access_token: str, query: QueryInput | None = None
    ) -> TopUpdatedResult:
        """
        Fetch the most recently updated bookings.

        Forces ``sortUpdatedAt=desc`` and a small fixed ``take``. Never
        raises: failures are returned in ``error``.
        """
        try:
            params = validate_query(query).to_params() if query is not None else {}
            params["sortUpdatedAt"] = "desc"
            params["take"] = self.settings.top_updated_bookings_limit

            result = await self.fetch_normalized(access_token, params)
            return TopUpdatedResult(
                data=[RawBooking.model_validate(item) for item in result.items],
                total_items=total_items_of(result),
                error=None,
            )
        except Exception as e:
            logger.error(f"Failed to fetch top updated bookings: {e}")
            return TopUpdatedResult(data=None, total_items=None, error=e)

    async def fetch_summary_by_status(self, access_token: str, status: str) -> StatusSummary:
        """Count bookings with one status, fetching a single record."""
        if status not in BOOKING_STATUSES:
            raise ValidationError(f"Unsupported Cal.com booking status: {status}")

        result = await self.fetch_normalized(
            access_token,
            {"status": [status], "take": self.settings.booking_summary_fetch_limit},
        )
        return StatusSummary(status=status, total_items=total_items_of(result))

    async def fetch_with_fallback(
        self, access_token: str, query: QueryInput | None = None
    ) -> list[MeetingRecord]:
        """
        Fetch bookings, falling back to the top updated ones.

        The fallback is used when the primary request fails upstream or
        returns no rows. Query and authentication errors are not retried.
        """
        try:
            meeting = await self.fetch_bookings(access_token, query)
            if meeting.data:
                return meeting.data
            logger.info("Primary bookings query returned no rows, using top updated")
        except (UpstreamError, ShapeError) as e:
            logger.warning(f"Primary bookings query failed, using top updated: {e}")

        top = await self.fetch_top_updated(access_token, query)
        if top.error is not None:
            if isinstance(top.error, AppError) and top.error.is_client_error:
                raise top.error
            raise UpstreamError(
                "Failed to fetch top updated bookings",
                details={"cause": str(top.error)},
            ) from top.error

        return map_bookings_to_meeting_collection(top.data or [])
