"""Booking routes serving normalized Cal.com data to the dashboard."""
from fastapi import APIRouter, Depends, Request

from insights.cal.mapper import map_bookings_to_meeting_collection
from insights.cal.query import parse_query_params
from insights.cal.service import BookingsService
from insights.cal.stats import (
    calculate_average_duration,
    calculate_meeting_stats,
    count_self_meetings,
    group_meetings_by_status,
    remove_self_meetings,
)
from insights.cal.tokens import TokenRefresher
from insights.core.dependencies import (
    get_bookings_service,
    get_current_user_id,
    get_token_refresher,
    require_same_user,
)
from insights.core.errors import AppError, UpstreamError

router = APIRouter(prefix="/api", tags=["bookings"])


async def _list_bookings(
    request: Request,
    user_id: str,
    refresher: TokenRefresher,
    service: BookingsService,
) -> dict:
    # Query errors are reported before any token refresh is attempted
    query = parse_query_params(request.query_params)
    access_token = await refresher.get_valid_access_token(user_id)
    meeting = await service.fetch_bookings(access_token, query)
    return meeting.to_json_dict()


@router.get("/cal/bookings")
async def list_bookings(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    refresher: TokenRefresher = Depends(get_token_refresher),
    service: BookingsService = Depends(get_bookings_service),
):
    """
    List bookings for the signed-in user.

    Accepts the Cal.com filter parameters (``status``, ``take``, ``skip``,
    ``sortUpdatedAt``...). Array filters may be comma-separated or repeated.
    Returns ``{status, data, pagination, error}``.
    """
    return await _list_bookings(request, user_id, refresher, service)


@router.get("/users/{user_id}/bookings")
async def list_user_bookings(
    user_id: str,
    request: Request,
    session_user_id: str = Depends(get_current_user_id),
    refresher: TokenRefresher = Depends(get_token_refresher),
    service: BookingsService = Depends(get_bookings_service),
):
    """
    List bookings for an explicit user id.

    Returns 403 if the id does not belong to the signed-in user.
    """
    require_same_user(user_id, session_user_id)
    return await _list_bookings(request, user_id, refresher, service)


@router.get("/cal/bookings/top-updated")
async def top_updated_bookings(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    refresher: TokenRefresher = Depends(get_token_refresher),
    service: BookingsService = Depends(get_bookings_service),
):
    """Most recently updated bookings, used when the main list is empty."""
    query = parse_query_params(request.query_params)
    access_token = await refresher.get_valid_access_token(user_id)
    result = await service.fetch_top_updated(access_token, query)

    if result.error is not None:
        if isinstance(result.error, AppError):
            raise result.error
        raise UpstreamError("Failed to fetch top updated bookings") from result.error

    records = map_bookings_to_meeting_collection(result.data or [])
    return {
        "data": [record.to_json_dict() for record in records],
        "totalItems": result.total_items,
    }


@router.get("/cal/bookings/summary/{status}")
async def booking_status_summary(
    status: str,
    user_id: str = Depends(get_current_user_id),
    refresher: TokenRefresher = Depends(get_token_refresher),
    service: BookingsService = Depends(get_bookings_service),
):
    """Number of bookings with the given status."""
    access_token = await refresher.get_valid_access_token(user_id)
    summary = await service.fetch_summary_by_status(access_token, status)
    return {"status": summary.status, "totalItems": summary.total_items}


@router.get("/cal/bookings/stats")
async def booking_stats(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    refresher: TokenRefresher = Depends(get_token_refresher),
    service: BookingsService = Depends(get_bookings_service),
):
    """
    Aggregate statistics for the dashboard overview.

    Uses the top updated bookings when the filtered list is empty, and
    leaves out meetings whose only attendee is one of the hosts.
    """
    query = parse_query_params(request.query_params)
    access_token = await refresher.get_valid_access_token(user_id)
    meetings = await service.fetch_with_fallback(access_token, query)
    filtered = remove_self_meetings(meetings)

    return {
        "stats": calculate_meeting_stats(filtered).to_json_dict(),
        "byStatus": group_meetings_by_status(filtered),
        "averageDuration": calculate_average_duration(filtered),
        "selfMeetings": count_self_meetings(meetings),
    }
