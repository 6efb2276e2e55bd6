from insights.schemas.booking import (
    BookingsResponse,
    Meeting,
    MeetingRecord,
    NormalizedResponse,
    Pagination,
    RawBooking,
)
from insights.schemas.query import BOOKING_STATUSES, BookingQuery, BookingStatus
from insights.schemas.token import TokenResponse

__all__ = [
    "BOOKING_STATUSES",
    "BookingQuery",
    "BookingStatus",
    "BookingsResponse",
    "Meeting",
    "MeetingRecord",
    "NormalizedResponse",
    "Pagination",
    "RawBooking",
    "TokenResponse",
]
