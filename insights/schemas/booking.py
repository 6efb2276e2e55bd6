"""Schemas for Cal.com bookings and the meeting records built from them.

``RawBooking`` mirrors one booking as Cal.com returns it. The four
``*Envelope`` models are the response shapes the bookings endpoint has
been observed to return; ``BookingsResponse`` validates a payload against
all of them. ``MeetingRecord`` is the canonical shape served to the
dashboard, with every optional upstream field defaulted.
"""

from typing import Annotated, Any, Literal
from urllib.parse import urlparse

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    NonNegativeFloat,
    NonNegativeInt,
    TypeAdapter,
)
from pydantic.alias_generators import to_camel

from insights.schemas.query import BookingStatus, IsoTimestamp


def _check_url(value: str) -> str:
    parsed = urlparse(value)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError("Invalid url")
    return value


NonNegativeNumber = NonNegativeInt | NonNegativeFloat
UrlString = Annotated[str, AfterValidator(_check_url)]
Cursor = str | int | None


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class BookingHost(CamelModel):
    id: int
    name: str
    email: EmailStr
    username: str
    time_zone: str


class BookingAttendee(CamelModel):
    name: str
    email: EmailStr
    time_zone: str
    language: str
    absent: bool | None = None
    phone_number: str | None = None


class EventTypeRef(CamelModel):
    id: int
    slug: str


class RawBooking(CamelModel):
    """A booking as returned by the Cal.com v2 bookings endpoint."""

    id: int
    uid: str
    title: str
    description: str | None = None
    hosts: list[BookingHost]
    status: BookingStatus
    cancellation_reason: str | None = None
    cancelled_by_email: str | None = None
    rescheduling_reason: str | None = None
    rescheduled_by_email: str | None = None
    rescheduled_from_uid: str | None = None
    rescheduled_to_uid: str | None = None
    start: IsoTimestamp
    end: IsoTimestamp
    duration: NonNegativeNumber
    event_type_id: int
    event_type: EventTypeRef
    meeting_url: UrlString
    location: str | None = None
    absent_host: bool | None = None
    created_at: IsoTimestamp
    updated_at: IsoTimestamp
    metadata: dict[str, Any] | None = None
    rating: int | float | None = None
    ics_uid: str | None = None
    attendees: list[BookingAttendee] | None = None
    guests: list[EmailStr] | None = None
    booking_fields_responses: dict[str, Any] | None = None


class Pagination(CamelModel):
    """Page bookkeeping derived from take/skip and the total count."""

    total_items: int
    remaining_items: int
    returned_items: int
    items_per_page: int
    current_page: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class BookingsDataEnvelope(CamelModel):
    model_config = ConfigDict(extra="allow")

    data: list[RawBooking]
    count: int | None = None
    total_count: int | None = None
    next_cursor: Cursor = None
    prev_cursor: Cursor = None


class BookingsMeta(CamelModel):
    total: int | None = None
    count: int | None = None
    next_cursor: Cursor = None
    prev_cursor: Cursor = None


class BookingsAltEnvelope(CamelModel):
    model_config = ConfigDict(extra="allow")

    bookings: list[RawBooking]
    meta: BookingsMeta | None = None


class PaginatedBookingsEnvelope(CamelModel):
    model_config = ConfigDict(extra="allow")

    status: str
    data: list[RawBooking]
    pagination: Pagination
    error: dict[str, Any]


BookingsResponse = TypeAdapter(
    list[RawBooking] | BookingsDataEnvelope | BookingsAltEnvelope | PaginatedBookingsEnvelope
)


class NormalizedResponse(BaseModel):
    """A bookings payload reduced to one shape, whatever envelope it came in.

    ``items`` are the upstream booking objects, untouched. ``raw`` keeps the
    original payload for diagnostics.
    """

    items: list[dict[str, Any]]
    total_count: int | float | None = None
    next_cursor: Any = None
    prev_cursor: Any = None
    raw: Any = None


class MeetingHost(CamelModel):
    id: int
    name: str
    email: str
    username: str
    time_zone: str


class MeetingAttendee(CamelModel):
    name: str
    email: str
    time_zone: str
    language: str
    absent: bool = False
    phone_number: str | None = None


class MeetingRecord(CamelModel):
    """A booking in the canonical shape the dashboard consumes."""

    id: int
    uid: str
    title: str
    description: str = ""
    hosts: list[MeetingHost] = Field(default_factory=list)
    status: str
    cancellation_reason: str | None = None
    cancelled_by_email: str | None = None
    rescheduling_reason: str | None = None
    rescheduled_by_email: str | None = None
    rescheduled_from_uid: str | None = None
    rescheduled_to_uid: str | None = None
    start: str
    end: str
    duration: int | float
    event_type_id: int
    event_type: EventTypeRef
    meeting_url: str
    location: str = ""
    absent_host: bool = False
    created_at: str
    updated_at: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    rating: int | float = 0
    ics_uid: str = ""
    attendees: list[MeetingAttendee] = Field(default_factory=list)
    guests: list[str] = Field(default_factory=list)
    booking_fields_responses: dict[str, Any] = Field(default_factory=dict)


class Meeting(CamelModel):
    """Envelope returned by the bookings endpoints."""

    status: Literal["success", "error"] = "success"
    data: list[MeetingRecord]
    pagination: Pagination
    error: dict[str, Any] | None = None
