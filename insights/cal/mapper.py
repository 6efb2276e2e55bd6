"""Map normalized Cal.com bookings to meeting records and page metadata."""

import math
from collections.abc import Iterable, Mapping
from typing import Any

from insights.schemas.booking import (
    Meeting,
    MeetingAttendee,
    MeetingHost,
    MeetingRecord,
    NormalizedResponse,
    Pagination,
    RawBooking,
)
from insights.schemas.query import BookingQuery


def map_booking_to_meeting_record(booking: RawBooking | Mapping[str, Any]) -> MeetingRecord:
    """
    Convert one upstream booking into a ``MeetingRecord``.

    Every optional field gets a fixed default: empty strings for text,
    empty collections for lists and maps, False for flags, 0 for rating.
    Attendees without an ``absent`` flag are reported as present.
    """
    if not isinstance(booking, RawBooking):
        booking = RawBooking.model_validate(booking)

    hosts = [MeetingHost(**host.model_dump()) for host in booking.hosts]
    attendees = [
        MeetingAttendee(
            **attendee.model_dump(exclude={"absent"}),
            absent=attendee.absent or False,
        )
        for attendee in booking.attendees or []
    ]

    return MeetingRecord(
        id=booking.id,
        uid=booking.uid,
        title=booking.title,
        description=booking.description or "",
        hosts=hosts,
        status=booking.status,
        cancellation_reason=booking.cancellation_reason,
        cancelled_by_email=booking.cancelled_by_email,
        rescheduling_reason=booking.rescheduling_reason,
        rescheduled_by_email=booking.rescheduled_by_email,
        rescheduled_from_uid=booking.rescheduled_from_uid,
        rescheduled_to_uid=booking.rescheduled_to_uid,
        start=booking.start,
        end=booking.end,
        duration=booking.duration,
        event_type_id=booking.event_type_id,
        event_type=booking.event_type.model_copy(),
        meeting_url=booking.meeting_url,
        location=booking.location or "",
        absent_host=booking.absent_host or False,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
        metadata=dict(booking.metadata or {}),
        rating=booking.rating if booking.rating is not None else 0,
        ics_uid=booking.ics_uid or "",
        attendees=attendees,
        guests=list(booking.guests or []),
        booking_fields_responses=dict(booking.booking_fields_responses or {}),
    )


def map_bookings_to_meeting_collection(
    bookings: Iterable[RawBooking | Mapping[str, Any]],
) -> list[MeetingRecord]:
    return [map_booking_to_meeting_record(booking) for booking in bookings]


def compute_pagination(
    total_items: int,
    returned_items: int,
    query: BookingQuery | None = None,
) -> Pagination:
    """
    Derive page metadata from take/skip semantics.

    ``items_per_page`` falls back to the returned count, then the total,
    then 0. Division uses a divisor of at least 1, so an empty result is
    page 0 of 1 rather than a division by zero.
    """
    take = query.take if query is not None and query.take is not None and query.take > 0 else None
    skip = query.skip if query is not None and query.skip is not None and query.skip >= 0 else 0

    if take is not None:
        items_per_page = take
    elif returned_items > 0:
        items_per_page = returned_items
    elif total_items > 0:
        items_per_page = total_items
    else:
        items_per_page = 0

    divisor = items_per_page if items_per_page > 0 else 1
    current_page = skip // divisor
    total_pages = max(math.ceil(total_items / divisor), 1)
    remaining_items = max(total_items - (skip + returned_items), 0)

    return Pagination(
        total_items=total_items,
        remaining_items=remaining_items,
        returned_items=returned_items,
        items_per_page=items_per_page,
        current_page=current_page,
        total_pages=total_pages,
        has_next_page=skip + returned_items < total_items,
        has_previous_page=skip > 0,
    )


def total_items_of(result: NormalizedResponse) -> int:
    """Upstream total when reported, otherwise the number of items returned."""
    if result.total_count is not None:
        return int(result.total_count)
    return len(result.items)


def map_normalized_to_meeting(
    result: NormalizedResponse,
    query: BookingQuery | None = None,
) -> Meeting:
    records = map_bookings_to_meeting_collection(result.items)
    return Meeting(
        status="success",
        data=records,
        pagination=compute_pagination(total_items_of(result), len(records), query),
        error=None,
    )
