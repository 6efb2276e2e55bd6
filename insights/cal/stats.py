"""Aggregate statistics over meeting records."""

import math
from collections import Counter
from collections.abc import Sequence

from insights.schemas.booking import CamelModel, MeetingRecord


class MeetingStats(CamelModel):
    total: int
    accepted: int
    cancelled: int
    pending: int
    total_hours: float
    acceptance_rate: int


def calculate_total_hours(meetings: Sequence[MeetingRecord]) -> float:
    return sum(meeting.duration for meeting in meetings) / 60


def calculate_average_duration(meetings: Sequence[MeetingRecord]) -> float:
    """Average duration in minutes, 0 for no meetings."""
    if not meetings:
        return 0
    return sum(meeting.duration for meeting in meetings) / len(meetings)


def group_meetings_by_status(meetings: Sequence[MeetingRecord]) -> dict[str, int]:
    return dict(Counter(meeting.status for meeting in meetings))


def calculate_meeting_stats(meetings: Sequence[MeetingRecord]) -> MeetingStats:
    counts = group_meetings_by_status(meetings)
    total = len(meetings)
    accepted = counts.get("accepted", 0)
    # Half-up rounding
    acceptance_rate = math.floor(accepted / total * 100 + 0.5) if total else 0
    return MeetingStats(
        total=total,
        accepted=accepted,
        cancelled=counts.get("cancelled", 0),
        pending=counts.get("pending", 0),
        total_hours=calculate_total_hours(meetings),
        acceptance_rate=acceptance_rate,
    )


def is_self_meeting(meeting: MeetingRecord) -> bool:
    """
    True when the only attendee is one of the hosts.

    Emails are compared case-insensitively after trimming.
    """
    if len(meeting.attendees) != 1 or not meeting.hosts:
        return False
    attendee_email = meeting.attendees[0].email.strip().lower()
    return any(host.email.strip().lower() == attendee_email for host in meeting.hosts)


def remove_self_meetings(meetings: Sequence[MeetingRecord]) -> list[MeetingRecord]:
    return [meeting for meeting in meetings if not is_self_meeting(meeting)]


def count_self_meetings(meetings: Sequence[MeetingRecord]) -> int:
    return len(meetings) - len(remove_self_meetings(meetings))
