"""Booking list filter accepted by the Cal.com ``/bookings`` endpoint.

Field names are snake_case in Python and camelCase on the wire, matching
the upstream query parameters (``attendeeEmail``, ``sortUpdatedAt``...).
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Annotated, Any, Literal, get_args

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    model_validator,
)
from pydantic.alias_generators import to_camel

BookingStatus = Literal[
    "upcoming",
    "recurring",
    "past",
    "cancelled",
    "unconfirmed",
    "accepted",
    "pending",
    "rejected",
    "completed",
]
BOOKING_STATUSES: tuple[str, ...] = get_args(BookingStatus)

SortOrder = Literal["asc", "desc"]


def to_string_list(value: Any) -> Any:
    """Coerce a list or a comma-separated string into trimmed, non-empty strings."""
    if value is None:
        return None
    if isinstance(value, (list, tuple, set)):
        items = [str(item).strip() for item in value]
    else:
        items = [item.strip() for item in str(value).split(",")]
    return [item for item in items if item]


def _id_to_string(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def check_iso_timestamp(value: str) -> str:
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError("Invalid ISO 8601 timestamp") from None
    return value


IsoTimestamp = Annotated[str, Field(min_length=1), AfterValidator(check_iso_timestamp)]
IdString = Annotated[str, BeforeValidator(_id_to_string), Field(min_length=1)]
StatusList = Annotated[list[BookingStatus], BeforeValidator(to_string_list), Field(min_length=1)]
IdList = Annotated[list[IdString], BeforeValidator(to_string_list), Field(min_length=1)]


class BookingQuery(BaseModel):
    """Filters, sort directives and take/skip paging for a bookings request.

    Strings are trimmed and blank values are dropped before validation, so
    ``attendeeName="  "`` is the same as leaving it out. Array filters take
    either a list or a comma-separated string and must not end up empty.
    Unknown keys are rejected.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    status: StatusList | None = None
    attendee_email: EmailStr | None = None
    attendee_name: str | None = None
    booking_uid: str | None = None
    event_type_ids: IdList | None = None
    event_type_id: IdString | None = None
    team_ids: IdList | None = None
    team_id: IdString | None = None
    after_start: IsoTimestamp | None = None
    before_end: IsoTimestamp | None = None
    after_created_at: IsoTimestamp | None = None
    before_created_at: IsoTimestamp | None = None
    after_updated_at: IsoTimestamp | None = None
    before_updated_at: IsoTimestamp | None = None
    sort_start: SortOrder | None = None
    sort_end: SortOrder | None = None
    sort_created: SortOrder | None = None
    sort_updated_at: SortOrder | None = None
    take: int | None = Field(default=None, gt=0, le=500)
    skip: int | None = Field(default=None, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _drop_blank_values(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        cleaned = {}
        for key, value in data.items():
            if isinstance(value, str):
                value = value.strip()
                if not value:
                    continue
            if value is None:
                continue
            cleaned[key] = value
        return cleaned

    def to_params(self) -> dict[str, Any]:
        """Set fields only, keyed by wire name."""
        return self.model_dump(by_alias=True, exclude_none=True)
