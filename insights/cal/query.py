"""Encode booking filters into Cal.com query strings, and decode them back."""

from collections.abc import Iterable, Iterator, Mapping
from typing import Any
from urllib.parse import parse_qsl, urlencode

from pydantic import ValidationError as PydanticValidationError

from insights.core.errors import ValidationError, flatten_validation_error
from insights.schemas.query import BookingQuery

# Serialized as comma-joined values
ARRAY_PARAMS = ("status", "eventTypeIds", "teamIds")

STRING_PARAMS = (
    "attendeeEmail",
    "attendeeName",
    "bookingUid",
    "eventTypeId",
    "teamId",
    "afterStart",
    "beforeEnd",
    "afterCreatedAt",
    "beforeCreatedAt",
    "afterUpdatedAt",
    "beforeUpdatedAt",
    "sortStart",
    "sortEnd",
    "sortCreated",
    "sortUpdatedAt",
)

NUMERIC_PARAMS = ("take", "skip")

QueryInput = BookingQuery | Mapping[str, Any]


def validate_query(query: QueryInput) -> BookingQuery:
    """Validate a query, raising ``ValidationError`` with flattened field errors."""
    if isinstance(query, BookingQuery):
        # Models are mutable, so re-check rather than trust the instance
        query = query.to_params()
    try:
        return BookingQuery.model_validate(query)
    except PydanticValidationError as exc:
        raise ValidationError(
            "Invalid query parameters.", details=flatten_validation_error(exc)
        ) from exc


def build_query_string(query: QueryInput | None = None) -> str:
    """
    Serialize a booking query for the Cal.com bookings endpoint.

    Returns ``""`` when there is nothing to send, otherwise the encoded
    string with a leading ``?``. Absent fields are left out entirely.
    """
    if query is None:
        return ""

    params = validate_query(query).to_params()
    pairs: list[tuple[str, str]] = []

    for key in ARRAY_PARAMS:
        values = params.get(key)
        if values:
            pairs.append((key, ",".join(str(value) for value in values)))

    for key in STRING_PARAMS:
        value = params.get(key)
        if isinstance(value, str) and value:
            pairs.append((key, value))

    for key in NUMERIC_PARAMS:
        value = params.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            pairs.append((key, str(value)))

    if not pairs:
        return ""
    return "?" + urlencode(pairs)


def _iter_pairs(raw: Any) -> Iterator[tuple[str, Any]]:
    """Yield (key, value) pairs from a multi-valued mapping or a pair list."""
    if hasattr(raw, "multi_items"):
        # Starlette QueryParams
        yield from raw.multi_items()
        return

    items: Iterable = raw.items() if isinstance(raw, Mapping) else raw
    for key, value in items:
        if isinstance(value, (list, tuple)):
            for item in value:
                yield key, item
        else:
            yield key, value


def parse_query_params(raw: Any) -> BookingQuery | None:
    """
    Parse inbound query parameters into a ``BookingQuery``.

    Values are trimmed and blank ones dropped. A key seen once becomes a
    scalar, a repeated key becomes a list. Returns None when no key
    survives; raises ``ValidationError`` when the result is invalid.
    """
    if not raw:
        return None

    collected: dict[str, list[str]] = {}
    for key, value in _iter_pairs(raw):
        if value is None:
            continue
        value = str(value).strip()
        if not value:
            continue
        collected.setdefault(key, []).append(value)

    if not collected:
        return None

    data = {key: values[0] if len(values) == 1 else values for key, values in collected.items()}
    return validate_query(data)


def parse_query_string(query_string: str) -> BookingQuery | None:
    """Decode a raw query string such as the output of ``build_query_string``."""
    pairs = parse_qsl(query_string.lstrip("?"), keep_blank_values=True)
    return parse_query_params(pairs)
