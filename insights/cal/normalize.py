"""Reduce the Cal.com bookings envelopes to one normalized shape.

Cal.com has returned bookings as:

    [ {booking}, ... ]
    {"data": [...], "totalCount" | "count": n, "nextCursor", "prevCursor"}
    {"bookings": [...], "meta": {"total" | "count", "nextCursor", "prevCursor"}}
    {"status": ..., "data": [...], "pagination": {...}, "error": {...}}

Each decoder below returns a ``NormalizedResponse`` or None, and they are
tried in that order. The paginated shape is accepted by the ``data``
decoder; its ``pagination`` block is ignored because pagination is
recomputed from the request.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from insights.core.errors import ShapeError
from insights.schemas.booking import NormalizedResponse

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_bookings_array(value: Any) -> bool:
    """True if ``value`` is a list of mappings that each carry a numeric ``id``."""
    if not isinstance(value, list):
        return False
    return all(isinstance(item, Mapping) and _is_number(item.get("id")) for item in value)


def _first_number(*values: Any) -> int | float | None:
    for value in values:
        if _is_number(value):
            return value
    return None


def _decode_bare_array(payload: Any) -> NormalizedResponse | None:
    if not is_bookings_array(payload):
        return None
    return NormalizedResponse(items=payload, raw=payload)


def _decode_data_envelope(payload: Any) -> NormalizedResponse | None:
    if not isinstance(payload, Mapping) or not is_bookings_array(payload.get("data")):
        return None
    return NormalizedResponse(
        items=payload["data"],
        total_count=_first_number(payload.get("totalCount"), payload.get("count")),
        next_cursor=payload.get("nextCursor"),
        prev_cursor=payload.get("prevCursor"),
        raw=payload,
    )


def _decode_bookings_envelope(payload: Any) -> NormalizedResponse | None:
    if not isinstance(payload, Mapping) or not is_bookings_array(payload.get("bookings")):
        return None
    meta = payload.get("meta")
    if not isinstance(meta, Mapping):
        meta = {}
    return NormalizedResponse(
        items=payload["bookings"],
        total_count=_first_number(meta.get("total"), meta.get("count")),
        next_cursor=meta.get("nextCursor"),
        prev_cursor=meta.get("prevCursor"),
        raw=payload,
    )


DECODERS: tuple[Callable[[Any], NormalizedResponse | None], ...] = (
    _decode_bare_array,
    _decode_data_envelope,
    _decode_bookings_envelope,
)


def normalize_bookings_response(payload: Any) -> NormalizedResponse:
    """Normalize a bookings payload, raising ``ShapeError`` if no shape matches."""
    for decode in DECODERS:
        result = decode(payload)
        if result is not None:
            return result

    kind = type(payload).__name__
    keys = sorted(payload.keys()) if isinstance(payload, Mapping) else None
    logger.error(f"Unrecognized bookings payload: type={kind} keys={keys}")
    raise ShapeError(details={"type": kind, "keys": keys})
