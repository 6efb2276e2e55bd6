"""Cal.com bookings API client."""
import json
import logging
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from insights.cal.query import QueryInput, build_query_string
from insights.core.config import Settings, settings as default_settings
from insights.core.errors import (
    AuthenticationError,
    UpstreamError,
    UpstreamTimeoutError,
    flatten_validation_error,
)
from insights.schemas.booking import BookingsResponse

logger = logging.getLogger(__name__)

BOOKINGS_ENDPOINT = "/bookings"
API_VERSION_HEADER = "cal-api-version"


def resolve_base_url(base_url: str | None = None, settings: Settings = default_settings) -> str:
    return (base_url or settings.cal_api_base_url).strip().rstrip("/")


def build_bookings_url(
    query: QueryInput | None = None,
    base_url: str | None = None,
    settings: Settings = default_settings,
) -> str:
    return f"{resolve_base_url(base_url, settings)}{BOOKINGS_ENDPOINT}{build_query_string(query)}"


def _parse_body(response: httpx.Response) -> Any:
    """Return the JSON body, None for an empty body; raise on malformed JSON."""
    text = response.text.strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError as exc:
        raise UpstreamError(
            "Failed to parse Cal.com bookings response.",
            upstream_status=response.status_code,
            body=text,
        ) from exc


async def fetch_bookings(
    client: httpx.AsyncClient,
    access_token: str,
    query: QueryInput | None = None,
    base_url: str | None = None,
    api_version: str | None = None,
    timeout: float | None = None,
    settings: Settings = default_settings,
) -> Any:
    """
    Fetch bookings from Cal.com and validate the response shape.

    Returns the decoded JSON payload, which is guaranteed to match one of
    the known bookings envelopes. Raises ``AuthenticationError`` for a
    missing token, ``ValidationError`` for a bad query, and
    ``UpstreamError`` (or ``UpstreamTimeoutError``) when Cal.com fails.

    The request is bounded by ``timeout`` seconds, defaulting to
    ``http_timeout_seconds``. Cancelling the awaiting task aborts the
    request.
    """
    token = access_token.strip() if isinstance(access_token, str) else ""
    if not token:
        raise AuthenticationError("A valid Cal.com access token is required.")

    url = build_bookings_url(query, base_url, settings)
    headers = {
        "Authorization": f"Bearer {token}",
        "Accept": "application/json",
        API_VERSION_HEADER: api_version or settings.cal_api_version,
    }

    try:
        response = await client.get(
            url, headers=headers, timeout=timeout or settings.http_timeout_seconds
        )
    except httpx.TimeoutException as exc:
        logger.error(f"Cal.com bookings request timed out: {url}")
        raise UpstreamTimeoutError("Cal.com bookings request timed out.") from exc
    except httpx.RequestError as exc:
        logger.error(f"Cal.com bookings request failed: {exc}")
        raise UpstreamError(f"Cal.com bookings request failed: {exc}") from exc

    payload = _parse_body(response)

    if not response.is_success:
        logger.error(f"Cal.com bookings request failed with status {response.status_code}")
        raise UpstreamError(
            "Cal.com bookings request failed.",
            upstream_status=response.status_code,
            body=payload,
        )

    try:
        BookingsResponse.validate_python(payload)
    except PydanticValidationError as exc:
        logger.error("Unsupported Cal.com bookings response shape")
        raise UpstreamError(
            "Unsupported Cal.com bookings response shape.",
            upstream_status=response.status_code,
            details={"issues": flatten_validation_error(exc), "payload": payload},
        ) from exc

    return payload
