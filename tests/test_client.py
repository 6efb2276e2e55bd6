"""Tests for the Cal.com bookings client."""

import asyncio

import httpx
import pytest

from insights.cal.client import build_bookings_url, fetch_bookings, resolve_base_url
from insights.core.errors import (
    AuthenticationError,
    UpstreamError,
    UpstreamTimeoutError,
    ValidationError,
)

API_BASE_URL = "https://cal.test/v2"


class TestBuildBookingsUrl:
    def test_base_url_trailing_slash(self, settings):
        assert resolve_base_url("https://cal.test/v2/ ", settings) == API_BASE_URL

    def test_defaults_to_settings(self, settings):
        assert build_bookings_url(settings=settings) == f"{API_BASE_URL}/bookings"

    def test_with_query(self, settings):
        url = build_bookings_url({"status": ["past"], "take": 5}, settings=settings)
        assert url == f"{API_BASE_URL}/bookings?status=past&take=5"


class TestFetchBookings:
    """Tests for the bookings request and its failure modes."""

    def test_request_headers_and_url(self, http_client, settings, upstream, make_booking):
        """Test the bearer token, accept and version headers are sent."""
        upstream.bookings = (200, [make_booking(1)])

        payload = asyncio.run(
            fetch_bookings(http_client, "access-123", {"status": ["accepted"]}, settings=settings)
        )

        assert payload == [make_booking(1)]
        request = upstream.requests[0]
        assert request.method == "GET"
        assert str(request.url) == f"{API_BASE_URL}/bookings?status=accepted"
        assert request.headers["authorization"] == "Bearer access-123"
        assert request.headers["accept"] == "application/json"
        assert request.headers["cal-api-version"] == "2024-08-13"

    def test_overrides(self, http_client, settings, upstream):
        asyncio.run(
            fetch_bookings(
                http_client,
                "access-123",
                base_url="https://other.test/api/",
                api_version="2025-01-01",
                settings=settings,
            )
        )
        request = upstream.requests[0]
        assert str(request.url) == "https://other.test/api/bookings"
        assert request.headers["cal-api-version"] == "2025-01-01"

    def test_blank_token(self, http_client, settings, upstream):
        with pytest.raises(AuthenticationError):
            asyncio.run(fetch_bookings(http_client, "  ", settings=settings))
        assert upstream.requests == []

    def test_invalid_query_not_sent(self, http_client, settings, upstream):
        with pytest.raises(ValidationError):
            asyncio.run(fetch_bookings(http_client, "access-123", {"take": 0}, settings=settings))
        assert upstream.requests == []

    def test_upstream_error_status(self, http_client, settings, upstream):
        upstream.bookings = (401, {"message": "Unauthorized"})

        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(fetch_bookings(http_client, "access-123", settings=settings))

        error = exc_info.value
        assert error.status_code == 502
        assert error.upstream_status == 401
        assert error.body == {"message": "Unauthorized"}
        assert error.details == {"upstreamStatus": 401, "body": {"message": "Unauthorized"}}

    def test_malformed_json(self, http_client, settings, upstream):
        upstream.bookings = (200, "<html>oops</html>")
        with pytest.raises(UpstreamError, match="Failed to parse"):
            asyncio.run(fetch_bookings(http_client, "access-123", settings=settings))

    def test_unsupported_shape(self, http_client, settings, upstream):
        upstream.bookings = (200, {"foo": 1})
        with pytest.raises(UpstreamError, match="Unsupported Cal.com bookings response shape"):
            asyncio.run(fetch_bookings(http_client, "access-123", settings=settings))

    def test_invalid_booking_rejected(self, http_client, settings, upstream, make_booking):
        """Test a booking missing required fields fails shape validation."""
        booking = make_booking(1)
        del booking["uid"]
        upstream.bookings = (200, {"data": [booking]})
        with pytest.raises(UpstreamError):
            asyncio.run(fetch_bookings(http_client, "access-123", settings=settings))

    def test_negative_duration_rejected(self, http_client, settings, upstream, make_booking):
        upstream.bookings = (200, [make_booking(1, duration=-30)])
        with pytest.raises(UpstreamError):
            asyncio.run(fetch_bookings(http_client, "access-123", settings=settings))

    def test_empty_body(self, http_client, settings, upstream):
        upstream.bookings = (200, "")
        with pytest.raises(UpstreamError):
            asyncio.run(fetch_bookings(http_client, "access-123", settings=settings))

    def test_timeout(self, http_client, settings, upstream):
        def time_out(request):
            raise httpx.ReadTimeout("timed out", request=request)

        upstream.bookings = time_out
        with pytest.raises(UpstreamTimeoutError) as exc_info:
            asyncio.run(fetch_bookings(http_client, "access-123", settings=settings))
        assert exc_info.value.status_code == 502
        assert exc_info.value.code == "EXTERNAL_API_TIMEOUT"

    def test_timeout_from_settings(self, http_client, settings, upstream):
        """Test the request carries the configured timeout."""
        settings = settings.model_copy(update={"http_timeout_seconds": 2.5})
        asyncio.run(fetch_bookings(http_client, "access-123", settings=settings))

        timeout = upstream.requests[0].extensions["timeout"]
        assert timeout["read"] == 2.5
        assert timeout["connect"] == 2.5

    def test_timeout_override(self, http_client, settings, upstream):
        asyncio.run(fetch_bookings(http_client, "access-123", timeout=1.0, settings=settings))
        assert upstream.requests[0].extensions["timeout"]["read"] == 1.0

    def test_connection_error(self, http_client, settings, upstream):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        upstream.bookings = refuse
        with pytest.raises(UpstreamError, match="request failed"):
            asyncio.run(fetch_bookings(http_client, "access-123", settings=settings))
