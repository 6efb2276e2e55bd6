"""Error types shared by the booking pipeline and the HTTP layer.

Every failure the pipeline can surface is an ``AppError`` subclass with a
stable ``code`` and the HTTP status the API layer answers with. Route
handlers never build error responses themselves; the exception handler
registered in ``insights.main`` renders ``to_dict()`` for any ``AppError``.
"""

from typing import Any


class AppError(Exception):
    """Base class for errors that map to a JSON error envelope."""

    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    @property
    def is_client_error(self) -> bool:
        return self.status_code < 500

    def to_dict(self, include_details: bool = True) -> dict[str, Any]:
        """Render the ``{code, message, details}`` envelope."""
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if include_details and self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Validation failed"


class AuthenticationError(AppError):
    code = "AUTHENTICATION_ERROR"
    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(AppError):
    code = "AUTHORIZATION_ERROR"
    status_code = 403
    default_message = "Access denied"


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"


class InvalidStateError(AppError):
    """Stored credential cannot be used (no token, expired refresh token)."""

    code = "INVALID_STATE"
    status_code = 409
    default_message = "Credential is not in a usable state"


class ConfigError(AppError):
    code = "CONFIGURATION_ERROR"
    status_code = 500
    default_message = "Configuration error"


class ShapeError(AppError):
    """Upstream payload matched none of the known envelope shapes."""

    code = "SHAPE_ERROR"
    status_code = 500
    default_message = "Unrecognized bookings response shape"


class TokenPersistenceError(AppError):
    code = "TOKEN_PERSISTENCE_ERROR"
    status_code = 500
    default_message = "Failed to store refreshed credentials"


class UpstreamError(AppError):
    """Non-2xx or malformed response from a Cal.com endpoint.

    Attributes:
        upstream_status: HTTP status returned by Cal.com, if a response
            was received at all.
        body: Parsed JSON body, or the raw text when it was not JSON.
    """

    code = "EXTERNAL_API_ERROR"
    status_code = 502
    default_message = "External API request failed"

    def __init__(
        self,
        message: str | None = None,
        upstream_status: int | None = None,
        body: Any = None,
        details: Any = None,
    ):
        self.upstream_status = upstream_status
        self.body = body
        if details is None and (upstream_status is not None or body is not None):
            details = {"upstreamStatus": upstream_status, "body": body}
        super().__init__(message, details)


class UpstreamTimeoutError(UpstreamError):
    code = "EXTERNAL_API_TIMEOUT"
    status_code = 502
    default_message = "External API request timed out"


def flatten_validation_error(exc) -> dict[str, Any]:
    """Flatten pydantic (or FastAPI request) errors into ``{formErrors, fieldErrors}``.

    Field paths are dotted (``status.0``); errors without a location land
    in ``formErrors``.
    """
    form_errors: list[str] = []
    field_errors: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = error.get("loc") or ()
        message = error.get("msg", "Invalid value")
        if not loc:
            form_errors.append(message)
            continue
        path = ".".join(str(part) for part in loc)
        field_errors.setdefault(path, []).append(message)
    return {"formErrors": form_errors, "fieldErrors": field_errors}
