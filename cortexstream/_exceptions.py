"""Typed error hierarchy for transport failures and backend errors."""


class CortexStreamError(Exception):
    """Base exception for all cortexstream errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body


class TransportError(CortexStreamError):
    """The chat request failed before or while streaming."""


class ValidationError(TransportError):
    """400/422 — the backend rejected the request body."""


class AuthenticationError(TransportError):
    """401 — invalid or missing token."""


class PermissionDeniedError(TransportError):
    """403 — insufficient permissions."""


class NotFoundError(TransportError):
    """404 — chat endpoint does not exist."""


class RateLimitError(TransportError):
    """429 — too many requests."""


class APIError(TransportError):
    """500+ or network failure."""


class BackendError(CortexStreamError):
    """The backend reported an error event mid-stream."""


class StreamAborted(CortexStreamError):
    """The stream was cancelled through its abort signal. Not a failure."""


# Map HTTP status codes to exception classes.
STATUS_MAP: dict[int, type[TransportError]] = {
    400: ValidationError,
    401: AuthenticationError,
    403: PermissionDeniedError,
    404: NotFoundError,
    422: ValidationError,
    429: RateLimitError,
}
