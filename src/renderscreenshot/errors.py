from __future__ import annotations

from enum import Enum
from typing import Any, Mapping


class ErrorKind(str, Enum):
    """Failure families reported by the SDK."""

    ERROR = "error"
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    RENDER_FAILED = "render_failed"
    RATE_LIMIT = "rate_limit"
    SERVER = "server"
    CONNECTION = "connection"

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE_KINDS


_RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.RATE_LIMIT,
        ErrorKind.TIMEOUT,
        ErrorKind.RENDER_FAILED,
        ErrorKind.SERVER,
        ErrorKind.CONNECTION,
    }
)


class SDKError(Exception):
    """Base error for SDK exceptions (API, transport and validation)."""

    kind: ErrorKind = ErrorKind.ERROR

    def __init__(
        self,
        message: str = "",
        *,
        http_status: int | None = None,
        code: str | None = None,
        request_id: str | None = None,
        retry_after: int | None = None,
        details: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.http_status = http_status
        self.code = code
        self.request_id = request_id
        self.retry_after = retry_after
        self.details = details or {}

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.message!r}, http_status={self.http_status}, "
            f"code={self.code!r}, request_id={self.request_id!r})"
        )

    @classmethod
    def from_response(
        cls,
        http_status: int,
        body: Any,
        *,
        retry_after: int | None = None,
        request_id: str | None = None,
    ) -> "SDKError":
        """Build the matching error for a non-2xx API response.

        `body` is the decoded response (mapping or text). Error fields are read
        from a nested ``error`` object when present, else from the top level.
        """
        if isinstance(body, Mapping):
            nested = body.get("error")
            error_data: Mapping = nested if isinstance(nested, Mapping) else body
        else:
            error_data = {}
        message = error_data.get("message") or f"HTTP {http_status} error"
        code = error_data.get("code")
        if request_id is None:
            request_id = error_data.get("request_id")
        if request_id is None and isinstance(body, Mapping):
            request_id = body.get("request_id")

        error_cls = _class_for_status(http_status, code)
        return error_cls(
            message,
            http_status=http_status,
            code=code,
            request_id=request_id,
            retry_after=retry_after,
            details=dict(body) if isinstance(body, Mapping) else {},
        )


class ValidationError(SDKError):
    """400, or 422 for anything other than a failed render."""

    kind = ErrorKind.VALIDATION

    @classmethod
    def invalid_url(cls, url: str) -> "ValidationError":
        return cls(f"Invalid URL: {url}", http_status=400, code="invalid_url")

    @classmethod
    def invalid_request(cls, message: str) -> "ValidationError":
        return cls(message, http_status=400, code="invalid_request")

    @classmethod
    def missing_required(cls, param: str) -> "ValidationError":
        return cls(f"Missing required parameter: {param}", http_status=400, code="missing_required")


class AuthenticationError(SDKError):
    """401: missing, invalid or expired credentials."""

    kind = ErrorKind.AUTHENTICATION

    @classmethod
    def unauthorized(cls) -> "AuthenticationError":
        return cls("Invalid or missing API key", http_status=401, code="unauthorized")

    @classmethod
    def invalid_api_key(cls) -> "AuthenticationError":
        return cls("Invalid API key", http_status=401, code="invalid_api_key")

    @classmethod
    def expired_signature(cls) -> "AuthenticationError":
        return cls("Signed URL has expired", http_status=401, code="expired_signature")


class AuthorizationError(SDKError):
    """403."""

    kind = ErrorKind.AUTHORIZATION

    @classmethod
    def forbidden(cls) -> "AuthorizationError":
        return cls("Access denied", http_status=403, code="forbidden")

    @classmethod
    def insufficient_credits(cls) -> "AuthorizationError":
        return cls("Insufficient credits", http_status=403, code="insufficient_credits")


class NotFoundError(SDKError):
    """404."""

    kind = ErrorKind.NOT_FOUND

    @classmethod
    def not_found(cls, resource: str = "Resource") -> "NotFoundError":
        return cls(f"{resource} not found", http_status=404, code="not_found")


class TimeoutError(SDKError):
    """408 or a transport-level deadline."""

    kind = ErrorKind.TIMEOUT

    @classmethod
    def timeout(cls) -> "TimeoutError":
        return cls("Request timed out", http_status=408, code="timeout")


class RenderFailedError(SDKError):
    """422 with code ``render_failed``; the page could not be captured."""

    kind = ErrorKind.RENDER_FAILED

    @classmethod
    def render_failed(cls, message: str = "Screenshot rendering failed") -> "RenderFailedError":
        return cls(message, http_status=422, code="render_failed")


class RateLimitError(SDKError):
    """429 Too Many Requests; `retry_after` holds the Retry-After seconds."""

    kind = ErrorKind.RATE_LIMIT

    @classmethod
    def rate_limited(cls, retry_after: int | None = None) -> "RateLimitError":
        return cls("Rate limit exceeded", http_status=429, code="rate_limited", retry_after=retry_after)


class ServerError(SDKError):
    """5xx."""

    kind = ErrorKind.SERVER

    @classmethod
    def internal(cls, message: str = "Internal server error") -> "ServerError":
        return cls(message, http_status=500, code="internal_error")


class TransportError(SDKError):
    """Network/connection failure before a response was received."""

    kind = ErrorKind.CONNECTION

    @classmethod
    def connection_failed(cls, message: str = "Failed to connect to server") -> "TransportError":
        return cls(message, code="connection_error")


ERROR_CLASSES: dict[ErrorKind, type[SDKError]] = {
    ErrorKind.ERROR: SDKError,
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.AUTHENTICATION: AuthenticationError,
    ErrorKind.AUTHORIZATION: AuthorizationError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.TIMEOUT: TimeoutError,
    ErrorKind.RENDER_FAILED: RenderFailedError,
    ErrorKind.RATE_LIMIT: RateLimitError,
    ErrorKind.SERVER: ServerError,
    ErrorKind.CONNECTION: TransportError,
}

_STATUS_KINDS = {
    400: ErrorKind.VALIDATION,
    401: ErrorKind.AUTHENTICATION,
    403: ErrorKind.AUTHORIZATION,
    404: ErrorKind.NOT_FOUND,
    408: ErrorKind.TIMEOUT,
    429: ErrorKind.RATE_LIMIT,
}


def kind_for_status(http_status: int, code: str | None = None) -> ErrorKind:
    if http_status == 422:
        # only a failed render is worth retrying; any other 422 is a bad request
        return ErrorKind.RENDER_FAILED if code == "render_failed" else ErrorKind.VALIDATION
    if http_status in _STATUS_KINDS:
        return _STATUS_KINDS[http_status]
    if 500 <= http_status <= 599:
        return ErrorKind.SERVER
    return ErrorKind.ERROR


def _class_for_status(http_status: int, code: str | None) -> type[SDKError]:
    return ERROR_CLASSES[kind_for_status(http_status, code)]
