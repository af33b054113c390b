"""
streambridge - Error Definitions

Closed error taxonomy returned by the classifier, plus the transport
level errors raised by the backend adapters before classification.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import httpx


class ErrorKind(str, Enum):
    """Classified error kinds."""
    AUTHENTICATION_FAILURE = "AuthenticationFailure"
    RESOURCE_NOT_FOUND = "ResourceNotFound"
    RATE_LIMITED = "RateLimited"
    VALIDATION_FAILURE = "ValidationFailure"
    NETWORK_FAILURE = "NetworkFailure"
    STREAMING_FAILURE = "StreamingFailure"
    SERVER_FAILURE = "ServerFailure"
    UNKNOWN_FAILURE = "UnknownFailure"


@dataclass
class RequestContext:
    """Request details attached to a classified error."""
    url: Optional[str] = None
    request_body: Any = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.url:
            result["url"] = self.url
        if self.request_body is not None:
            body = self.request_body
            result["request_body"] = body.to_dict() if hasattr(body, "to_dict") else body
        return result


@dataclass
class ErrorDetails:
    """Full classified error information."""
    # Core fields (always present)
    kind: ErrorKind
    status_code: int
    retryable: bool
    message: str

    # Diagnostic fields
    response_body: Optional[str] = None
    response_headers: Optional[Dict[str, str]] = None
    request_context: Optional[RequestContext] = None
    operation: Optional[str] = None
    model_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "kind": self.kind.value,
            "status_code": self.status_code,
            "retryable": self.retryable,
            "message": self.message,
        }

        if self.response_body is not None:
            result["response_body"] = self.response_body
        if self.response_headers:
            result["response_headers"] = dict(self.response_headers)
        if self.request_context:
            context = self.request_context.to_dict()
            if context:
                result["request_context"] = context
        if self.operation:
            result["operation"] = self.operation
        if self.model_id:
            result["model_id"] = self.model_id

        return {"error": result}


class ClassifiedError(Exception):
    """Base exception for every classified failure."""

    def __init__(self, error: ErrorDetails):
        self.error = error
        super().__init__(error.message)

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    @property
    def status_code(self) -> int:
        return self.error.status_code

    @property
    def retryable(self) -> bool:
        return self.error.retryable

    @property
    def message(self) -> str:
        return self.error.message

    @property
    def response_body(self) -> Optional[str]:
        return self.error.response_body

    @property
    def response_headers(self) -> Optional[Dict[str, str]]:
        return self.error.response_headers

    @classmethod
    def from_details(cls, error: ErrorDetails) -> "ClassifiedError":
        """Instantiate the subclass matching error.kind."""
        return _KIND_TO_CLASS.get(error.kind, cls)(error)


class AuthenticationError(ClassifiedError):
    """Credentials are missing, invalid or lack permissions."""


class ResourceNotFoundError(ClassifiedError):
    """Model or deployment could not be resolved."""

    @property
    def model_id(self) -> str:
        return self.error.model_id or "unknown"


class RateLimitedError(ClassifiedError):
    """Backend rate limit exceeded."""


class ValidationError(ClassifiedError):
    """Request or configuration was rejected."""


class NetworkError(ClassifiedError):
    """Backend unreachable or timed out."""


class StreamingError(ClassifiedError):
    """Streaming transport broke or sent an unreadable payload."""


class ServerError(ClassifiedError):
    """Backend or local response handling failed."""


class UnknownError(ClassifiedError):
    """Failure that matched no rule."""


_KIND_TO_CLASS = {
    ErrorKind.AUTHENTICATION_FAILURE: AuthenticationError,
    ErrorKind.RESOURCE_NOT_FOUND: ResourceNotFoundError,
    ErrorKind.RATE_LIMITED: RateLimitedError,
    ErrorKind.VALIDATION_FAILURE: ValidationError,
    ErrorKind.NETWORK_FAILURE: NetworkError,
    ErrorKind.STREAMING_FAILURE: StreamingError,
    ErrorKind.SERVER_FAILURE: ServerError,
    ErrorKind.UNKNOWN_FAILURE: UnknownError,
}


# ============================================================
# Transport errors (raised by adapters, classified later)
# ============================================================

@dataclass
class HttpResponseInfo:
    """The parts of an HTTP error response the classifier reads."""
    status_code: int
    data: Any = None
    headers: Dict[str, Any] = field(default_factory=dict)


class HttpClientError(Exception):
    """
    HTTP status error raised by the adapters.

    Flagged with is_http_client_error so the classifier can pick up
    response.data / response.headers for diagnostics.
    """

    is_http_client_error = True

    def __init__(
        self,
        message: str,
        response: HttpResponseInfo,
        http_error: Optional[Exception] = None
    ):
        self.response = response
        self.http_error = http_error
        super().__init__(message)

    @classmethod
    def from_status(
        cls,
        status_code: int,
        data: Any = None,
        headers: Optional[Dict[str, Any]] = None,
        http_error: Optional[Exception] = None
    ) -> "HttpClientError":
        return cls(
            f"Request failed with status code {status_code}",
            HttpResponseInfo(status_code=status_code, data=data, headers=headers or {}),
            http_error=http_error,
        )


class BackendConnectionError(Exception):
    """Connect, read or timeout failure before a response arrived."""

    def __init__(self, message: str, transport_error: Optional[Exception] = None):
        self.transport_error = transport_error
        super().__init__(message)

    @classmethod
    def from_httpx(cls, error: Exception) -> "BackendConnectionError":
        detail = str(error) or type(error).__name__
        if isinstance(error, httpx.TimeoutException):
            return cls(f"Network timeout while calling backend: {detail}", error)
        return cls(f"Network error while calling backend: {detail}", error)


class StreamPayloadError(Exception):
    """A server-sent event carried an error or could not be decoded."""


class AbortError(Exception):
    """The caller aborted the request."""

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason
        super().__init__(
            f"The operation was aborted: {reason}" if reason else "The operation was aborted."
        )
