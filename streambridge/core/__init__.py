"""
streambridge Core Module

Unified data models, the closed error taxonomy and the error classifier.
"""

from .models import (
    # Enums
    ApiFlavor,
    UnifiedFinishReason,

    # Finish reason / usage
    FinishReason,
    InputTokens,
    OutputTokens,
    Usage,

    # Requests
    CallWarning,
    ChatRequest,
    RequestBodySummary,

    # Responses
    TextContent,
    ToolCallContent,
    ResponseInfo,
    GenerateResult,
)

from .errors import (
    ErrorKind,
    ErrorDetails,
    RequestContext,
    ClassifiedError,
    AuthenticationError,
    ResourceNotFoundError,
    RateLimitedError,
    ValidationError,
    NetworkError,
    StreamingError,
    ServerError,
    UnknownError,

    # Transport errors
    HttpResponseInfo,
    HttpClientError,
    BackendConnectionError,
    StreamPayloadError,
    AbortError,
)

from .classifier import (
    ERROR_MATCHERS,
    ErrorContext,
    ErrorMatcher,
    KeywordMatcher,
    StatusCodeMatcher,
    classify_error,
    extract_model_identifier,
    is_retryable_status,
    normalize_headers,
    serialize_response_data,
)

__all__ = [
    # Enums
    "ApiFlavor",
    "UnifiedFinishReason",

    # Finish reason / usage
    "FinishReason",
    "InputTokens",
    "OutputTokens",
    "Usage",

    # Requests
    "CallWarning",
    "ChatRequest",
    "RequestBodySummary",

    # Responses
    "TextContent",
    "ToolCallContent",
    "ResponseInfo",
    "GenerateResult",

    # Errors
    "ErrorKind",
    "ErrorDetails",
    "RequestContext",
    "ClassifiedError",
    "AuthenticationError",
    "ResourceNotFoundError",
    "RateLimitedError",
    "ValidationError",
    "NetworkError",
    "StreamingError",
    "ServerError",
    "UnknownError",
    "HttpResponseInfo",
    "HttpClientError",
    "BackendConnectionError",
    "StreamPayloadError",
    "AbortError",

    # Classifier
    "ERROR_MATCHERS",
    "ErrorContext",
    "ErrorMatcher",
    "KeywordMatcher",
    "StatusCodeMatcher",
    "classify_error",
    "extract_model_identifier",
    "is_retryable_status",
    "normalize_headers",
    "serialize_response_data",
]
