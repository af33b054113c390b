"""
streambridge - Error Classifier

Maps any raised value to exactly one ClassifiedError.

Resolution order:
1. Already classified errors pass through unchanged
2. Cause chains are unwrapped to the innermost value
3. Structured vendor envelopes ({"error": {...}} or {"error": [...]})
4. Envelopes embedded as JSON text inside an exception message
5. Ordered keyword table (ERROR_MATCHERS), first match wins
6. Anything else becomes UnknownFailure

Transport metadata (response body and headers of an HTTP client error)
is attached to the result whichever rule matched.
"""

import json
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Pattern, Tuple

import httpx

from .errors import (
    ClassifiedError,
    ErrorDetails,
    ErrorKind,
    RequestContext,
)
from ..observability.logging import get_logger
from ..observability.metrics import get_metrics


logger = get_logger(__name__)


class HttpStatus:
    """HTTP status codes the classifier branches on."""
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    REQUEST_TIMEOUT = 408
    CONFLICT = 409
    RATE_LIMIT = 429
    INTERNAL_ERROR = 500
    SERVICE_UNAVAILABLE = 503


MAX_CAUSE_DEPTH = 16
MAX_RESPONSE_BODY_LENGTH = 2000
TRUNCATION_MARKER = "...[truncated]"
ERROR_RESPONSE_HEADING = "Error Response:"
UNKNOWN_ERROR_MESSAGE = "Unknown error occurred"
UNKNOWN_ENVELOPE_MESSAGE = "Unknown backend error"

PASSTHROUGH_TYPES: Tuple[type, ...] = (ClassifiedError,)

_MODEL_ID_PATTERNS: Tuple[Pattern, ...] = (
    re.compile(r"deployment[:\s]+([a-zA-Z0-9_-]+)", re.IGNORECASE),
    re.compile(r"model[:\s]+([a-zA-Z0-9_-]+)", re.IGNORECASE),
    re.compile(r"resource[:\s]+([a-zA-Z0-9_-]+)", re.IGNORECASE),
)
_LOCATION_TOKEN = re.compile(r"([a-zA-Z0-9_-]+)")
_STATUS_CODE_PATTERN = re.compile(r"status code (\d+)", re.IGNORECASE)
_EMBEDDED_JSON = re.compile(r"\{.*\}", re.DOTALL)


@dataclass
class ErrorContext:
    """
    Optional request context for classification.

    Only attached to the result; never used for branching.
    """
    operation: Optional[str] = None
    url: Optional[str] = None
    request_body: Any = None
    response_headers: Optional[Dict[str, str]] = None


@dataclass(frozen=True)
class MatchOutcome:
    """Result of one keyword table rule."""
    kind: ErrorKind
    status_code: int
    retryable: bool
    message: str
    model_id: Optional[str] = None


# ============================================================
# Small pure helpers
# ============================================================

def is_retryable_status(status_code: int) -> bool:
    """408, 409, 429 and every 5xx are retryable."""
    return (
        status_code in (HttpStatus.REQUEST_TIMEOUT, HttpStatus.CONFLICT, HttpStatus.RATE_LIMIT)
        or status_code >= HttpStatus.INTERNAL_ERROR
    )


def kind_for_status(status_code: int) -> ErrorKind:
    """Map a bare HTTP status code onto the taxonomy."""
    if status_code in (HttpStatus.UNAUTHORIZED, HttpStatus.FORBIDDEN):
        return ErrorKind.AUTHENTICATION_FAILURE
    if status_code == HttpStatus.NOT_FOUND:
        return ErrorKind.RESOURCE_NOT_FOUND
    if status_code == HttpStatus.REQUEST_TIMEOUT:
        return ErrorKind.NETWORK_FAILURE
    if status_code == HttpStatus.RATE_LIMIT:
        return ErrorKind.RATE_LIMITED
    if status_code >= HttpStatus.INTERNAL_ERROR:
        return ErrorKind.SERVER_FAILURE
    return ErrorKind.VALIDATION_FAILURE


def extract_model_identifier(message: str, location: Optional[str] = None) -> Optional[str]:
    """Find a deployment/model/resource name in an error message or location."""
    for pattern in _MODEL_ID_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(1)

    if location:
        match = _LOCATION_TOKEN.search(location)
        if match:
            return match.group(1)

    return None


def serialize_response_data(
    data: Any,
    max_length: int = MAX_RESPONSE_BODY_LENGTH
) -> Optional[str]:
    """
    Serialize an HTTP error payload for diagnostics.

    Strings pass through, everything else is pretty-printed JSON. Output
    longer than max_length is cut and marked; payloads that cannot be
    serialized (circular references, foreign objects) become a placeholder.
    """
    if data is None:
        return None

    try:
        if isinstance(data, str):
            serialized = data
        elif isinstance(data, (bytes, bytearray)):
            serialized = bytes(data).decode("utf-8", errors="replace")
        else:
            serialized = json.dumps(data, indent=2)
    except (TypeError, ValueError, RecursionError):
        serialized = f"[Unable to serialize: {type(data).__name__}]"

    if len(serialized) > max_length:
        return serialized[:max_length] + TRUNCATION_MARKER
    return serialized


def normalize_headers(headers: Any) -> Optional[Dict[str, str]]:
    """
    Normalize header values to strings.

    Lists keep only their string entries joined with "; " (and are omitted
    when none remain); numbers and booleans are stringified; anything else
    is dropped. Returns None when nothing survives.
    """
    if not isinstance(headers, Mapping):
        return None

    normalized: Dict[str, str] = {}
    for key, value in headers.items():
        if isinstance(value, str):
            normalized[str(key)] = value
        elif isinstance(value, (list, tuple)):
            joined = "; ".join(item for item in value if isinstance(item, str))
            if joined:
                normalized[str(key)] = joined
        elif isinstance(value, bool):
            normalized[str(key)] = "true" if value else "false"
        elif isinstance(value, (int, float)):
            normalized[str(key)] = str(value)

    return normalized or None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _status_from_envelope_code(code: Any) -> int:
    if _is_number(code) and math.isfinite(code) and 100 <= code < 600:
        return int(code)
    return HttpStatus.INTERNAL_ERROR


# ============================================================
# Envelope detection
# ============================================================

def _is_envelope_entry(entry: Any) -> bool:
    if not isinstance(entry, Mapping) or not isinstance(entry.get("message"), str):
        return False
    if "code" in entry and not _is_number(entry["code"]):
        return False
    return True


def is_error_envelope(value: Any) -> bool:
    """True for {"error": {message, code?}} or {"error": [{message, code?}, ...]}."""
    if not isinstance(value, Mapping) or "error" not in value:
        return False

    inner = value["error"]
    if isinstance(inner, list):
        return all(_is_envelope_entry(entry) for entry in inner)
    return _is_envelope_entry(inner)


def extract_envelope_from_message(message: str) -> Optional[Dict[str, Any]]:
    """
    Parse a JSON object embedded in an error message.

    SSE transports report server errors as text such as
    'Error received from the server.\\n{"error": {...}}'. A bare
    {message, ...} object is wrapped as {"error": ...}.
    """
    match = _EMBEDDED_JSON.search(message)
    if not match:
        return None

    try:
        parsed = json.loads(match.group(0))
    except ValueError:
        return None

    if not isinstance(parsed, dict):
        return None
    if "error" in parsed:
        return parsed
    if "message" in parsed:
        return {"error": parsed}
    return None


# ============================================================
# Cause chains and transport metadata
# ============================================================

def _next_cause(value: Any) -> Any:
    if not isinstance(value, BaseException):
        return None
    if value.__cause__ is not None:
        return value.__cause__
    for attr in ("root_cause", "cause"):
        candidate = getattr(value, attr, None)
        if candidate is not None:
            return candidate
    return None


def unwrap_root_cause(value: Any) -> Any:
    """
    Follow the cause chain to its innermost value.

    Stops at MAX_CAUSE_DEPTH hops or when a value repeats.
    """
    current = value
    seen = {id(current)}

    for _ in range(MAX_CAUSE_DEPTH):
        nxt = _next_cause(current)
        if nxt is None or id(nxt) in seen:
            break
        seen.add(id(nxt))
        current = nxt

    return current


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _httpx_response_data(response: httpx.Response) -> Any:
    try:
        return response.json()
    except (ValueError, httpx.ResponseNotRead):
        pass
    try:
        return response.text
    except httpx.ResponseNotRead:
        return None


def _httpx_headers(response: httpx.Response) -> Dict[str, List[str]]:
    headers: Dict[str, List[str]] = {}
    for key, value in response.headers.multi_items():
        headers.setdefault(key, []).append(value)
    return headers


def get_transport_metadata(*candidates: Any) -> Optional[Tuple[Any, Any]]:
    """
    Return (response data, response headers) of the first HTTP client
    error among candidates, or None.
    """
    for candidate in candidates:
        if isinstance(candidate, httpx.HTTPStatusError):
            response = candidate.response
            return _httpx_response_data(response), _httpx_headers(response)

        if getattr(candidate, "is_http_client_error", False) is True:
            response = getattr(candidate, "response", None)
            if response is None:
                return None, None
            return _field(response, "data"), _field(response, "headers")

    return None


# ============================================================
# Keyword table
# ============================================================

class ErrorMatcher(ABC):
    """One ordered rule of the keyword table."""

    category: str

    @abstractmethod
    def match(self, original: str, lowered: str) -> Optional[MatchOutcome]:
        pass


@dataclass(frozen=True)
class KeywordMatcher(ErrorMatcher):
    """Matches when any keyword occurs in the lower-cased message."""
    category: str
    keywords: Tuple[str, ...]
    kind: ErrorKind
    status_code: int
    retryable: bool
    format_message: Optional[Callable[[str], str]] = None
    extract_model_id: bool = False

    def match(self, original: str, lowered: str) -> Optional[MatchOutcome]:
        if not any(keyword in lowered for keyword in self.keywords):
            return None

        if self.format_message is not None:
            message = self.format_message(original)
        else:
            message = f"Backend {self.category} error: {original}"

        model_id = None
        if self.extract_model_id:
            model_id = extract_model_identifier(original) or "unknown"

        return MatchOutcome(
            kind=self.kind,
            status_code=self.status_code,
            retryable=self.retryable,
            message=message,
            model_id=model_id,
        )


@dataclass(frozen=True)
class StatusCodeMatcher(ErrorMatcher):
    """Matches transport messages such as 'Request failed with status code 429'."""
    category: str = "status code"

    def match(self, original: str, lowered: str) -> Optional[MatchOutcome]:
        found = _STATUS_CODE_PATTERN.search(original)
        if not found:
            return None

        status_code = int(found.group(1))
        kind = kind_for_status(status_code)
        model_id = None
        if kind == ErrorKind.RESOURCE_NOT_FOUND:
            model_id = extract_model_identifier(original) or "unknown"

        return MatchOutcome(
            kind=kind,
            status_code=status_code,
            retryable=is_retryable_status(status_code),
            message=f"Backend request failed: {original}",
            model_id=model_id,
        )


def _auth_message(original: str) -> str:
    return (
        f"Authentication failed: {original}\n\n"
        "Make sure the AICORE_SERVICE_KEY environment variable or service binding "
        "provides valid credentials."
    )


def _deployment_message(original: str) -> str:
    return (
        f"Deployment error: {original}\n\n"
        "Make sure a running deployment exists for the requested model."
    )


def _destination_message(original: str) -> str:
    return (
        f"Destination error: {original}\n\n"
        "Check your destination configuration or provide a valid destination name."
    )


def _content_filter_message(original: str) -> str:
    return (
        f"Content was filtered: {original}\n\n"
        "The model's response was blocked by content safety filters. Try a different prompt."
    )


ERROR_MATCHERS: List[ErrorMatcher] = [
    KeywordMatcher(
        category="authentication",
        keywords=(
            "authentication",
            "unauthorized",
            "aicore_service_key",
            "invalid credentials",
            "service credentials",
            "service binding",
        ),
        kind=ErrorKind.AUTHENTICATION_FAILURE,
        status_code=HttpStatus.UNAUTHORIZED,
        retryable=False,
        format_message=_auth_message,
    ),
    KeywordMatcher(
        category="deployment",
        keywords=("failed to resolve deployment", "no deployment matched"),
        kind=ErrorKind.RESOURCE_NOT_FOUND,
        status_code=HttpStatus.NOT_FOUND,
        retryable=False,
        format_message=_deployment_message,
        extract_model_id=True,
    ),
    StatusCodeMatcher(),
    KeywordMatcher(
        category="network",
        keywords=("econnrefused", "enotfound", "network", "timeout"),
        kind=ErrorKind.NETWORK_FAILURE,
        status_code=HttpStatus.SERVICE_UNAVAILABLE,
        retryable=True,
    ),
    KeywordMatcher(
        category="destination",
        keywords=("could not resolve destination",),
        kind=ErrorKind.VALIDATION_FAILURE,
        status_code=HttpStatus.BAD_REQUEST,
        retryable=False,
        format_message=_destination_message,
    ),
    KeywordMatcher(
        category="content filtered",
        keywords=("filtered by the output filter",),
        kind=ErrorKind.VALIDATION_FAILURE,
        status_code=HttpStatus.BAD_REQUEST,
        retryable=False,
        format_message=_content_filter_message,
    ),
    KeywordMatcher(
        category="configuration",
        keywords=(
            "prompt template or messages must be defined",
            "filtering parameters cannot be empty",
            "templating yaml string must be non-empty",
            "could not access response data",
            "could not parse json",
            "error parsing yaml",
            "yaml does not conform",
            "validation errors",
        ),
        kind=ErrorKind.VALIDATION_FAILURE,
        status_code=HttpStatus.BAD_REQUEST,
        retryable=False,
    ),
    KeywordMatcher(
        category="stream consumption",
        keywords=("consumed stream",),
        kind=ErrorKind.SERVER_FAILURE,
        status_code=HttpStatus.INTERNAL_ERROR,
        retryable=False,
    ),
    KeywordMatcher(
        category="streaming",
        keywords=(
            "iterating over",
            "parse message into json",
            "received from",
            "no body",
            "invalid sse payload",
        ),
        kind=ErrorKind.STREAMING_FAILURE,
        status_code=HttpStatus.INTERNAL_ERROR,
        retryable=True,
    ),
    KeywordMatcher(
        category="environment",
        keywords=("buffer is not available as globals",),
        kind=ErrorKind.SERVER_FAILURE,
        status_code=HttpStatus.INTERNAL_ERROR,
        retryable=False,
    ),
    KeywordMatcher(
        category="response stream",
        keywords=("response stream is undefined",),
        kind=ErrorKind.SERVER_FAILURE,
        status_code=HttpStatus.INTERNAL_ERROR,
        retryable=False,
    ),
    KeywordMatcher(
        category="response processing",
        keywords=(
            "response is required to process",
            "stream is still open",
            "data is not available yet",
        ),
        kind=ErrorKind.SERVER_FAILURE,
        status_code=HttpStatus.INTERNAL_ERROR,
        retryable=True,
    ),
    KeywordMatcher(
        category="deployment retrieval",
        keywords=("failed to fetch the list of deployments",),
        kind=ErrorKind.SERVER_FAILURE,
        status_code=HttpStatus.SERVICE_UNAVAILABLE,
        retryable=True,
    ),
    KeywordMatcher(
        category="stream buffer",
        keywords=("received non-uint8array",),
        kind=ErrorKind.SERVER_FAILURE,
        status_code=HttpStatus.INTERNAL_ERROR,
        retryable=False,
    ),
]


def match_keyword_rules(
    original: str,
    matchers: Optional[List[ErrorMatcher]] = None
) -> Optional[MatchOutcome]:
    """Evaluate the keyword table top to bottom; first match wins."""
    lowered = original.lower()
    for matcher in matchers if matchers is not None else ERROR_MATCHERS:
        outcome = matcher.match(original, lowered)
        if outcome is not None:
            return outcome
    return None


# ============================================================
# Classification
# ============================================================

def _request_context(context: ErrorContext) -> Optional[RequestContext]:
    if context.url is None and context.request_body is None:
        return None
    return RequestContext(url=context.url, request_body=context.request_body)


def _finalize(details: ErrorDetails) -> ClassifiedError:
    error = ClassifiedError.from_details(details)
    logger.warning(
        "Classified backend error",
        error_kind=details.kind.value,
        status_code=details.status_code,
        retryable=details.retryable,
        operation=details.operation,
    )
    get_metrics().record_classified_error(details.kind.value, details.retryable)
    return error


def _classify_envelope(
    envelope: Mapping[str, Any],
    context: ErrorContext,
    transport_headers: Any
) -> ClassifiedError:
    inner = envelope["error"]
    entry: Mapping[str, Any] = {}
    if isinstance(inner, list):
        if inner:
            entry = inner[0]
    else:
        entry = inner

    message = entry.get("message", UNKNOWN_ENVELOPE_MESSAGE)
    code = entry.get("code")
    location = entry.get("location")
    request_id = entry.get("request_id")

    status_code = _status_from_envelope_code(code)
    response_body = json.dumps({
        "error": {
            "code": code,
            "location": location,
            "message": message,
            "request_id": request_id,
        }
    })

    model_id = None
    enhanced = message

    if status_code in (HttpStatus.UNAUTHORIZED, HttpStatus.FORBIDDEN):
        kind = ErrorKind.AUTHENTICATION_FAILURE
        retryable = False
        enhanced += (
            "\n\nAuthentication failed. Verify your AICORE_SERVICE_KEY environment "
            "variable is set correctly."
        )
    elif status_code == HttpStatus.NOT_FOUND:
        kind = ErrorKind.RESOURCE_NOT_FOUND
        retryable = False
        model_id = extract_model_identifier(message, location) or "unknown"
        enhanced += (
            "\n\nResource not found. The model or deployment may not exist in "
            "your AI Core instance."
        )
    elif status_code == HttpStatus.RATE_LIMIT:
        kind = ErrorKind.RATE_LIMITED
        retryable = True
        enhanced += "\n\nRate limit exceeded. Please try again later."
    elif status_code >= HttpStatus.INTERNAL_ERROR:
        kind = ErrorKind.SERVER_FAILURE
        retryable = True
        enhanced += (
            "\n\nBackend service error. This is typically a temporary issue and "
            "the request can be retried."
        )
    else:
        kind = ErrorKind.VALIDATION_FAILURE
        # Other codes keep the generic retry rule, so 408 and 409 stay retryable
        retryable = is_retryable_status(status_code)
        if location:
            enhanced += f"\n\nError location: {location}"

    if request_id:
        enhanced += f"\nRequest ID: {request_id}"

    headers = context.response_headers
    if headers is None:
        headers = normalize_headers(transport_headers)

    return _finalize(ErrorDetails(
        kind=kind,
        status_code=status_code,
        retryable=retryable,
        message=enhanced,
        response_body=response_body,
        response_headers=headers,
        request_context=_request_context(context),
        operation=context.operation,
        model_id=model_id,
    ))


def _build_enriched(
    outcome: MatchOutcome,
    context: ErrorContext,
    transport: Optional[Tuple[Any, Any]]
) -> ClassifiedError:
    response_body = None
    transport_headers = None
    if transport is not None:
        data, transport_headers = transport
        if data is not None and data != "":
            response_body = serialize_response_data(data)

    message = outcome.message
    if response_body:
        message = f"{message}\n\n{ERROR_RESPONSE_HEADING}\n{response_body}"

    headers = context.response_headers
    if headers is None:
        headers = normalize_headers(transport_headers)

    return _finalize(ErrorDetails(
        kind=outcome.kind,
        status_code=outcome.status_code,
        retryable=outcome.retryable,
        message=message,
        response_body=response_body,
        response_headers=headers,
        request_context=_request_context(context),
        operation=context.operation,
        model_id=outcome.model_id,
    ))


def classify_error(value: Any, context: Optional[ErrorContext] = None) -> ClassifiedError:
    """
    Classify any raised value.

    Args:
        value: Exception, vendor error envelope, string or anything else
        context: Optional request details attached to the result

    Returns:
        ClassifiedError (the input itself if it was already classified)
    """
    if isinstance(value, PASSTHROUGH_TYPES):
        return value

    context = context or ErrorContext()
    root = unwrap_root_cause(value)
    transport = get_transport_metadata(root, value)
    transport_headers = transport[1] if transport is not None else None

    if is_error_envelope(root):
        return _classify_envelope(root, context, transport_headers)

    if isinstance(root, BaseException):
        original = str(root)

        embedded = extract_envelope_from_message(original)
        if embedded is not None and is_error_envelope(embedded):
            return _classify_envelope(embedded, context, transport_headers)

        outcome = match_keyword_rules(original)
        if outcome is not None:
            return _build_enriched(outcome, context, transport)

        message = original
    elif isinstance(root, str):
        message = root
    else:
        message = UNKNOWN_ERROR_MESSAGE

    return _build_enriched(
        MatchOutcome(
            kind=ErrorKind.UNKNOWN_FAILURE,
            status_code=HttpStatus.INTERNAL_ERROR,
            retryable=False,
            message=message,
        ),
        context,
        transport,
    )
