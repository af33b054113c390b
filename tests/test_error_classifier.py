"""
streambridge - Error Classifier Tests
"""

import json
import logging

import httpx
import pytest

from streambridge.core.classifier import (
    ERROR_MATCHERS,
    MAX_CAUSE_DEPTH,
    TRUNCATION_MARKER,
    UNKNOWN_ERROR_MESSAGE,
    ErrorContext,
    classify_error,
    extract_envelope_from_message,
    extract_model_identifier,
    is_error_envelope,
    match_keyword_rules,
    normalize_headers,
    serialize_response_data,
    unwrap_root_cause,
)
from streambridge.core.errors import (
    AuthenticationError,
    ClassifiedError,
    ErrorKind,
    HttpClientError,
    RateLimitedError,
    ResourceNotFoundError,
)


# ============================================================
# Pass-through
# ============================================================

class TestPassThrough:
    """Already classified errors are returned unchanged."""

    def test_identity(self):
        error = classify_error(ValueError("Request failed with status code 404"))

        assert classify_error(error) is error

    def test_subclass_matches_kind(self):
        error = classify_error(ValueError("Request failed with status code 401"))

        assert isinstance(error, AuthenticationError)
        assert isinstance(error, ClassifiedError)
        assert error.kind == ErrorKind.AUTHENTICATION_FAILURE


# ============================================================
# Envelopes
# ============================================================

class TestEnvelopes:
    """Structured vendor error envelopes."""

    def test_not_found_envelope(self):
        error = classify_error({
            "error": {"code": 404, "message": "Model deployment-abc-123 not found"}
        })

        assert isinstance(error, ResourceNotFoundError)
        assert error.kind == ErrorKind.RESOURCE_NOT_FOUND
        assert error.status_code == 404
        assert error.retryable is False
        assert error.model_id == "deployment-abc-123"
        assert "Model deployment-abc-123 not found" in error.message

    def test_envelope_response_body(self):
        error = classify_error({
            "error": {
                "code": 400,
                "message": "Invalid temperature",
                "location": "LLM Module",
                "request_id": "req-7",
            }
        })

        assert json.loads(error.response_body) == {
            "error": {
                "code": 400,
                "location": "LLM Module",
                "message": "Invalid temperature",
                "request_id": "req-7",
            }
        }
        assert error.kind == ErrorKind.VALIDATION_FAILURE
        assert "Error location: LLM Module" in error.message
        assert "Request ID: req-7" in error.message

    @pytest.mark.parametrize("code,kind,retryable", [
        (401, ErrorKind.AUTHENTICATION_FAILURE, False),
        (403, ErrorKind.AUTHENTICATION_FAILURE, False),
        (429, ErrorKind.RATE_LIMITED, True),
        (500, ErrorKind.SERVER_FAILURE, True),
        (503, ErrorKind.SERVER_FAILURE, True),
        (400, ErrorKind.VALIDATION_FAILURE, False),
        (408, ErrorKind.VALIDATION_FAILURE, True),
        (409, ErrorKind.VALIDATION_FAILURE, True),
    ])
    def test_status_mapping(self, code, kind, retryable):
        error = classify_error({"error": {"code": code, "message": "failed"}})

        assert error.kind == kind
        assert error.status_code == code
        assert error.retryable is retryable

    def test_missing_code_is_server_failure(self):
        error = classify_error({"error": {"message": "something broke"}})

        assert error.status_code == 500
        assert error.kind == ErrorKind.SERVER_FAILURE

    def test_list_envelope_uses_first_entry(self):
        error = classify_error({
            "error": [
                {"code": 429, "message": "slow down"},
                {"code": 500, "message": "ignored"},
            ]
        })

        assert isinstance(error, RateLimitedError)
        assert "slow down" in error.message

    def test_embedded_envelope(self):
        message = (
            'Error received from the server.\n'
            '{"error":{"code":503,"message":"Service unavailable","request_id":"r1"}}'
        )

        error = classify_error(RuntimeError(message))

        assert error.status_code == 503
        assert error.retryable is True
        assert "Service unavailable" in error.message
        assert "r1" in error.message

    def test_envelope_detection(self):
        assert is_error_envelope({"error": {"message": "x"}})
        assert is_error_envelope({"error": {"message": "x", "code": 500}})
        assert is_error_envelope({"error": [{"message": "x"}]})
        assert not is_error_envelope({"error": {"message": "x", "code": "500"}})
        assert not is_error_envelope({"error": {"code": 500}})
        assert not is_error_envelope({"message": "x"})
        assert not is_error_envelope("error")

    def test_bare_embedded_object_is_wrapped(self):
        assert extract_envelope_from_message('failed: {"message": "m", "code": 400}') == {
            "error": {"message": "m", "code": 400}
        }
        assert extract_envelope_from_message("no json here") is None
        assert extract_envelope_from_message("broken {json") is None


# ============================================================
# Keyword table
# ============================================================

class TestKeywordMatching:
    """Ordered keyword rules."""

    def test_status_code_in_message(self):
        error = classify_error(ValueError("Request failed with status code 429."))

        assert isinstance(error, RateLimitedError)
        assert error.status_code == 429
        assert error.retryable is True

    def test_status_code_404_extracts_model(self):
        error = classify_error(ValueError("Request failed with status code 404 for deployment d42"))

        assert error.kind == ErrorKind.RESOURCE_NOT_FOUND
        assert error.error.model_id == "d42"

    def test_first_rule_wins(self):
        """Authentication comes before network in the table."""
        error = classify_error(RuntimeError("authentication request hit a timeout"))

        assert error.kind == ErrorKind.AUTHENTICATION_FAILURE
        assert error.status_code == 401
        assert "AICORE_SERVICE_KEY" in error.message

    def test_status_code_before_network(self):
        error = classify_error(RuntimeError("network proxy: Request failed with status code 502"))

        assert error.kind == ErrorKind.SERVER_FAILURE
        assert error.status_code == 502

    def test_deployment_resolution(self):
        error = classify_error(ValueError("Failed to resolve deployment-id for model: gpt-4o"))

        assert isinstance(error, ResourceNotFoundError)
        assert error.model_id == "gpt-4o"
        assert error.message.startswith("Deployment error:")

    @pytest.mark.parametrize("message,kind,status_code,retryable", [
        ("connect ECONNREFUSED 127.0.0.1:443", ErrorKind.NETWORK_FAILURE, 503, True),
        ("Could not resolve destination.", ErrorKind.VALIDATION_FAILURE, 400, False),
        ("Content was filtered by the output filter.", ErrorKind.VALIDATION_FAILURE, 400, False),
        ("Could not parse JSON response", ErrorKind.VALIDATION_FAILURE, 400, False),
        ("Stream has already consumed stream", ErrorKind.SERVER_FAILURE, 500, False),
        ("Invalid SSE payload: {", ErrorKind.STREAMING_FAILURE, 500, True),
        ("Buffer is not available as globals", ErrorKind.SERVER_FAILURE, 500, False),
        ("Response stream is undefined", ErrorKind.SERVER_FAILURE, 500, False),
        ("Data is not available yet", ErrorKind.SERVER_FAILURE, 500, True),
        ("Failed to fetch the list of deployments", ErrorKind.SERVER_FAILURE, 503, True),
        ("Received non-Uint8Array chunk", ErrorKind.SERVER_FAILURE, 500, False),
    ])
    def test_rules(self, message, kind, status_code, retryable):
        error = classify_error(RuntimeError(message))

        assert error.kind == kind
        assert error.status_code == status_code
        assert error.retryable is retryable

    def test_default_message_format(self):
        error = classify_error(RuntimeError("Invalid SSE payload: {"))

        assert error.message == "Backend streaming error: Invalid SSE payload: {"

    def test_no_match(self):
        assert match_keyword_rules("completely ordinary failure") is None

    def test_custom_matcher_list(self):
        outcome = match_keyword_rules("network down", matchers=ERROR_MATCHERS[:1])
        assert outcome is None


# ============================================================
# Fallback
# ============================================================

class TestUnknown:
    """Values no rule recognizes."""

    def test_exception_keeps_message(self):
        error = classify_error(RuntimeError("boom"))

        assert error.kind == ErrorKind.UNKNOWN_FAILURE
        assert error.status_code == 500
        assert error.retryable is False
        assert error.message == "boom"

    def test_string_keeps_text(self):
        """Plain strings are not run through the keyword table."""
        error = classify_error("network down")

        assert error.kind == ErrorKind.UNKNOWN_FAILURE
        assert error.message == "network down"

    @pytest.mark.parametrize("value", [None, 42, 3.5, {"foo": "bar"}, ["a"], object()])
    def test_placeholder_message(self, value):
        error = classify_error(value)

        assert error.kind == ErrorKind.UNKNOWN_FAILURE
        assert error.message == UNKNOWN_ERROR_MESSAGE


# ============================================================
# Cause chains
# ============================================================

class TestCauseChains:
    """Unwrapping of wrapped errors."""

    def test_classifies_innermost_cause(self):
        inner = ValueError("Request failed with status code 429")
        outer = RuntimeError("wrapper")
        outer.__cause__ = inner

        error = classify_error(outer)

        assert error.kind == ErrorKind.RATE_LIMITED

    def test_cause_attribute(self):
        class WrappedError(Exception):
            def __init__(self, message, cause):
                super().__init__(message)
                self.cause = cause

        error = classify_error(WrappedError("outer", ValueError("unauthorized")))

        assert error.kind == ErrorKind.AUTHENTICATION_FAILURE

    def test_envelope_as_cause(self):
        class WrappedError(Exception):
            pass

        outer = WrappedError("outer")
        outer.root_cause = {"error": {"code": 429, "message": "Too many requests"}}

        error = classify_error(outer)

        assert error.kind == ErrorKind.RATE_LIMITED

    def test_cycle_terminates(self):
        first = RuntimeError("first")
        second = RuntimeError("second")
        first.__cause__ = second
        second.__cause__ = first

        assert unwrap_root_cause(first) is second
        assert classify_error(first).kind == ErrorKind.UNKNOWN_FAILURE

    def test_depth_limit(self):
        chain = [RuntimeError(f"level {i}") for i in range(MAX_CAUSE_DEPTH + 5)]
        for outer, inner in zip(chain, chain[1:]):
            outer.__cause__ = inner

        assert unwrap_root_cause(chain[0]) is chain[MAX_CAUSE_DEPTH]


# ============================================================
# Transport metadata
# ============================================================

class TestTransportMetadata:
    """Response body and header enrichment."""

    def test_http_client_error_enrichment(self):
        cause = HttpClientError.from_status(
            400,
            data={"detail": "bad temperature"},
            headers={"x-request-id": "abc", "retry-after": 5},
        )

        error = classify_error(cause)

        assert error.kind == ErrorKind.VALIDATION_FAILURE
        assert json.loads(error.response_body) == {"detail": "bad temperature"}
        assert "\n\nError Response:\n" in error.message
        assert error.response_headers == {"x-request-id": "abc", "retry-after": "5"}

    def test_wrapped_http_client_error(self):
        inner = HttpClientError.from_status(503, data="upstream down")
        outer = RuntimeError("call failed")
        outer.__cause__ = inner

        error = classify_error(outer)

        assert error.kind == ErrorKind.SERVER_FAILURE
        assert error.response_body == "upstream down"

    def test_httpx_status_error(self):
        request = httpx.Request("POST", "https://api.example.test/v2/completion")
        response = httpx.Response(
            502,
            json={"message": "bad gateway"},
            headers={"x-trace": "t-1"},
            request=request,
        )
        cause = httpx.HTTPStatusError("Bad gateway", request=request, response=response)

        error = classify_error(cause)

        assert json.loads(error.response_body) == {"message": "bad gateway"}
        assert error.response_headers["x-trace"] == "t-1"

    def test_context_headers_take_precedence(self):
        cause = HttpClientError.from_status(429, headers={"retry-after": "10"})

        error = classify_error(cause, ErrorContext(response_headers={"x-custom": "1"}))

        assert error.response_headers == {"x-custom": "1"}

    def test_envelope_with_transport_headers(self):
        cause = HttpClientError.from_status(500, headers={"x-request-id": "h1"})
        cause.root_cause = {"error": {"code": 500, "message": "internal"}}

        error = classify_error(cause)

        assert error.kind == ErrorKind.SERVER_FAILURE
        assert error.response_headers == {"x-request-id": "h1"}

    def test_large_body_truncated(self):
        cause = HttpClientError.from_status(400, data={"blob": "x" * 5000})

        error = classify_error(cause)

        assert error.response_body.endswith(TRUNCATION_MARKER)
        assert len(error.response_body) == 2000 + len(TRUNCATION_MARKER)

    def test_circular_body_placeholder(self):
        data = {"name": "loop"}
        data["self"] = data
        cause = HttpClientError.from_status(400, data=data)

        error = classify_error(cause)

        assert error.response_body == "[Unable to serialize: dict]"

    def test_request_context_attached(self):
        context = ErrorContext(
            operation="generate",
            url="https://api.example.test",
            request_body={"messages": 1},
        )

        error = classify_error(RuntimeError("boom"), context)

        assert error.error.operation == "generate"
        assert error.error.request_context.url == "https://api.example.test"
        assert error.error.to_dict()["error"]["request_context"] == {
            "url": "https://api.example.test",
            "request_body": {"messages": 1},
        }


class TestHelpers:
    """Pure helper functions."""

    def test_serialize_strings_pass_through(self):
        assert serialize_response_data("plain text") == "plain text"
        assert serialize_response_data(None) is None

    def test_serialize_long_string(self):
        result = serialize_response_data("y" * 2500)
        assert result == "y" * 2000 + TRUNCATION_MARKER

    def test_normalize_headers(self):
        result = normalize_headers({
            "a": "1",
            "b": ["x", 2, "y"],
            "c": [1, 2],
            "d": 3,
            "e": True,
            "f": {"nested": 1},
            "g": None,
        })

        assert result == {"a": "1", "b": "x; y", "d": "3", "e": "true"}

    def test_normalize_headers_empty(self):
        assert normalize_headers({"f": {"nested": 1}}) is None
        assert normalize_headers(None) is None
        assert normalize_headers("a: b") is None

    def test_extract_model_identifier(self):
        assert extract_model_identifier("deployment: d-1 missing") == "d-1"
        assert extract_model_identifier("Model gpt-4o not found") == "gpt-4o"
        assert extract_model_identifier("not found", location="Resource-9/path") == "Resource-9"
        assert extract_model_identifier("nothing here") is None


# ============================================================
# Observability
# ============================================================

class TestClassifierObservability:
    """Every classification is logged and counted."""

    def test_counter(self, metrics_registry):
        classify_error(ValueError("Request failed with status code 429"))
        classify_error({"error": {"code": 429, "message": "again"}})

        value = metrics_registry.get_sample_value(
            "streambridge_classified_errors_total",
            {"kind": "RateLimited", "retryable": "true"},
        )
        assert value == 2.0

    def test_pass_through_not_counted(self, metrics_registry):
        error = classify_error(RuntimeError("boom"))
        classify_error(error)

        value = metrics_registry.get_sample_value(
            "streambridge_classified_errors_total",
            {"kind": "UnknownFailure", "retryable": "false"},
        )
        assert value == 1.0

    def test_warning_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="streambridge"):
            classify_error(RuntimeError("boom"))

        records = [r for r in caplog.records if r.getMessage() == "Classified backend error"]
        assert len(records) == 1
        assert records[0].error_kind == "UnknownFailure"
