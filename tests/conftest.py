"""
streambridge - Pytest Configuration

Configures:
- Integration test markers (skip by default)
- Binding cache and metrics isolation
- Chunk builders and mock backend transports for unit tests
"""

import os
import pytest
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx
from prometheus_client import CollectorRegistry

from streambridge.adapters.base import AdapterConfig
from streambridge.adapters.cache import clear_binding_caches
from streambridge.core.models import ChatRequest
from streambridge.observability.metrics import setup_metrics

from helpers import sse_body


# ============================================================
# Environment Configuration
# ============================================================

def _is_truthy(value: Optional[str]) -> bool:
    """Check if environment variable is truthy."""
    if value is None:
        return False
    return value.lower() in ("1", "true", "yes", "on")


RUN_INTEGRATION = _is_truthy(os.getenv("RUN_INTEGRATION"))


# ============================================================
# Pytest Markers
# ============================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (requires RUN_INTEGRATION=1)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless RUN_INTEGRATION=1."""
    skip_integration = pytest.mark.skip(
        reason="Integration test - set RUN_INTEGRATION=1 to run"
    )

    for item in items:
        if "integration" in item.keywords and not RUN_INTEGRATION:
            item.add_marker(skip_integration)


# ============================================================
# Isolation
# ============================================================

@pytest.fixture(autouse=True)
def reset_binding_cache():
    """Every test starts and ends with an empty process-wide binding cache."""
    clear_binding_caches()
    yield
    clear_binding_caches()


@pytest.fixture(autouse=True)
def metrics_registry():
    """Fresh Prometheus registry per test."""
    registry = CollectorRegistry()
    setup_metrics(registry)
    yield registry


@pytest.fixture(autouse=True)
def configure_test_logging():
    """Let caplog see package records."""
    logging.getLogger("streambridge").setLevel(logging.DEBUG)
    yield


# ============================================================
# Mock Backend (httpx.MockTransport)
# ============================================================

@pytest.fixture
def recorded_requests() -> List[httpx.Request]:
    return []


@pytest.fixture
def mock_backend(recorded_requests) -> Callable[..., AdapterConfig]:
    """
    Build an AdapterConfig whose transport answers with a fixed response.

    Usage:
        config = mock_backend(200, json_data={...})
        config = mock_backend(200, sse=[{...}, {...}])
    """
    def factory(
        status_code: int = 200,
        json_data: Optional[Dict[str, Any]] = None,
        sse: Optional[List[Any]] = None,
        text: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        deployment_id: Optional[str] = "d123",
    ) -> AdapterConfig:
        def handler(request: httpx.Request) -> httpx.Response:
            recorded_requests.append(request)
            if sse is not None:
                return httpx.Response(
                    status_code,
                    content=sse_body(sse),
                    headers={"content-type": "text/event-stream", **(headers or {})},
                )
            if json_data is not None:
                return httpx.Response(status_code, json=json_data, headers=headers)
            return httpx.Response(status_code, text=text or "", headers=headers)

        return AdapterConfig(
            base_url="https://api.ai.example.test",
            model_id="gpt-4o",
            auth_token="test-token",
            deployment_id=deployment_id,
            transport=httpx.MockTransport(handler),
        )

    return factory


@pytest.fixture
def chat_request() -> ChatRequest:
    return ChatRequest(
        messages=[{"role": "user", "content": "Hello"}],
        model_params={"temperature": 0.2, "max_tokens": 64},
    )
