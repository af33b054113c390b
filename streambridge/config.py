"""
streambridge - Configuration

Environment-driven settings for backend connections.
"""

import os
from typing import Optional

from .adapters.base import AdapterConfig
from .core.models import ApiFlavor


DEFAULT_RESOURCE_GROUP = "default"
DEFAULT_TIMEOUT_SECONDS = 60.0

_TRUTHY = {"1", "true", "yes"}


def get_api_flavor() -> ApiFlavor:
    """
    Get the default API flavor.

    STREAMBRIDGE_API must be one of: orchestration, foundation-models.

    Default: orchestration.
    """
    raw = os.getenv("STREAMBRIDGE_API", "orchestration").lower().strip()
    if raw == "orchestration":
        return ApiFlavor.ORCHESTRATION
    if raw in {"foundation-models", "foundation_models"}:
        return ApiFlavor.FOUNDATION_MODELS
    raise ValueError("Invalid STREAMBRIDGE_API. Use one of: orchestration, foundation-models")


def get_timeout() -> float:
    """Request timeout in seconds from AICORE_TIMEOUT."""
    raw = os.getenv("AICORE_TIMEOUT", "").strip()
    if not raw:
        return DEFAULT_TIMEOUT_SECONDS
    try:
        timeout = float(raw)
    except ValueError:
        raise ValueError("Invalid AICORE_TIMEOUT. Use a positive number of seconds") from None
    if timeout <= 0:
        raise ValueError("Invalid AICORE_TIMEOUT. Use a positive number of seconds")
    return timeout


def use_stub_adapters() -> bool:
    """Check if USE_STUB_ADAPTERS requests the in-process stub backend."""
    return os.getenv("USE_STUB_ADAPTERS", "false").lower().strip() in _TRUTHY


def get_adapter_config(model_id: str = "", deployment_id: Optional[str] = None) -> AdapterConfig:
    """
    Build an AdapterConfig from the environment.

    Reads AICORE_BASE_URL (required), AICORE_AUTH_TOKEN,
    AICORE_DEPLOYMENT_ID, AICORE_RESOURCE_GROUP, AICORE_API_VERSION
    and AICORE_TIMEOUT.
    """
    base_url = os.getenv("AICORE_BASE_URL", "").strip()
    if not base_url:
        raise ValueError("AICORE_BASE_URL is required")

    return AdapterConfig(
        base_url=base_url,
        model_id=model_id,
        auth_token=os.getenv("AICORE_AUTH_TOKEN") or None,
        deployment_id=deployment_id or os.getenv("AICORE_DEPLOYMENT_ID") or None,
        resource_group=os.getenv("AICORE_RESOURCE_GROUP") or DEFAULT_RESOURCE_GROUP,
        api_version=os.getenv("AICORE_API_VERSION") or None,
        timeout=get_timeout(),
    )
