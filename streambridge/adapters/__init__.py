"""
streambridge Adapters Module

Backend adapters (bindings) that translate between the provider-neutral
request/chunk format and each backend flavor's native API.
"""

from .base import (
    AbortSignal,
    AdapterConfig,
    AdapterResponse,
    BaseAdapter,
    ChunkStream,
    DeltaChunk,
    ToolCallDeltaEntry,
)
from .cache import (
    BindingCache,
    clear_binding_caches,
    get_binding_cache,
    get_binding_cache_size,
    load_adapter,
)
from .stub_adapter import StubAdapter

__all__ = [
    "AbortSignal",
    "AdapterConfig",
    "AdapterResponse",
    "BaseAdapter",
    "ChunkStream",
    "DeltaChunk",
    "ToolCallDeltaEntry",
    "BindingCache",
    "clear_binding_caches",
    "get_binding_cache",
    "get_binding_cache_size",
    "load_adapter",
    "StubAdapter",
]
