"""
streambridge - Backend Binding Cache

Memoizes which adapter serves each API flavor.

The in-flight task is stored before the factory runs, so concurrent
callers for the same unresolved flavor share one construction. A failed
construction is evicted so a later call can try again.

Usage:
    cache = get_binding_cache()
    adapter = await cache.get_or_create(ApiFlavor.ORCHESTRATION)

    # Tests
    clear_binding_caches()
"""

import asyncio
import importlib
from functools import partial
from typing import Awaitable, Callable, Dict, Optional, Tuple

from .base import BaseAdapter
from ..core.models import ApiFlavor
from ..observability.logging import get_logger
from ..observability.metrics import get_metrics


logger = get_logger(__name__)

BindingFactory = Callable[[ApiFlavor], Awaitable[BaseAdapter]]

# flavor -> (module relative to this package, adapter class)
ADAPTER_MODULES: Dict[ApiFlavor, Tuple[str, str]] = {
    ApiFlavor.ORCHESTRATION: (".orchestration_adapter", "OrchestrationAdapter"),
    ApiFlavor.FOUNDATION_MODELS: (".foundation_models_adapter", "FoundationModelsAdapter"),
}


async def load_adapter(flavor: ApiFlavor) -> BaseAdapter:
    """
    Default factory: import the flavor's adapter module on first use.

    Raises:
        ValueError: If the flavor has no adapter
    """
    try:
        module_name, class_name = ADAPTER_MODULES[ApiFlavor(flavor)]
    except (KeyError, ValueError):
        raise ValueError(f"Unsupported API flavor: {flavor}") from None

    module = importlib.import_module(module_name, __package__)
    return getattr(module, class_name)()


class BindingCache:
    """
    Explicit, clearable store of flavor -> adapter construction task.

    One instance is shared process-wide through get_binding_cache(), but
    LanguageModel accepts any instance (per-tenant caches, test doubles).
    """

    def __init__(self, factory: Optional[BindingFactory] = None):
        self._factory = factory or load_adapter
        self._entries: Dict[ApiFlavor, "asyncio.Future[BaseAdapter]"] = {}

    async def get_or_create(self, flavor: ApiFlavor) -> BaseAdapter:
        """Return the adapter for flavor, constructing it at most once."""
        entry = self._entries.get(flavor)
        if entry is None:
            # Stored before the first await
            entry = asyncio.ensure_future(self._create(flavor))
            self._entries[flavor] = entry
            entry.add_done_callback(partial(self._evict_on_failure, flavor))

        # A cancelled waiter must not cancel the shared construction
        return await asyncio.shield(entry)

    def contains(self, flavor: ApiFlavor) -> bool:
        return flavor in self._entries

    def size(self) -> int:
        return len(self._entries)

    def clear(self):
        self._entries.clear()

    async def _create(self, flavor: ApiFlavor) -> BaseAdapter:
        flavor_label = getattr(flavor, "value", str(flavor))
        try:
            adapter = await self._factory(flavor)
        except Exception as e:
            logger.warning(
                "Backend binding construction failed",
                api_flavor=flavor_label,
                error_type=type(e).__name__,
            )
            get_metrics().record_binding_construction(flavor_label, success=False)
            raise

        logger.info(
            "Backend binding constructed",
            api_flavor=flavor_label,
            adapter=type(adapter).__name__,
        )
        get_metrics().record_binding_construction(flavor_label, success=True)
        return adapter

    def _evict_on_failure(self, flavor: ApiFlavor, entry: "asyncio.Future[BaseAdapter]"):
        failed = entry.cancelled() or entry.exception() is not None
        if failed and self._entries.get(flavor) is entry:
            del self._entries[flavor]


# Module-level default cache
_default_cache = BindingCache()


def get_binding_cache() -> BindingCache:
    return _default_cache


def clear_binding_caches():
    """Reset the process-wide cache (test isolation)."""
    _default_cache.clear()


def get_binding_cache_size() -> int:
    return _default_cache.size()
