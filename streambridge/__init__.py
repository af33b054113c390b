"""
streambridge - Unified Streaming and Error Layer for AI Core Backends

One typed event and error model over the orchestration and
foundation-models backend flavors.
"""

from .version import __version__
from .adapters import AbortSignal, AdapterConfig, BindingCache, clear_binding_caches
from .core import ApiFlavor, ChatRequest, ClassifiedError, ErrorKind, classify_error
from .language_model import LanguageModel

__author__ = "streambridge"

__all__ = [
    "__version__",
    "AbortSignal",
    "AdapterConfig",
    "ApiFlavor",
    "BindingCache",
    "ChatRequest",
    "ClassifiedError",
    "ErrorKind",
    "LanguageModel",
    "classify_error",
    "clear_binding_caches",
]
