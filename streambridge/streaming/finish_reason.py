"""
streambridge - Finish Reason Normalizer

Maps vendor finish-reason tokens onto UnifiedFinishReason.
Lookup is case-sensitive on the token exactly as the vendor sent it.
"""

from typing import Dict, Optional

from ..core.models import FinishReason, UnifiedFinishReason


FINISH_REASON_MAP: Dict[str, UnifiedFinishReason] = {
    "stop": UnifiedFinishReason.STOP,
    "eos": UnifiedFinishReason.STOP,
    "stop_sequence": UnifiedFinishReason.STOP,
    "end_turn": UnifiedFinishReason.STOP,
    "length": UnifiedFinishReason.LENGTH,
    "max_tokens": UnifiedFinishReason.LENGTH,
    "max_tokens_reached": UnifiedFinishReason.LENGTH,
    "content_filter": UnifiedFinishReason.CONTENT_FILTER,
    "tool_call": UnifiedFinishReason.TOOL_CALLS,
    "tool_calls": UnifiedFinishReason.TOOL_CALLS,
    "function_call": UnifiedFinishReason.TOOL_CALLS,
    "error": UnifiedFinishReason.ERROR,
}


def normalize_finish_reason(raw: Optional[str]) -> UnifiedFinishReason:
    """Unified value for a raw token; unknown or missing tokens map to OTHER."""
    if not isinstance(raw, str):
        return UnifiedFinishReason.OTHER
    return FINISH_REASON_MAP.get(raw, UnifiedFinishReason.OTHER)


def map_finish_reason(raw: Optional[str]) -> FinishReason:
    """Pair the raw vendor token with its unified value."""
    return FinishReason(raw=raw, unified=normalize_finish_reason(raw))
