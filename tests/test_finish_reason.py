"""
streambridge - Finish Reason Tests
"""

import pytest

from streambridge.core.models import FinishReason, UnifiedFinishReason
from streambridge.streaming.finish_reason import (
    FINISH_REASON_MAP,
    map_finish_reason,
    normalize_finish_reason,
)


class TestFinishReasonTable:
    """Every documented vendor token maps to its unified value."""

    @pytest.mark.parametrize("raw,expected", [
        ("stop", UnifiedFinishReason.STOP),
        ("eos", UnifiedFinishReason.STOP),
        ("stop_sequence", UnifiedFinishReason.STOP),
        ("end_turn", UnifiedFinishReason.STOP),
        ("length", UnifiedFinishReason.LENGTH),
        ("max_tokens", UnifiedFinishReason.LENGTH),
        ("max_tokens_reached", UnifiedFinishReason.LENGTH),
        ("content_filter", UnifiedFinishReason.CONTENT_FILTER),
        ("tool_call", UnifiedFinishReason.TOOL_CALLS),
        ("tool_calls", UnifiedFinishReason.TOOL_CALLS),
        ("function_call", UnifiedFinishReason.TOOL_CALLS),
        ("error", UnifiedFinishReason.ERROR),
    ])
    def test_known_tokens(self, raw, expected):
        assert normalize_finish_reason(raw) == expected

    def test_table_has_no_extra_entries(self):
        assert len(FINISH_REASON_MAP) == 12

    def test_unknown_token_is_other(self):
        assert normalize_finish_reason("something_new") == UnifiedFinishReason.OTHER

    def test_missing_token_is_other(self):
        assert normalize_finish_reason(None) == UnifiedFinishReason.OTHER
        assert normalize_finish_reason("") == UnifiedFinishReason.OTHER

    def test_lookup_is_case_sensitive(self):
        """Tokens are matched exactly as the vendor sent them."""
        assert normalize_finish_reason("STOP") == UnifiedFinishReason.OTHER
        assert normalize_finish_reason("Tool_Calls") == UnifiedFinishReason.OTHER


class TestMapFinishReason:
    """map_finish_reason keeps the raw token next to the unified value."""

    def test_keeps_raw_token(self):
        result = map_finish_reason("max_tokens_reached")
        assert result == FinishReason(raw="max_tokens_reached", unified=UnifiedFinishReason.LENGTH)

    def test_absent_raw(self):
        result = map_finish_reason(None)
        assert result.raw is None
        assert result.unified == UnifiedFinishReason.OTHER

    def test_to_dict(self):
        assert map_finish_reason("eos").to_dict() == {"raw": "eos", "unified": "stop"}
