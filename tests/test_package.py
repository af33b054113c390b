"""
streambridge - Package Import Tests
"""

import importlib

import pytest


class TestPackageImport:
    """The package and its public names import cleanly."""

    def test_top_level_exports(self):
        import streambridge

        for name in streambridge.__all__:
            assert hasattr(streambridge, name), name

    @pytest.mark.parametrize("module", [
        "streambridge.core.classifier",
        "streambridge.streaming.normalizer",
        "streambridge.adapters.http",
        "streambridge.adapters.orchestration_adapter",
        "streambridge.adapters.foundation_models_adapter",
        "streambridge.language_model",
    ])
    def test_submodules_import(self, module):
        assert importlib.import_module(module) is not None

    def test_keyword_matchers_build(self):
        from streambridge.core.classifier import (
            ERROR_MATCHERS,
            ErrorMatcher,
            KeywordMatcher,
            StatusCodeMatcher,
        )
        from streambridge.core.errors import ErrorKind

        matcher = KeywordMatcher(
            category="quota",
            keywords=("quota exceeded",),
            kind=ErrorKind.RATE_LIMITED,
            status_code=429,
            retryable=True,
        )

        assert all(isinstance(m, ErrorMatcher) for m in ERROR_MATCHERS)
        assert StatusCodeMatcher().category == "status code"
        assert matcher.match("Quota exceeded", "quota exceeded").message == (
            "Backend quota error: Quota exceeded"
        )
        with pytest.raises(TypeError):
            ErrorMatcher()
