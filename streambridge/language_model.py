"""
streambridge - Language Model

Entry point for callers: generate() and stream() against one model and
API flavor.

Data flow:
    BindingCache -> adapter -> (response | DeltaChunk stream)
        -> StreamNormalizer -> StreamEvent sequence

Failures are classified exactly once, here:
- before any chunk (binding, request setup, HTTP status): the call raises
  the ClassifiedError
- after streaming started: the event sequence ends with a StreamError event
"""

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from .adapters.base import (
    AbortSignal,
    AdapterConfig,
    AdapterResponse,
    BaseAdapter,
    ChunkStream,
)
from .adapters.cache import BindingCache, get_binding_cache
from .adapters.stub_adapter import StubAdapter
from .config import get_adapter_config, get_api_flavor, use_stub_adapters
from .core.classifier import ErrorContext, classify_error
from .core.models import (
    ApiFlavor,
    ChatRequest,
    GenerateResult,
    ResponseInfo,
    TextContent,
    ToolCallContent,
)
from .observability.logging import LogContext, TimedOperation, get_logger
from .observability.metrics import get_metrics
from .streaming.events import Finish, StreamEvent
from .streaming.finish_reason import map_finish_reason
from .streaming.normalizer import StreamNormalizer
from .version import __version__


logger = get_logger(__name__)


async def _stub_factory(flavor: ApiFlavor) -> BaseAdapter:
    return StubAdapter(flavor=flavor)


class EventStream:
    """
    Event sequence returned by LanguageModel.stream().

    Every step runs under the call's LogContext, so logs emitted while the
    stream is consumed keep request_id, api_flavor and model_id. aclose()
    always releases the backend response, including when iteration never
    started.
    """

    def __init__(
        self,
        events: AsyncIterator[StreamEvent],
        source: ChunkStream,
        log_context: LogContext,
    ):
        self._events = events
        self._source = source
        self.log_context = log_context

    def __aiter__(self) -> "EventStream":
        return self

    async def __anext__(self) -> StreamEvent:
        token = LogContext.set_current(self.log_context)
        try:
            return await self._events.__anext__()
        finally:
            LogContext.reset(token)

    async def aclose(self):
        token = LogContext.set_current(self.log_context)
        try:
            await self._events.aclose()
        finally:
            try:
                await self._source.aclose()
            finally:
                LogContext.reset(token)

    async def __aenter__(self) -> "EventStream":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()


class LanguageModel:
    """
    Chat model bound to one API flavor.

    Usage:
        model = LanguageModel.from_env("gpt-4o")
        result = await model.generate(ChatRequest(messages=[...]))

        async for event in await model.stream(request):
            ...
    """

    def __init__(
        self,
        model_id: str,
        config: AdapterConfig,
        api_flavor: ApiFlavor = ApiFlavor.ORCHESTRATION,
        binding_cache: Optional[BindingCache] = None,
    ):
        self.model_id = model_id
        self.config = replace(config, model_id=config.model_id or model_id)
        self.api_flavor = ApiFlavor(api_flavor)
        self.binding_cache = binding_cache or get_binding_cache()

    @classmethod
    def from_env(
        cls,
        model_id: str,
        api_flavor: Optional[ApiFlavor] = None,
        deployment_id: Optional[str] = None,
    ) -> "LanguageModel":
        """Build a model from AICORE_* / STREAMBRIDGE_API environment variables."""
        binding_cache = BindingCache(_stub_factory) if use_stub_adapters() else None
        return cls(
            model_id=model_id,
            config=get_adapter_config(model_id, deployment_id=deployment_id),
            api_flavor=api_flavor or get_api_flavor(),
            binding_cache=binding_cache,
        )

    # ============================================================
    # Generate
    # ============================================================

    async def generate(self, request: ChatRequest) -> GenerateResult:
        """
        Run a non-streaming completion.

        Raises:
            ClassifiedError: on any failure
        """
        context = self._error_context("generate", request)
        token = LogContext.set_current(self._log_context())
        metrics = get_metrics()

        try:
            timer = TimedOperation("generate", logger)
            try:
                with timer:
                    adapter = await self.binding_cache.get_or_create(self.api_flavor)
                    response = await adapter.generate(self.config, request)
            except Exception as exc:
                metrics.record_call(
                    self.api_flavor.value, "generate", "error", timer.duration_ms / 1000
                )
                error = classify_error(exc, context)
                if error is exc:
                    raise
                raise error from exc

            metrics.record_call(
                self.api_flavor.value, "generate", "success", timer.duration_ms / 1000
            )
            metrics.record_tokens(
                self.api_flavor.value,
                response.usage.input_tokens.total,
                response.usage.output_tokens.total,
            )
            return self._build_result(adapter, request, response)
        finally:
            LogContext.reset(token)

    def _build_result(
        self,
        adapter: BaseAdapter,
        request: ChatRequest,
        response: AdapterResponse
    ) -> GenerateResult:
        content: List[Union[TextContent, ToolCallContent]] = []
        if response.content:
            content.append(TextContent(text=response.content))
        content.extend(response.tool_calls)

        finish_reason = map_finish_reason(response.raw_finish_reason)

        metadata: Dict[str, Any] = {
            "finishReason": finish_reason.raw,
            "finishReasonMapped": finish_reason.unified.value,
            "version": __version__,
        }
        if response.request_id:
            metadata["requestId"] = response.request_id

        return GenerateResult(
            content=content,
            finish_reason=finish_reason,
            usage=response.usage,
            warnings=list(request.warnings),
            provider_metadata={adapter.provider_name: metadata},
            request_body=request.summary(),
            response=ResponseInfo(
                headers=response.headers,
                body=response.raw_envelope,
                model_id=self.model_id,
                timestamp=datetime.now(timezone.utc),
            ),
        )

    # ============================================================
    # Stream
    # ============================================================

    async def stream(
        self,
        request: ChatRequest,
        abort_signal: Optional[AbortSignal] = None
    ) -> EventStream:
        """
        Start a streaming completion.

        Returns a fresh, finite event sequence ending in exactly one
        Finish or StreamError event. Callers that stop early close it
        with aclose() or use it as an async context manager.

        Raises:
            ClassifiedError: if the stream cannot be started
        """
        context = self._error_context("stream", request)
        log_context = self._log_context()
        token = LogContext.set_current(log_context)
        metrics = get_metrics()

        try:
            timer = TimedOperation("stream_setup", logger)
            try:
                with timer:
                    adapter = await self.binding_cache.get_or_create(self.api_flavor)
                    chunks = await adapter.stream(self.config, request, abort_signal)
            except Exception as exc:
                metrics.record_call(
                    self.api_flavor.value, "stream", "error", timer.duration_ms / 1000
                )
                error = classify_error(exc, context)
                if error is exc:
                    raise
                raise error from exc

            metrics.record_call(
                self.api_flavor.value, "stream", "started", timer.duration_ms / 1000
            )
        finally:
            LogContext.reset(token)

        normalizer = StreamNormalizer(
            model_id=self.model_id,
            provider_name=adapter.provider_name,
            include_raw_chunks=request.include_raw_chunks,
            warnings=request.warnings,
            error_context=context,
        )
        return EventStream(self._observe(normalizer.normalize(chunks)), chunks, log_context)

    async def _observe(self, events: AsyncIterator[StreamEvent]) -> AsyncIterator[StreamEvent]:
        metrics = get_metrics()
        flavor = self.api_flavor.value

        try:
            async for event in events:
                metrics.record_stream_event(flavor, event.type.value)

                if isinstance(event, Finish):
                    metrics.record_tokens(
                        flavor,
                        event.usage.input_tokens.total,
                        event.usage.output_tokens.total,
                    )
                    logger.debug(
                        "Stream finished",
                        finish_reason=event.finish_reason.unified.value,
                    )

                yield event
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

    # ============================================================
    # Helpers
    # ============================================================

    def _error_context(self, operation: str, request: ChatRequest) -> ErrorContext:
        return ErrorContext(
            operation=operation,
            url=self.config.base_url,
            request_body=request.summary(),
        )

    def _log_context(self) -> LogContext:
        return LogContext(
            request_id=str(uuid.uuid4()),
            api_flavor=self.api_flavor.value,
            model_id=self.model_id,
        )
