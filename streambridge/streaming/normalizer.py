"""
streambridge - Stream Normalizer

Turns the DeltaChunk sequence of either backend flavor into the unified
StreamEvent sequence.

Per stream:
- stream-start first, then response-metadata with the first chunk
- text deltas open a single text block; the first tool-call delta
  closes it and suppresses all later text for the turn
- tool-call deltas accumulate per position and flush as complete
  tool-call events (on a tool-calls finish reason, or at the end)
- exactly one terminal event: finish on exhaustion, or error when the
  chunk source raises
- a stream that emitted tool calls without any vendor finish reason
  finishes with tool-calls
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional

from .events import (
    Finish,
    RawChunk,
    ResponseMetadata,
    StreamError,
    StreamEvent,
    StreamStart,
    TextDelta,
    TextEnd,
    TextStart,
    ToolCall,
    ToolInputDelta,
    ToolInputEnd,
    ToolInputStart,
)
from .finish_reason import map_finish_reason
from .tool_calls import ToolCallBuffer, ToolCallStreamTracker, is_valid_position
from ..adapters.base import DeltaChunk
from ..core.classifier import ErrorContext, classify_error
from ..core.models import CallWarning, FinishReason, UnifiedFinishReason, Usage
from ..observability.logging import get_logger
from ..version import __version__


logger = get_logger(__name__)


class StreamPhase(str, Enum):
    """Accumulator states."""
    IDLE = "idle"
    TEXT_OPEN = "text_open"
    TOOL_ACCUMULATING = "tool_accumulating"
    CLOSED = "closed"


@dataclass
class StreamState:
    """
    Mutable state of one stream invocation.

    Never shared between calls; every call starts from a fresh instance.
    """
    response_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    phase: StreamPhase = StreamPhase.IDLE
    is_first_chunk: bool = True
    chunks_received: int = 0

    # Text tracking
    text_block_id: Optional[str] = None
    tool_calls_seen: bool = False
    tool_calls_emitted: bool = False

    # Tool call tracking
    tool_calls: ToolCallStreamTracker = field(default_factory=ToolCallStreamTracker)

    # Terminal data (last non-null finish reason, last-write-wins usage)
    raw_finish_reason: Optional[str] = None
    usage: Optional[Usage] = None

    def record_finish_reason(self, raw: Optional[str]):
        if raw:
            self.raw_finish_reason = raw

    def record_usage(self, usage: Optional[Usage]):
        if usage is not None:
            self.usage = usage

    @property
    def finish_reason(self) -> FinishReason:
        return map_finish_reason(self.raw_finish_reason)


class StreamNormalizer:
    """
    Chunk accumulator for one backend stream.

    Usage:
        normalizer = StreamNormalizer(model_id="gpt-4o", provider_name="aicore")
        async for event in normalizer.normalize(chunks):
            ...
    """

    def __init__(
        self,
        model_id: str,
        provider_name: str = "streambridge",
        include_raw_chunks: bool = False,
        warnings: Optional[List[CallWarning]] = None,
        error_context: Optional[ErrorContext] = None,
    ):
        self.model_id = model_id
        self.provider_name = provider_name
        self.include_raw_chunks = include_raw_chunks
        self.warnings = list(warnings or [])
        self.error_context = error_context or ErrorContext(operation="stream")

    async def normalize(self, chunks: AsyncIterator[DeltaChunk]) -> AsyncIterator[StreamEvent]:
        """
        Consume chunks in arrival order and yield unified events.

        A failure of the chunk source ends the sequence with one
        StreamError event; events already yielded stay valid.
        """
        state = StreamState()
        yield StreamStart(warnings=list(self.warnings))

        try:
            async for chunk in chunks:
                for event in self.process_chunk(state, chunk):
                    yield event
        except Exception as exc:
            state.phase = StreamPhase.CLOSED
            error = classify_error(exc, self.error_context)
            logger.info(
                "Stream terminated by error",
                chunks_received=state.chunks_received,
                error_kind=error.kind.value,
            )
            yield StreamError(error=error)
            return
        finally:
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                await aclose()

        for event in self.finish(state):
            yield event

    def process_chunk(self, state: StreamState, chunk: DeltaChunk) -> List[StreamEvent]:
        """Apply one chunk to state and return the events it produces."""
        events: List[StreamEvent] = []
        state.chunks_received += 1

        if self.include_raw_chunks:
            events.append(RawChunk(raw_value=chunk.raw if chunk.raw is not None else chunk))

        if state.is_first_chunk:
            state.is_first_chunk = False
            events.append(ResponseMetadata(
                id=state.response_id,
                model_id=self.model_id,
                timestamp=datetime.now(timezone.utc),
            ))

        # Text
        text = chunk.delta_text
        if text and not chunk.tool_calls and not state.tool_calls_seen:
            if state.text_block_id is None:
                state.text_block_id = str(uuid.uuid4())
                state.phase = StreamPhase.TEXT_OPEN
                events.append(TextStart(id=state.text_block_id))
            events.append(TextDelta(id=state.text_block_id, delta=text))

        # Tool calls
        for entry in chunk.tool_calls:
            if not is_valid_position(entry.position):
                continue

            events.extend(self._close_text(state))
            state.tool_calls_seen = True
            state.phase = StreamPhase.TOOL_ACCUMULATING

            buffer = state.tool_calls.update_call(
                entry.position,
                id=entry.id,
                name=entry.name,
                argument_fragment=entry.argument_fragment,
            )
            if buffer is None or buffer.flushed:
                continue

            if not buffer.input_started and buffer.name:
                events.append(ToolInputStart(id=buffer.start_input(), tool_name=buffer.name))
            if buffer.input_started:
                events.extend(self._pending_input(buffer))

        # Finish reason and usage
        state.record_finish_reason(chunk.finish_reason)
        state.record_usage(chunk.usage)

        if state.finish_reason.unified == UnifiedFinishReason.TOOL_CALLS:
            events.extend(self._flush_tool_calls(state))

        return events

    def finish(self, state: StreamState) -> List[StreamEvent]:
        """Events emitted once the chunk source is exhausted."""
        events: List[StreamEvent] = []
        events.extend(self._close_text(state))
        events.extend(self._flush_tool_calls(state))

        state.phase = StreamPhase.CLOSED
        finish_reason = state.finish_reason
        if state.raw_finish_reason is None and state.tool_calls_emitted:
            finish_reason = FinishReason(raw=None, unified=UnifiedFinishReason.TOOL_CALLS)
        events.append(Finish(
            finish_reason=finish_reason,
            usage=state.usage if state.usage is not None else Usage(),
            provider_metadata=self._provider_metadata(state, finish_reason),
        ))
        return events

    # ============================================================
    # Helpers
    # ============================================================

    def _close_text(self, state: StreamState) -> List[StreamEvent]:
        if state.phase != StreamPhase.TEXT_OPEN or state.text_block_id is None:
            return []
        state.phase = StreamPhase.IDLE
        return [TextEnd(id=state.text_block_id)]

    def _pending_input(self, buffer: ToolCallBuffer) -> List[StreamEvent]:
        pending = buffer.take_pending_input()
        if not pending:
            return []
        return [ToolInputDelta(id=buffer.event_id, delta=pending)]

    def _flush_tool_calls(self, state: StreamState) -> List[StreamEvent]:
        events: List[StreamEvent] = []

        for buffer in state.tool_calls.unflushed_calls():
            if not buffer.input_started:
                events.append(ToolInputStart(id=buffer.start_input(), tool_name=buffer.name or ""))
            events.extend(self._pending_input(buffer))
            events.append(ToolInputEnd(id=buffer.event_id))
            events.append(ToolCall(
                tool_call_id=buffer.id or "",
                tool_name=buffer.name or "",
                input=buffer.arguments,
            ))
            buffer.mark_flushed()
            state.tool_calls_emitted = True

        return events

    def _provider_metadata(
        self,
        state: StreamState,
        finish_reason: FinishReason
    ) -> Dict[str, Dict[str, Any]]:
        return {
            self.provider_name: {
                "finishReason": finish_reason.raw,
                "responseId": state.response_id,
                "version": __version__,
            }
        }
