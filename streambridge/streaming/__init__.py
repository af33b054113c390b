"""
streambridge - Streaming Module

Unified streaming support for both backend flavors:
- Chunk accumulation into text blocks and complete tool calls
- Finish reason normalization
- Typed stream event union
"""

from .events import (
    StreamEventType,
    StreamEvent,
    StreamStart,
    TextStart,
    TextDelta,
    TextEnd,
    ToolInputStart,
    ToolInputDelta,
    ToolInputEnd,
    ToolCall,
    ResponseMetadata,
    RawChunk,
    Finish,
    StreamError,
    event_to_dict,
    is_terminal,
)
from .finish_reason import (
    FINISH_REASON_MAP,
    map_finish_reason,
    normalize_finish_reason,
)
from .normalizer import (
    StreamNormalizer,
    StreamPhase,
    StreamState,
)
from .tool_calls import (
    ToolCallBuffer,
    ToolCallStreamTracker,
    is_valid_position,
)

__all__ = [
    # Events
    "StreamEventType",
    "StreamEvent",
    "StreamStart",
    "TextStart",
    "TextDelta",
    "TextEnd",
    "ToolInputStart",
    "ToolInputDelta",
    "ToolInputEnd",
    "ToolCall",
    "ResponseMetadata",
    "RawChunk",
    "Finish",
    "StreamError",
    "event_to_dict",
    "is_terminal",
    # Finish reasons
    "FINISH_REASON_MAP",
    "map_finish_reason",
    "normalize_finish_reason",
    # Normalizer
    "StreamNormalizer",
    "StreamPhase",
    "StreamState",
    # Tool Calls
    "ToolCallBuffer",
    "ToolCallStreamTracker",
    "is_valid_position",
]
