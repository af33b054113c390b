"""
streambridge - Stream Events

The unified event sequence produced for every streaming call.

Each event kind is its own frozen dataclass tagged with a StreamEventType.
Consumers dispatch on event.type; event_to_dict is the reference consumer
and covers every kind.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Union

from ..core.errors import ClassifiedError
from ..core.models import CallWarning, FinishReason, Usage


class StreamEventType(str, Enum):
    """Discriminator of the stream event union."""
    STREAM_START = "stream-start"
    TEXT_START = "text-start"
    TEXT_DELTA = "text-delta"
    TEXT_END = "text-end"
    TOOL_INPUT_START = "tool-input-start"
    TOOL_INPUT_DELTA = "tool-input-delta"
    TOOL_INPUT_END = "tool-input-end"
    TOOL_CALL = "tool-call"
    RESPONSE_METADATA = "response-metadata"
    RAW = "raw"
    FINISH = "finish"
    ERROR = "error"


TERMINAL_EVENT_TYPES = frozenset({StreamEventType.FINISH, StreamEventType.ERROR})


@dataclass(frozen=True)
class StreamStart:
    warnings: List[CallWarning]
    type: StreamEventType = field(default=StreamEventType.STREAM_START, init=False)


@dataclass(frozen=True)
class TextStart:
    id: str
    type: StreamEventType = field(default=StreamEventType.TEXT_START, init=False)


@dataclass(frozen=True)
class TextDelta:
    id: str
    delta: str
    type: StreamEventType = field(default=StreamEventType.TEXT_DELTA, init=False)


@dataclass(frozen=True)
class TextEnd:
    id: str
    type: StreamEventType = field(default=StreamEventType.TEXT_END, init=False)


@dataclass(frozen=True)
class ToolInputStart:
    id: str
    tool_name: str
    type: StreamEventType = field(default=StreamEventType.TOOL_INPUT_START, init=False)


@dataclass(frozen=True)
class ToolInputDelta:
    id: str
    delta: str
    type: StreamEventType = field(default=StreamEventType.TOOL_INPUT_DELTA, init=False)


@dataclass(frozen=True)
class ToolInputEnd:
    id: str
    type: StreamEventType = field(default=StreamEventType.TOOL_INPUT_END, init=False)


@dataclass(frozen=True)
class ToolCall:
    """A complete tool invocation; input is the concatenated argument text."""
    tool_call_id: str
    tool_name: str
    input: str
    type: StreamEventType = field(default=StreamEventType.TOOL_CALL, init=False)


@dataclass(frozen=True)
class ResponseMetadata:
    id: str
    model_id: str
    timestamp: datetime
    type: StreamEventType = field(default=StreamEventType.RESPONSE_METADATA, init=False)


@dataclass(frozen=True)
class RawChunk:
    raw_value: Any
    type: StreamEventType = field(default=StreamEventType.RAW, init=False)


@dataclass(frozen=True)
class Finish:
    finish_reason: FinishReason
    usage: Usage
    provider_metadata: Dict[str, Dict[str, Any]]
    type: StreamEventType = field(default=StreamEventType.FINISH, init=False)


@dataclass(frozen=True)
class StreamError:
    error: ClassifiedError
    type: StreamEventType = field(default=StreamEventType.ERROR, init=False)


StreamEvent = Union[
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
]


def is_terminal(event: StreamEvent) -> bool:
    return event.type in TERMINAL_EVENT_TYPES


# ============================================================
# Serialization
# ============================================================

def _raw_to_dict(value: Any) -> Any:
    return value.to_dict() if hasattr(value, "to_dict") else value


_SERIALIZERS: Dict[StreamEventType, Callable[[Any], Dict[str, Any]]] = {
    StreamEventType.STREAM_START: lambda e: {
        "warnings": [w.to_dict() for w in e.warnings],
    },
    StreamEventType.TEXT_START: lambda e: {"id": e.id},
    StreamEventType.TEXT_DELTA: lambda e: {"id": e.id, "delta": e.delta},
    StreamEventType.TEXT_END: lambda e: {"id": e.id},
    StreamEventType.TOOL_INPUT_START: lambda e: {"id": e.id, "toolName": e.tool_name},
    StreamEventType.TOOL_INPUT_DELTA: lambda e: {"id": e.id, "delta": e.delta},
    StreamEventType.TOOL_INPUT_END: lambda e: {"id": e.id},
    StreamEventType.TOOL_CALL: lambda e: {
        "toolCallId": e.tool_call_id,
        "toolName": e.tool_name,
        "input": e.input,
    },
    StreamEventType.RESPONSE_METADATA: lambda e: {
        "id": e.id,
        "modelId": e.model_id,
        "timestamp": e.timestamp.isoformat(),
    },
    StreamEventType.RAW: lambda e: {"rawValue": _raw_to_dict(e.raw_value)},
    StreamEventType.FINISH: lambda e: {
        "finishReason": e.finish_reason.to_dict(),
        "usage": e.usage.to_dict(),
        "providerMetadata": e.provider_metadata,
    },
    StreamEventType.ERROR: lambda e: e.error.error.to_dict(),
}


def event_to_dict(event: StreamEvent) -> Dict[str, Any]:
    """
    Convert an event to a JSON-ready dict with a "type" key.

    Raises:
        ValueError: for an event type without a serializer
    """
    serializer = _SERIALIZERS.get(event.type)
    if serializer is None:
        raise ValueError(f"Unhandled stream event type: {event.type!r}")

    result = {"type": event.type.value}
    result.update(serializer(event))
    return result
