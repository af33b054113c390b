"""
streambridge - Core Data Models

Unified data models shared by both backend flavors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union


# ============================================================
# Enums
# ============================================================

class ApiFlavor(str, Enum):
    """Backend API flavors a request can be served by."""
    ORCHESTRATION = "orchestration"
    FOUNDATION_MODELS = "foundation-models"


class UnifiedFinishReason(str, Enum):
    """Unified finish reasons."""
    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content-filter"
    TOOL_CALLS = "tool-calls"
    ERROR = "error"
    OTHER = "other"


# ============================================================
# Finish reason / usage
# ============================================================

@dataclass(frozen=True)
class FinishReason:
    """Vendor finish reason together with its unified value."""
    raw: Optional[str]
    unified: UnifiedFinishReason

    def to_dict(self) -> Dict[str, Any]:
        return {"raw": self.raw, "unified": self.unified.value}


@dataclass
class InputTokens:
    total: Optional[int] = None
    cache_read: Optional[int] = None
    cache_write: Optional[int] = None
    no_cache: Optional[int] = None


@dataclass
class OutputTokens:
    total: Optional[int] = None
    reasoning: Optional[int] = None
    text: Optional[int] = None


@dataclass
class Usage:
    """Token usage of one response."""
    input_tokens: InputTokens = field(default_factory=InputTokens)
    output_tokens: OutputTokens = field(default_factory=OutputTokens)

    @classmethod
    def from_token_usage(cls, data: Optional[Dict[str, Any]]) -> "Usage":
        """
        Build usage from an OpenAI-style token usage object.

        Missing counters stay None.
        """
        if not data:
            return cls()

        prompt_tokens = data.get("prompt_tokens")
        completion_tokens = data.get("completion_tokens")
        prompt_details = data.get("prompt_tokens_details") or {}
        completion_details = data.get("completion_tokens_details") or {}

        return cls(
            input_tokens=InputTokens(
                total=prompt_tokens,
                cache_read=prompt_details.get("cached_tokens"),
                no_cache=prompt_tokens,
            ),
            output_tokens=OutputTokens(
                total=completion_tokens,
                reasoning=completion_details.get("reasoning_tokens"),
                text=completion_tokens,
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inputTokens": {
                "total": self.input_tokens.total,
                "cacheRead": self.input_tokens.cache_read,
                "cacheWrite": self.input_tokens.cache_write,
                "noCache": self.input_tokens.no_cache,
            },
            "outputTokens": {
                "total": self.output_tokens.total,
                "reasoning": self.output_tokens.reasoning,
                "text": self.output_tokens.text,
            },
        }


# ============================================================
# Requests
# ============================================================

@dataclass
class CallWarning:
    """Non-fatal note produced while building a request."""
    type: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "message": self.message}


@dataclass
class ChatRequest:
    """
    Provider-neutral chat completion request.

    messages and tools are already in the OpenAI-compatible wire shape;
    converting from higher level prompt formats happens before this layer.
    """
    messages: List[Dict[str, Any]]
    tools: Optional[List[Dict[str, Any]]] = None
    tool_choice: Optional[Union[str, Dict[str, Any]]] = None
    model_params: Dict[str, Any] = field(default_factory=dict)
    response_format: Optional[Dict[str, Any]] = None
    include_raw_chunks: bool = False
    warnings: List[CallWarning] = field(default_factory=list)

    def summary(self) -> "RequestBodySummary":
        """Summary attached to errors, without prompt contents."""
        return RequestBodySummary(
            prompt_messages=len(self.messages),
            tools=len(self.tools or []),
            max_output_tokens=self.model_params.get("max_tokens"),
            temperature=self.model_params.get("temperature"),
            top_p=self.model_params.get("top_p"),
            seed=self.model_params.get("seed"),
            response_format_type=(self.response_format or {}).get("type"),
            tool_choice_type=(
                self.tool_choice
                if isinstance(self.tool_choice, str)
                else (self.tool_choice or {}).get("type")
            ),
        )


@dataclass
class RequestBodySummary:
    """Shape of a request, safe to attach to error diagnostics."""
    prompt_messages: int
    tools: int
    max_output_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    seed: Optional[int] = None
    response_format_type: Optional[str] = None
    tool_choice_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


# ============================================================
# Generate responses
# ============================================================

@dataclass
class TextContent:
    text: str
    type: str = "text"


@dataclass
class ToolCallContent:
    tool_call_id: str
    tool_name: str
    input: str
    type: str = "tool-call"


@dataclass
class ResponseInfo:
    """Transport level details of a generate response."""
    headers: Optional[Dict[str, str]]
    body: Any
    model_id: str
    timestamp: datetime


@dataclass
class GenerateResult:
    """Unified result of a non-streaming call."""
    content: List[Union[TextContent, ToolCallContent]]
    finish_reason: FinishReason
    usage: Usage
    warnings: List[CallWarning]
    provider_metadata: Dict[str, Dict[str, Any]]
    request_body: Any
    response: ResponseInfo
