"""
streambridge - Backend Adapter Base

Abstract base class for backend adapters (bindings).
Each API flavor (orchestration, foundation-models) implements this interface.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

import httpx

from ..core.errors import AbortError
from ..core.models import ApiFlavor, ChatRequest, ToolCallContent, Usage


@dataclass
class AdapterConfig:
    """Connection settings for one call."""
    base_url: str
    model_id: str = ""
    auth_token: Optional[str] = None
    deployment_id: Optional[str] = None
    resource_group: str = "default"
    api_version: Optional[str] = None
    timeout: float = 60.0
    # Injected transport, e.g. httpx.MockTransport in tests
    transport: Optional[httpx.AsyncBaseTransport] = None


# ============================================================
# Stream chunks
# ============================================================

@dataclass
class ToolCallDeltaEntry:
    """
    One partial tool call inside a delta chunk.

    position is kept as sent; validation happens in the accumulator.
    """
    position: Any
    id: Optional[str] = None
    name: Optional[str] = None
    argument_fragment: Optional[str] = None

    @classmethod
    def from_openai(cls, data: Dict[str, Any]) -> "ToolCallDeltaEntry":
        """Parse an OpenAI-style delta.tool_calls entry."""
        function = data.get("function") or {}
        return cls(
            position=data.get("index"),
            id=data.get("id"),
            name=function.get("name"),
            argument_fragment=function.get("arguments"),
        )


@dataclass
class DeltaChunk:
    """
    One incremental unit of a streamed response.

    raw holds the vendor payload the chunk was parsed from.
    """
    delta_text: Optional[str] = None
    tool_calls: List[ToolCallDeltaEntry] = field(default_factory=list)
    finish_reason: Optional[str] = None
    usage: Optional[Usage] = None
    raw: Any = None

    @classmethod
    def from_openai(cls, data: Dict[str, Any], raw: Any = None) -> "DeltaChunk":
        """
        Parse an OpenAI-compatible chunk ({choices: [{delta, finish_reason}], usage}).

        Only the first choice is read.
        """
        choices = data.get("choices") or [{}]
        choice = choices[0] if isinstance(choices[0], dict) else {}
        delta = choice.get("delta") or {}

        content = delta.get("content")
        usage = data.get("usage")

        return cls(
            delta_text=content if isinstance(content, str) else None,
            tool_calls=[
                ToolCallDeltaEntry.from_openai(entry)
                for entry in delta.get("tool_calls") or []
                if isinstance(entry, dict)
            ],
            finish_reason=choice.get("finish_reason"),
            usage=Usage.from_token_usage(usage) if usage else None,
            raw=data if raw is None else raw,
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready form, used when a chunk has no vendor payload."""
        return {
            "deltaText": self.delta_text,
            "toolCalls": [
                {
                    "index": entry.position,
                    "id": entry.id,
                    "name": entry.name,
                    "arguments": entry.argument_fragment,
                }
                for entry in self.tool_calls
            ],
            "finishReason": self.finish_reason,
            "usage": self.usage.to_dict() if self.usage is not None else None,
        }


@dataclass
class AdapterResponse:
    """Result of a non-streaming backend call."""
    content: Optional[str]
    tool_calls: List[ToolCallContent]
    raw_finish_reason: Optional[str]
    usage: Usage
    raw_envelope: Any
    headers: Optional[Dict[str, str]] = None
    request_id: Optional[str] = None


# ============================================================
# Abort signal
# ============================================================

class AbortSignal:
    """
    Cooperative cancellation flag forwarded to the transport.

    Aborting interrupts a pending read and closes the HTTP response; it
    does not stop work already running on the backend.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self, reason: Optional[str] = None):
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_aborted(self):
        if self._event.is_set():
            raise AbortError(self.reason)

    async def wait(self):
        await self._event.wait()


class ChunkStream:
    """
    Async iterator of DeltaChunk returned by BaseAdapter.stream().

    Each read races the abort signal, so aborting ends a read that is
    waiting on a stalled backend. aclose() releases the transport even
    when iteration never started; it is safe to call more than once.
    """

    def __init__(
        self,
        chunks: AsyncIterator[DeltaChunk],
        abort_signal: Optional[AbortSignal] = None,
        on_close: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self._chunks = chunks
        self._abort_signal = abort_signal
        self._on_close = on_close
        self.closed = False

    def __aiter__(self) -> "ChunkStream":
        return self

    async def __anext__(self) -> DeltaChunk:
        if self.closed:
            raise StopAsyncIteration
        try:
            return await self._read()
        except Exception:
            await self.aclose()
            raise

    async def aclose(self):
        if self.closed:
            return
        self.closed = True
        try:
            aclose = getattr(self._chunks, "aclose", None)
            if aclose is not None:
                await aclose()
        finally:
            if self._on_close is not None:
                await self._on_close()

    async def __aenter__(self) -> "ChunkStream":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def _read(self) -> DeltaChunk:
        signal = self._abort_signal
        if signal is None:
            return await self._chunks.__anext__()
        signal.raise_if_aborted()

        read = asyncio.ensure_future(self._chunks.__anext__())
        aborted = asyncio.ensure_future(signal.wait())
        try:
            done, _ = await asyncio.wait({read, aborted}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            read.cancel()
            raise
        finally:
            aborted.cancel()

        if read in done:
            return read.result()

        read.cancel()
        # Let the cancelled read unwind before the transport is closed
        await asyncio.wait({read})
        raise AbortError(signal.reason)


# ============================================================
# Adapter contract
# ============================================================

class BaseAdapter(ABC):
    """
    Abstract base class for backend adapters.

    Each adapter must implement:
    - generate: one request, one complete response
    - stream: one request, an async sequence of DeltaChunk

    The adapter is responsible for:
    1. Converting ChatRequest → backend-specific payload
    2. Making the HTTP call
    3. Converting backend responses/chunks → AdapterResponse / DeltaChunk
    4. Raising transport errors unclassified (classification happens
       once, at the call boundary)
    """

    flavor: ApiFlavor
    provider_name: str = "streambridge"

    @abstractmethod
    async def generate(
        self,
        config: AdapterConfig,
        request: ChatRequest
    ) -> AdapterResponse:
        """
        Run a non-streaming completion.

        Args:
            config: Connection settings
            request: Provider-neutral request

        Returns:
            AdapterResponse
        """
        pass

    @abstractmethod
    async def stream(
        self,
        config: AdapterConfig,
        request: ChatRequest,
        abort_signal: Optional[AbortSignal] = None
    ) -> ChunkStream:
        """
        Start a streaming completion.

        The request is sent and its status checked before this returns,
        so setup failures raise here rather than from the iterator.

        Returns:
            ChunkStream over the response; callers close it with aclose()
        """
        pass

    # ============================================================
    # Helper methods for subclasses
    # ============================================================

    def _model_params(self, request: ChatRequest) -> Dict[str, Any]:
        """Model parameters with unset values removed."""
        return {k: v for k, v in request.model_params.items() if v is not None}

    def _tool_calls_from_message(self, message: Dict[str, Any]) -> List[ToolCallContent]:
        """Complete tool calls of an OpenAI-style assistant message."""
        result = []
        for call in message.get("tool_calls") or []:
            function = call.get("function") or {}
            arguments = function.get("arguments")
            result.append(ToolCallContent(
                tool_call_id=call.get("id") or "",
                tool_name=function.get("name") or "",
                input=arguments if isinstance(arguments, str) else "",
            ))
        return result
