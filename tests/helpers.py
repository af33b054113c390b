"""
streambridge - Test Helpers

Chunk builders and small async utilities shared by the test modules.
"""

import asyncio
import json
from typing import Any, AsyncIterator, Iterable, List, Optional

import httpx

from streambridge.adapters.base import DeltaChunk, ToolCallDeltaEntry
from streambridge.core.models import InputTokens, OutputTokens, Usage


def text_chunk(text: str, finish_reason: Optional[str] = None) -> DeltaChunk:
    return DeltaChunk(delta_text=text, finish_reason=finish_reason)


def tool_chunk(
    position: Any,
    id: Optional[str] = None,
    name: Optional[str] = None,
    arguments: Optional[str] = None,
    text: Optional[str] = None,
    finish_reason: Optional[str] = None,
) -> DeltaChunk:
    return DeltaChunk(
        delta_text=text,
        tool_calls=[ToolCallDeltaEntry(
            position=position,
            id=id,
            name=name,
            argument_fragment=arguments,
        )],
        finish_reason=finish_reason,
    )


def usage_of(prompt_tokens: int, completion_tokens: int) -> Usage:
    return Usage(
        input_tokens=InputTokens(total=prompt_tokens, no_cache=prompt_tokens),
        output_tokens=OutputTokens(total=completion_tokens, text=completion_tokens),
    )


async def iterate(chunks: Iterable[DeltaChunk]) -> AsyncIterator[DeltaChunk]:
    for chunk in chunks:
        yield chunk


async def failing_after(
    chunks: Iterable[DeltaChunk],
    error: BaseException
) -> AsyncIterator[DeltaChunk]:
    for chunk in chunks:
        yield chunk
    raise error


async def collect(events: AsyncIterator[Any]) -> List[Any]:
    return [event async for event in events]


def event_types(events: List[Any]) -> List[str]:
    return [event.type.value for event in events]


def sse_body(payloads: List[Any], done: bool = True) -> bytes:
    """Encode payloads as an SSE response body."""
    lines = []
    for payload in payloads:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        lines.append(f"data: {data}\n\n")
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


class TrackedByteStream(httpx.AsyncByteStream):
    """
    Response body that yields once and records when httpx closes it.

    With stall=True the body then hangs, like a backend that stops sending.
    """

    def __init__(self, body: bytes, stall: bool = False):
        self.body = body
        self.stall = stall
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield self.body
        if self.stall:
            await asyncio.sleep(3600)

    async def aclose(self):
        self.closed = True


def tracked_transport(stream: TrackedByteStream) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            stream=stream,
            headers={"content-type": "text/event-stream"},
        )

    return httpx.MockTransport(handler)
