"""
streambridge - Stub Backend Adapter

Deterministic in-process adapter used for smoke/integration testing.
No network calls, no service keys required. Replays scripted chunks
and can be told to fail during setup or mid-stream.
"""

import asyncio
from typing import AsyncIterator, List, Optional, Tuple

from .base import (
    AbortSignal,
    AdapterConfig,
    AdapterResponse,
    BaseAdapter,
    ChunkStream,
    DeltaChunk,
)
from ..core.models import ApiFlavor, ChatRequest, InputTokens, OutputTokens, Usage


def _stub_usage() -> Usage:
    return Usage(
        input_tokens=InputTokens(total=8, no_cache=8),
        output_tokens=OutputTokens(total=6, text=6),
    )


def default_stub_chunks() -> List[DeltaChunk]:
    return [
        DeltaChunk(delta_text="stub:"),
        DeltaChunk(delta_text=" deterministic stream"),
        DeltaChunk(finish_reason="stop", usage=_stub_usage()),
    ]


class StubAdapter(BaseAdapter):
    """Deterministic adapter for tests/smoke checks."""

    provider_name = "stub"

    def __init__(
        self,
        chunks: Optional[List[DeltaChunk]] = None,
        response: Optional[AdapterResponse] = None,
        setup_error: Optional[BaseException] = None,
        stream_error: Optional[BaseException] = None,
        flavor: ApiFlavor = ApiFlavor.ORCHESTRATION,
    ):
        self.flavor = flavor
        self.chunks = chunks if chunks is not None else default_stub_chunks()
        self.response = response
        self.setup_error = setup_error
        self.stream_error = stream_error
        self.calls: List[Tuple[str, ChatRequest]] = []

    async def generate(
        self,
        config: AdapterConfig,
        request: ChatRequest
    ) -> AdapterResponse:
        self.calls.append(("generate", request))
        if self.setup_error is not None:
            raise self.setup_error

        if self.response is not None:
            return self.response

        return AdapterResponse(
            content="stub: deterministic response",
            tool_calls=[],
            raw_finish_reason="stop",
            usage=_stub_usage(),
            raw_envelope={"stub": True},
            headers={"x-request-id": "stub-request"},
            request_id="stub-request",
        )

    async def stream(
        self,
        config: AdapterConfig,
        request: ChatRequest,
        abort_signal: Optional[AbortSignal] = None
    ) -> ChunkStream:
        self.calls.append(("stream", request))
        if abort_signal is not None:
            abort_signal.raise_if_aborted()
        if self.setup_error is not None:
            raise self.setup_error
        return ChunkStream(self._replay(), abort_signal)

    async def _replay(self) -> AsyncIterator[DeltaChunk]:
        for chunk in self.chunks:
            await asyncio.sleep(0)
            yield chunk

        if self.stream_error is not None:
            raise self.stream_error
