"""
streambridge - Server-Sent Events Parsing

Reads `data:` lines of a backend SSE response and decodes their JSON.

Servers report failures inside an open stream as an event carrying a
top-level "error" object instead of an HTTP status; those raise
StreamPayloadError with the payload in the message so the classifier
can recover the envelope.
"""

import json
from typing import Any, AsyncIterator, Dict, Optional

from ..core.errors import StreamPayloadError

DONE_MARKER = "[DONE]"
DATA_PREFIX = "data:"
SERVER_ERROR_PREFIX = "Error received from the server."


def parse_sse_line(line: str) -> Optional[str]:
    """
    Return the data of a `data:` line, or None for any other line.

    Comments (":"), event names and blank keep-alive lines are ignored.
    """
    if not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX):]
    if data.startswith(" "):
        data = data[1:]
    return data


def decode_sse_payload(data: str) -> Dict[str, Any]:
    """
    Decode one event payload.

    Raises:
        StreamPayloadError: invalid JSON, a non-object payload, or a
            payload reporting a server error
    """
    try:
        payload = json.loads(data)
    except ValueError as e:
        raise StreamPayloadError(f"Invalid SSE payload: {e.__class__.__name__}: {data[:200]}") from None

    if not isinstance(payload, dict):
        raise StreamPayloadError(f"Invalid SSE payload: expected an object, got {type(payload).__name__}")

    if payload.get("error") is not None:
        raise StreamPayloadError(f"{SERVER_ERROR_PREFIX}\n{json.dumps(payload)}")

    return payload


async def iter_sse_payloads(lines: AsyncIterator[str]) -> AsyncIterator[Dict[str, Any]]:
    """Yield decoded payloads until [DONE] or the end of the line stream."""
    async for line in lines:
        data = parse_sse_line(line.rstrip("\r"))
        if data is None or not data.strip():
            continue
        if data.strip() == DONE_MARKER:
            return

        yield decode_sse_payload(data)
