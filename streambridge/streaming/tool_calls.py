"""
streambridge - Tool Call Streaming

Accumulates streamed tool/function calls.

Tool calls arrive in pieces, keyed by position:
1. id and function name, together or in separate chunks
2. Argument fragments (partial JSON text), in arrival order
3. Flush: one complete call per position, ascending

Deltas whose position is missing, NaN, negative, fractional or not a
number are dropped without touching any buffer.
"""

import math
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def is_valid_position(position: Any) -> bool:
    """True for finite, non-negative integers (bool excluded)."""
    if isinstance(position, bool):
        return False
    if isinstance(position, int):
        return position >= 0
    if isinstance(position, float):
        return math.isfinite(position) and position >= 0 and position.is_integer()
    return False


@dataclass
class ToolCallBuffer:
    """
    Accumulates one streaming tool call.

    id and name are set once; a later absent value never clears them.
    """
    position: int
    id: Optional[str] = None
    name: Optional[str] = None
    argument_fragments: List[str] = field(default_factory=list)
    flushed: bool = False

    # Lifecycle event bookkeeping
    input_started: bool = False
    event_id: Optional[str] = None
    emitted_fragments: int = 0

    def update(
        self,
        id: Optional[str] = None,
        name: Optional[str] = None,
        argument_fragment: Optional[str] = None
    ):
        """Merge one delta into the buffer."""
        if id and self.id is None:
            self.id = id
        if name and self.name is None:
            self.name = name
        if argument_fragment:
            self.argument_fragments.append(argument_fragment)

    @property
    def arguments(self) -> str:
        return "".join(self.argument_fragments)

    def start_input(self) -> str:
        """
        Mark the tool input as started and return its event id.

        The event id is fixed at this point so every lifecycle event of
        the buffer carries the same id.
        """
        self.input_started = True
        if self.event_id is None:
            self.event_id = self.id or str(uuid.uuid4())
        return self.event_id

    def take_pending_input(self) -> str:
        """Argument text not yet reported through tool-input-delta events."""
        pending = "".join(self.argument_fragments[self.emitted_fragments:])
        self.emitted_fragments = len(self.argument_fragments)
        return pending

    def mark_flushed(self):
        self.flushed = True


class ToolCallStreamTracker:
    """
    Tracks all tool calls of one streamed response.

    A single response can contain several parallel tool calls,
    each accumulated separately by position.
    """

    def __init__(self):
        self._buffers: Dict[int, ToolCallBuffer] = {}

    def update_call(
        self,
        position: Any,
        id: Optional[str] = None,
        name: Optional[str] = None,
        argument_fragment: Optional[str] = None
    ) -> Optional[ToolCallBuffer]:
        """
        Merge a delta into the buffer at position, creating it if needed.

        Returns:
            The updated buffer, or None if the position was invalid
        """
        if not is_valid_position(position):
            return None

        key = int(position)
        buffer = self._buffers.get(key)
        if buffer is None:
            buffer = ToolCallBuffer(position=key)
            self._buffers[key] = buffer

        buffer.update(id=id, name=name, argument_fragment=argument_fragment)
        return buffer

    def get_call(self, position: int) -> Optional[ToolCallBuffer]:
        return self._buffers.get(position)

    def get_all_calls(self) -> List[ToolCallBuffer]:
        """All buffers in ascending position order."""
        return [self._buffers[p] for p in sorted(self._buffers)]

    def unflushed_calls(self) -> List[ToolCallBuffer]:
        return [b for b in self.get_all_calls() if not b.flushed]

    def has_calls(self) -> bool:
        return len(self._buffers) > 0

    def call_count(self) -> int:
        return len(self._buffers)
