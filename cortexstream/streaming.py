"""
Server-Sent Events frame reader.

Turns the raw byte stream of the agent chat endpoint into discrete SSE
events. Each event block is the text between two blank lines; ``event:``
names the event and the ``data:`` lines carry a JSON payload, possibly
pretty-printed over several lines.
"""

from collections.abc import Callable, Generator, Iterable
import codecs
from dataclasses import dataclass
from enum import Enum
import json
import logging
import re
import threading
from typing import Any

from ._exceptions import StreamAborted

logger = logging.getLogger(__name__)

_BLOCK_BOUNDARY = re.compile(r"\r?\n\r?\n")
_LINE_BREAK = re.compile(r"\r?\n")


class EventType(str, Enum):
    """Agent SSE event names."""

    METADATA = "metadata"
    STATUS = "response.status"
    THINKING_DELTA = "response.thinking.delta"
    THINKING = "response.thinking"
    TEXT_DELTA = "response.text.delta"
    TEXT = "response.text"
    TEXT_ANNOTATION = "response.text.annotation"
    TABLE = "response.table"
    CHART = "response.chart"
    TOOL_USE = "response.tool_use"
    TOOL_RESULT_STATUS = "response.tool_result.status"
    TOOL_RESULT = "response.tool_result"
    ERROR = "error"

    # Terminal event carrying the complete answer
    RESPONSE = "response"

    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, name: str) -> "EventType":
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class SSEEvent:
    """One parsed SSE event."""

    event: str
    data: Any

    @property
    def type(self) -> EventType:
        return EventType.parse(self.event)


class AbortSignal:
    """
    Thread-safe cancellation flag shared between a session and its transport.

    Listeners run once, on the first ``abort()``; a listener added after the
    signal was aborted runs immediately.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._aborted = False
        self._listeners: list[Callable[[], Any]] = []

    @property
    def aborted(self) -> bool:
        return self._aborted

    def add_listener(self, listener: Callable[[], Any]) -> None:
        with self._lock:
            if not self._aborted:
                self._listeners.append(listener)
                return
        listener()

    def abort(self) -> None:
        with self._lock:
            if self._aborted:
                return
            self._aborted = True
            listeners, self._listeners = self._listeners, []
        for listener in listeners:
            try:
                listener()
            except Exception as e:
                logger.debug("Abort listener failed: %s", e)

    def raise_if_aborted(self) -> None:
        if self._aborted:
            raise StreamAborted("Stream aborted")


class SSEFrameReader:
    """
    Incremental splitter from byte chunks to raw event blocks.

    Incomplete trailing data is kept in ``buffer`` until the next chunk
    completes it or :meth:`flush` is called at end of stream.
    """

    def __init__(self) -> None:
        self.buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: bytes | str) -> list[str]:
        """Append a chunk and return every block it completed."""
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self.buffer += chunk
        *blocks, self.buffer = _BLOCK_BOUNDARY.split(self.buffer)
        return [block for block in blocks if block.strip()]

    def flush(self) -> list[str]:
        """Return the trailing block of a stream that ended without a blank line."""
        self.buffer += self._decoder.decode(b"", final=True)
        remainder, self.buffer = self.buffer, ""
        blocks = [block for block in _BLOCK_BOUNDARY.split(remainder) if block.strip()]
        return blocks


def parse_event_block(block: str) -> SSEEvent | None:
    """
    Parse one SSE event block.

    Args:
        block: Block text without the terminating blank line

    Returns:
        The parsed event, or None for blocks without data or with data that
        is not JSON.
    """
    event_name = ""
    data_lines: list[str] = []

    for line in _LINE_BREAK.split(block):
        if line.startswith("event:"):
            event_name = line[6:].strip()
        elif line.startswith("data:"):
            value = line[5:]
            # Strip only the single separator space; payload whitespace is kept.
            data_lines.append(value[1:] if value.startswith(" ") else value)

    payload = "\n".join(data_lines)
    if not payload:
        return None

    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning("Failed to parse SSE JSON: %s", payload[:200])
        return None

    return SSEEvent(event=event_name, data=data)


def iter_event_blocks(
    chunks: Iterable[bytes | str], signal: AbortSignal | None = None
) -> Generator[str, None, None]:
    """
    Yield raw event blocks from a chunked byte stream.

    Raises:
        StreamAborted: When ``signal`` is aborted between chunks.
    """
    reader = SSEFrameReader()
    for chunk in chunks:
        if signal is not None:
            signal.raise_if_aborted()
        if not chunk:
            continue
        yield from reader.feed(chunk)
    if signal is not None:
        signal.raise_if_aborted()
    yield from reader.flush()


def iter_events(
    chunks: Iterable[bytes | str], signal: AbortSignal | None = None
) -> Generator[SSEEvent, None, None]:
    """Yield parsed SSE events, silently skipping malformed blocks."""
    for block in iter_event_blocks(chunks, signal=signal):
        event = parse_event_block(block)
        if event is not None:
            yield event
