"""
cortexstream - streaming answer aggregator for conversational data agents.

Consumes the agent's SSE stream and rebuilds the answer text, table and
chart as they arrive.
"""

__version__ = "0.1.0"

from ._exceptions import (
    APIError,
    AuthenticationError,
    BackendError,
    CortexStreamError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    StreamAborted,
    TransportError,
    ValidationError,
)
from ._http import ChatTransport
from ._types import (
    CanonicalChart,
    ChartSpec,
    DeclarativeChart,
    FinalAnswer,
    MessageIds,
    StreamSnapshot,
    StreamState,
    Table,
    TextBlock,
    ToolUseEntry,
)
from .aggregator import ContentAggregator, build_final_answer
from .client import CortexChat, build_chat_request
from .normalize import normalize_chart, normalize_table
from .session import StreamSession
from .streaming import AbortSignal, EventType, SSEEvent, SSEFrameReader, iter_events

__all__ = [
    "APIError",
    "AbortSignal",
    "AuthenticationError",
    "BackendError",
    "CanonicalChart",
    "ChartSpec",
    "ChatTransport",
    "ContentAggregator",
    # Main client
    "CortexChat",
    "CortexStreamError",
    "DeclarativeChart",
    "EventType",
    "FinalAnswer",
    "MessageIds",
    "NotFoundError",
    "PermissionDeniedError",
    "RateLimitError",
    "SSEEvent",
    "SSEFrameReader",
    "StreamAborted",
    "StreamSession",
    "StreamSnapshot",
    "StreamState",
    "Table",
    "TextBlock",
    "ToolUseEntry",
    "TransportError",
    "ValidationError",
    "build_chat_request",
    "build_final_answer",
    "iter_events",
    "normalize_chart",
    "normalize_table",
]
