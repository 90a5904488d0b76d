"""Dataclass models for the aggregated answer and the published stream snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class StreamState(str, Enum):
    """Lifecycle states of a stream session."""

    IDLE = "idle"
    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class Table:
    """A tabular result with ordered headers and rows."""

    title: str | None
    headers: list[str]
    rows: list[list[Any]]

    @property
    def is_valid(self) -> bool:
        # Rows may arrive after the headers while streaming.
        return len(self.headers) > 0


@dataclass(frozen=True)
class CanonicalChart:
    """A ``{labels, datasets}`` chart, optionally nested under ``data``."""

    labels: list[Any]
    datasets: list[dict[str, Any]]
    spec: dict[str, Any]

    kind = "canonical"

    @property
    def is_valid(self) -> bool:
        return bool(self.labels) or bool(self.datasets)

    @classmethod
    def from_dict(cls, spec: dict[str, Any]) -> CanonicalChart:
        body = spec.get("data") if isinstance(spec.get("data"), dict) else spec
        labels = spec.get("labels") or body.get("labels")
        datasets = spec.get("datasets") or body.get("datasets")
        if not isinstance(datasets, list):
            datasets = []
        return cls(
            labels=list(labels) if isinstance(labels, list) else [],
            datasets=[dataset for dataset in datasets if isinstance(dataset, dict)],
            spec=spec,
        )


@dataclass(frozen=True)
class DeclarativeChart:
    """A Vega-Lite style ``{mark, encoding, data}`` chart description."""

    mark: Any
    encoding: dict[str, Any] | None
    data: Any
    spec: dict[str, Any]

    kind = "declarative"

    @property
    def is_valid(self) -> bool:
        return bool(self.mark) and self.encoding is not None and self.data is not None

    @property
    def values(self) -> list[Any]:
        """Row set carried under ``data.values``."""
        if isinstance(self.data, dict) and isinstance(self.data.get("values"), list):
            return self.data["values"]
        return []

    def field_binding(self, channel: str) -> tuple[str | None, str | None]:
        """Return ``(field, type)`` bound to an encoding channel such as ``x`` or ``y``."""
        binding = self.encoding.get(channel) if self.encoding else None
        if not isinstance(binding, dict):
            return None, None
        return binding.get("field"), binding.get("type")

    @classmethod
    def from_dict(cls, spec: dict[str, Any]) -> DeclarativeChart:
        encoding = spec.get("encoding")
        return cls(
            mark=spec.get("mark"),
            encoding=encoding if isinstance(encoding, dict) else None,
            data=spec.get("data"),
            spec=spec,
        )


ChartSpec = Union[CanonicalChart, DeclarativeChart]


@dataclass
class TextBlock:
    """Text accumulated for one content index."""

    index: int
    text: str = ""
    annotations: list[Any] = field(default_factory=list)
    is_elicitation: bool = False

    def set_annotation(self, position: int, annotation: Any) -> None:
        if position < 0:
            raise ValueError(f"annotation position must be non-negative, got {position}")
        # Sparse: gaps before ``position`` are filled with None.
        if position >= len(self.annotations):
            self.annotations.extend([None] * (position + 1 - len(self.annotations)))
        self.annotations[position] = annotation


@dataclass(frozen=True)
class ToolUseEntry:
    """One tool invocation in the timeline."""

    id: str
    name: str | None
    type: str | None
    input: Any
    status: str | None = None
    result: Any = None


@dataclass(frozen=True)
class MessageIds:
    """Backend message ids for the current turn."""

    user: Any = None
    assistant: Any = None


@dataclass(frozen=True)
class FinalAnswer:
    """The answer projected from the content blocks or the terminal event."""

    text: str = ""
    table: Table | None = None
    chart_spec: ChartSpec | None = None
    raw: dict[str, Any] | None = None


@dataclass(frozen=True)
class StreamSnapshot:
    """Published, immutable view of a session. A new instance per update."""

    stream_state: StreamState = StreamState.IDLE
    agent_status: Any = None
    tool_timeline: tuple[ToolUseEntry, ...] = ()
    analysis_text: str = ""
    final_answer: FinalAnswer | None = None
    error: str | None = None
    message_ids: MessageIds = field(default_factory=MessageIds)

    def to_dict(self) -> dict[str, Any]:
        """Plain JSON-friendly representation."""
        answer = self.final_answer
        return {
            "stream_state": self.stream_state.value,
            "agent_status": self.agent_status,
            "tool_timeline": [
                {
                    "tool_use_id": entry.id,
                    "name": entry.name,
                    "type": entry.type,
                    "input": entry.input,
                    "status": entry.status,
                    "result": entry.result,
                }
                for entry in self.tool_timeline
            ],
            "analysis_text": self.analysis_text,
            "final_answer": (
                {
                    "text": answer.text,
                    "table": (
                        {
                            "title": answer.table.title,
                            "headers": answer.table.headers,
                            "rows": answer.table.rows,
                        }
                        if answer.table
                        else None
                    ),
                    "chart_spec": answer.chart_spec.spec if answer.chart_spec else None,
                }
                if answer
                else None
            ),
            "error": self.error,
            "message_ids": {"user": self.message_ids.user, "assistant": self.message_ids.assistant},
        }
