"""
Content aggregation for agent response streams.

The backend splits an answer into content blocks addressed by
``content_index`` and may send each block several times: as deltas, as a
full replacement, or out of order. :class:`ContentAggregator` keeps one map
per block kind and republishes a fresh :class:`StreamSnapshot` after every
change.
"""

from collections.abc import Callable
import dataclasses
import logging
import threading
from typing import Any

from ._types import (
    ChartSpec,
    FinalAnswer,
    MessageIds,
    StreamSnapshot,
    StreamState,
    Table,
    TextBlock,
    ToolUseEntry,
)
from .normalize import is_valid_chart, is_valid_table, normalize_chart, normalize_table
from .streaming import EventType, SSEEvent

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Unknown streaming error"

# Annotation slots are materialized as a list, so positions past this are dropped.
MAX_ANNOTATION_INDEX = 1024


def _lowest_valid(blocks: dict[int, Any]) -> Any:
    for idx in sorted(blocks):
        if blocks[idx].is_valid:
            return blocks[idx]
    return None


def _index(payload: dict[str, Any], key: str) -> int:
    value = payload.get(key)
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.debug("Non-integer %s %r, using 0", key, value)
        return 0


class ContentAggregator:
    """
    Applies SSE events to per-session accumulation state.

    One instance belongs to exactly one session run; a new run gets a new
    aggregator instead of clearing this one.

    Usage:
        aggregator = ContentAggregator()
        for event in iter_events(chunks):
            if aggregator.apply(event):
                break
        print(aggregator.snapshot.final_answer.text)
    """

    def __init__(self) -> None:
        self.text_blocks: dict[int, TextBlock] = {}
        self.table_blocks: dict[int, Table] = {}
        self.chart_blocks: dict[int, ChartSpec] = {}
        self.snapshot = StreamSnapshot()
        self._lock = threading.Lock()

        self._handlers: dict[EventType, Callable[[dict[str, Any]], bool]] = {
            EventType.METADATA: self._on_metadata,
            EventType.STATUS: self._on_status,
            EventType.THINKING_DELTA: self._on_thinking_delta,
            EventType.THINKING: self._on_thinking,
            EventType.TEXT_DELTA: self._on_text_delta,
            EventType.TEXT: self._on_text,
            EventType.TEXT_ANNOTATION: self._on_text_annotation,
            EventType.TABLE: self._on_table,
            EventType.CHART: self._on_chart,
            EventType.TOOL_USE: self._on_tool_use,
            EventType.TOOL_RESULT_STATUS: self._on_tool_result_status,
            EventType.TOOL_RESULT: self._on_tool_result,
            EventType.ERROR: self._on_error,
            EventType.RESPONSE: self._on_response,
        }

    @property
    def finished(self) -> bool:
        return self.snapshot.stream_state in (StreamState.DONE, StreamState.ERROR)

    def publish(self, **changes: Any) -> StreamSnapshot:
        """Replace the published snapshot with a copy carrying ``changes``."""
        with self._lock:
            self.snapshot = dataclasses.replace(self.snapshot, **changes)
            return self.snapshot

    def apply(self, event: SSEEvent) -> bool:
        """
        Apply one event.

        Failures inside a handler are logged and swallowed so that one bad
        event never ends the stream.

        Returns:
            True when the event ends the stream (``response`` or ``error``).
        """
        handler = self._handlers.get(event.type)
        if handler is None:
            logger.debug("Ignoring unknown event %r", event.event)
            return False

        payload = event.data if isinstance(event.data, dict) else {}
        try:
            return handler(payload)
        except Exception as e:
            logger.warning("Failed to apply %s event: %s", event.event, e, exc_info=True)
            return False

    # --- ancillary state --------------------------------------------------

    def _on_metadata(self, payload: dict[str, Any]) -> bool:
        nested = payload.get("metadata") if isinstance(payload.get("metadata"), dict) else {}
        role = payload.get("role") or nested.get("role")
        message_id = payload.get("message_id", nested.get("message_id"))
        if role in ("user", "assistant") and message_id is not None:
            ids = dataclasses.replace(self.snapshot.message_ids, **{role: message_id})
            self.publish(message_ids=ids)
        else:
            logger.debug("Ignoring metadata for role %r", role)
        return False

    def _on_status(self, payload: dict[str, Any]) -> bool:
        self.publish(agent_status=payload)
        return False

    def _on_thinking_delta(self, payload: dict[str, Any]) -> bool:
        self.publish(analysis_text=self.snapshot.analysis_text + (payload.get("text") or ""))
        return False

    def _on_thinking(self, payload: dict[str, Any]) -> bool:
        text = payload.get("text") or ""
        current = self.snapshot.analysis_text
        # Full-text re-sends of something already streamed are skipped.
        if text in current:
            return False
        self.publish(analysis_text=f"{current}\n\n{text}" if current else text)
        return False

    # --- content blocks ---------------------------------------------------

    def _on_text_delta(self, payload: dict[str, Any]) -> bool:
        idx = _index(payload, "content_index")
        block = self.text_blocks.setdefault(idx, TextBlock(index=idx))
        block.text += payload.get("text") or ""
        block.is_elicitation = bool(payload.get("is_elicitation"))
        self.recompute()
        return False

    def _on_text(self, payload: dict[str, Any]) -> bool:
        idx = _index(payload, "content_index")
        annotations = payload.get("annotations")
        self.text_blocks[idx] = TextBlock(
            index=idx,
            text=payload.get("text") or "",
            annotations=list(annotations) if isinstance(annotations, list) else [],
            is_elicitation=bool(payload.get("is_elicitation")),
        )
        self.recompute()
        return False

    def _on_text_annotation(self, payload: dict[str, Any]) -> bool:
        idx = _index(payload, "content_index")
        position = _index(payload, "annotation_index")
        if not 0 <= position <= MAX_ANNOTATION_INDEX:
            logger.warning(
                "Ignoring annotation with out-of-range annotation_index %d at content_index %d",
                position,
                idx,
            )
            return False
        block = self.text_blocks.setdefault(idx, TextBlock(index=idx))
        block.set_annotation(position, payload.get("annotation"))
        return False

    def _on_table(self, payload: dict[str, Any]) -> bool:
        idx = _index(payload, "content_index")
        table = normalize_table(payload, payload.get("title"))
        if not table.is_valid:
            logger.warning("Ignoring table with no headers at content_index %d", idx)
            return False
        logger.debug(
            "Parsed table at content_index %d: %d headers, %d rows",
            idx,
            len(table.headers),
            len(table.rows),
        )
        self.table_blocks[idx] = table
        self.recompute()
        return False

    def _on_chart(self, payload: dict[str, Any]) -> bool:
        idx = _index(payload, "content_index")
        chart = normalize_chart(payload)
        if not is_valid_chart(chart):
            logger.warning("Ignoring chart with no valid data at content_index %d", idx)
            return False
        logger.debug("Parsed %s chart at content_index %d", chart.kind, idx)
        self.chart_blocks[idx] = chart
        self.recompute()
        return False

    def recompute(self) -> FinalAnswer:
        """Project the content maps into a fresh final answer and publish it."""
        texts = [self.text_blocks[idx].text for idx in sorted(self.text_blocks)]
        text = "\n\n".join(t for t in texts if t).strip()

        # Only the lowest-index table and chart are surfaced.
        table = _lowest_valid(self.table_blocks)
        chart = _lowest_valid(self.chart_blocks)

        previous = self.snapshot.final_answer
        answer = FinalAnswer(
            text=text,
            table=table,
            chart_spec=chart,
            raw=previous.raw if previous else None,
        )
        logger.debug(
            "Recomputed final answer: text=%d chars, table=%s, chart=%s",
            len(text),
            bool(table),
            chart.kind if chart else None,
        )
        self.publish(final_answer=answer)
        return answer

    # --- tools ------------------------------------------------------------

    def _on_tool_use(self, payload: dict[str, Any]) -> bool:
        tool_use_id = payload.get("tool_use_id")
        if any(entry.id == tool_use_id for entry in self.snapshot.tool_timeline):
            return False
        entry = ToolUseEntry(
            id=tool_use_id,
            name=payload.get("name"),
            type=payload.get("type"),
            input=payload.get("input"),
        )
        self.publish(tool_timeline=(*self.snapshot.tool_timeline, entry))
        return False

    def _patch_tool(self, tool_use_id: Any, **changes: Any) -> None:
        timeline = tuple(
            dataclasses.replace(entry, **changes) if entry.id == tool_use_id else entry
            for entry in self.snapshot.tool_timeline
        )
        self.publish(tool_timeline=timeline)

    def _on_tool_result_status(self, payload: dict[str, Any]) -> bool:
        status = f"{payload.get('status')} – {payload.get('message')}"
        self._patch_tool(payload.get("tool_use_id"), status=status)
        return False

    def _on_tool_result(self, payload: dict[str, Any]) -> bool:
        self._patch_tool(
            payload.get("tool_use_id"), status=payload.get("status"), result=payload.get("content")
        )
        return False

    # --- terminal events --------------------------------------------------

    def _on_error(self, payload: dict[str, Any]) -> bool:
        message = payload.get("message") or payload.get("error") or DEFAULT_ERROR_MESSAGE
        self.publish(error=str(message), stream_state=StreamState.ERROR)
        return True

    def _on_response(self, payload: dict[str, Any]) -> bool:
        answer = build_final_answer(payload)
        self.publish(final_answer=answer, stream_state=StreamState.DONE)
        return True


def _table_from_item(item: dict[str, Any]) -> Table | None:
    wrapped = item.get("table")
    title = wrapped.get("title") if isinstance(wrapped, dict) else None
    table = normalize_table(wrapped or item, title if title is not None else item.get("title"))
    return table if table.is_valid else None


def _chart_from_item(item: dict[str, Any]) -> ChartSpec | None:
    chart = normalize_chart(item.get("chart") or item)
    return chart if is_valid_chart(chart) else None


def build_final_answer(response: dict[str, Any]) -> FinalAnswer:
    """
    Build the final answer from a terminal ``response`` payload.

    Walks ``content[]`` once: text items are joined in order, and the last
    valid table and chart win. Top-level ``table``/``result_set``,
    ``chartSpec``, ``chart``/``chart_spec`` and ``raw.content[]`` are probed
    when the content array has none.
    """
    content = response.get("content")
    text_parts: list[str] = []
    table: Table | None = None
    chart: ChartSpec | None = None

    for item in content if isinstance(content, list) else []:
        if not isinstance(item, dict):
            continue
        kind = item.get("type")
        if kind == "text":
            if item.get("text"):
                text_parts.append(str(item["text"]))
        elif kind == "table":
            table = _table_from_item(item) or table
        elif kind == "chart":
            chart = _chart_from_item(item) or chart

    if table is None and (response.get("table") or response.get("result_set")):
        candidate = normalize_table(response.get("table") or response, response.get("title"))
        table = candidate if is_valid_table(candidate) else None

    if chart is None and response.get("chartSpec"):
        candidate = normalize_chart(response)
        chart = candidate if is_valid_chart(candidate) else None

    if chart is None and (response.get("chart") or response.get("chart_spec")):
        candidate = normalize_chart(response.get("chart") or response)
        chart = candidate if is_valid_chart(candidate) else None

    raw = response.get("raw")
    raw_content = raw.get("content") if isinstance(raw, dict) else None
    if chart is None and isinstance(raw_content, list):
        for item in raw_content:
            if isinstance(item, dict) and item.get("type") == "chart":
                chart = _chart_from_item(item)
                if chart is not None:
                    break

    logger.debug(
        "Built final answer from response: %d text parts, table=%s, chart=%s",
        len(text_parts),
        bool(table),
        chart.kind if chart else None,
    )
    return FinalAnswer(
        text="\n\n".join(text_parts).strip(),
        table=table,
        chart_spec=chart,
        raw=response,
    )
