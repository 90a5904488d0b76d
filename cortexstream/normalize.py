"""
Table and chart payload normalization.

The agent backend ships tables and charts in several incompatible shapes
(Snowflake ``result_set`` blocks, ``{headers, rows}`` dicts, ``columns``
metadata, Chart.js and Vega-Lite specs, JSON-encoded strings). Each shape is
handled by a small decoder returning ``None`` when it does not apply; the
decoders are tried in order and the first hit wins.

Nothing here raises on a malformed payload.
"""

from collections.abc import Callable, Iterable
import json
import logging
from typing import Any, TypeVar

from ._types import CanonicalChart, ChartSpec, DeclarativeChart, Table

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CHART_SHAPE_KEYS = ("type", "data", "labels", "datasets", "mark", "encoding")


def first_match(
    decoders: Iterable[Callable[..., T | None]], *args: Any
) -> T | None:
    """Return the first non-None result of ``decoder(*args)``."""
    for decoder in decoders:
        result = decoder(*args)
        if result is not None:
            return result
    return None


def _column_name(column: Any) -> str:
    if isinstance(column, str):
        return column
    if isinstance(column, dict):
        name = column.get("name") or column.get("label")
        if name:
            return str(name)
    return str(column)


def _rows(source: dict[str, Any], *keys: str) -> list[Any]:
    for key in keys:
        value = source.get(key)
        if value is not None:
            return list(value) if isinstance(value, list) else []
    return []


def _title(*candidates: Any) -> str | None:
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


# --- table decoders -------------------------------------------------------


def _table_from_headers(payload: dict[str, Any], fallback_title: str | None) -> Table | None:
    headers = payload.get("headers")
    if not isinstance(headers, list):
        return None
    return Table(
        title=_title(payload.get("title"), fallback_title),
        headers=[_column_name(h) for h in headers],
        rows=_rows(payload, "rows", "data"),
    )


def _table_from_result_set(payload: dict[str, Any], fallback_title: str | None) -> Table | None:
    result_set = payload.get("result_set")
    if not isinstance(result_set, dict):
        return None
    title = _title(payload.get("title"), result_set.get("title"), fallback_title)

    meta = result_set.get("resultSetMetaData")
    row_type = meta.get("rowType") if isinstance(meta, dict) else None
    if isinstance(row_type, list):
        return Table(
            title=title,
            headers=[_column_name(column) for column in row_type],
            rows=_rows(result_set, "data"),
        )

    for key in ("headers", "columns"):
        columns = result_set.get(key)
        if isinstance(columns, list):
            return Table(
                title=title,
                headers=[_column_name(column) for column in columns],
                rows=_rows(result_set, "rows", "data"),
            )
    return None


def _table_from_wrapper(payload: dict[str, Any], fallback_title: str | None) -> Table | None:
    wrapped = payload.get("table")
    if not isinstance(wrapped, dict):
        return None
    return _decode_table(wrapped, _title(wrapped.get("title"), fallback_title))


def _table_from_columns(payload: dict[str, Any], fallback_title: str | None) -> Table | None:
    columns = payload.get("columns")
    if not isinstance(columns, list):
        return None
    return Table(
        title=_title(payload.get("title"), fallback_title),
        headers=[_column_name(column) for column in columns],
        rows=_rows(payload, "rows", "data"),
    )


def _table_from_data(payload: dict[str, Any], fallback_title: str | None) -> Table | None:
    data = payload.get("data")
    if not isinstance(data, list) or not data:
        return None
    title = _title(payload.get("title"), fallback_title)
    if payload.get("headers") is None and isinstance(data[0], list):
        return Table(title=title, headers=[str(cell) for cell in data[0]], rows=data[1:])
    # Rows without any header row; kept so the caller rejects it as invalid.
    return Table(title=title, headers=[], rows=list(data))


_TABLE_DECODERS = (
    _table_from_headers,
    _table_from_result_set,
    _table_from_wrapper,
    _table_from_columns,
    _table_from_data,
)


def _decode_table(payload: dict[str, Any], fallback_title: str | None) -> Table | None:
    return first_match(_TABLE_DECODERS, payload, fallback_title)


def normalize_table(payload: Any, fallback_title: str | None = None) -> Table:
    """
    Convert a backend table payload into a :class:`Table`.

    Args:
        payload: Raw table payload in any supported shape
        fallback_title: Title used when the payload carries none

    Returns:
        The decoded table. When no shape matches, an empty (invalid) table
        titled ``fallback_title``.
    """
    table = _decode_table(payload, fallback_title) if isinstance(payload, dict) else None
    if table is None:
        logger.warning("Could not parse table data from payload: %s", _preview(payload))
        return Table(title=fallback_title, headers=[], rows=[])
    return table


def is_valid_table(table: Table | None) -> bool:
    return table is not None and table.is_valid


# --- chart decoders -------------------------------------------------------


def _decode_json(value: Any) -> Any:
    """Decode JSON-encoded strings; return anything else unchanged."""
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        logger.debug("Chart spec is not valid JSON: %s", value[:200])
        return value


def _chart_from_spec(spec: Any) -> ChartSpec | None:
    """Build a chart variant from a candidate spec, or None if it is not valid."""
    spec = _decode_json(spec)
    if not isinstance(spec, dict):
        return None
    canonical = CanonicalChart.from_dict(spec)
    if canonical.is_valid:
        return canonical
    declarative = DeclarativeChart.from_dict(spec)
    if declarative.is_valid:
        return declarative
    return None


def _has_chart_shape(candidate: Any) -> bool:
    return isinstance(candidate, dict) and any(candidate.get(key) for key in _CHART_SHAPE_KEYS)


def _chart_from_key(key: str) -> Callable[[dict[str, Any]], ChartSpec | None]:
    def decoder(payload: dict[str, Any]) -> ChartSpec | None:
        value = payload.get(key)
        return _chart_from_spec(value) if value else None

    decoder.__name__ = f"_chart_from_{key}"
    return decoder


def _chart_from_wrapper(payload: dict[str, Any]) -> ChartSpec | None:
    wrapped = payload.get("chart")
    if not isinstance(wrapped, dict):
        return None
    if wrapped.get("chart_spec"):
        return _chart_from_spec(wrapped["chart_spec"])
    if _has_chart_shape(wrapped):
        return _chart_from_spec(wrapped)
    return None


def _chart_from_payload(payload: dict[str, Any]) -> ChartSpec | None:
    return _chart_from_spec(payload) if _has_chart_shape(payload) else None


_CHART_DECODERS = (
    _chart_from_key("chartSpec"),
    _chart_from_key("chart_spec"),
    _chart_from_wrapper,
    _chart_from_key("spec"),
    _chart_from_payload,
)


def normalize_chart(payload: Any) -> ChartSpec | None:
    """
    Convert a backend chart payload into a :class:`CanonicalChart` or
    :class:`DeclarativeChart`.

    Returns:
        The decoded chart, or None when no supported, valid shape is found.
    """
    payload = _decode_json(payload)
    chart = first_match(_CHART_DECODERS, payload) if isinstance(payload, dict) else None
    if chart is None:
        logger.warning("Could not parse chart data from payload: %s", _preview(payload))
    return chart


def is_valid_chart(chart: ChartSpec | None) -> bool:
    return chart is not None and chart.is_valid


def _preview(payload: Any) -> str:
    try:
        text = json.dumps(payload, default=str)
    except (TypeError, ValueError):
        text = repr(payload)
    return text[:200]
