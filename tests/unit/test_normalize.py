"""
Unit tests for table and chart payload normalization.
"""

import json

from cortexstream._types import CanonicalChart, DeclarativeChart, Table
from cortexstream.normalize import (
    first_match,
    is_valid_chart,
    is_valid_table,
    normalize_chart,
    normalize_table,
)


class TestNormalizeTable:
    """Each supported table shape decodes to the same canonical Table."""

    def test_direct_headers_and_rows(self):
        table = normalize_table({"headers": ["A", "B"], "rows": [[1, 2]], "title": "T"})
        assert table == Table(title="T", headers=["A", "B"], rows=[[1, 2]])

    def test_direct_headers_with_data_key(self):
        table = normalize_table({"headers": ["A"], "data": [[1], [2]]})
        assert table.rows == [[1], [2]]

    def test_result_set_row_type_matches_direct_headers(self):
        """Snowflake rowType metadata and plain headers produce identical tables."""
        from_row_type = normalize_table(
            {
                "result_set": {
                    "resultSetMetaData": {"rowType": [{"name": "A"}, {"name": "B"}]},
                    "data": [[1, 2]],
                }
            }
        )
        from_headers = normalize_table({"headers": ["A", "B"], "rows": [[1, 2]]})
        assert from_row_type == from_headers

    def test_result_set_row_type_raw_strings(self):
        table = normalize_table(
            {"result_set": {"resultSetMetaData": {"rowType": ["X", "Y"]}, "data": [["a", "b"]]}}
        )
        assert table.headers == ["X", "Y"]
        assert table.rows == [["a", "b"]]

    def test_result_set_title_falls_back(self):
        payload = {"result_set": {"headers": ["A"], "rows": [], "title": "Inner"}}
        assert normalize_table(payload).title == "Inner"
        assert normalize_table({**payload, "title": "Outer"}).title == "Outer"
        assert normalize_table({"result_set": {"headers": ["A"]}}, "Fallback").title == "Fallback"

    def test_result_set_columns(self):
        table = normalize_table(
            {"result_set": {"columns": [{"name": "A"}, {"label": "B"}, "C"], "data": [[1, 2, 3]]}}
        )
        assert table.headers == ["A", "B", "C"]
        assert table.rows == [[1, 2, 3]]

    def test_table_wrapper_with_headers(self):
        table = normalize_table({"table": {"headers": ["A"], "rows": [[1]], "title": "Wrapped"}})
        assert table == Table(title="Wrapped", headers=["A"], rows=[[1]])

    def test_table_wrapper_with_nested_result_set(self):
        table = normalize_table(
            {
                "table": {
                    "title": "Nested",
                    "result_set": {
                        "resultSetMetaData": {"rowType": [{"name": "REGION"}]},
                        "data": [["EMEA"]],
                    },
                }
            }
        )
        assert table == Table(title="Nested", headers=["REGION"], rows=[["EMEA"]])

    def test_table_wrapper_with_columns(self):
        table = normalize_table({"table": {"columns": ["A", "B"], "data": [[1, 2]]}}, "T")
        assert table == Table(title="T", headers=["A", "B"], rows=[[1, 2]])

    def test_top_level_columns(self):
        table = normalize_table({"columns": [{"name": "A"}, {"label": "B"}], "rows": [[1, 2]]})
        assert table.headers == ["A", "B"]
        assert table.rows == [[1, 2]]

    def test_data_first_row_is_header_row(self):
        table = normalize_table({"data": [["A", 1], ["x", 2], ["y", 3]]})
        assert table.headers == ["A", "1"]
        assert table.rows == [["x", 2], ["y", 3]]

    def test_data_of_records_is_invalid(self):
        table = normalize_table({"data": [{"a": 1}]})
        assert not table.is_valid

    def test_unrecognized_payload_returns_empty_table(self):
        table = normalize_table({"something": "else"}, "Fallback")
        assert table == Table(title="Fallback", headers=[], rows=[])
        assert not is_valid_table(table)

    def test_non_dict_payload_does_not_raise(self):
        assert normalize_table(None).headers == []
        assert normalize_table("not a table").headers == []
        assert normalize_table([1, 2, 3]).headers == []

    def test_empty_headers_is_invalid(self):
        table = normalize_table({"headers": [], "rows": [[1]]})
        assert table.headers == []
        assert not table.is_valid

    def test_headers_without_rows_is_valid(self):
        table = normalize_table({"headers": ["X"], "rows": []})
        assert table.is_valid
        assert table.rows == []

    def test_direct_headers_take_priority_over_result_set(self):
        table = normalize_table(
            {"headers": ["Direct"], "rows": [], "result_set": {"headers": ["Nested"]}}
        )
        assert table.headers == ["Direct"]


BAR_CHART = {
    "mark": "bar",
    "encoding": {
        "x": {"field": "REGION", "type": "nominal"},
        "y": {"field": "REVENUE", "type": "quantitative"},
    },
    "data": {"values": [{"REGION": "EMEA", "REVENUE": 120}, {"REGION": "AMER", "REVENUE": 95}]},
}

LINE_CHART = {
    "type": "line",
    "data": {"labels": ["Jan", "Feb"], "datasets": [{"label": "Sales", "data": [1, 2]}]},
}


class TestNormalizeChart:
    """Chart payloads decode into canonical or declarative variants."""

    def test_chart_spec_json_string(self):
        chart = normalize_chart({"content_index": 2, "chart_spec": json.dumps(BAR_CHART)})
        assert isinstance(chart, DeclarativeChart)
        assert chart.mark == "bar"
        assert chart.field_binding("x") == ("REGION", "nominal")
        assert chart.field_binding("y") == ("REVENUE", "quantitative")
        assert len(chart.values) == 2

    def test_camel_case_chart_spec_object(self):
        chart = normalize_chart({"chartSpec": LINE_CHART})
        assert isinstance(chart, CanonicalChart)
        assert chart.labels == ["Jan", "Feb"]
        assert chart.datasets == [{"label": "Sales", "data": [1, 2]}]
        assert chart.spec == LINE_CHART

    def test_top_level_labels_and_datasets(self):
        chart = normalize_chart({"labels": ["a"], "datasets": []})
        assert isinstance(chart, CanonicalChart)
        assert chart.labels == ["a"]

    def test_chart_wrapper_with_chart_spec(self):
        chart = normalize_chart({"chart": {"chart_spec": json.dumps(BAR_CHART)}})
        assert isinstance(chart, DeclarativeChart)

    def test_chart_wrapper_body_is_spec(self):
        chart = normalize_chart({"chart": LINE_CHART})
        assert isinstance(chart, CanonicalChart)

    def test_spec_key(self):
        chart = normalize_chart({"spec": json.dumps(LINE_CHART)})
        assert isinstance(chart, CanonicalChart)

    def test_payload_itself_is_spec(self):
        assert isinstance(normalize_chart(BAR_CHART), DeclarativeChart)
        assert isinstance(normalize_chart(LINE_CHART), CanonicalChart)

    def test_declarative_requires_mark_encoding_and_data(self):
        assert normalize_chart({"mark": "bar", "encoding": {"x": {}}}) is None
        assert normalize_chart({"mark": "bar", "data": {"values": []}}) is None

    def test_declarative_with_empty_encoding_is_accepted(self):
        chart = normalize_chart({"mark": "bar", "encoding": {}, "data": {"values": [{"a": 1}]}})
        assert isinstance(chart, DeclarativeChart)
        assert chart.field_binding("x") == (None, None)

    def test_canonical_with_empty_labels_and_datasets_is_rejected(self):
        assert normalize_chart({"type": "bar", "data": {"labels": [], "datasets": []}}) is None

    def test_invalid_json_string_returns_none(self):
        assert normalize_chart({"chart_spec": "{not json"}) is None

    def test_no_chart_shape_returns_none(self):
        assert normalize_chart({"content_index": 0, "title": "nothing"}) is None
        assert normalize_chart(None) is None

    def test_invalid_first_candidate_falls_through(self):
        """An unusable chartSpec does not hide a valid chart wrapper."""
        chart = normalize_chart({"chartSpec": "{}", "chart": LINE_CHART})
        assert isinstance(chart, CanonicalChart)

    def test_is_valid_chart(self):
        assert is_valid_chart(normalize_chart(BAR_CHART))
        assert not is_valid_chart(None)


class TestFirstMatch:
    def test_returns_first_non_none(self):
        calls = []

        def miss(value):
            calls.append("miss")
            return None

        def hit(value):
            calls.append("hit")
            return value * 2

        def unreachable(value):
            calls.append("unreachable")
            return value

        assert first_match([miss, hit, unreachable], 21) == 42
        assert calls == ["miss", "hit"]

    def test_returns_none_when_nothing_matches(self):
        assert first_match([lambda _: None], 1) is None
