"""
Root pytest configuration and fixtures for cortexstream.

Provides a recorded agent turn as SSE frames.
"""

import json
from pathlib import Path
import sys

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tests.utils.mocks import sse  # noqa: E402


@pytest.fixture
def sample_turn():
    """A realistic agent turn: status, tool use, text deltas, a table and a chart."""
    return [
        sse("metadata", {"role": "user", "message_id": 11}),
        sse("response.status", {"status": "planning", "message": "Planning the next steps"}),
        sse(
            "response.tool_use",
            {
                "tool_use_id": "tu_1",
                "name": "sales_analyst",
                "type": "cortex_analyst_text_to_sql",
                "input": {"query": "revenue by region"},
            },
        ),
        sse(
            "response.tool_result.status",
            {"tool_use_id": "tu_1", "status": "executing", "message": "Running SQL"},
        ),
        sse("response.text.delta", {"content_index": 0, "text": "Revenue is "}),
        sse("response.text.delta", {"content_index": 0, "text": "highest in EMEA."}),
        sse(
            "response.table",
            {
                "content_index": 1,
                "title": "Revenue by region",
                "result_set": {
                    "resultSetMetaData": {"rowType": [{"name": "REGION"}, {"name": "REVENUE"}]},
                    "data": [["EMEA", "120"], ["AMER", "95"]],
                },
            },
        ),
        sse(
            "response.chart",
            {
                "content_index": 2,
                "chart_spec": json.dumps(
                    {
                        "mark": "bar",
                        "encoding": {
                            "x": {"field": "REGION", "type": "nominal"},
                            "y": {"field": "REVENUE", "type": "quantitative"},
                        },
                        "data": {"values": [{"REGION": "EMEA", "REVENUE": 120}]},
                    }
                ),
            },
        ),
        sse(
            "response.tool_result",
            {"tool_use_id": "tu_1", "status": "success", "content": [{"type": "json"}]},
        ),
        sse("metadata", {"role": "assistant", "message_id": 12}),
    ]
