"""Response formatting helpers."""
import json
from enum import Enum
from typing import Any


class ResponseFormat(str, Enum):
    JSON = "json"
    MARKDOWN = "markdown"


def serialize_rows(result_sets: list[list[dict[str, Any]]]) -> str:
    """Serialize result sets as JSON, preserving row and column order.

    A single result set is rendered as its row list, several as a list of
    row lists. Values JSON cannot represent (Decimal, datetime, UUID, ...)
    are rendered with str().
    """
    if len(result_sets) == 1:
        payload = result_sets[0]
    else:
        payload = result_sets
    return json.dumps(payload, indent=2, default=str)


def _markdown_table(rows: list[dict[str, Any]]) -> str:
    if not rows:
        return "_No results returned._"
    cols = list(rows[0].keys())
    lines = [f"**{len(rows)} row(s) returned**\n"]
    lines.append("| " + " | ".join(cols) + " |")
    lines.append("| " + " | ".join(["---"] * len(cols)) + " |")
    for row in rows:
        vals = [str(row.get(c, "")) for c in cols]
        lines.append("| " + " | ".join(vals) + " |")
    return "\n".join(lines)


def format_query_results(
    result_sets: list[list[dict[str, Any]]],
    fmt: ResponseFormat = ResponseFormat.JSON,
) -> str:
    if fmt == ResponseFormat.JSON:
        return serialize_rows(result_sets)
    if not result_sets:
        return "_No results returned._"
    return "\n\n".join(_markdown_table(rows) for rows in result_sets)
