"""The execute_query tool: the gateway's only outward-facing operation.

Every outcome is returned as a CallToolResult so the caller sees the fixed
texts verbatim: rows on success, isError=true with the rejection or generic
execution message otherwise.
"""
import logging

from mcp.server.fastmcp import FastMCP
from mcp.types import CallToolResult, TextContent
from pydantic import BaseModel, ConfigDict, Field

from sqlgate.guard import ExecutionResult, QueryGuard, Rejected, Rows
from sqlgate.utils.errors import EXECUTION_ERROR_MESSAGE
from sqlgate.utils.formatting import ResponseFormat, format_query_results

logger = logging.getLogger(__name__)


class ExecuteQueryInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    sql: str = Field(
        ...,
        description="SQL query to execute (SELECT, SHOW or DESCRIBE)",
    )
    response_format: ResponseFormat = Field(
        default=ResponseFormat.JSON,
        description="json (default) or markdown",
    )


def _text_result(text: str, is_error: bool) -> CallToolResult:
    return CallToolResult(
        content=[TextContent(type="text", text=text)],
        isError=is_error,
    )


def render_result(
    result: ExecutionResult, fmt: ResponseFormat = ResponseFormat.JSON
) -> CallToolResult:
    """Turn an ExecutionResult into the tool payload."""
    if isinstance(result, Rows):
        return _text_result(format_query_results(result.result_sets, fmt=fmt), False)
    if isinstance(result, Rejected):
        return _text_result(f"Error: {result.reason}", True)
    return _text_result(result.detail, True)


def register_query_tools(mcp: FastMCP, guard: QueryGuard):

    @mcp.tool(
        name="execute_query",
        annotations={
            "title": "Execute Read-Only SQL Query",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def execute_query(params: ExecuteQueryInput) -> CallToolResult:
        """Execute a read-only SQL query against the connected database.

        INSERT, UPDATE, DELETE, DROP, TRUNCATE, RENAME and transaction control
        statements are rejected. Everything else runs inside a READ ONLY
        transaction that is always rolled back, so no query has a lasting
        effect.

        Returns the rows as JSON (or a markdown table).
        """
        try:
            result = await guard.execute(params.sql)
        except Exception:
            logger.exception("Unexpected failure while executing query")
            return _text_result(EXECUTION_ERROR_MESSAGE, True)
        return render_result(result, params.response_format)
