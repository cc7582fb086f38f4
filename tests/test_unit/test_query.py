"""Unit tests for the execute_query tool and its payload rendering."""
import json
from unittest.mock import AsyncMock

import pytest
from mcp.server.fastmcp import FastMCP

from sqlgate.guard import Failed, QueryGuard, Rejected, Rows
from sqlgate.tools.query import ExecuteQueryInput, register_query_tools, render_result
from sqlgate.utils.errors import EXECUTION_ERROR_MESSAGE, REJECTION_MESSAGE
from sqlgate.utils.formatting import ResponseFormat


class TestQueryInputValidation:
    def test_valid_query(self):
        params = ExecuteQueryInput(sql="SELECT 1")
        assert params.sql == "SELECT 1"

    def test_default_format_is_json(self):
        assert ExecuteQueryInput(sql="SELECT 1").response_format == ResponseFormat.JSON

    def test_whitespace_stripped(self):
        assert ExecuteQueryInput(sql="  SELECT 1 \n").sql == "SELECT 1"

    def test_empty_sql_accepted(self):
        # Empty text is a parse failure reported by the guard, not a schema error.
        assert ExecuteQueryInput(sql="").sql == ""

    def test_sql_required(self):
        with pytest.raises(ValueError):
            ExecuteQueryInput()


class TestRenderResult:
    def test_rows_as_json(self, sample_rows):
        result = render_result(Rows(result_sets=[sample_rows]))
        assert result.isError is False
        assert json.loads(result.content[0].text) == sample_rows

    def test_rows_as_markdown(self, sample_rows):
        result = render_result(Rows(result_sets=[sample_rows]), ResponseFormat.MARKDOWN)
        assert "2 row(s)" in result.content[0].text
        assert "Alice" in result.content[0].text

    def test_rejected_message_text(self):
        result = render_result(Rejected(reason=REJECTION_MESSAGE))
        assert result.isError is True
        assert result.content[0].text == (
            "Error: Only SELECT, SHOW, or DESCRIBE statements are allowed."
        )

    def test_failed_message_text(self):
        result = render_result(Failed())
        assert result.isError is True
        assert result.content[0].text == "Error executing query"


class TestExecuteQueryTool:
    """The registered tool, called through FastMCP's tool manager."""

    @pytest.fixture
    def guard(self):
        return AsyncMock(spec=QueryGuard)

    @pytest.fixture
    def mcp(self, guard):
        server = FastMCP("sqlgate-test")
        register_query_tools(server, guard)
        return server

    async def _call(self, mcp, sql):
        return await mcp._tool_manager.call_tool(
            "execute_query", {"params": {"sql": sql}}, convert_result=True
        )

    async def test_tool_registered(self, mcp):
        tools = await mcp.list_tools()
        assert [t.name for t in tools] == ["execute_query"]
        assert tools[0].annotations.readOnlyHint is True

    async def test_success_returns_json(self, mcp, guard):
        guard.execute.return_value = Rows(result_sets=[[{"id": 1}]])
        result = await self._call(mcp, "SELECT id FROM users WHERE id = 1")
        guard.execute.assert_awaited_once_with("SELECT id FROM users WHERE id = 1")
        assert result.isError is False
        assert json.loads(result.content[0].text) == [{"id": 1}]

    async def test_rejection_is_exact_error_text(self, mcp, guard):
        guard.execute.return_value = Rejected(reason=REJECTION_MESSAGE)
        result = await self._call(mcp, "DROP TABLE users")
        assert result.isError is True
        assert result.content[0].text == f"Error: {REJECTION_MESSAGE}"

    async def test_failure_is_exact_error_text(self, mcp, guard):
        guard.execute.return_value = Failed()
        result = await self._call(mcp, "SELEC * FORM t")
        assert result.isError is True
        assert result.content[0].text == EXECUTION_ERROR_MESSAGE

    async def test_unexpected_exception_is_generic(self, mcp, guard):
        guard.execute.side_effect = RuntimeError("Pool not initialized. Call initialize() first.")
        result = await self._call(mcp, "SELECT 1")
        assert result.isError is True
        assert result.content[0].text == EXECUTION_ERROR_MESSAGE
