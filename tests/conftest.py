"""Shared test fixtures for sqlgate tests."""
import asyncio
import logging
from contextlib import asynccontextmanager

import pytest

from sqlgate.config import GatewayConfig
from sqlgate.db import GatewayPool

logger = logging.getLogger(__name__)


class FakeCursor:
    """Stands in for psycopg.AsyncCursor over canned result sets.

    Each entry of `result_sets` is a row list, or None for a statement that
    returns no rows.
    """

    def __init__(self, conn):
        self._conn = conn
        self._sets = []
        self._index = 0

    async def execute(self, sql):
        self._conn.events.append(("query", sql))
        await asyncio.sleep(0)
        if self._conn.query_error:
            raise self._conn.query_error
        self._sets = list(self._conn.result_sets)
        self._index = 0

    @property
    def description(self):
        if self._index >= len(self._sets) or self._sets[self._index] is None:
            return None
        rows = self._sets[self._index]
        return [(name,) for name in rows[0]] if rows else [("?column?",)]

    async def fetchall(self):
        return list(self._sets[self._index])

    def nextset(self):
        if self._index + 1 < len(self._sets):
            self._index += 1
            return True
        return None


class FakeConnection:
    """Records every call the guard makes on a pooled connection."""

    def __init__(self, result_sets=None, query_error=None, rollback_error=None):
        self.result_sets = result_sets if result_sets is not None else [[]]
        self.query_error = query_error
        self.rollback_error = rollback_error
        self.events = []

    async def execute(self, sql):
        self.events.append(("execute", sql))

    @asynccontextmanager
    async def cursor(self):
        yield FakeCursor(self)

    @asynccontextmanager
    async def transaction(self, force_rollback=False):
        """Mirrors psycopg's Transaction: BEGIN, then commit or roll back.

        A failing rollback is logged and swallowed, as psycopg does.
        """
        self.events.append(("begin",))
        try:
            yield
        except BaseException:
            await self._quiet_rollback()
            raise
        if force_rollback:
            await self._quiet_rollback()
        else:
            self.events.append(("commit",))

    async def _quiet_rollback(self):
        self.events.append(("rollback",))
        if self.rollback_error:
            logger.warning(f"error ignored in rollback: {self.rollback_error}")

    @property
    def event_names(self):
        return [e[0] for e in self.events]


class FakeConnectionPool:
    """Stands in for psycopg_pool.AsyncConnectionPool (getconn/putconn)."""

    def __init__(self, connections=(), acquire_error=None):
        self._idle = list(connections)
        self.acquire_error = acquire_error
        self.getconn_calls = 0
        self.putconn_calls = []
        self.closed = False

    async def getconn(self, timeout=None):
        self.getconn_calls += 1
        if self.acquire_error:
            raise self.acquire_error
        return self._idle.pop(0) if self._idle else FakeConnection()

    async def putconn(self, conn):
        self.putconn_calls.append(conn)

    async def close(self):
        self.closed = True


@pytest.fixture
def make_pool():
    """Build a GatewayPool backed by a FakeConnectionPool."""

    def _make(*connections, acquire_error=None):
        pool = GatewayPool(GatewayConfig())
        pool._pool = FakeConnectionPool(connections, acquire_error=acquire_error)
        return pool

    return _make


@pytest.fixture
def make_connection():
    """Factory for FakeConnection(result_sets, query_error, rollback_error)."""
    return FakeConnection


@pytest.fixture
def sample_rows():
    return [
        {"id": 1, "name": "Alice", "email": "alice@example.com"},
        {"id": 2, "name": "Bob", "email": "bob@example.com"},
    ]
