"""Async PostgreSQL connection pool handed to the query guard.

The pool owns connection lifecycle (creation, health checks, idle eviction);
callers only borrow a connection for the duration of one request.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from sqlgate.config import GatewayConfig

logger = logging.getLogger(__name__)


class GatewayPool:
    """Manages the async connection pool to the target database.

    - Connections run in autocommit mode; transactions are opened explicitly
    - Rows come back as dicts (column name -> value)
    - Health check before checkout, idle eviction and max lifetime
    - Acquisition waits at most `pool_timeout` seconds, then PoolTimeout
    """

    def __init__(self, config: GatewayConfig):
        self._config = config
        self._pool: Optional[AsyncConnectionPool] = None

    @property
    def initialized(self) -> bool:
        return self._pool is not None

    async def initialize(self, conninfo: str = None):
        """Create and open the connection pool."""
        cfg = self._config
        self._pool = AsyncConnectionPool(
            conninfo=conninfo or cfg.conninfo(),
            min_size=cfg.pool_min_size,
            max_size=cfg.pool_max_size,
            open=False,
            kwargs={"row_factory": dict_row, "autocommit": True},
            check=AsyncConnectionPool.check_connection,
            timeout=cfg.pool_timeout,
            max_waiting=cfg.pool_max_waiting,
            max_lifetime=cfg.pool_max_lifetime,
            max_idle=cfg.pool_max_idle,
            name="sqlgate",
        )
        await self._pool.open()
        if cfg.pool_max_waiting == 0:
            logger.warning(
                "Connection pool wait queue is unbounded (SQLGATE_POOL_MAX_WAITING=0); "
                f"waiters are only bounded by the {cfg.pool_timeout}s acquisition timeout"
            )
        logger.info(
            f"Connection pool initialized (min={cfg.pool_min_size}, max={cfg.pool_max_size})"
        )

    async def close(self):
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Connection pool closed")

    def _require_pool(self) -> AsyncConnectionPool:
        if not self._pool:
            raise RuntimeError("Pool not initialized. Call initialize() first.")
        return self._pool

    async def acquire(self) -> psycopg.AsyncConnection:
        """Borrow a connection. Suspends while the pool is at capacity."""
        return await self._require_pool().getconn()

    async def release(self, conn: psycopg.AsyncConnection):
        """Return a borrowed connection to the pool (never closes it)."""
        await self._require_pool().putconn(conn)

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """Borrow a connection for the duration of the block.

        The connection goes back to the pool on every exit path.
        """
        conn = await self.acquire()
        try:
            yield conn
        finally:
            await self.release(conn)
