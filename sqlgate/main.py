"""sqlgate MCP server: main entry point.

Wires config -> pool -> classifier + policy -> guard -> execute_query tool.
The pool is constructed here and injected; nothing else holds it.
"""
import logging
import sys
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from sqlgate.config import GatewayConfig, config as default_config
from sqlgate.db import GatewayPool
from sqlgate.governance.policy import build_query_policy, load_policy_config
from sqlgate.governance.sql_guard import SQLClassifier
from sqlgate.guard import QueryGuard
from sqlgate.tools.query import register_query_tools

# stdout carries the stdio transport; logs go to stderr.
logging.basicConfig(level=logging.INFO, stream=sys.stderr)
logger = logging.getLogger(__name__)

TRANSPORTS = ("stdio", "streamable-http", "sse")


def build_server(cfg: GatewayConfig = None, pool: GatewayPool = None) -> FastMCP:
    """Build the MCP server with its pool, guard and tool registered."""
    cfg = cfg or default_config
    pool = pool or GatewayPool(cfg)

    @asynccontextmanager
    async def app_lifespan(server: FastMCP):
        """Open the pool on startup, close it on shutdown."""
        await pool.initialize()
        logger.info(
            f"sqlgate started (db={cfg.db_host}:{cfg.db_port}/{cfg.db_name}, "
            f"dialect={cfg.sql_dialect})"
        )
        try:
            yield {"pool": pool}
        finally:
            await pool.close()
            logger.info("sqlgate stopped")

    mcp = FastMCP(
        "sqlgate",
        lifespan=app_lifespan,
        host=cfg.host,
        port=cfg.port,
    )

    guard = QueryGuard(
        pool,
        classifier=SQLClassifier(dialect=cfg.sql_dialect),
        policy=build_query_policy(load_policy_config(cfg.policy_config_path)),
    )
    register_query_tools(mcp, guard)
    return mcp


def main():
    cfg = default_config
    if cfg.transport not in TRANSPORTS:
        raise SystemExit(
            f"Unknown transport '{cfg.transport}' (expected one of {', '.join(TRANSPORTS)})"
        )
    build_server(cfg).run(transport=cfg.transport)


if __name__ == "__main__":
    main()
