"""Configuration for the sqlgate MCP server.

Database connection, pool sizing, classifier dialect, policy and transport
settings, all loaded from environment variables. A .env file found from the
working directory upward is loaded first; variables already set win.
"""
import os
from dataclasses import dataclass, field

from dotenv import find_dotenv, load_dotenv
from psycopg.conninfo import make_conninfo

load_dotenv(find_dotenv(usecwd=True))


@dataclass
class GatewayConfig:
    """Server configuration loaded from environment variables."""

    # Database connection
    db_host: str = field(
        default_factory=lambda: os.environ.get("SQLGATE_DB_HOST", "localhost")
    )
    db_port: int = field(
        default_factory=lambda: int(os.environ.get("SQLGATE_DB_PORT", "5432"))
    )
    db_user: str = field(
        default_factory=lambda: os.environ.get("SQLGATE_DB_USER", "postgres")
    )
    db_password: str = field(
        default_factory=lambda: os.environ.get("SQLGATE_DB_PASSWORD", ""),
        repr=False,
    )
    db_name: str = field(
        default_factory=lambda: os.environ.get("SQLGATE_DB_NAME", "postgres")
    )
    db_sslmode: str = field(
        default_factory=lambda: os.environ.get("SQLGATE_DB_SSLMODE", "prefer")
    )
    connect_timeout: int = field(
        default_factory=lambda: int(os.environ.get("SQLGATE_CONNECT_TIMEOUT", "10"))
    )

    # Pool settings
    pool_min_size: int = field(
        default_factory=lambda: int(os.environ.get("SQLGATE_POOL_MIN", "1"))
    )
    pool_max_size: int = field(
        default_factory=lambda: int(os.environ.get("SQLGATE_POOL_MAX", "10"))
    )
    pool_max_idle: int = field(
        default_factory=lambda: int(os.environ.get("SQLGATE_POOL_MAX_IDLE", "60"))
    )
    pool_max_lifetime: int = field(
        default_factory=lambda: int(
            os.environ.get("SQLGATE_POOL_MAX_LIFETIME", "3600")
        )
    )
    # Seconds a request waits for a free connection before PoolTimeout.
    pool_timeout: float = field(
        default_factory=lambda: float(os.environ.get("SQLGATE_POOL_TIMEOUT", "30"))
    )
    # 0 = unbounded wait queue.
    pool_max_waiting: int = field(
        default_factory=lambda: int(os.environ.get("SQLGATE_POOL_MAX_WAITING", "0"))
    )

    # Classification and policy (see sqlgate/governance/policy.py)
    sql_dialect: str = field(
        default_factory=lambda: os.environ.get("SQLGATE_SQL_DIALECT", "postgres")
    )
    policy_config_path: str = field(
        default_factory=lambda: os.environ.get("SQLGATE_POLICY_CONFIG", "")
    )

    # Transport
    transport: str = field(
        default_factory=lambda: os.environ.get("SQLGATE_TRANSPORT", "stdio")
    )
    host: str = field(
        default_factory=lambda: os.environ.get("SQLGATE_HOST", "127.0.0.1")
    )
    port: int = field(
        default_factory=lambda: int(os.environ.get("SQLGATE_PORT", "8000"))
    )

    def conninfo(self) -> str:
        """Build a libpq conninfo string, quoting values as needed."""
        params = {
            "host": self.db_host,
            "port": self.db_port,
            "user": self.db_user,
            "dbname": self.db_name,
            "sslmode": self.db_sslmode,
            "connect_timeout": self.connect_timeout,
        }
        if self.db_password:
            params["password"] = self.db_password
        return make_conninfo(**params)


config = GatewayConfig()
