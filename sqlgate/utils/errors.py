"""Error taxonomy and caller-facing messages.

Callers only ever see the fixed messages below. Root causes are classified
with describe_fault() and go to the server log.
"""
import psycopg
from psycopg_pool import PoolTimeout

REJECTION_MESSAGE = "Only SELECT, SHOW, or DESCRIBE statements are allowed."
EXECUTION_ERROR_MESSAGE = "Error executing query"


class ParseError(ValueError):
    """SQL text could not be parsed into any statement.

    Carries the parser diagnostic for logging; never shown to the caller.
    """


def describe_fault(e: Exception) -> str:
    """Return a short internal category for a failed execution.

    Used in log lines only. Order matters: PoolTimeout is an
    OperationalError, and most specific errors are DatabaseErrors.
    """
    if isinstance(e, PoolTimeout):
        return "pool timeout"

    if isinstance(e, psycopg.errors.ReadOnlySqlTransaction):
        return "read-only violation"

    if isinstance(e, psycopg.errors.InsufficientPrivilege):
        return "permission denied"

    if isinstance(e, psycopg.errors.SyntaxError):
        return "syntax error"

    if isinstance(e, (psycopg.errors.UndefinedTable, psycopg.errors.UndefinedColumn)):
        return "undefined object"

    if isinstance(e, psycopg.errors.QueryCanceled):
        return "query canceled"

    if isinstance(e, (psycopg.OperationalError, psycopg.errors.ConnectionException)):
        return "connection failure"

    if isinstance(e, TimeoutError):
        return "timeout"

    if isinstance(e, psycopg.Error):
        return "database error"

    return f"unexpected {type(e).__name__}"
