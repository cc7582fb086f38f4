"""Guarded execution of caller-supplied SQL.

A request is classified, checked against the query policy, and only then run
on a pooled connection inside a READ ONLY transaction that is always rolled
back. Classification is advisory: the read-only session and the forced
rollback are what keep the database unchanged.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, Union

import psycopg

from sqlgate.governance.policy import QueryPolicy
from sqlgate.governance.sql_guard import SQLClassifier, SQLStatementType
from sqlgate.utils.errors import (
    EXECUTION_ERROR_MESSAGE,
    ParseError,
    describe_fault,
)

logger = logging.getLogger(__name__)

READ_ONLY_SESSION_SQL = "SET SESSION CHARACTERISTICS AS TRANSACTION READ ONLY"
SNAPSHOT_SQL = "SELECT 1"


@dataclass(frozen=True)
class Rows:
    """Successful execution: one row list per row-returning statement."""

    result_sets: list[list[dict[str, Any]]] = field(default_factory=list)
    is_error: bool = field(default=False, init=False)

    @property
    def rows(self) -> list[dict[str, Any]]:
        """All rows across result sets, in database order."""
        return [row for result_set in self.result_sets for row in result_set]


@dataclass(frozen=True)
class Rejected:
    """The policy refused the request; nothing reached the database."""

    reason: str
    kinds: list[SQLStatementType] = field(default_factory=list)
    is_error: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Failed:
    """Parsing, acquisition or execution failed; detail is caller-safe."""

    detail: str = EXECUTION_ERROR_MESSAGE
    is_error: bool = field(default=True, init=False)


ExecutionResult = Union[Rows, Rejected, Failed]


class ConnectionProvider(Protocol):
    """What the guard needs from a pool: a scoped connection borrow."""

    def connection(self): ...


class QueryGuard:
    """Classifies, gates and executes one SQL request at a time per call.

    Holds no per-request state; concurrent calls each borrow their own
    connection from the injected pool.
    """

    def __init__(
        self,
        pool: ConnectionProvider,
        classifier: SQLClassifier = None,
        policy: QueryPolicy = None,
    ):
        self._pool = pool
        self._classifier = classifier or SQLClassifier()
        self._policy = policy or QueryPolicy()

    @property
    def classifier(self) -> SQLClassifier:
        return self._classifier

    @property
    def policy(self) -> QueryPolicy:
        return self._policy

    async def execute(self, sql: str) -> ExecutionResult:
        try:
            kinds = self._classifier.classify(sql)
        except ParseError as e:
            logger.warning(f"Could not parse submitted SQL: {e}")
            return Failed(EXECUTION_ERROR_MESSAGE)

        decision = self._policy.evaluate(kinds)
        if not decision.allowed:
            logger.info(
                f"Rejected request with statement types "
                f"{[k.value for k in decision.kinds]} "
                f"(denied: {[k.value for k in decision.offending]})"
            )
            return Rejected(reason=decision.reason, kinds=decision.kinds)

        try:
            result_sets = await self._run_rolled_back(sql)
        except psycopg.Error as e:
            logger.error(f"Guarded execution failed ({describe_fault(e)}): {e}")
            return Failed(EXECUTION_ERROR_MESSAGE)

        return Rows(result_sets=result_sets)

    async def _run_rolled_back(self, sql: str) -> list[list[dict[str, Any]]]:
        """Run sql in a read-only transaction that is never committed.

        psycopg rolls the transaction back on exit; a failed rollback is
        logged by psycopg and does not replace the query's outcome.
        """
        async with self._pool.connection() as conn:
            await conn.execute(READ_ONLY_SESSION_SQL)
            async with conn.transaction(force_rollback=True):
                # Once a snapshot exists, Postgres refuses to switch the
                # transaction back to READ WRITE.
                await conn.execute(SNAPSHOT_SQL)
                async with conn.cursor() as cur:
                    await cur.execute(sql)
                    return await _fetch_result_sets(cur)


async def _fetch_result_sets(cur) -> list[list[dict[str, Any]]]:
    result_sets = []
    while True:
        if cur.description is not None:
            result_sets.append([dict(row) for row in await cur.fetchall()])
        if not cur.nextset():
            break
    return result_sets
