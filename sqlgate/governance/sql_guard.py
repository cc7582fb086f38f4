"""SQL statement classification using sqlglot AST parsing.

Turns submitted SQL text into an ordered list of statement kinds:
- one kind per statement, in source order (multi-statement text is split on ';')
- CTE-wrapped statements are classified by their outer statement
- syntactically valid but unrecognised statements classify as UNKNOWN
- command keywords sqlglot has no grammar for (EXPLAIN, SHOW, ABORT, ...)
  fall back to keyword classification
- text that holds no statement at all raises ParseError
"""
import re
import logging
from enum import Enum
from typing import Optional

import sqlglot
from sqlglot import exp

from sqlgate.utils.errors import ParseError

logger = logging.getLogger(__name__)


class SQLStatementType(str, Enum):
    """Statement kinds reported by the classifier."""

    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    CREATE = "create"
    DROP = "drop"
    ALTER = "alter"
    RENAME = "rename"
    MERGE = "merge"
    TRUNCATE = "truncate"
    GRANT = "grant"
    REVOKE = "revoke"
    USE = "use"
    SHOW = "show"
    DESCRIBE = "describe"
    EXPLAIN = "explain"
    SET = "set"
    CALL = "call"
    TRANSACTION = "transaction"
    UNKNOWN = "unknown"


# Map sqlglot expression types to our statement types.
# exp.Query covers SELECT, set operations and parenthesised queries.
_EXPRESSION_MAP: dict[type, SQLStatementType] = {
    exp.Query: SQLStatementType.SELECT,
    exp.Values: SQLStatementType.SELECT,
    exp.Insert: SQLStatementType.INSERT,
    exp.Update: SQLStatementType.UPDATE,
    exp.Delete: SQLStatementType.DELETE,
    exp.Create: SQLStatementType.CREATE,
    exp.Drop: SQLStatementType.DROP,
    exp.Alter: SQLStatementType.ALTER,
    exp.Merge: SQLStatementType.MERGE,
    exp.TruncateTable: SQLStatementType.TRUNCATE,
    exp.Grant: SQLStatementType.GRANT,
    exp.Describe: SQLStatementType.DESCRIBE,
    exp.Show: SQLStatementType.SHOW,
    exp.Use: SQLStatementType.USE,
    exp.Set: SQLStatementType.SET,
    exp.Transaction: SQLStatementType.TRANSACTION,
    exp.Commit: SQLStatementType.TRANSACTION,
    exp.Rollback: SQLStatementType.TRANSACTION,
}

# sqlglot keeps statements it has no grammar for as opaque Command nodes,
# keyed by their leading keyword.
_COMMAND_MAP: dict[str, SQLStatementType] = {
    "SHOW": SQLStatementType.SHOW,
    "DESCRIBE": SQLStatementType.DESCRIBE,
    "DESC": SQLStatementType.DESCRIBE,
    "EXPLAIN": SQLStatementType.EXPLAIN,
    "RENAME": SQLStatementType.RENAME,
    "GRANT": SQLStatementType.GRANT,
    "REVOKE": SQLStatementType.REVOKE,
    "CALL": SQLStatementType.CALL,
    "SET": SQLStatementType.SET,
    "RESET": SQLStatementType.SET,
    "USE": SQLStatementType.USE,
    "TRUNCATE": SQLStatementType.TRUNCATE,
    "ALTER": SQLStatementType.ALTER,
    "CREATE": SQLStatementType.CREATE,
    "DROP": SQLStatementType.DROP,
    "BEGIN": SQLStatementType.TRANSACTION,
    "START": SQLStatementType.TRANSACTION,
    "COMMIT": SQLStatementType.TRANSACTION,
    "END": SQLStatementType.TRANSACTION,
    "ROLLBACK": SQLStatementType.TRANSACTION,
    "ABORT": SQLStatementType.TRANSACTION,
    "SAVEPOINT": SQLStatementType.TRANSACTION,
    "RELEASE": SQLStatementType.TRANSACTION,
}

# Two-word commands whose kind differs from their first keyword's.
# PREPARE alone declares a prepared statement.
_COMMAND_PHRASE_MAP: dict[str, SQLStatementType] = {
    "PREPARE TRANSACTION": SQLStatementType.TRANSACTION,
}

_LEADING_WORDS = re.compile(r"\s*([A-Za-z]+)(?:\s+([A-Za-z]+))?")

# Top-level nodes that are expressions, not statements. sqlglot accepts
# e.g. "SELEC * FORM t" as the expression `SELEC * FORM AS t`.
_BARE_EXPRESSIONS = (
    exp.Condition,
    exp.Alias,
    exp.Identifier,
    exp.Star,
    exp.Tuple,
)


class SQLClassifier:
    """Parses SQL and reports the kind of each statement.

    Stateless: one instance can serve concurrent requests.
    """

    def __init__(self, dialect: str = "postgres"):
        self._dialect = dialect

    @property
    def dialect(self) -> str:
        return self._dialect

    def classify(self, sql: str) -> list[SQLStatementType]:
        """Classify a SQL string into statement types, one per statement.

        Raises:
            ParseError: if the text cannot be parsed into any statement.
        """
        try:
            statements = sqlglot.parse(sql, dialect=self._dialect)
        except sqlglot.errors.ParseError as e:
            fallback = self._keyword_fallback(sql)
            if fallback:
                return fallback
            raise ParseError(str(e)) from e

        types: list[SQLStatementType] = []
        for stmt in statements:
            if stmt is None:
                continue
            if isinstance(stmt, _BARE_EXPRESSIONS):
                # e.g. ABORT or SAVEPOINT s parse as column references
                fallback = self._keyword_fallback(sql)
                if fallback:
                    return fallback
                raise ParseError(
                    f"Expected a statement, found expression: {stmt.sql(dialect=self._dialect)[:100]}"
                )
            types.append(self._classify_expression(stmt))

        if not types:
            raise ParseError("No SQL statement found.")
        return types

    def _classify_expression(self, node: exp.Expression) -> SQLStatementType:
        """Map a sqlglot expression node to a SQLStatementType."""
        for expr_type, stmt_type in _EXPRESSION_MAP.items():
            if isinstance(node, expr_type):
                return stmt_type

        if isinstance(node, exp.Command):
            stmt_type = self._classify_command(node)
            if stmt_type:
                return stmt_type

        logger.debug(f"Unrecognized expression type: {type(node).__name__}")
        return SQLStatementType.UNKNOWN

    @staticmethod
    def _classify_command(node: exp.Command) -> Optional[SQLStatementType]:
        if not isinstance(node.this, str):
            return None
        rest = node.args.get("expression")
        text = f"{node.this} {rest}" if isinstance(rest, str) else node.this
        return _command_kind(text)

    @staticmethod
    def _keyword_fallback(sql: str) -> list[SQLStatementType]:
        """Classify statements sqlglot has no grammar for by leading keyword.

        Every chunk must open with a known command keyword, otherwise the
        text stays unparseable and an empty list is returned.
        """
        types: list[SQLStatementType] = []
        for chunk in sql.split(";"):
            if not chunk.strip():
                continue
            stmt_type = _command_kind(chunk)
            if stmt_type is None:
                return []
            types.append(stmt_type)
        if types:
            logger.debug(f"Classified by keyword fallback: {[t.value for t in types]}")
        return types


def _command_kind(text: str) -> Optional[SQLStatementType]:
    """Kind of a command from its leading keyword, or None if unknown."""
    match = _LEADING_WORDS.match(text)
    if not match:
        return None
    first = match.group(1).upper()
    if match.group(2):
        phrase = _COMMAND_PHRASE_MAP.get(f"{first} {match.group(2).upper()}")
        if phrase:
            return phrase
    return _COMMAND_MAP.get(first)
