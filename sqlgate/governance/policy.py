"""Query policy: decides whether a classified request may reach the database.

Loads config from env vars (primary) and an optional YAML file.

Two modes:
- denylist (default): reject if any statement kind is in the denylist
  (mutating kinds plus transaction control), everything else proceeds to
  guarded execution
- allowlist: only SELECT, SHOW and DESCRIBE proceed
"""
import os
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

import yaml

from sqlgate.governance.sql_guard import SQLStatementType
from sqlgate.utils.errors import REJECTION_MESSAGE

logger = logging.getLogger(__name__)


class PolicyMode(str, Enum):
    DENYLIST = "denylist"
    ALLOWLIST = "allowlist"


MUTATING_TYPES: frozenset[SQLStatementType] = frozenset(
    {
        SQLStatementType.INSERT,
        SQLStatementType.UPDATE,
        SQLStatementType.DELETE,
        SQLStatementType.DROP,
        SQLStatementType.TRUNCATE,
        SQLStatementType.RENAME,
    }
)

READ_TYPES: frozenset[SQLStatementType] = frozenset(
    {
        SQLStatementType.SELECT,
        SQLStatementType.SHOW,
        SQLStatementType.DESCRIBE,
    }
)

# Statements that would end the guarded transaction before its rollback.
# Denied in every mode; configuration cannot lift them.
TRANSACTION_CONTROL_TYPES: frozenset[SQLStatementType] = frozenset(
    {SQLStatementType.TRANSACTION}
)


@dataclass(frozen=True)
class PolicyDecision:
    """Outcome of evaluating a request's statement kinds."""

    allowed: bool
    kinds: list[SQLStatementType] = field(default_factory=list)
    offending: list[SQLStatementType] = field(default_factory=list)
    reason: Optional[str] = None


class QueryPolicy:
    """Set-membership test over every statement kind in a request."""

    def __init__(
        self,
        mode: PolicyMode = PolicyMode.DENYLIST,
        denied_types: Iterable[SQLStatementType] = (),
    ):
        self._mode = PolicyMode(mode)
        self._denied = MUTATING_TYPES | TRANSACTION_CONTROL_TYPES | frozenset(denied_types)

    @property
    def mode(self) -> PolicyMode:
        return self._mode

    @property
    def denied_types(self) -> frozenset[SQLStatementType]:
        return self._denied

    def is_mutating(self, kinds: Iterable[SQLStatementType]) -> bool:
        kinds = set(kinds)
        if self._mode == PolicyMode.ALLOWLIST:
            return not kinds or not kinds <= READ_TYPES
        return bool(kinds & self._denied)

    def evaluate(self, kinds: list[SQLStatementType]) -> PolicyDecision:
        if not self.is_mutating(kinds):
            return PolicyDecision(allowed=True, kinds=list(kinds))

        if self._mode == PolicyMode.ALLOWLIST:
            offending = [k for k in kinds if k not in READ_TYPES]
        else:
            offending = [k for k in kinds if k in self._denied]
        return PolicyDecision(
            allowed=False,
            kinds=list(kinds),
            offending=offending,
            reason=REJECTION_MESSAGE,
        )


@dataclass
class PolicyConfig:
    """Parsed policy configuration."""

    mode: PolicyMode = PolicyMode.DENYLIST
    denied_types: list[str] = field(default_factory=list)


def _load_yaml_config(path: str) -> dict:
    """Load policy config from a YAML file."""
    config_path = Path(path)
    if not config_path.exists():
        logger.warning(f"Policy config file not found: {path}")
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def _parse_env_list(env_var: str) -> Optional[list[str]]:
    """Parse comma-separated env var into list. Returns None if unset."""
    val = os.environ.get(env_var, "").strip()
    if not val:
        return None
    return [item.strip() for item in val.split(",") if item.strip()]


def load_policy_config(yaml_path: str = None) -> PolicyConfig:
    """Load policy config from env vars + optional YAML.

    Env vars take precedence over YAML for all settings.
    """
    if yaml_path is None:
        yaml_path = os.environ.get("SQLGATE_POLICY_CONFIG", "")
    yaml_data = {}
    if yaml_path:
        yaml_data = _load_yaml_config(yaml_path)
    section = yaml_data.get("policy", {}) or {}

    raw_mode = os.environ.get("SQLGATE_POLICY_MODE") or section.get("mode")
    mode = PolicyMode.DENYLIST
    if raw_mode:
        try:
            mode = PolicyMode(str(raw_mode).strip().lower())
        except ValueError:
            logger.warning(f"Unknown policy mode '{raw_mode}', using denylist")

    denied = _parse_env_list("SQLGATE_DENIED_TYPES") or section.get("denied_types") or []
    return PolicyConfig(mode=mode, denied_types=list(denied))


def build_query_policy(config: PolicyConfig = None) -> QueryPolicy:
    """Build the runtime query policy from config."""
    if config is None:
        config = load_policy_config()

    extra: set[SQLStatementType] = set()
    for t in config.denied_types:
        try:
            extra.add(SQLStatementType(str(t).strip().lower()))
        except ValueError:
            logger.warning(f"Unknown SQL statement type: {t}")

    policy = QueryPolicy(mode=config.mode, denied_types=extra)
    logger.info(
        f"Query policy: mode={policy.mode.value}, "
        f"denied={sorted(t.value for t in policy.denied_types)}"
    )
    return policy
