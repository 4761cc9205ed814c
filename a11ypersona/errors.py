"""
Error taxonomy.

ConfigError          — rule-set source missing or malformed (store falls back to empty)
RuleSetNotFoundError — the source does not exist yet (a merge update may create it)
ValidationError      — bad caller input: unknown persona ids, invalid rule entries
RuleEvaluationError  — one rule or check failed to compile or evaluate (scan continues)
PersistenceError     — rule-set write failed (in-memory state untouched)
"""

from __future__ import annotations

from typing import Optional, Sequence


class A11yError(Exception):
    """Base class for all scanner errors."""


class ConfigError(A11yError):
    pass


class RuleSetNotFoundError(ConfigError):
    pass


class ValidationError(A11yError):
    def __init__(self, message: str, valid_ids: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.valid_ids = list(valid_ids) if valid_ids is not None else []


class RuleEvaluationError(A11yError):
    def __init__(self, rule_id: str, message: str):
        super().__init__(f"{rule_id}: {message}")
        self.rule_id = rule_id


class PersistenceError(A11yError):
    pass
