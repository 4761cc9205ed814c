"""
Pattern Store — Owned, Atomically Updated Rule Set

The store holds one immutable RuleSet snapshot. Scans read the
current snapshot reference once and use it for the whole scan;
updates build a complete new RuleSet, persist it, and only then swap
the reference. Readers therefore see either the pre-update or the
post-update set, never a mix.

Merge policy for update(): an incoming entry whose id matches an
existing entry replaces it in place (last write wins), new ids are
appended in order, and duplicates within one batch resolve to the
last occurrence. replace=True discards the current collections first.

Each PatternStore instance is independent. There is no process-wide
rule cache.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Iterable, Optional, Protocol

from a11ypersona.errors import ConfigError, PersistenceError, RuleSetNotFoundError, ValidationError
from a11ypersona.logging import get_logger
from a11ypersona.rules import (
    ContextualCheck,
    Rule,
    RuleSet,
    check_from_dict,
    rule_from_dict,
    ruleset_from_dict,
)

logger = get_logger("store")


# ============================================================
# PERSISTENCE BACKENDS
# ============================================================

class RuleSetBackend(Protocol):
    def read(self) -> dict: ...

    def write(self, payload: dict) -> None: ...


class JsonFileBackend:
    """Rule set persisted as a JSON document on disk."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def read(self) -> dict:
        try:
            with open(self.path, encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            raise RuleSetNotFoundError(f"Rule set not found: {self.path}") from None
        except json.JSONDecodeError as e:
            raise ConfigError(f"Rule set is not valid JSON ({self.path}): {e}") from None
        except OSError as e:
            raise ConfigError(f"Rule set could not be read ({self.path}): {e}") from None

    def write(self, payload: dict) -> None:
        """Write to a temp file beside the target, then rename over it."""
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
                f.write("\n")
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise PersistenceError(f"Failed to write rule set to {self.path}: {e}") from e


class InMemoryBackend:
    """Backend holding the serialized rule set in memory (tests, embedding)."""

    def __init__(self, payload: Optional[dict] = None):
        self._payload = json.loads(json.dumps(payload)) if payload is not None else None

    def read(self) -> dict:
        if self._payload is None:
            raise RuleSetNotFoundError("In-memory rule set is empty")
        return json.loads(json.dumps(self._payload))

    def write(self, payload: dict) -> None:
        self._payload = json.loads(json.dumps(payload))


# ============================================================
# STORE
# ============================================================

def _merge(existing: Iterable[Any], incoming: Iterable[Any]) -> tuple:
    """Last-write-wins merge by id, preserving first-seen position."""
    merged: dict[str, Any] = {item.id: item for item in existing}
    for item in incoming:
        merged[item.id] = item
    return tuple(merged.values())


class PatternStore:
    """
    Owns the rule set. Sole mutator is update().

    Thread-safety: snapshot() is a single reference read. update() and
    load() are serialized on an internal lock.
    """

    def __init__(self, backend: RuleSetBackend):
        self._backend = backend
        self._lock = threading.Lock()
        self._ruleset = RuleSet()
        self.load_error: Optional[ConfigError] = None

    @classmethod
    def from_path(cls, path: str | Path, load: bool = True) -> "PatternStore":
        store = cls(JsonFileBackend(path))
        if load:
            store.load()
        return store

    def snapshot(self) -> RuleSet:
        return self._ruleset

    def load(self, strict: bool = False) -> RuleSet:
        """
        Read and validate the persisted rule set.

        On failure the store falls back to an empty RuleSet and keeps the
        error in `load_error`; with strict=True the ConfigError propagates.
        """
        with self._lock:
            try:
                raw = self._backend.read()
                try:
                    ruleset = ruleset_from_dict(raw)
                except ValueError as e:
                    raise ConfigError(f"Rule set failed validation: {e}") from None
            except ConfigError as e:
                self._ruleset = RuleSet()
                self.load_error = e
                logger.warning("Rule set load failed, using empty set", extra={"error": str(e)})
                if strict:
                    raise
                return self._ruleset

            self._ruleset = ruleset
            self.load_error = None
            logger.info(
                "Rule set loaded",
                extra={"rules_count": len(ruleset.rules), "checks_count": len(ruleset.checks)},
            )
            return ruleset

    def reload(self) -> RuleSet:
        return self.load(strict=False)

    def update(
        self,
        rules: Iterable[Rule | dict] = (),
        checks: Iterable[ContextualCheck | dict] = (),
        replace: bool = False,
    ) -> RuleSet:
        """
        Merge (or replace) rules and checks, persist, then publish.

        Raises ValidationError if an incoming entry is invalid and
        PersistenceError if the write fails. A merge while the persisted
        rule set exists but failed to load raises ConfigError: writing the
        merge would overwrite the rules the store could not read. In every
        case nothing changes.
        """
        new_rules = [self._coerce(r, rule_from_dict, Rule) for r in rules]
        new_checks = [self._coerce(c, check_from_dict, ContextualCheck) for c in checks]

        with self._lock:
            error = self.load_error
            if not replace and error is not None and not isinstance(error, RuleSetNotFoundError):
                logger.warning("Merge refused, rule set failed to load", extra={"error": str(error)})
                raise ConfigError(
                    f"Cannot merge into a rule set that failed to load ({error}). "
                    "Fix the rule-set file and reload, or update with replace=True."
                )
            current = self._ruleset
            base_rules = () if replace else current.rules
            base_checks = () if replace else current.checks
            candidate = RuleSet(
                rules=_merge(base_rules, new_rules),
                checks=_merge(base_checks, new_checks),
                version=current.version,
            )

            # Persist first: if the write fails the published snapshot is untouched
            try:
                self._backend.write(candidate.to_dict())
            except OSError as e:
                logger.error("Rule set write failed", extra={"error": str(e)})
                raise PersistenceError(f"Failed to persist rule set: {e}") from e
            except PersistenceError as e:
                logger.error("Rule set write failed", extra={"error": str(e)})
                raise
            self._ruleset = candidate
            self.load_error = None

        logger.info(
            "Rule set updated",
            extra={"rules_count": len(candidate.rules), "checks_count": len(candidate.checks)},
        )
        return candidate

    @staticmethod
    def _coerce(item: Any, parser, expected_type: type):
        """Validate an incoming entry, whether a dict or an already-built object."""
        payload = item.to_dict() if isinstance(item, expected_type) else item
        try:
            return parser(payload)
        except ValueError as e:
            raise ValidationError(str(e)) from None
