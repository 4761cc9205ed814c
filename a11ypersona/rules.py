"""
Rule Model — Patterns, Contextual Checks and Rule Sets

Two kinds of rule live in a rule set:

  - Rule:            a regex pattern applied to the scanned text
  - ContextualCheck: a restricted boolean condition over
                     (scriptType, scriptContent, issueCategory)

Both carry the personas they affect, a severity, the issue they
describe and the suggested fix. Construction does NOT validate;
validation happens when a rule set is loaded or updated
(see store.py) so the engine can still be handed a bad rule and
skip it with a diagnostic.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import regex

from a11ypersona.conditions import Condition, ConditionError

RULESET_FORMAT_VERSION = 1

MAX_PATTERN_LENGTH = 1000


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"

    @classmethod
    def parse(cls, value: Any) -> "Severity":
        if isinstance(value, Severity):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Invalid severity '{value}'. Expected one of: critical, high, medium"
            ) from None

    @property
    def rank(self) -> int:
        return {"critical": 0, "high": 1, "medium": 2}[self.value]


# Persisted flag letters → regex flags. "g" and "u" are accepted and ignored:
# matching always collects every occurrence and str patterns are unicode.
_FLAG_MAP = {
    "i": regex.IGNORECASE,
    "m": regex.MULTILINE,
    "s": regex.DOTALL,
    "x": regex.VERBOSE,
    "g": 0,
    "u": 0,
}

# Largest bounded repeat allowed around a group that holds an unbounded quantifier
MAX_NESTED_REPEAT = 5

_BRACE_QUANTIFIER = regex.compile(r"\{(\d*)(?:(,)(\d*))?\}")


def parse_flags(flags: str) -> int:
    compiled = 0
    for letter in flags or "":
        if letter not in _FLAG_MAP:
            raise ValueError(f"Unknown regex flag '{letter}'")
        compiled |= _FLAG_MAP[letter]
    return compiled


def _quantifier_at(pattern: str, i: int) -> Optional[tuple[Optional[int], int]]:
    """(upper bound or None when unbounded, length incl. lazy/possessive suffix) of a quantifier at i."""
    if i >= len(pattern):
        return None
    ch = pattern[i]
    if ch in "*+":
        upper, length = None, 1
    elif ch == "?":
        upper, length = 1, 1
    elif ch == "{":
        m = _BRACE_QUANTIFIER.match(pattern, i)
        if not m or not (m.group(1) or m.group(3)):
            return None
        if m.group(2):
            upper = int(m.group(3)) if m.group(3) else None
        else:
            upper = int(m.group(1))
        length = len(m.group(0))
    else:
        return None
    if i + length < len(pattern) and pattern[i + length] in "?+":
        length += 1
    return upper, length


def _skip_class(pattern: str, i: int) -> int:
    """Index just past the character class opening at i."""
    j = i + 1
    if j < len(pattern) and pattern[j] == "^":
        j += 1
    if j < len(pattern) and pattern[j] == "]":
        j += 1
    while j < len(pattern) and pattern[j] != "]":
        j += 2 if pattern[j] == "\\" else 1
    return j + 1


def backtracking_risk(pattern: str) -> Optional[str]:
    """
    Describe the first shape prone to catastrophic backtracking, or None.

    Flags a group holding an unbounded quantifier that is itself repeated
    without bound or more than MAX_NESTED_REPEAT times: (a+)+, (\\w+\\s?)+,
    (.*a){20}. Flags an alternation repeated without bound: (a|aa)+.
    """
    # one [has_unbounded, has_alternation] entry per open group
    stack = [[False, False]]
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "[":
            i = _skip_class(pattern, i)
            continue
        if ch == "(":
            stack.append([False, False])
            i += 1
            continue
        if ch == "|":
            stack[-1][1] = True
            i += 1
            continue
        if ch == ")" and len(stack) > 1:
            has_unbounded, has_alternation = stack.pop()
            i += 1
            quantifier = _quantifier_at(pattern, i)
            if quantifier:
                upper, length = quantifier
                if has_unbounded and (upper is None or upper > MAX_NESTED_REPEAT):
                    return "Pattern nests quantifiers (catastrophic backtracking risk)"
                if has_alternation and upper is None:
                    return "Pattern repeats an alternation without bound (catastrophic backtracking risk)"
                has_unbounded = has_unbounded or upper is None
                i += length
            if has_unbounded:
                stack[-1][0] = True
            continue
        quantifier = _quantifier_at(pattern, i)
        if quantifier:
            upper, length = quantifier
            if upper is None:
                stack[-1][0] = True
            i += length
            continue
        i += 1
    return None


def compile_pattern(pattern: str, flags: str = "") -> regex.Pattern:
    """
    Compile a rule pattern, refusing shapes prone to catastrophic backtracking.

    Raises ValueError (bad flags, unsafe shape) or regex.error (bad syntax).
    Shapes the static check misses are bounded by the engine's match timeout.
    """
    if not pattern:
        raise ValueError("Pattern is empty")
    if len(pattern) > MAX_PATTERN_LENGTH:
        raise ValueError(f"Pattern exceeds {MAX_PATTERN_LENGTH} characters")
    risk = backtracking_risk(pattern)
    if risk:
        raise ValueError(risk)
    compiled = regex.compile(pattern, parse_flags(flags))
    if compiled.fullmatch(""):
        raise ValueError("Pattern matches the empty string")
    return compiled


@dataclass(frozen=True)
class Rule:
    """A regex rule applied to the scanned text."""
    id: str
    pattern: str
    personas: tuple[str, ...]
    severity: Severity
    issue: str
    suggestion: str
    flags: str = "i"
    examples: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pattern": self.pattern,
            "flags": self.flags,
            "personas": list(self.personas),
            "severity": self.severity.value,
            "issue": self.issue,
            "suggestion": self.suggestion,
            "examples": list(self.examples),
        }


@dataclass(frozen=True)
class ContextualCheck:
    """A rule whose trigger is a restricted condition instead of a regex."""
    id: str
    condition: str
    personas: tuple[str, ...]
    severity: Severity
    issue: str
    suggestion: str
    examples: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "condition": self.condition,
            "personas": list(self.personas),
            "severity": self.severity.value,
            "issue": self.issue,
            "suggestion": self.suggestion,
            "examples": list(self.examples),
        }


@dataclass(frozen=True)
class RuleSet:
    """Immutable snapshot of the store's contents."""
    rules: tuple[Rule, ...] = ()
    checks: tuple[ContextualCheck, ...] = ()
    version: int = RULESET_FORMAT_VERSION

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "rules": [r.to_dict() for r in self.rules],
            "contextualChecks": [c.to_dict() for c in self.checks],
        }

    def rule_ids(self) -> list[str]:
        return [r.id for r in self.rules] + [c.id for c in self.checks]

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None


# ============================================================
# SCHEMA VALIDATION
# ============================================================

_COMMON_REQUIRED = ("id", "personas", "severity", "issue", "suggestion")


def _require_fields(entry: Any, required: tuple[str, ...], kind: str) -> None:
    if not isinstance(entry, dict):
        raise ValueError(f"{kind} entry must be an object")
    missing = [f for f in required if f not in entry or entry[f] in (None, "")]
    if missing:
        label = entry.get("id", "<no id>")
        raise ValueError(f"{kind} '{label}' is missing required field(s): {', '.join(missing)}")


def _personas(entry: dict) -> tuple[str, ...]:
    personas = entry["personas"]
    if isinstance(personas, str) or not isinstance(personas, (list, tuple)):
        raise ValueError(f"'{entry['id']}': personas must be a list")
    cleaned = tuple(dict.fromkeys(str(p).strip() for p in personas if str(p).strip()))
    if not cleaned:
        raise ValueError(f"'{entry['id']}': personas must not be empty")
    return cleaned


def _examples(entry: dict) -> tuple[str, ...]:
    examples = entry.get("examples") or []
    if isinstance(examples, str):
        examples = [examples]
    return tuple(str(e) for e in examples)


def rule_from_dict(entry: Any) -> Rule:
    """Build and validate a Rule. Raises ValueError describing the first problem."""
    _require_fields(entry, ("pattern",) + _COMMON_REQUIRED, "Rule")
    rule_id = str(entry["id"]).strip()
    flags = str(entry.get("flags", "i") or "")
    try:
        compile_pattern(str(entry["pattern"]), flags)
    except regex.error as e:
        raise ValueError(f"Rule '{rule_id}': pattern does not compile: {e}") from None
    except ValueError as e:
        raise ValueError(f"Rule '{rule_id}': {e}") from None
    return Rule(
        id=rule_id,
        pattern=str(entry["pattern"]),
        flags=flags,
        personas=_personas(entry),
        severity=Severity.parse(entry["severity"]),
        issue=str(entry["issue"]),
        suggestion=str(entry["suggestion"]),
        examples=_examples(entry),
    )


def check_from_dict(entry: Any) -> ContextualCheck:
    """Build and validate a ContextualCheck. Raises ValueError."""
    _require_fields(entry, ("condition",) + _COMMON_REQUIRED, "Contextual check")
    check_id = str(entry["id"]).strip()
    try:
        Condition(str(entry["condition"]))
    except ConditionError as e:
        raise ValueError(f"Contextual check '{check_id}': {e}") from None
    return ContextualCheck(
        id=check_id,
        condition=str(entry["condition"]),
        personas=_personas(entry),
        severity=Severity.parse(entry["severity"]),
        issue=str(entry["issue"]),
        suggestion=str(entry["suggestion"]),
        examples=_examples(entry),
    )


def ruleset_from_dict(payload: Any) -> RuleSet:
    """
    Parse a persisted rule set.

    Accepts {"version", "rules", "contextualChecks"}; "patterns" is read as
    an alias of "rules". Duplicate ids within one collection are rejected.
    """
    if not isinstance(payload, dict):
        raise ValueError("Rule set must be a JSON object")
    raw_rules = payload.get("rules", payload.get("patterns", []))
    raw_checks = payload.get("contextualChecks", [])
    if not isinstance(raw_rules, list) or not isinstance(raw_checks, list):
        raise ValueError("'rules' and 'contextualChecks' must be lists")

    rules = [rule_from_dict(e) for e in raw_rules]
    checks = [check_from_dict(e) for e in raw_checks]

    for kind, items in (("rule", rules), ("contextual check", checks)):
        seen: set[str] = set()
        for item in items:
            if item.id in seen:
                raise ValueError(f"Duplicate {kind} id '{item.id}'")
            seen.add(item.id)

    version = payload.get("version", RULESET_FORMAT_VERSION)
    if not isinstance(version, int):
        raise ValueError("'version' must be an integer")

    return RuleSet(rules=tuple(rules), checks=tuple(checks), version=version)
