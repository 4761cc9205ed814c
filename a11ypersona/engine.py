"""
Match Engine — Deterministic Barrier Detection

Runs a RuleSet snapshot against a text:

  Phase 1: every regex Rule, in store order
  Phase 2: every ContextualCheck, in store order

A rule that matches yields ONE Match listing every requested persona it
affects, so severity is counted once per rule, not once per persona.
A rule with no requested personas among its set yields nothing.

A rule that fails to compile or runs past the match timeout, and a
condition that raises, are skipped and reported as a Diagnostic. The scan itself never raises for rule
problems.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

import regex

from a11ypersona.conditions import Condition, ConditionError
from a11ypersona.config import settings
from a11ypersona.errors import RuleEvaluationError
from a11ypersona.logging import get_logger
from a11ypersona.personas import PersonaRecord, PersonaRegistry
from a11ypersona.rules import ContextualCheck, Rule, RuleSet, Severity, compile_pattern

logger = get_logger("engine")

MAX_LITERAL_MATCHES = 3


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class Match:
    """One triggered rule, attributed to the requested personas it affects."""
    rule_id: str
    source: str                    # "rule" | "check" | "structural"
    affected_personas: tuple[PersonaRecord, ...]
    severity: Severity
    issue: str
    suggestion: str
    literal_matches: tuple[str, ...] = ()   # First few distinct matched substrings
    match_count: int = 0                    # Total occurrences in the text

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "source": self.source,
            "affected_personas": [
                {"id": p.id, "title": p.title} for p in self.affected_personas
            ],
            "severity": self.severity.value,
            "issue": self.issue,
            "suggestion": self.suggestion,
            "literal_matches": list(self.literal_matches),
            "match_count": self.match_count,
        }


@dataclass(frozen=True)
class Diagnostic:
    """A rule or check skipped during a scan."""
    rule_id: str
    kind: str      # "rule" | "check"
    message: str

    def to_dict(self) -> dict:
        return {"rule_id": self.rule_id, "kind": self.kind, "message": self.message}


@dataclass
class EngineResult:
    matches: list[Match] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)


# ============================================================
# ENGINE
# ============================================================

class MatchEngine:
    """
    Applies rule sets to text. Holds only compiled-pattern and condition
    caches, pruned to the entries of the last snapshot seen; results
    depend solely on the inputs.
    """

    def __init__(self, registry: PersonaRegistry, match_timeout: float = settings.MATCH_TIMEOUT_SECONDS):
        self._registry = registry
        self._match_timeout = match_timeout
        self._pattern_cache: dict[tuple[str, str], regex.Pattern] = {}
        self._condition_cache: dict[str, Condition] = {}
        self._cached_for: Optional[RuleSet] = None

    def run(
        self,
        ruleset: RuleSet,
        text: str,
        target_personas: Optional[Iterable[str]] = None,
        script_type: str = "",
        issue_category: str = "",
        include_checks: bool = True,
    ) -> EngineResult:
        """
        Evaluate `ruleset` against `text`.

        Args:
            ruleset: Snapshot taken from the PatternStore.
            text: Text to scan.
            target_personas: Persona ids to attribute matches to.
                Defaults to every persona in the registry.
            script_type / issue_category: Inputs for contextual checks.
            include_checks: Run contextual checks (phase 2).
        """
        targets = set(self._registry.ids() if target_personas is None else target_personas)
        result = EngineResult()
        self._prune_caches(ruleset)

        # --- Phase 1: regex rules ---
        for rule in ruleset.rules:
            try:
                literals, count = self._match_rule(rule, text)
            except RuleEvaluationError as e:
                self._skip(result, rule.id, "rule", str(e))
                continue
            if count == 0:
                continue
            match = self._build_match(rule, "rule", targets, literals, count)
            if match:
                result.matches.append(match)

        # --- Phase 2: contextual checks ---
        if include_checks:
            for check in ruleset.checks:
                try:
                    triggered = self._evaluate_check(check, script_type, text, issue_category)
                except RuleEvaluationError as e:
                    self._skip(result, check.id, "check", str(e))
                    continue
                if not triggered:
                    continue
                match = self._build_match(check, "check", targets, (), 1)
                if match:
                    result.matches.append(match)

        return result

    def _prune_caches(self, ruleset: RuleSet) -> None:
        if ruleset is self._cached_for:
            return
        live_patterns = {(r.pattern, r.flags) for r in ruleset.rules}
        live_conditions = {c.condition for c in ruleset.checks}
        for key in list(self._pattern_cache):
            if key not in live_patterns:
                self._pattern_cache.pop(key, None)
        for key in list(self._condition_cache):
            if key not in live_conditions:
                self._condition_cache.pop(key, None)
        self._cached_for = ruleset

    def _compile(self, rule: Rule) -> regex.Pattern:
        key = (rule.pattern, rule.flags)
        compiled = self._pattern_cache.get(key)
        if compiled is None:
            try:
                compiled = compile_pattern(rule.pattern, rule.flags)
            except (regex.error, ValueError) as e:
                raise RuleEvaluationError(rule.id, f"pattern rejected: {e}") from None
            self._pattern_cache[key] = compiled
        return compiled

    def _match_rule(self, rule: Rule, text: str) -> tuple[tuple[str, ...], int]:
        compiled = self._compile(rule)
        literals: list[str] = []
        count = 0
        try:
            for m in compiled.finditer(text, timeout=self._match_timeout):
                fragment = m.group(0)
                if not fragment:
                    continue
                count += 1
                if len(literals) < MAX_LITERAL_MATCHES and fragment not in literals:
                    literals.append(fragment)
        except TimeoutError:
            raise RuleEvaluationError(
                rule.id, f"pattern timed out after {self._match_timeout}s"
            ) from None
        return tuple(literals), count

    def _evaluate_check(
        self, check: ContextualCheck, script_type: str, text: str, issue_category: str,
    ) -> bool:
        condition = self._condition_cache.get(check.condition)
        try:
            if condition is None:
                condition = Condition(check.condition)
                self._condition_cache[check.condition] = condition
            return condition.evaluate(script_type, text, issue_category)
        except (ConditionError, TypeError, ValueError, AttributeError, IndexError) as e:
            raise RuleEvaluationError(check.id, f"condition failed: {e}") from None

    def _build_match(
        self,
        rule: Rule | ContextualCheck,
        source: str,
        targets: set[str],
        literals: tuple[str, ...],
        count: int,
    ) -> Optional[Match]:
        affected = self.resolve_personas(p for p in rule.personas if p in targets)
        if not affected:
            return None
        return Match(
            rule_id=rule.id,
            source=source,
            affected_personas=affected,
            severity=rule.severity,
            issue=rule.issue,
            suggestion=rule.suggestion,
            literal_matches=literals,
            match_count=count,
        )

    def resolve_personas(self, persona_ids: Iterable[str]) -> tuple[PersonaRecord, ...]:
        """Map ids to records; ids the registry does not know get a bare record."""
        records = []
        for persona_id in persona_ids:
            record = self._registry.get(persona_id)
            records.append(record if record else PersonaRecord(id=persona_id, title=persona_id))
        return tuple(records)

    @staticmethod
    def _skip(result: EngineResult, rule_id: str, kind: str, message: str) -> None:
        result.diagnostics.append(Diagnostic(rule_id=rule_id, kind=kind, message=message))
        logger.warning(f"Skipped {kind} during scan: {message}", extra={"rule_id": rule_id})
