"""
Detector — Scan Orchestrator

Wires the pattern store, persona registry, match engine, grader and
report formatter into the core operations:

  - scan_script:        support-script review (rules + contextual checks)
  - scan_requirements:  product-requirements review (rules + structural checks)
  - analyze_persona:    propose / apply rule-set growth for one persona
  - update_rules:       merge or replace rules, persisted atomically

plus the persona catalog tools (list_personas, get_personas) and the
persona reference audit.

Every PersonaScanner owns its store and registry. Tests and embedders
create as many as they need; nothing is shared between instances.
"""

from __future__ import annotations

import time
from typing import Iterable, Optional

from a11ypersona.config import settings
from a11ypersona.engine import MatchEngine
from a11ypersona.errors import ValidationError
from a11ypersona.indicators import IndicatorClassifier, KeywordIndicatorClassifier
from a11ypersona.logging import get_logger, scan_context
from a11ypersona.patterns.analyzer import PersonaPatternAnalyzer
from a11ypersona.personas import PersonaRecord, PersonaRegistry
from a11ypersona.report import Report, render_report
from a11ypersona.rules import ContextualCheck, Rule
from a11ypersona.scorer import calculate_grade
from a11ypersona.store import PatternStore
from a11ypersona.structural import run_structural_checks

logger = get_logger("detector")


class PersonaScanner:
    """The core operations over one PatternStore and one PersonaRegistry."""

    def __init__(
        self,
        store: PatternStore,
        registry: PersonaRegistry,
        classifier: Optional[IndicatorClassifier] = None,
        max_scan_chars: int = settings.MAX_SCAN_CHARS,
    ):
        self.store = store
        self.registry = registry
        self.classifier = classifier or KeywordIndicatorClassifier()
        self.engine = MatchEngine(registry)
        self.analyzer = PersonaPatternAnalyzer(store, self.classifier)
        self.max_scan_chars = max_scan_chars

    @classmethod
    def from_settings(cls) -> "PersonaScanner":
        """Build a scanner from the configured rule-set file and persona directory."""
        return cls(
            store=PatternStore.from_path(settings.PATTERNS_PATH),
            registry=PersonaRegistry.from_path(settings.PERSONAS_DIR),
        )

    # ============================================================
    # SCANS
    # ============================================================

    def scan_script(
        self,
        text: str,
        script_type: str = "",
        issue_category: str = "",
        personas: Optional[Iterable[str]] = None,
    ) -> Report:
        """Review a support script against store rules and contextual checks."""
        return self._scan(
            "script", text, personas,
            script_type=script_type, issue_category=issue_category,
        )

    def scan_requirements(self, text: str, personas: Optional[Iterable[str]] = None) -> Report:
        """Review product requirements against store rules and structural checks."""
        return self._scan("requirements", text, personas)

    def _scan(
        self,
        mode: str,
        text: str,
        personas: Optional[Iterable[str]],
        script_type: str = "",
        issue_category: str = "",
    ) -> Report:
        start = time.time()
        warnings: list[str] = []
        targets = self._resolve_targets(personas, warnings)

        if self.store.load_error is not None:
            warnings.append(f"Rule set unavailable, scanned with no rules: {self.store.load_error}")

        text = text or ""
        if len(text) > self.max_scan_chars:
            warnings.append(
                f"Input truncated to {self.max_scan_chars} of {len(text)} characters."
            )
            text = text[: self.max_scan_chars]

        with scan_context(mode) as scan_id:
            # One snapshot for the whole scan
            ruleset = self.store.snapshot()
            result = self.engine.run(
                ruleset,
                text,
                target_personas=[p.id for p in targets],
                script_type=script_type,
                issue_category=issue_category,
                include_checks=(mode == "script"),
            )
            matches = result.matches
            if mode == "requirements":
                matches = matches + run_structural_checks(text, targets, self.classifier)

            grade = calculate_grade(matches)
            report = Report(
                mode=mode,
                grade=grade,
                matches=matches,
                diagnostics=result.diagnostics,
                warnings=warnings,
                target_personas=[p.id for p in targets],
                scan_id=scan_id,
            )
            report.text = render_report(
                mode, matches, grade, result.diagnostics, warnings, target_count=len(targets),
            )

            logger.info(
                f"Scan complete: grade={grade.letter} points={grade.points}",
                extra={
                    "mode": mode,
                    "grade": grade.letter,
                    "points": grade.points,
                    "matches_count": len(matches),
                    "duration_ms": int((time.time() - start) * 1000),
                },
            )
        return report

    def _resolve_targets(
        self, personas: Optional[Iterable[str]], warnings: list[str],
    ) -> list[PersonaRecord]:
        """
        Resolve a requested persona subset.

        None means every known persona. Unknown ids are dropped with a
        warning; if none of the requested ids resolve, ValidationError.
        """
        if personas is None:
            return self.registry.list()

        requested = [p for p in personas if p and p.strip()]
        if not requested:
            return self.registry.list()

        found, not_found = self.registry.get_many(requested)
        if not found:
            raise ValidationError(
                f"Unknown persona(s): {', '.join(not_found)}",
                valid_ids=self.registry.ids(),
            )
        if not_found:
            warnings.append(
                f"Unknown persona(s) ignored: {', '.join(not_found)}. "
                f"Valid ids: {', '.join(self.registry.ids())}"
            )
        return found

    # ============================================================
    # RULE SET
    # ============================================================

    def update_rules(
        self,
        rules: Iterable[Rule | dict] = (),
        checks: Iterable[ContextualCheck | dict] = (),
        replace: bool = False,
    ) -> dict:
        """Merge (or replace) rules and checks. Raises ValidationError / PersistenceError."""
        updated = self.store.update(rules=rules, checks=checks, replace=replace)
        return {"ok": True, "rules": len(updated.rules), "checks": len(updated.checks)}

    def reload_rules(self) -> dict:
        ruleset = self.store.reload()
        error = self.store.load_error
        return {
            "ok": error is None,
            "rules": len(ruleset.rules),
            "checks": len(ruleset.checks),
            "error": str(error) if error else None,
        }

    def analyze_persona(self, persona_id: str, auto_apply: bool = False) -> dict:
        """Propose rule-set growth for a persona; apply it when auto_apply is set."""
        persona = self.registry.get(persona_id)
        if persona is None:
            raise ValidationError(
                f"Unknown persona: {persona_id}", valid_ids=self.registry.ids(),
            )
        result = self.analyzer.analyze(persona)
        if auto_apply and (result.rule_updates or result.new_rules):
            self.analyzer.apply(result)
        return result.to_dict()

    def audit_persona_references(self) -> dict:
        """Cross-check persona ids used by rules against the persona catalog."""
        ruleset = self.store.snapshot()
        referenced: set[str] = set()
        for item in list(ruleset.rules) + list(ruleset.checks):
            referenced.update(item.personas)
        known = set(self.registry.ids())
        return {
            "referenced_count": len(referenced),
            "unknown_persona_ids": sorted(referenced - known),
            "unreferenced_personas": sorted(known - referenced),
        }

    # ============================================================
    # PERSONA CATALOG
    # ============================================================

    def list_personas(self) -> list[dict]:
        return [{"id": p.id, "title": p.title} for p in self.registry.list()]

    def get_personas(self, queries: Iterable[str]) -> dict:
        found, not_found = self.registry.get_many(queries)
        return {
            "personas": found,
            "not_found": not_found,
            "available": self.registry.ids() if not_found else [],
        }
