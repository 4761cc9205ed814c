"""
A11y Persona Scanner — Accessibility Persona Catalog and Barrier Scanner

Scans support scripts and product requirements for phrases that create
barriers for accessibility personas, grades the result, and grows its
rule set from persona profiles.

Public API:
  - PersonaScanner:          scan_script, scan_requirements, analyze_persona, update_rules
  - PatternStore:            owned, atomically updated rule set
  - PersonaRegistry:         persona catalog (markdown + YAML frontmatter)
  - MatchEngine:             deterministic rule evaluation
  - calculate_grade:         points + letter grade from matches
  - PersonaPatternAnalyzer:  rule-set growth proposals

Usage:
    from a11ypersona import PersonaScanner
    scanner = PersonaScanner.from_settings()
    report = scanner.scan_script("Press the green button now.", script_type="phone")
    print(report.text)
"""

__version__ = "1.0.0"

from a11ypersona.errors import (
    A11yError,
    ConfigError,
    PersistenceError,
    RuleSetNotFoundError,
    RuleEvaluationError,
    ValidationError,
)
from a11ypersona.rules import Rule, ContextualCheck, RuleSet, Severity
from a11ypersona.store import PatternStore, JsonFileBackend, InMemoryBackend
from a11ypersona.personas import PersonaRecord, PersonaRegistry, format_persona
from a11ypersona.indicators import (
    IndicatorClassifier,
    KeywordIndicatorClassifier,
    PersonaIndicatorProfile,
)
from a11ypersona.engine import MatchEngine, Match, Diagnostic
from a11ypersona.scorer import Grade, calculate_grade
from a11ypersona.report import Report, render_report
from a11ypersona.patterns.analyzer import PersonaPatternAnalyzer
from a11ypersona.detector import PersonaScanner

__all__ = [
    "A11yError",
    "ConfigError",
    "PersistenceError",
    "RuleSetNotFoundError",
    "RuleEvaluationError",
    "ValidationError",
    "Rule",
    "ContextualCheck",
    "RuleSet",
    "Severity",
    "PatternStore",
    "JsonFileBackend",
    "InMemoryBackend",
    "PersonaRecord",
    "PersonaRegistry",
    "format_persona",
    "IndicatorClassifier",
    "KeywordIndicatorClassifier",
    "PersonaIndicatorProfile",
    "MatchEngine",
    "Match",
    "Diagnostic",
    "Grade",
    "calculate_grade",
    "Report",
    "render_report",
    "PersonaPatternAnalyzer",
    "PersonaScanner",
]
