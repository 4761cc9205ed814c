"""
Structural requirement checks.

Applied only when reviewing product requirements, after the store's
rules. Each heuristic is independent; a text may trigger several. The
visual, motor and cognitive checks only attribute their match to
target personas whose descriptive text carries the matching indicator.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from a11ypersona.engine import Match
from a11ypersona.indicators import IndicatorClassifier
from a11ypersona.personas import PersonaRecord
from a11ypersona.rules import Severity

ACCESSIBILITY_KEYWORDS = re.compile(
    r"accessib|\ba11y\b|\bwcag\b|screen[- ]?reader|assistive|\bkeyboard\b|caption"
    r"|alt[- ]text|inclusive|disabilit|\bada\b|section\s+508",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class StructuralCheck:
    id: str
    severity: Severity
    issue: str
    suggestion: str
    pattern: Optional[re.Pattern]   # None: triggered by absence of accessibility keywords
    indicator: Optional[str]        # None: applies to every target persona


STRUCTURAL_CHECKS: tuple[StructuralCheck, ...] = (
    StructuralCheck(
        id="missing-accessibility-requirements",
        severity=Severity.HIGH,
        issue="Requirements never mention accessibility",
        suggestion="Add explicit accessibility acceptance criteria (WCAG 2.2 AA, "
                   "screen reader and keyboard support, captions).",
        pattern=None,
        indicator=None,
    ),
    StructuralCheck(
        id="visual-only-requirement",
        severity=Severity.CRITICAL,
        issue="Capability relies on visual-only presentation",
        suggestion="Provide a text, audio or haptic equivalent for every visual indicator.",
        pattern=re.compile(
            r"\bvisual[- ]only\b|\bonly\s+visual(?:ly)?\b|\bmust\s+see\b|\bvisual\s+(?:indicators?|cues?)\b"
            r"|\bcolou?r[- ]coded\b|\bvisually\s+(?:indicate|display|show)s?\b",
            re.IGNORECASE,
        ),
        indicator="visual",
    ),
    StructuralCheck(
        id="fine-motor-requirement",
        severity=Severity.CRITICAL,
        issue="Capability requires fine motor control",
        suggestion="Offer large targets, keyboard and voice alternatives, and avoid "
                   "precise gestures or drag-only interactions.",
        pattern=re.compile(
            r"\bprecise\s+(?:touch\s+|mouse\s+)?(?:gestures?|movements?|clicks?|taps?)\b"
            r"|\bdrag[- ]and[- ]drop\b|\bdouble[- ]tap\b|\bpinch\b|\bmulti[- ]finger\b"
            r"|\bmouse[- ]click\b|\bfine\s+motor\b",
            re.IGNORECASE,
        ),
        indicator="motor",
    ),
    StructuralCheck(
        id="high-cognitive-load",
        severity=Severity.HIGH,
        issue="Capability imposes high cognitive load",
        suggestion="Simplify flows, show one step at a time, avoid memorization and "
                   "allow users to extend or remove time limits.",
        pattern=re.compile(
            r"\bcomplex\s+multi[- ]?step\b|\bmulti[- ]step\b|\bremember\s+(?:multiple|several|many|your)\b"
            r"|\bmemori[sz]e\b|\btime\s+limits?\b",
            re.IGNORECASE,
        ),
        indicator="cognitive",
    ),
)


def run_structural_checks(
    text: str,
    target_personas: Iterable[PersonaRecord],
    classifier: IndicatorClassifier,
    checks: Iterable[StructuralCheck] = STRUCTURAL_CHECKS,
) -> list[Match]:
    """Evaluate every structural heuristic. Returns one Match per triggered check."""
    targets = list(target_personas)
    profiles = {p.id: classifier.classify(p.descriptive_text) for p in targets}
    matches: list[Match] = []

    for check in checks:
        if check.pattern is None:
            if ACCESSIBILITY_KEYWORDS.search(text):
                continue
            literals: tuple[str, ...] = ()
            count = 1
        else:
            found = [m.group(0) for m in check.pattern.finditer(text)]
            if not found:
                continue
            literals = tuple(dict.fromkeys(found))[:3]
            count = len(found)

        if check.indicator is None:
            affected = tuple(targets)
        else:
            affected = tuple(p for p in targets if getattr(profiles[p.id], check.indicator))
        if not affected:
            continue

        matches.append(Match(
            rule_id=check.id,
            source="structural",
            affected_personas=affected,
            severity=check.severity,
            issue=check.issue,
            suggestion=check.suggestion,
            literal_matches=literals,
            match_count=count,
        ))

    return matches
