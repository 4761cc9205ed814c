"""
Report Formatter — Human-Readable Scan Reports

Pure rendering: matches + grade in, one text block out. Two modes:

  - "script":       support-script review
  - "requirements": product-requirements review (adds a persona impact ranking)

Layout:
  header, grade line, summary counts
  CRITICAL / HIGH / MEDIUM sections (empty ones omitted)
  de-duplicated recommendations (by suggestion text)
  general inclusive-design guidance
  persona impact ranking (requirements only)
  diagnostics and warnings (when present)
  footer
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from a11ypersona.engine import Diagnostic, Match
from a11ypersona.rules import Severity
from a11ypersona.scorer import Grade

MODES = ("script", "requirements")

MAX_PERSONAS_SHOWN = 3
MAX_EXAMPLES_SHOWN = 3
MAX_RANKED_PERSONAS = 10

IMPACT_WEIGHTS = {Severity.CRITICAL: 3, Severity.HIGH: 2, Severity.MEDIUM: 1}

_HEADERS = {
    "script": "# Support Script Accessibility Review",
    "requirements": "# Product Requirements Accessibility Review",
}

_FOOTERS = {
    "script": (
        "Review flagged phrases with the affected personas in mind and offer "
        "at least one alternative path for every instruction."
    ),
    "requirements": (
        "Address critical and high findings before design sign-off, and add "
        "acceptance criteria that name the affected personas."
    ),
}

GENERAL_GUIDANCE = (
    "Offer more than one way to complete every step (voice, text, keyboard, touch).",
    "Never rely on a single sense: pair visual cues with text or audio, and audio with text.",
    "Use plain language and explain technical terms when they cannot be avoided.",
    "Avoid time pressure; let people pause, extend or restart without losing progress.",
    "Confirm understanding and invite questions instead of assuming a capability.",
)


@dataclass
class Report:
    """Structured result of one scan plus its rendered text."""
    mode: str
    grade: Grade
    matches: list[Match] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    target_personas: list[str] = field(default_factory=list)
    text: str = ""
    scan_id: str = ""

    def to_dict(self) -> dict:
        return {
            "scan_id": self.scan_id,
            "mode": self.mode,
            "grade": self.grade.to_dict(),
            "matches": [m.to_dict() for m in self.matches],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "warnings": list(self.warnings),
            "target_personas": list(self.target_personas),
            "report": self.text,
        }


def _persona_line(match: Match) -> str:
    titles = [p.title for p in match.affected_personas[:MAX_PERSONAS_SHOWN]]
    overflow = len(match.affected_personas) - MAX_PERSONAS_SHOWN
    line = ", ".join(titles)
    if overflow > 0:
        line += f" (+{overflow} more)"
    return line


def rank_persona_impact(matches: Sequence[Match], limit: int = MAX_RANKED_PERSONAS) -> list[dict]:
    """
    Rank personas by weighted impact: 3×critical + 2×high + 1×medium.

    Sorted descending; ties keep first-encountered order.
    """
    impact: dict[str, dict] = {}
    for match in matches:
        for persona in match.affected_personas:
            entry = impact.setdefault(persona.id, {
                "persona_id": persona.id,
                "title": persona.title,
                "critical": 0,
                "high": 0,
                "medium": 0,
                "score": 0,
            })
            entry[match.severity.value] += 1
            entry["score"] += IMPACT_WEIGHTS[match.severity]

    # sorted() is stable, so equal scores stay in insertion order
    ranked = sorted(impact.values(), key=lambda e: -e["score"])
    return ranked[:limit]


def unique_suggestions(matches: Sequence[Match]) -> list[str]:
    return list(dict.fromkeys(m.suggestion for m in matches if m.suggestion))


def render_report(
    mode: str,
    matches: Sequence[Match],
    grade: Grade,
    diagnostics: Sequence[Diagnostic] = (),
    warnings: Sequence[str] = (),
    target_count: int = 0,
) -> str:
    if mode not in MODES:
        raise ValueError(f"Unknown report mode: {mode}")

    lines = [_HEADERS[mode], ""]
    lines.append(f"Accessibility Grade: {grade.letter} ({grade.points}/100)")
    lines.append(f"Personas considered: {target_count}")

    counts = {s: sum(1 for m in matches if m.severity is s) for s in Severity}
    lines.append(
        f"Issues found: {len(matches)} "
        f"(critical {counts[Severity.CRITICAL]}, high {counts[Severity.HIGH]}, "
        f"medium {counts[Severity.MEDIUM]})"
    )
    lines.append("")

    if not matches:
        lines.append("No accessibility barriers were detected for the selected personas.")
        lines.append("")

    for severity in Severity:
        bucket = [m for m in matches if m.severity is severity]
        if not bucket:
            continue
        lines.append(f"## {severity.name} ({len(bucket)})")
        for i, match in enumerate(bucket, 1):
            lines.append(f"{i}. {match.issue} [{match.rule_id}]")
            lines.append(f"   Affects: {_persona_line(match)}")
            if match.literal_matches:
                examples = ", ".join(
                    f'"{lit}"' for lit in match.literal_matches[:MAX_EXAMPLES_SHOWN]
                )
                if match.match_count > MAX_EXAMPLES_SHOWN:
                    examples += f" ({match.match_count} occurrences)"
                lines.append(f"   Found: {examples}")
            lines.append(f"   Suggestion: {match.suggestion}")
        lines.append("")

    suggestions = unique_suggestions(matches)
    if suggestions:
        lines.append("## Recommendations")
        lines.extend(f"- {s}" for s in suggestions)
        lines.append("")

    lines.append("## General Inclusive Design Guidance")
    lines.extend(f"- {g}" for g in GENERAL_GUIDANCE)
    lines.append("")

    if mode == "requirements" and matches:
        lines.append("## Persona Impact Ranking")
        for i, entry in enumerate(rank_persona_impact(matches), 1):
            lines.append(
                f"{i}. {entry['title']}: impact {entry['score']} "
                f"(critical {entry['critical']}, high {entry['high']}, medium {entry['medium']})"
            )
        lines.append("")

    if diagnostics:
        lines.append("## Diagnostics")
        lines.extend(f"- [{d.kind}] {d.rule_id}: {d.message}" for d in diagnostics)
        lines.append("")

    if warnings:
        lines.append("## Warnings")
        lines.extend(f"- {w}" for w in warnings)
        lines.append("")

    lines.append("---")
    lines.append(_FOOTERS[mode])
    return "\n".join(lines)
