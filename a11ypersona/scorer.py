"""
Accessibility Grade Calculator

Computes a points score and letter grade from a scan's matches.
Separated from detector.py for single-responsibility.

Scoring:
  Start at 100.
  Per match (once per rule, not per affected persona):
    critical=-25, high=-15, medium=-10
  No clamp: points may go below zero.

Letters: >=90 A, >=80 B, >=70 C, >=60 D, else F.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from a11ypersona.engine import Match
from a11ypersona.rules import Severity

STARTING_POINTS = 100

SEVERITY_PENALTY = {
    Severity.CRITICAL: 25,
    Severity.HIGH: 15,
    Severity.MEDIUM: 10,
}

GRADE_THRESHOLDS = (
    (90, "A"),
    (80, "B"),
    (70, "C"),
    (60, "D"),
)


@dataclass(frozen=True)
class Grade:
    points: int
    letter: str
    breakdown: tuple[dict, ...] = field(default=(), compare=False)

    def to_dict(self) -> dict:
        return {
            "points": self.points,
            "letter": self.letter,
            "breakdown": list(self.breakdown),
        }


def letter_for(points: int) -> str:
    for threshold, letter in GRADE_THRESHOLDS:
        if points >= threshold:
            return letter
    return "F"


def calculate_grade(matches: Iterable[Match]) -> Grade:
    """Score a match sequence. Returns a Grade with a per-match penalty breakdown."""
    points = STARTING_POINTS
    breakdown = []
    for match in matches:
        penalty = SEVERITY_PENALTY[match.severity]
        points -= penalty
        breakdown.append({
            "rule_id": match.rule_id,
            "severity": match.severity.value,
            "penalty": -penalty,
        })
    return Grade(points=points, letter=letter_for(points), breakdown=tuple(breakdown))
