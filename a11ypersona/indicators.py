"""
Persona capability indicators.

A PersonaIndicatorProfile is inferred from a persona's descriptive
text and used by the pattern analyzer and the structural requirement
checks to decide which personas a barrier applies to.

The default classifier is a plain keyword heuristic: any
case-insensitive substring hit sets the flag, with no negation
handling ("time" fires on any mention of time). Other classifiers
plug in through IndicatorClassifier.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass

INDICATOR_KEYWORDS: dict[str, tuple[str, ...]] = {
    "visual": ("vision", "blind", "see"),
    "auditory": ("deaf", "hearing", "audio"),
    "motor": ("motor", "hand", "gesture"),
    "cognitive": ("cognitive", "memory", "complexity"),
    "speech": ("speak", "voice", "verbal"),
    "technical": ("technical", "technology", "literacy"),
    "time": ("time", "slow", "timeout"),
}


@dataclass(frozen=True)
class PersonaIndicatorProfile:
    visual: bool = False
    auditory: bool = False
    motor: bool = False
    cognitive: bool = False
    speech: bool = False
    technical: bool = False
    time: bool = False

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)

    def active(self) -> list[str]:
        return [name for name, on in self.to_dict().items() if on]


class IndicatorClassifier(ABC):
    """Infers capability indicators from persona text."""

    @abstractmethod
    def classify(self, text: str) -> PersonaIndicatorProfile:
        ...


class KeywordIndicatorClassifier(IndicatorClassifier):
    def __init__(self, keywords: dict[str, tuple[str, ...]] | None = None):
        self.keywords = keywords or INDICATOR_KEYWORDS

    def classify(self, text: str) -> PersonaIndicatorProfile:
        lowered = (text or "").lower()
        flags = {
            name: any(word in lowered for word in words)
            for name, words in self.keywords.items()
        }
        return PersonaIndicatorProfile(**flags)
