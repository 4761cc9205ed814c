"""
Persona Pattern Analyzer — Grows the Rule Set From Persona Profiles

Reads a persona's descriptive text and proposes rule-set changes:

  1. Infer capability indicators (visual, auditory, motor, cognitive,
     speech, technical, time) via the pluggable classifier
  2. Suggest adding the persona to existing rules whose family matches
     one of its indicators
  3. Suggest new persona-scoped rules where the rule set has no
     coverage yet (cognitive load, memory, literacy)
  4. Optionally apply everything through ONE PatternStore.update call

Proposals are validated against the same schema the store enforces,
so an applied proposal can never leave the store in an invalid state.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from a11ypersona.indicators import (
    IndicatorClassifier,
    KeywordIndicatorClassifier,
    PersonaIndicatorProfile,
)
from a11ypersona.logging import get_logger
from a11ypersona.personas import PersonaRecord
from a11ypersona.rules import Rule, RuleSet, rule_from_dict
from a11ypersona.store import PatternStore

logger = get_logger("analyzer")


# Rule-id family → indicator that justifies adding a persona to it
RULE_FAMILY_INDICATORS: dict[str, tuple[str, ...]] = {
    "visual-dependency": ("visual",),
    "color-dependency": ("visual",),
    "audio-dependency": ("auditory",),
    "mouse-dependency": ("motor",),
    "input-method-assumption": ("motor",),
    "verbal-response-required": ("speech",),
    "technical-jargon": ("technical",),
    "time-pressure": ("time",),
    "session-timeout-pressure": ("time",),
}


# New-rule templates. {persona_id} is substituted.
NEW_RULE_TEMPLATES: dict[str, dict] = {
    "cognitive": {
        "id": "cognitive-load-{persona_id}",
        "pattern": r"\b(?:complex|complicated|multi[- ]?step|several steps|all of the following"
                   r"|at the same time|simultaneously)\b",
        "flags": "i",
        "severity": "high",
        "issue": "Instructions impose a high cognitive load",
        "suggestion": "Break the task into single, clearly numbered steps and confirm each one.",
        "examples": ["Complete the following multi-step process"],
    },
    "memory": {
        "id": "memory-requirement-{persona_id}",
        "pattern": r"\b(?:remember|memori[sz]e|recall|don't forget|keep in mind|write down)\b",
        "flags": "i",
        "severity": "high",
        "issue": "Relies on the user remembering information",
        "suggestion": "Provide information in writing (SMS, email, chat) and repeat it on request.",
        "examples": ["Please remember your reference number"],
    },
    "literacy": {
        "id": "literacy-assumption-{persona_id}",
        "pattern": r"\b(?:read (?:the|our|through)|as (?:stated|described|outlined) in|refer to"
                   r"|terms and conditions|fine print|documentation)\b",
        "flags": "i",
        "severity": "medium",
        "issue": "Assumes the user can read and interpret written material",
        "suggestion": "Explain the key points verbally in plain language and offer to walk through them.",
        "examples": ["Please read the terms and conditions"],
    },
}


@dataclass
class RuleExtension:
    rule_id: str
    add_personas: list[str]
    reason: str

    def to_dict(self) -> dict:
        return {"rule_id": self.rule_id, "add_personas": list(self.add_personas),
                "reason": self.reason}


@dataclass
class AnalysisResult:
    persona_id: str
    indicators: PersonaIndicatorProfile
    rule_updates: list[RuleExtension] = field(default_factory=list)
    new_rules: list[Rule] = field(default_factory=list)
    applied: bool = False

    def to_dict(self) -> dict:
        return {
            "persona_id": self.persona_id,
            "indicators": self.indicators.to_dict(),
            "rule_updates": [u.to_dict() for u in self.rule_updates],
            "new_rules": [r.to_dict() for r in self.new_rules],
            "applied": self.applied,
        }


def rule_family(rule_id: str) -> str | None:
    """Return the family a rule id belongs to, or None."""
    for family in RULE_FAMILY_INDICATORS:
        if rule_id == family or rule_id.startswith(f"{family}-"):
            return family
    return None


class PersonaPatternAnalyzer:
    """Proposes (and optionally applies) rule-set changes for one persona."""

    def __init__(self, store: PatternStore, classifier: IndicatorClassifier | None = None):
        self._store = store
        self._classifier = classifier or KeywordIndicatorClassifier()

    def analyze(self, persona: PersonaRecord) -> AnalysisResult:
        text = persona.descriptive_text
        indicators = self._classifier.classify(text)
        ruleset = self._store.snapshot()

        result = AnalysisResult(persona_id=persona.id, indicators=indicators)
        result.rule_updates = self._extension_suggestions(persona, indicators, ruleset)
        result.new_rules = self._new_rule_suggestions(persona, indicators, text, ruleset)

        logger.info(
            f"Analyzed persona: {len(result.rule_updates)} extension(s), "
            f"{len(result.new_rules)} new rule(s)",
            extra={"persona_id": persona.id},
        )
        return result

    def _extension_suggestions(
        self, persona: PersonaRecord, indicators: PersonaIndicatorProfile, ruleset: RuleSet,
    ) -> list[RuleExtension]:
        suggestions = []
        for rule in ruleset.rules:
            family = rule_family(rule.id)
            if family is None or persona.id in rule.personas:
                continue
            triggered = [f for f in RULE_FAMILY_INDICATORS[family] if getattr(indicators, f)]
            if not triggered:
                continue
            suggestions.append(RuleExtension(
                rule_id=rule.id,
                add_personas=[persona.id],
                reason=f"Persona shows {', '.join(triggered)} indicator(s) relevant to {family}",
            ))
        return suggestions

    def _new_rule_suggestions(
        self,
        persona: PersonaRecord,
        indicators: PersonaIndicatorProfile,
        text: str,
        ruleset: RuleSet,
    ) -> list[Rule]:
        existing_ids = [rid.lower() for rid in ruleset.rule_ids()]
        lowered = text.lower()

        def uncovered(keyword: str) -> bool:
            return not any(keyword in rid for rid in existing_ids)

        wanted = []
        if indicators.cognitive and uncovered("cognitive"):
            wanted.append("cognitive")
        if "memory" in lowered and uncovered("memory"):
            wanted.append("memory")
        if ("literacy" in lowered or "reading" in lowered) and uncovered("literacy"):
            wanted.append("literacy")

        rules = []
        for key in wanted:
            template = dict(NEW_RULE_TEMPLATES[key])
            template["id"] = template["id"].format(persona_id=persona.id)
            template["personas"] = [persona.id]
            rules.append(rule_from_dict(template))
        return rules

    def apply(self, result: AnalysisResult) -> RuleSet:
        """Merge persona additions and new rules into the store in one update."""
        ruleset = self._store.snapshot()
        extended = []
        for update in result.rule_updates:
            rule = ruleset.get_rule(update.rule_id)
            if rule is None:
                continue
            personas = list(rule.personas) + [
                p for p in update.add_personas if p not in rule.personas
            ]
            extended.append(rule.to_dict() | {"personas": personas})

        updated = self._store.update(rules=extended + [r.to_dict() for r in result.new_rules])
        result.applied = True
        logger.info(
            "Applied persona analysis to rule set",
            extra={"persona_id": result.persona_id, "rules_count": len(updated.rules)},
        )
        return updated
