"""Rule-set growth from persona profiles."""

from a11ypersona.patterns.analyzer import AnalysisResult, PersonaPatternAnalyzer, RuleExtension

__all__ = ["AnalysisResult", "PersonaPatternAnalyzer", "RuleExtension"]
