"""
API Schemas — Request and Response Models

Pydantic models for the A11y Persona Scanner API.
"""

from __future__ import annotations

from typing import Optional
from pydantic import BaseModel, Field


# ============================================================
# SCAN
# ============================================================

class ScriptScanRequest(BaseModel):
    """POST /scan/script request body."""
    text: str = Field(..., min_length=1, max_length=50_000,
                      description="The support script to review (1-50,000 characters).")
    script_type: str = Field("", max_length=100,
                             description="Channel or script kind, e.g. 'phone', 'chat'.")
    issue_category: str = Field("", max_length=100,
                                description="Support issue category, e.g. 'billing'.")
    personas: Optional[list[str]] = Field(
        None, description="Persona ids or titles to review against. Omit for all personas.")

    model_config = {"json_schema_extra": {"examples": [
        {"text": "Press the green button on your screen now.", "script_type": "phone",
         "issue_category": "technical-support", "personas": ["blindness-screen-reader-nvda"]},
    ]}}


class RequirementsScanRequest(BaseModel):
    """POST /scan/requirements request body."""
    text: str = Field(..., min_length=1, max_length=50_000)
    personas: Optional[list[str]] = None


class PersonaRef(BaseModel):
    id: str
    title: str


class MatchResponse(BaseModel):
    rule_id: str
    source: str
    affected_personas: list[PersonaRef]
    severity: str
    issue: str
    suggestion: str
    literal_matches: list[str]
    match_count: int


class GradeResponse(BaseModel):
    points: int
    letter: str
    breakdown: list[dict] = []


class DiagnosticResponse(BaseModel):
    rule_id: str
    kind: str
    message: str


class ScanResponse(BaseModel):
    """POST /scan/* response body."""
    scan_id: str = ""
    mode: str
    grade: GradeResponse
    matches: list[MatchResponse]
    diagnostics: list[DiagnosticResponse]
    warnings: list[str]
    target_personas: list[str]
    report: str


# ============================================================
# RULES
# ============================================================

class RuleUpdateRequest(BaseModel):
    """PUT /rules request body. Entries are validated by the pattern store."""
    rules: list[dict] = Field(default_factory=list)
    contextualChecks: list[dict] = Field(default_factory=list)
    replace: bool = Field(False, description="Replace the rule set instead of merging by id.")


class RuleUpdateResponse(BaseModel):
    ok: bool
    rules: int
    checks: int


class RuleSetResponse(BaseModel):
    version: int
    rules: list[dict]
    contextualChecks: list[dict]


class PersonaAuditResponse(BaseModel):
    referenced_count: int
    unknown_persona_ids: list[str]
    unreferenced_personas: list[str]


# ============================================================
# PERSONAS
# ============================================================

class PersonaListResponse(BaseModel):
    count: int
    personas: list[PersonaRef]


class PersonaDetail(BaseModel):
    id: str
    title: str
    markdown: str


class PersonaLookupResponse(BaseModel):
    count: int
    personas: list[PersonaDetail]
    not_found: list[str] = []
    available: list[str] = []


class AnalyzeRequest(BaseModel):
    auto_apply: bool = False


class AnalyzeResponse(BaseModel):
    persona_id: str
    indicators: dict[str, bool]
    rule_updates: list[dict]
    new_rules: list[dict]
    applied: bool


# ============================================================
# HEALTH
# ============================================================

class HealthResponse(BaseModel):
    status: str
    version: str
    rules: int
    contextual_checks: int
    personas: int
    rules_load_error: Optional[str] = None
