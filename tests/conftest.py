"""Shared fixtures: a small persona catalog and rule-set builders."""

from __future__ import annotations

import pytest

from a11ypersona.personas import PersonaRecord, PersonaRegistry
from a11ypersona.store import InMemoryBackend, PatternStore


def persona(persona_id: str, title: str, text: str) -> PersonaRecord:
    return PersonaRecord(id=persona_id, title=title, content=text)


BLIND = persona("blind-user", "Blind User", "Uses a screen reader; no vision.")
MOTOR = persona("motor-impaired", "Motor Impaired User", "Limited hand movement; uses a switch.")
DEAF = persona("deaf-user", "Deaf User", "Profoundly deaf; relies on captions.")
MEMORY = persona("memory-loss", "Memory Loss User", "Short-term memory loss; needs written summaries.")


def rule(rule_id: str, pattern: str, personas, severity: str = "high", **extra) -> dict:
    entry = {
        "id": rule_id,
        "pattern": pattern,
        "flags": "i",
        "personas": list(personas),
        "severity": severity,
        "issue": f"Issue for {rule_id}",
        "suggestion": f"Suggestion for {rule_id}",
        "examples": [],
    }
    entry.update(extra)
    return entry


def check(check_id: str, condition: str, personas, severity: str = "medium", **extra) -> dict:
    entry = {
        "id": check_id,
        "condition": condition,
        "personas": list(personas),
        "severity": severity,
        "issue": f"Issue for {check_id}",
        "suggestion": f"Suggestion for {check_id}",
        "examples": [],
    }
    entry.update(extra)
    return entry


def make_store(rules=(), checks=()) -> PatternStore:
    store = PatternStore(InMemoryBackend({
        "version": 1, "rules": list(rules), "contextualChecks": list(checks),
    }))
    store.load()
    return store


@pytest.fixture
def registry():
    return PersonaRegistry([BLIND, MOTOR, DEAF, MEMORY])
