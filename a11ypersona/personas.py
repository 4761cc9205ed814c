"""
Persona Registry — Accessibility Persona Catalog

Personas are markdown documents with an optional YAML frontmatter block:

    ---
    title: Screen Reader User (NVDA)
    profile:
      - Blind since birth
    interaction_style:
      input: [...]
      output: [...]
      no_reliance_on: [...]
    key_needs: [...]
    cross_functional_considerations:
      customer_care: [...]
      development: [...]
      design_ux: [...]
      testing: [...]
    ---
    Free-form markdown body.

The persona id is the file stem. A prebuilt personas.json bundle
({id: {"data": {...}, "content": "..."}}) is also accepted.

The registry is read-only to the engine. Lookups resolve an exact id,
then a case-insensitive id, then a case-insensitive title.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml

from a11ypersona.logging import get_logger

logger = get_logger("personas")


@dataclass(frozen=True)
class PersonaRecord:
    """A loaded persona. `data` is the parsed frontmatter, `content` the body."""
    id: str
    title: str
    data: dict = field(default_factory=dict, compare=False, hash=False, repr=False)
    content: str = field(default="", compare=False, hash=False, repr=False)

    @property
    def descriptive_text(self) -> str:
        return format_persona(self)


def split_frontmatter(text: str) -> tuple[dict, str]:
    """
    Split a markdown document into (frontmatter, body).

    Raises yaml.YAMLError for malformed YAML and ValueError when the
    frontmatter is not a mapping.
    """
    if not text.startswith("---"):
        return {}, text.strip()

    lines = text.split("\n")
    end_idx = None
    for i, line in enumerate(lines[1:], 1):
        if line.strip() == "---":
            end_idx = i
            break
    if end_idx is None:
        return {}, text.strip()

    meta = yaml.safe_load("\n".join(lines[1:end_idx])) or {}
    if not isinstance(meta, dict):
        raise ValueError("Frontmatter must be a mapping")
    body = "\n".join(lines[end_idx + 1:]).strip()
    return meta, body


def _bullets(items: Any) -> str:
    if isinstance(items, str):
        items = [items]
    return "\n".join(f"- {item}" for item in items)


def format_persona(persona: PersonaRecord) -> str:
    """Render a persona as markdown: title, profile, interaction style, needs, body."""
    data = persona.data or {}
    out = [f"# {persona.title or persona.id}\n"]

    if data.get("profile"):
        out.append(f"## Profile\n{_bullets(data['profile'])}\n")

    style = data.get("interaction_style") or {}
    if isinstance(style, dict) and style:
        out.append("## Interaction Style")
        for key, label in (("input", "Input"), ("output", "Output"),
                           ("no_reliance_on", "No Reliance On")):
            if style.get(key):
                out.append(f"### {label}\n{_bullets(style[key])}\n")

    if data.get("key_needs"):
        out.append(f"## Key Needs\n{_bullets(data['key_needs'])}\n")

    cfc = data.get("cross_functional_considerations") or {}
    if isinstance(cfc, dict) and cfc:
        out.append("## Cross-Functional Considerations")
        for key, label in (("customer_care", "Customer Care"), ("development", "Development"),
                           ("design_ux", "Design/UX"), ("testing", "Testing")):
            if cfc.get(key):
                out.append(f"### {label}\n{_bullets(cfc[key])}\n")

    if persona.content:
        out.append(persona.content)

    return "\n".join(out).strip()


class PersonaRegistry:
    """In-memory catalog of PersonaRecords keyed by id."""

    def __init__(self, records: Iterable[PersonaRecord] = ()):
        self._records: dict[str, PersonaRecord] = {}
        for record in records:
            self._records[record.id] = record

    @classmethod
    def from_directory(cls, directory: str | Path) -> "PersonaRegistry":
        """Load every *.md persona in a directory. Files starting with '_' are skipped."""
        path = Path(directory)
        if not path.is_dir():
            logger.warning("Persona directory not found", extra={"path": str(path)})
            return cls()

        records = []
        for md_file in sorted(path.glob("*.md")):
            if md_file.name.startswith("_"):
                continue
            try:
                meta, body = split_frontmatter(md_file.read_text(encoding="utf-8"))
            except (yaml.YAMLError, ValueError, OSError) as e:
                logger.warning(
                    f"Skipping persona {md_file.name}: {e}",
                    extra={"persona_id": md_file.stem, "error": str(e)},
                )
                continue
            title = str(meta.get("title") or md_file.stem).strip()
            records.append(PersonaRecord(id=md_file.stem, title=title, data=meta, content=body))

        logger.info(f"Loaded {len(records)} personas from {path}")
        return cls(records)

    @classmethod
    def from_bundle(cls, bundle_path: str | Path) -> "PersonaRegistry":
        """Load a personas.json bundle of the shape {id: {data, content}}."""
        with open(bundle_path, encoding="utf-8") as f:
            bundle = json.load(f)
        records = []
        for persona_id, entry in bundle.items():
            data = entry.get("data") or {}
            records.append(PersonaRecord(
                id=persona_id,
                title=str(data.get("title") or persona_id),
                data=data,
                content=entry.get("content") or "",
            ))
        return cls(records)

    @classmethod
    def from_path(cls, path: str | Path) -> "PersonaRegistry":
        path = Path(path)
        if path.suffix == ".json" and path.is_file():
            return cls.from_bundle(path)
        return cls.from_directory(path)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, persona_id: object) -> bool:
        return persona_id in self._records

    def list(self) -> list[PersonaRecord]:
        return [self._records[k] for k in sorted(self._records)]

    def ids(self) -> list[str]:
        return sorted(self._records)

    def get(self, query: str) -> Optional[PersonaRecord]:
        """Resolve a persona by id or title (case-insensitive)."""
        if not query:
            return None
        if query in self._records:
            return self._records[query]

        query_lower = query.strip().lower()
        for persona_id, record in self._records.items():
            if persona_id.lower() == query_lower:
                return record
        for record in self._records.values():
            if record.title.lower() == query_lower:
                return record
        return None

    def get_many(self, queries: Iterable[str]) -> tuple[list[PersonaRecord], list[str]]:
        """Resolve several queries. Returns (found, not_found)."""
        found: list[PersonaRecord] = []
        not_found: list[str] = []
        for query in queries:
            record = self.get(query)
            if record is None:
                not_found.append(query)
            elif record not in found:
                found.append(record)
        return found, not_found
