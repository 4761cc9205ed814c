"""Tests for the persona catalog, lookup and markdown rendering."""

import json

import pytest
import yaml

from a11ypersona.config import DATA_DIR
from a11ypersona.personas import PersonaRecord, PersonaRegistry, format_persona, split_frontmatter
from a11ypersona.store import PatternStore

PERSONA_MD = """---
title: Screen Reader User (NVDA)
profile:
  - Blind since birth
interaction_style:
  input: [Keyboard]
  output: [Speech]
  no_reliance_on: [Vision]
key_needs:
  - Labelled controls
cross_functional_considerations:
  customer_care:
    - Describe controls by label
  testing: Test with NVDA
---
Sam navigates by headings.
"""


@pytest.fixture
def persona_dir(tmp_path):
    (tmp_path / "blindness-screen-reader-nvda.md").write_text(PERSONA_MD)
    (tmp_path / "no-frontmatter.md").write_text("Just a body.")
    (tmp_path / "_template.md").write_text("---\ntitle: Template\n---\n")
    (tmp_path / "broken.md").write_text("---\ntitle: [unclosed\n---\nbody")
    return tmp_path


class TestFrontmatter:

    def test_split(self):
        meta, body = split_frontmatter(PERSONA_MD)
        assert meta["title"] == "Screen Reader User (NVDA)"
        assert body == "Sam navigates by headings."

    def test_no_frontmatter(self):
        assert split_frontmatter("Plain text\n") == ({}, "Plain text")

    def test_unterminated_frontmatter_is_body(self):
        meta, body = split_frontmatter("---\ntitle: x\n")
        assert meta == {}

    def test_invalid_yaml(self):
        with pytest.raises(yaml.YAMLError):
            split_frontmatter("---\ntitle: [unclosed\n---\n")

    def test_non_mapping(self):
        with pytest.raises(ValueError):
            split_frontmatter("---\n- a\n- b\n---\n")


class TestRegistry:

    def test_from_directory(self, persona_dir):
        registry = PersonaRegistry.from_directory(persona_dir)
        assert registry.ids() == ["blindness-screen-reader-nvda", "no-frontmatter"]
        assert registry.get("no-frontmatter").title == "no-frontmatter"

    def test_missing_directory_is_empty(self, tmp_path):
        assert len(PersonaRegistry.from_directory(tmp_path / "nope")) == 0

    def test_from_bundle(self, tmp_path):
        bundle = tmp_path / "personas.json"
        bundle.write_text(json.dumps({
            "deaf-blind": {"data": {"title": "Deafblind User"}, "content": "Uses braille."},
        }))
        registry = PersonaRegistry.from_path(bundle)
        assert registry.get("deaf-blind").title == "Deafblind User"
        assert registry.get("deaf-blind").content == "Uses braille."

    def test_lookup_order(self, persona_dir):
        registry = PersonaRegistry.from_directory(persona_dir)
        assert registry.get("blindness-screen-reader-nvda").id == "blindness-screen-reader-nvda"
        assert registry.get("BLINDNESS-Screen-Reader-NVDA").id == "blindness-screen-reader-nvda"
        assert registry.get("screen reader user (nvda)").id == "blindness-screen-reader-nvda"
        assert registry.get("nobody") is None
        assert registry.get("") is None

    def test_get_many(self, persona_dir):
        registry = PersonaRegistry.from_directory(persona_dir)
        found, not_found = registry.get_many([
            "blindness-screen-reader-nvda", "Screen Reader User (NVDA)", "ghost",
        ])
        assert [p.id for p in found] == ["blindness-screen-reader-nvda"]
        assert not_found == ["ghost"]

    def test_membership(self, persona_dir):
        registry = PersonaRegistry.from_directory(persona_dir)
        assert "no-frontmatter" in registry
        assert "_template" not in registry


class TestFormatPersona:

    def test_sections(self):
        meta, body = split_frontmatter(PERSONA_MD)
        text = format_persona(PersonaRecord("blindness-screen-reader-nvda", meta["title"], meta, body))
        assert text.startswith("# Screen Reader User (NVDA)")
        for heading in ("## Profile", "## Interaction Style", "### Input", "### No Reliance On",
                        "## Key Needs", "## Cross-Functional Considerations",
                        "### Customer Care", "### Testing"):
            assert heading in text
        assert "### Design/UX" not in text
        assert "- Test with NVDA" in text
        assert text.endswith("Sam navigates by headings.")

    def test_descriptive_text_feeds_from_format(self):
        record = PersonaRecord("x", "X User", {"key_needs": ["More time"]}, "")
        assert "More time" in record.descriptive_text


class TestBundledData:

    def test_bundled_catalog_loads(self):
        registry = PersonaRegistry.from_directory(DATA_DIR / "personas")
        assert len(registry) >= 10
        assert "deaf-blind" in registry
        assert all(p.title != p.id for p in registry.list())

    def test_bundled_rule_set_is_valid_and_references_known_personas(self):
        store = PatternStore.from_path(DATA_DIR / "accessibility-patterns.json")
        assert store.load_error is None
        assert len(store.snapshot().rules) > 0
        assert len(store.snapshot().checks) > 0

        known = set(PersonaRegistry.from_directory(DATA_DIR / "personas").ids())
        for item in store.snapshot().rules + store.snapshot().checks:
            assert set(item.personas) <= known, item.id
