"""
Tests for the pattern store: load fallback, merge policy, atomic
publish and persistence rollback.
"""

import json
import threading

import pytest

from a11ypersona.errors import ConfigError, PersistenceError, ValidationError
from a11ypersona.rules import rule_from_dict
from a11ypersona.store import InMemoryBackend, JsonFileBackend, PatternStore
from conftest import check, make_store, rule


class FailingBackend(InMemoryBackend):
    """Reads normally, refuses every write."""

    def __init__(self, payload, error):
        super().__init__(payload)
        self.error = error
        self.write_attempts = 0

    def write(self, payload):
        self.write_attempts += 1
        raise self.error


class CountingBackend(InMemoryBackend):
    def __init__(self, payload=None):
        super().__init__(payload)
        self.writes = 0

    def write(self, payload):
        self.writes += 1
        super().write(payload)


# ============================================================
# LOAD
# ============================================================

class TestLoad:

    def test_load_from_json_file(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"version": 1, "rules": [rule("r1", "x", ["a"])]}))
        store = PatternStore.from_path(path)
        assert store.load_error is None
        assert store.snapshot().rule_ids() == ["r1"]

    def test_missing_file_falls_back_to_empty(self, tmp_path):
        store = PatternStore.from_path(tmp_path / "missing.json")
        assert store.snapshot().rules == ()
        assert isinstance(store.load_error, ConfigError)
        assert "not found" in str(store.load_error)

    def test_strict_load_raises(self, tmp_path):
        store = PatternStore.from_path(tmp_path / "missing.json", load=False)
        with pytest.raises(ConfigError):
            store.load(strict=True)

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text("{not json")
        store = PatternStore.from_path(path)
        assert "not valid JSON" in str(store.load_error)
        assert store.snapshot().rules == ()

    def test_invalid_entry_fails_whole_load(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"rules": [rule("ok", "x", ["a"]), rule("bad", "([", ["a"])]}))
        store = PatternStore.from_path(path)
        assert "failed validation" in str(store.load_error)
        assert store.snapshot().rules == ()

    def test_reload_picks_up_file_changes(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"rules": [rule("r1", "x", ["a"])]}))
        store = PatternStore.from_path(path)
        path.write_text(json.dumps({"rules": [rule("r1", "x", ["a"]), rule("r2", "y", ["a"])]}))
        assert store.reload().rule_ids() == ["r1", "r2"]


# ============================================================
# UPDATE
# ============================================================

class TestUpdate:

    def test_merge_replaces_in_place_and_appends(self):
        store = make_store(rules=[rule("r1", "x", ["a"]), rule("r2", "y", ["a"])])
        store.update(rules=[rule("r1", "z", ["b"]), rule("r3", "w", ["a"])])
        snap = store.snapshot()
        assert snap.rule_ids() == ["r1", "r2", "r3"]
        assert snap.get_rule("r1").pattern == "z"

    def test_duplicates_within_batch_last_write_wins(self):
        store = make_store()
        store.update(rules=[rule("r1", "first", ["a"]), rule("r1", "second", ["a"])])
        assert store.snapshot().get_rule("r1").pattern == "second"
        assert len(store.snapshot().rules) == 1

    def test_replace_discards_existing(self):
        store = make_store(
            rules=[rule("r1", "x", ["a"])],
            checks=[check("c1", "scriptType == 'phone'", ["a"])],
        )
        store.update(rules=[rule("r9", "y", ["a"])], replace=True)
        assert store.snapshot().rule_ids() == ["r9"]

    def test_accepts_rule_objects(self):
        store = make_store()
        store.update(rules=[rule_from_dict(rule("r1", "x", ["a"]))])
        assert store.snapshot().rule_ids() == ["r1"]

    def test_checks_merge_separately(self):
        store = make_store(checks=[check("c1", "scriptType == 'phone'", ["a"])])
        store.update(checks=[check("c2", "scriptType == 'chat'", ["a"])])
        assert [c.id for c in store.snapshot().checks] == ["c1", "c2"]

    def test_invalid_entry_rejected_without_change(self):
        backend = CountingBackend({"rules": [rule("r1", "x", ["a"])]})
        store = PatternStore(backend)
        store.load()
        before = store.snapshot()
        with pytest.raises(ValidationError, match="does not compile"):
            store.update(rules=[rule("r2", "y", ["a"]), rule("bad", "([", ["a"])])
        assert store.snapshot() is before
        assert backend.writes == 0

    def test_round_trip_returns_written_set(self):
        store = make_store()
        incoming = [
            rule("r1", r"\bclick\b", ["a", "b"], severity="critical", examples=["click here"]),
            rule("r2", "hover", ["c"], severity="medium"),
        ]
        store.update(rules=incoming)
        assert store.snapshot().to_dict()["rules"] == incoming

    def test_update_persists_to_file(self, tmp_path):
        path = tmp_path / "rules.json"
        store = PatternStore.from_path(path)
        store.update(rules=[rule("r1", "x", ["a"])])
        on_disk = json.loads(path.read_text())
        assert on_disk["version"] == 1
        assert [r["id"] for r in on_disk["rules"]] == ["r1"]
        assert PatternStore.from_path(path).snapshot() == store.snapshot()

    def test_merge_into_missing_file_creates_it(self, tmp_path):
        store = PatternStore.from_path(tmp_path / "missing.json")
        assert store.load_error is not None
        store.update(rules=[rule("r1", "x", ["a"])])
        assert store.load_error is None
        assert (tmp_path / "missing.json").is_file()

    def test_merge_refused_after_failed_load(self, tmp_path):
        path = tmp_path / "rules.json"
        valid = [rule(f"r{i}", f"word{i}", ["a"]) for i in range(5)]
        path.write_text(json.dumps({"version": 1, "rules": valid + [rule("bad", "(", ["a"])]}))
        before = path.read_text()
        store = PatternStore.from_path(path)
        assert "failed validation" in str(store.load_error)

        with pytest.raises(ConfigError, match="replace=True"):
            store.update(rules=[rule("new", "y", ["a"])])

        assert path.read_text() == before
        assert store.snapshot().rules == ()
        assert store.load_error is not None

    def test_replace_allowed_after_failed_load(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text("{not json")
        store = PatternStore.from_path(path)
        store.update(rules=[rule("r1", "x", ["a"])], replace=True)
        assert store.load_error is None
        assert [r["id"] for r in json.loads(path.read_text())["rules"]] == ["r1"]

    def test_backtracking_pattern_rejected(self):
        store = make_store(rules=[rule("r1", "x", ["a"])])
        with pytest.raises(ValidationError, match="nests quantifiers"):
            store.update(rules=[rule("evil", r"(\w+\s?)+$", ["blind-user"])])
        assert store.snapshot().rule_ids() == ["r1"]

    def test_snapshot_taken_before_update_is_unchanged(self):
        store = make_store(rules=[rule("r1", "x", ["a"])])
        old = store.snapshot()
        store.update(rules=[rule("r2", "y", ["a"])])
        assert old.rule_ids() == ["r1"]
        assert store.snapshot().rule_ids() == ["r1", "r2"]

    def test_stores_are_independent(self):
        first, second = make_store(), make_store()
        first.update(rules=[rule("r1", "x", ["a"])])
        assert second.snapshot().rules == ()

    def test_concurrent_updates_all_land(self):
        store = make_store()

        def add(i):
            store.update(rules=[rule(f"r{i}", f"word{i}", ["a"])])

        threads = [threading.Thread(target=add, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(store.snapshot().rules) == 20


# ============================================================
# PERSISTENCE FAILURE
# ============================================================

class TestPersistenceFailure:

    @pytest.mark.parametrize("error", [OSError("disk full"), PersistenceError("disk full")])
    def test_failed_write_rolls_back(self, error):
        backend = FailingBackend({"rules": [rule("r1", "x", ["a"])]}, error)
        store = PatternStore(backend)
        store.load()
        before = store.snapshot()

        with pytest.raises(PersistenceError, match="disk full"):
            store.update(rules=[rule("r2", "y", ["a"])])

        assert backend.write_attempts == 1
        assert store.snapshot() is before
        assert store.snapshot().rule_ids() == ["r1"]

    def test_json_backend_write_failure(self, tmp_path):
        target = tmp_path / "rules.json"
        target.mkdir()
        with pytest.raises(PersistenceError):
            JsonFileBackend(target).write({"version": 1, "rules": []})
        assert [p.name for p in tmp_path.iterdir()] == ["rules.json"]

    def test_in_memory_backend_copies(self):
        payload = {"rules": [rule("r1", "x", ["a"])]}
        backend = InMemoryBackend(payload)
        payload["rules"].clear()
        assert len(backend.read()["rules"]) == 1
