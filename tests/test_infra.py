"""
Tests for auth, structured logging, configuration and the CLI.
"""

import hashlib
import json
import logging

import pytest
from fastapi import HTTPException


class TestAuth:
    """API key authentication tests."""

    def test_generate_key_format(self):
        from a11ypersona.auth import generate_api_key
        key = generate_api_key()
        assert key.startswith("a11y_")
        assert len(key) > 30

    def test_verify_key_valid(self, monkeypatch):
        from a11ypersona import auth
        test_key = "a11y_test_key_12345"
        monkeypatch.setattr(auth, "_VALID_KEY_HASHES", {hashlib.sha256(test_key.encode()).hexdigest()})
        assert auth._verify_key(test_key) is True
        assert auth.check_api_key(test_key) == hashlib.sha256(test_key.encode()).hexdigest()[:12]

    def test_verify_key_invalid(self):
        from a11ypersona.auth import _verify_key
        assert _verify_key("totally_fake_key") is False

    def test_verify_key_empty(self):
        from a11ypersona.auth import _verify_key
        assert _verify_key("") is False

    def test_dev_mode_allows_everything(self, monkeypatch):
        from a11ypersona import auth
        monkeypatch.setattr(auth, "_VALID_KEY_HASHES", set())
        assert auth.auth_enabled() is False
        assert auth.check_api_key(None) is None

    def test_missing_and_invalid_keys(self, monkeypatch):
        from a11ypersona import auth
        monkeypatch.setattr(auth, "_VALID_KEY_HASHES", {"0" * 64})
        with pytest.raises(HTTPException) as missing:
            auth.check_api_key(None)
        assert missing.value.status_code == 401
        with pytest.raises(HTTPException) as invalid:
            auth.check_api_key("nope")
        assert invalid.value.status_code == 403


class TestLogging:

    def _record(self, **extra):
        record = logging.LogRecord("a11ypersona.engine", logging.WARNING, __file__, 1,
                                   "Skipped rule", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_formatter_includes_known_extras(self):
        from a11ypersona.logging import JSONFormatter
        entry = json.loads(JSONFormatter().format(self._record(rule_id="r1", unrelated="x")))
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "a11ypersona.engine"
        assert entry["message"] == "Skipped rule"
        assert entry["rule_id"] == "r1"
        assert "unrelated" not in entry

    def test_text_formatter(self):
        from a11ypersona.logging import TextFormatter
        assert "[WARNING ] a11ypersona.engine: Skipped rule" in TextFormatter().format(self._record())

    def test_text_formatter_appends_scan_id(self):
        from a11ypersona.logging import TextFormatter
        assert TextFormatter().format(self._record(scan_id="abc123")).endswith("(scan abc123)")

    def test_scan_context_tags_records(self):
        from a11ypersona.logging import ScanIdFilter, current_scan_id, scan_context
        assert current_scan_id() is None
        with scan_context("script") as outer:
            record = self._record()
            ScanIdFilter().filter(record)
            assert record.scan_id == outer
            with scan_context("requirements") as inner:
                assert current_scan_id() == inner != outer
            assert current_scan_id() == outer
        assert current_scan_id() is None

    def test_scan_context_restores_on_error(self):
        from a11ypersona.logging import current_scan_id, scan_context
        with pytest.raises(RuntimeError):
            with scan_context("script"):
                raise RuntimeError("boom")
        assert current_scan_id() is None

    def test_scan_ids_are_per_thread(self):
        import threading
        from a11ypersona.logging import current_scan_id, scan_context
        seen = []
        with scan_context("script"):
            t = threading.Thread(target=lambda: seen.append(current_scan_id()))
            t.start()
            t.join()
        assert seen == [None]

    def test_get_logger_namespace(self):
        from a11ypersona.logging import get_logger
        assert get_logger("store").name == "a11ypersona.store"

    def test_setup_logging_replaces_handlers(self):
        from a11ypersona.logging import JSONFormatter, TextFormatter, setup_logging
        root = setup_logging(fmt="text")
        setup_logging(fmt="text")
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, TextFormatter)
        assert isinstance(setup_logging(fmt="json").handlers[0].formatter, JSONFormatter)


class TestConfig:

    def test_bundled_data_paths(self):
        from a11ypersona.config import DATA_DIR, Settings
        assert (DATA_DIR / "accessibility-patterns.json").is_file()
        assert (DATA_DIR / "personas").is_dir()
        assert Settings().MAX_SCAN_CHARS > 0

    def test_settings_are_frozen(self):
        from dataclasses import FrozenInstanceError
        from a11ypersona.config import settings
        with pytest.raises(FrozenInstanceError):
            settings.PORT = 1


class TestCli:

    @pytest.fixture(autouse=True)
    def reset_logging(self):
        yield
        logging.getLogger("a11ypersona").handlers.clear()

    def test_list_personas_json(self, capsys):
        from a11ypersona.cli import main
        assert main(["--json", "list-personas"]) == 0
        personas = json.loads(capsys.readouterr().out)
        assert {"id": "deaf-blind", "title": "Deafblind Braille User"} in personas

    def test_get_personas_markdown(self, capsys):
        from a11ypersona.cli import main
        assert main(["get-personas", "deaf-blind", "nobody"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("# Deafblind Braille User")
        assert "**Not found:** nobody" in out

    def test_scan_script_text(self, capsys):
        from a11ypersona.cli import main
        assert main(["scan-script", "--text", "Press the green button", "--personas",
                     "color-vision-deficiency"]) == 0
        out = capsys.readouterr().out
        assert "# Support Script Accessibility Review" in out
        assert "color-dependency" in out

    def test_scan_requirements_file(self, tmp_path, capsys):
        from a11ypersona.cli import main
        req = tmp_path / "req.md"
        req.write_text("Navigation requires precise touch gestures.")
        assert main(["--json", "scan-requirements", "--file", str(req)]) == 0
        data = json.loads(capsys.readouterr().out)
        assert "fine-motor-requirement" in [m["rule_id"] for m in data["matches"]]

    def test_unknown_persona_exit_code(self, capsys):
        from a11ypersona.cli import main
        assert main(["scan-script", "--text", "hi", "--personas", "ghost"]) == 2
        assert "Valid persona ids:" in capsys.readouterr().err

    def test_analyze_unknown_persona(self, capsys):
        from a11ypersona.cli import main
        assert main(["analyze-persona", "ghost"]) == 2

    def test_audit(self, capsys):
        from a11ypersona.cli import main
        assert main(["--json", "audit-personas"]) == 0
        assert json.loads(capsys.readouterr().out)["unknown_persona_ids"] == []

    def test_missing_input_file(self, tmp_path, capsys):
        from a11ypersona.cli import main
        assert main(["scan-script", "--file", str(tmp_path / "nope.txt")]) == 1
        assert "Error: could not read input" in capsys.readouterr().err

    def test_undecodable_input_file(self, tmp_path, capsys):
        from a11ypersona.cli import main
        req = tmp_path / "req.md"
        req.write_bytes(b"\xff\xfe\xfa not utf-8")
        assert main(["scan-requirements", "--file", str(req)]) == 1
        assert "Error:" in capsys.readouterr().err
