"""Tests for the kidsafe CLI."""

import logging

import pytest
from click.testing import CliRunner

from kidsafe.cli import main
from kidsafe.config import Settings
from kidsafe.moderation.pipeline import ModerationPipeline


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setenv("KIDSAFE_STORE_BACKEND", "json")
    monkeypatch.setenv("KIDSAFE_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("KIDSAFE_LEXICON_PATH", raising=False)
    yield
    # Drop the handler bound to the runner's closed stream
    root = logging.getLogger()
    for handler in list(root.handlers):
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)


def _run(*args):
    return CliRunner().invoke(main, list(args))


def _record_id(text: str = "Imam nož") -> str:
    pipeline = ModerationPipeline.from_settings(Settings())
    ev = pipeline.evaluate(text, content_type="message", content_id="msg-1", author_id="student-1")
    return ev.record_id


# --- Check ---


def test_check_safe_text():
    result = _run("check", "Danas sam uradio domaći zadatak")
    assert result.exit_code == 0
    assert "allow" in result.output


def test_check_blocked_text_exits_nonzero():
    result = _run("check", "Imam nož")
    assert result.exit_code == 1
    assert "flag" in result.output
    assert "Imam ***" in result.output


def test_check_with_age():
    result = _run("check", "Danas sam uradio domaći zadatak", "--age", "6")
    assert result.exit_code == 0
    assert "suggested age: 7" in result.output


def test_check_does_not_record():
    _run("check", "Imam nož")
    result = _run("records", "list")
    assert "No moderation records found" in result.output


def test_simplify():
    result = _run("simplify", "Međutim, idemo.")
    assert result.exit_code == 0
    assert "Ali, idemo." in result.output


# --- Lexicon ---


def test_validate_default_lexicon():
    result = _run("lexicon", "validate")
    assert result.exit_code == 0
    assert "Valid!" in result.output


def test_validate_bad_lexicon(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text(
        "lexicon:\n  name: x\n  version: '1'\n  format_version: '1'\n"
        "  patterns:\n    - {pattern: 'a.*b'}\n",
        encoding="utf-8",
    )
    result = _run("lexicon", "validate", str(path))
    assert result.exit_code == 1
    assert "PATTERN_BACKTRACKING" in result.output


def test_bad_configured_lexicon_is_reported(tmp_path, monkeypatch):
    path = tmp_path / "bad.yaml"
    path.write_text("lexicon: {}\n", encoding="utf-8")
    monkeypatch.setenv("KIDSAFE_LEXICON_PATH", str(path))
    result = _run("check", "zdravo")
    assert result.exit_code == 2
    assert "Configuration error" in result.output


def test_show_lexicon():
    result = _run("lexicon", "show")
    assert result.exit_code == 0
    assert "violence" in result.output
    assert "bullying" in result.output


# --- Records ---


def test_review_flow():
    record_id = _record_id()

    shown = _run("records", "show", record_id)
    assert shown.exit_code == 0
    assert "PENDING" in shown.output

    reviewed = _run("records", "review", record_id, "--status", "rejected", "--reviewer", "mod-1")
    assert reviewed.exit_code == 0
    assert "REJECTED" in reviewed.output

    again = _run("records", "review", record_id, "--status", "approved", "--reviewer", "mod-2")
    assert again.exit_code == 1
    assert "already" in again.output


def test_show_unknown_record():
    result = _run("records", "show", "missing")
    assert result.exit_code == 1
    assert "not found" in result.output


def test_list_records_by_status():
    _record_id()
    pending = _run("records", "list", "--status", "pending")
    assert pending.exit_code == 0
    assert "1 total" in pending.output

    approved = _run("records", "list", "--status", "approved")
    assert "No moderation records found" in approved.output


def test_supersede_record():
    record_id = _record_id()
    result = _run("records", "supersede", record_id, "--reason", "obrisano")
    assert result.exit_code == 0
    assert "superseded" in result.output


def test_stats():
    _record_id()
    _record_id("Niko te ne voli")
    result = _run("stats", "student-1")
    assert result.exit_code == 0
    assert "Total: 2" in result.output
    assert "Pending: 2" in result.output
