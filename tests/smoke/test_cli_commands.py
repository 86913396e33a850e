"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

from contextlib import contextmanager

import pytest
from rich.console import Console
from typer.testing import CliRunner

from examcast.cli import main as cli

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_session(db_session, monkeypatch):
    """Route the CLI's session scope to the test database."""

    @contextmanager
    def scope():
        yield db_session
        db_session.commit()

    wide = Console(width=200)
    monkeypatch.setattr(cli, "session_scope", scope)
    monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr(cli, "console", wide)
    monkeypatch.setattr(cli, "rprint", wide.print)
    return db_session


class TestCLIHelp:
    def test_main_help(self):
        result = runner.invoke(cli.app, ["--help"])
        assert result.exit_code == 0
        assert "predict" in result.stdout
        assert "freshness" in result.stdout

    def test_version(self):
        result = runner.invoke(cli.app, ["version"])
        assert result.exit_code == 0
        assert "examcast" in result.stdout


class TestScopeCommand:
    def test_lists_modules(self, seeded_subject):
        result = runner.invoke(cli.app, ["scope", str(seeded_subject.id)])
        assert result.exit_code == 0
        assert "Process Management" in result.stdout
        assert "Segmentation" in result.stdout

    def test_unknown_subject(self):
        result = runner.invoke(cli.app, ["scope", "00000000-0000-0000-0000-000000000000"])
        assert result.exit_code == 1
        assert "not_found" in result.stdout


class TestFreshnessCommands:
    def test_show(self, seeded_subject):
        result = runner.invoke(cli.app, ["freshness", "show", str(seeded_subject.id)])
        assert result.exit_code == 0
        assert "Paging" in result.stdout
        assert "never" in result.stdout

    def test_refresh(self, seeded_subject):
        result = runner.invoke(cli.app, ["freshness", "refresh", str(seeded_subject.id)])
        assert result.exit_code == 0
        assert "5 topics" in result.stdout


class TestPredictCommand:
    def test_requires_api_key(self, seeded_subject):
        result = runner.invoke(cli.app, ["predict", str(seeded_subject.id)])
        assert result.exit_code == 1
        assert "GEMINI_API_KEY" in result.stdout

    def test_prints_predictions(self, seeded_subject, fake_backend, fake_client, valid_reply, monkeypatch):
        from config import get_settings

        fake_backend.script = {get_settings().prediction_model_fast: valid_reply}
        monkeypatch.setattr(get_settings(), "gemini_api_key", "test-key")
        monkeypatch.setattr(cli, "build_client", lambda settings: fake_client)

        result = runner.invoke(
            cli.app,
            ["predict", str(seeded_subject.id), "--exam-type", "midterm_1", "--fast", "-x", "2"],
        )

        assert result.exit_code == 0, result.stdout
        assert "Stored prediction" in result.stdout
        assert "confidence 0.70" in result.stdout
