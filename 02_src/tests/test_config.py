"""Tests for configuration and logging helpers."""

import json
import logging

import pytest

from agent_workspace.config import (
    DEFAULT_DB_PATH,
    PROJECT_ROOT,
    RelaySettings,
    resolve_agents_path,
    resolve_db_path,
)
from agent_workspace.logging_config import JSONFormatter


class TestPaths:
    """Tests for path resolution."""

    def test_db_path_defaults(self):
        assert resolve_db_path(None) == DEFAULT_DB_PATH
        assert resolve_db_path(":memory:") == ":memory:"

    def test_relative_paths_are_project_relative(self, tmp_path):
        assert resolve_db_path("03_data/x.db") == PROJECT_ROOT / "03_data/x.db"
        assert resolve_agents_path(tmp_path / "a.json") == tmp_path / "a.json"


class TestRelaySettings:
    """Tests for RelaySettings.from_env()."""

    def test_defaults(self, monkeypatch):
        for name in (
            "BRIDGE_POLL_INTERVAL",
            "BRIDGE_TIMEOUT",
            "BRIDGE_REPLAY_DELAY",
            "BRIDGE_SECRET",
            "OVERVIEW_AGENT_ID",
            "DEFAULT_USER_ID",
            "CORS_ORIGINS",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = RelaySettings.from_env()
        assert settings.bridge_poll_interval == 0.5
        assert settings.bridge_timeout == 120.0
        assert settings.bridge_secret == ""
        assert settings.overview_agent_id == "overview"
        assert "http://localhost:5173" in settings.cors_origins

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("BRIDGE_REPLAY_DELAY", "0")
        monkeypatch.setenv("CORS_ORIGINS", "https://a.test, https://b.test")
        monkeypatch.setenv("DEFAULT_USER_ID", "team")

        settings = RelaySettings.from_env()
        assert settings.bridge_replay_delay == 0.0
        assert settings.cors_origins == ["https://a.test", "https://b.test"]
        assert settings.default_user_id == "team"

    def test_bad_number(self, monkeypatch):
        monkeypatch.setenv("BRIDGE_TIMEOUT", "soon")
        with pytest.raises(ValueError, match="BRIDGE_TIMEOUT"):
            RelaySettings.from_env()


class TestJSONFormatter:
    """Tests for structured log lines."""

    def test_context_fields_are_included(self):
        record = logging.LogRecord("agent_workspace.bus", logging.INFO, __file__, 1, "Handoff %s", ("h1",), None)
        record.handoff_id = "h1"
        record.agent_id = "code"

        line = json.loads(JSONFormatter().format(record))
        assert line["message"] == "Handoff h1"
        assert line["level"] == "INFO"
        assert line["handoff_id"] == "h1"
        assert line["agent_id"] == "code"
        assert "provider" not in line

    def test_exception_is_formatted(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            import sys

            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        line = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in line["exception"]
