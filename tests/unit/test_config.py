"""Tests for the settings loader."""

import pytest

from notice_keydates.config.loader import (
    ConfigError,
    ConfigLoader,
    Settings,
    load_settings,
    parse_clock,
    substitute_env_vars,
)
from notice_keydates.core.date_parser import DEADLINE_KEYWORDS, ParserOptions


def _write(tmp_path, content, name="settings.yml"):
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


class TestSubstituteEnvVars:
    """Tests for ${VAR} substitution."""

    def test_set_variable(self, monkeypatch):
        """Test a set variable is substituted."""
        monkeypatch.setenv("KEYDATES_TEST_DIR", "/data")
        assert substitute_env_vars("dir: ${KEYDATES_TEST_DIR}") == "dir: /data"

    def test_default_used(self, monkeypatch):
        """Test the default applies when the variable is unset."""
        monkeypatch.delenv("KEYDATES_TEST_DIR", raising=False)
        assert substitute_env_vars("dir: ${KEYDATES_TEST_DIR:-/tmp/x}") == "dir: /tmp/x"

    def test_missing_without_default(self, monkeypatch):
        """Test an unset variable without default becomes empty."""
        monkeypatch.delenv("KEYDATES_TEST_DIR", raising=False)
        assert substitute_env_vars("dir: ${KEYDATES_TEST_DIR}") == "dir: "


class TestParseClock:
    """Tests for HH:MM parsing."""

    def test_valid(self):
        """Test valid clock strings."""
        assert parse_clock("23:59", "f") == (23, 59)
        assert parse_clock(" 9:00 ", "f") == (9, 0)

    @pytest.mark.parametrize("value", ["24:00", "12:60", "noon", "9", None])
    def test_invalid(self, value):
        """Test malformed clock strings raise ConfigError."""
        with pytest.raises(ConfigError):
            parse_clock(value, "parser.default_time")


class TestLoadSettings:
    """Tests for loading settings files."""

    def test_packaged_defaults(self, monkeypatch):
        """Test the packaged settings.yml matches the built-in defaults."""
        monkeypatch.delenv("NOTICE_KEYDATES_DIR", raising=False)
        settings = load_settings()

        assert settings == Settings()
        assert settings.parser_options() == ParserOptions()

    def test_storage_dir_from_env(self, monkeypatch):
        """Test the storage directory follows the environment."""
        monkeypatch.setenv("NOTICE_KEYDATES_DIR", "/srv/calendar")
        assert load_settings().storage_dir == "/srv/calendar"

    def test_custom_file(self, tmp_path):
        """Test values from an explicit path override defaults."""
        path = _write(tmp_path, """
storage:
  key: my_events
parser:
  rollover_days: 30
  deadline_keywords: ["마감"]
  default_time: "10:30"
labels:
  event_title: 알림
""")
        settings = load_settings(str(path))

        assert settings.storage_key == "my_events"
        assert settings.rollover_days == 30
        assert settings.deadline_keywords == ("마감",)
        assert settings.default_time == (10, 30)
        assert settings.deadline_default_time == (23, 59)
        assert settings.default_event_title == "알림"
        assert settings.default_key_date_label == "주요 일정"

    def test_empty_file(self, tmp_path):
        """Test an empty file yields defaults."""
        _write(tmp_path, "")
        settings = ConfigLoader(str(tmp_path)).load_settings()

        assert settings.rollover_days == 60
        assert settings.deadline_keywords == DEADLINE_KEYWORDS

    def test_missing_file(self, tmp_path):
        """Test a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            ConfigLoader(str(tmp_path)).load_settings()

    @pytest.mark.parametrize("content", [
        "- just\n- a list\n",
        "parser:\n  rollover_days: -1\n",
        "parser:\n  rollover_days: soon\n",
        "parser:\n  rollover_days: true\n",
        "parser:\n  deadline_keywords: 마감\n",
        "parser:\n  deadline_keywords: ['']\n",
        "parser:\n  deadline_default_time: '25:00'\n",
        "parser: 5\n",
        "storage: events\n",
        "labels:\n  - a\n",
    ])
    def test_invalid_values(self, tmp_path, content):
        """Test malformed values raise ConfigError."""
        path = _write(tmp_path, content)
        with pytest.raises(ConfigError):
            load_settings(str(path))
