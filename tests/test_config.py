"""Tests for YAML settings loading."""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from careease.core.config import Settings, find_config_file, load_settings
from careease.core.exceptions import ConfigurationError


def test_defaults_when_no_config_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    settings = load_settings()

    assert settings.api_url == "http://localhost:5000/api"
    assert settings.reveal_interval == 0.05
    assert settings.alarm_check_interval == 30
    assert settings.alarm_due_window == 60


def test_load_flat_yaml_with_env_and_file_interpolation(tmp_path, monkeypatch):
    monkeypatch.setenv("CAREEASE_HOST", "api.example.org")
    (tmp_path / "timeout.txt").write_text("12\n", encoding="utf-8")
    config = tmp_path / "careease.yaml"
    config.write_text(
        "api_url: https://${CAREEASE_HOST}/api/\n"
        "request_timeout: ${file:timeout.txt}\n"
        "log_level: debug\n"
        "log_dir: ~/care-logs\n",
        encoding="utf-8",
    )

    settings = load_settings(config)

    assert settings.api_url == "https://api.example.org/api"
    assert settings.request_timeout == 12
    assert settings.log_level == "DEBUG"
    assert settings.log_dir == Path("~/care-logs").expanduser()


def test_top_level_careease_key(tmp_path):
    config = tmp_path / "settings.yml"
    config.write_text("careease:\n  poll_interval: 1.5\n  reveal_interval: 0\n", encoding="utf-8")

    settings = load_settings(config)

    assert settings.poll_interval == 1.5
    assert settings.reveal_interval == 0


def test_unresolved_env_var_is_left_in_place(tmp_path, monkeypatch):
    monkeypatch.delenv("CAREEASE_MISSING", raising=False)
    config = tmp_path / "careease.yaml"
    config.write_text("api_url: http://${CAREEASE_MISSING}/api\n", encoding="utf-8")

    settings = load_settings(config)

    assert settings.api_url == "http://${CAREEASE_MISSING}/api"


def test_missing_explicit_file_raises(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_settings(tmp_path / "nope.yaml")


def test_invalid_yaml_raises(tmp_path):
    config = tmp_path / "careease.yaml"
    config.write_text("api_url: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="Invalid YAML"):
        load_settings(config)


@pytest.mark.parametrize(
    "field,value",
    [
        ("api_url", "ftp://example.org"),
        ("poll_interval", 0),
        ("notification_ttl", -1),
        ("reveal_interval", -0.1),
    ],
)
def test_invalid_values_are_rejected(tmp_path, field, value):
    config = tmp_path / "careease.yaml"
    config.write_text(f"{field}: {value}\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_settings(config)


def test_find_config_file_searches_parents(tmp_path):
    (tmp_path / "careease.yml").write_text("poll_interval: 2\n", encoding="utf-8")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)

    assert find_config_file(nested) == (tmp_path / "careease.yml").resolve()


def test_discovered_config_is_used(tmp_path, monkeypatch):
    (tmp_path / "careease.yaml").write_text("poll_interval: 7\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    assert load_settings().poll_interval == 7


def test_settings_paths_are_expanded():
    settings = Settings(preferences_path="~/prefs.json")
    assert settings.preferences_path == Path.home() / "prefs.json"
