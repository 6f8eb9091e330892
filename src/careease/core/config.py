#%% Configuration Management
"""
YAML configuration for the CareEase client.

Settings are read from ``careease.yaml`` (or an explicit path) and support
``${VAR}`` environment interpolation and ``${file:path}`` includes, so API
endpoints and secrets can stay out of the file itself.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, field_validator

from .exceptions import ConfigurationError

CONFIG_FILENAMES = ("careease.yaml", "careease.yml")
DEFAULT_HOME = Path("~/.careease")


class Settings(BaseModel):
    """Client settings loaded from a YAML file."""

    # REST API
    api_url: str = "http://localhost:5000/api"
    request_timeout: float = 30.0

    # Local state
    preferences_path: Path = DEFAULT_HOME / "preferences.json"
    log_dir: Path = DEFAULT_HOME / "logs"
    log_level: str = "INFO"

    # Chat transcript
    reveal_interval: float = 0.05  # seconds per revealed word
    poll_interval: float = 3.0

    # Notifications
    notification_ttl: float = 4.0
    notification_max: int = 50

    # Alarms
    alarm_check_interval: float = 30.0
    alarm_due_window: float = 60.0

    @field_validator("preferences_path", "log_dir", mode="before")
    @classmethod
    def _coerce_path(cls, v):
        return Path(v).expanduser() if not isinstance(v, Path) else v.expanduser()

    @field_validator("api_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        v = (v or "").strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"api_url must be an http(s) URL, got: {v!r}")
        return v.rstrip("/")

    @field_validator(
        "request_timeout",
        "poll_interval",
        "notification_ttl",
        "alarm_check_interval",
        "alarm_due_window",
    )
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"must be positive, got: {v}")
        return v

    @field_validator("reveal_interval")
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"reveal_interval cannot be negative, got: {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return str(v).upper()


def _interpolate_env_vars(text: str, config_dir: Optional[Path] = None) -> str:
    """Replace ${VAR} and ${file:path} patterns with environment values and file contents."""
    expanded = os.path.expanduser(text)

    def replace_file(match):
        file_path = match.group(1).strip()
        resolved_path = (config_dir / file_path).resolve() if config_dir else Path(file_path).resolve()
        if not resolved_path.is_file():
            raise ValueError(f"File not found: {file_path}")
        if resolved_path.stat().st_size > 1024 * 1024:
            raise ValueError(f"File too large (max 1MB): {file_path}")
        return resolved_path.read_text(encoding="utf-8").rstrip()

    expanded = re.sub(r"\$\{file:([^}]+)\}", replace_file, expanded)

    def replace_var(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))  # Leave unresolved vars untouched

    return re.sub(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}", replace_var, expanded)


def _interpolate_config(value: Any, config_dir: Optional[Path] = None) -> Any:
    """Recursively interpolate environment variables and file contents."""
    if isinstance(value, dict):
        return {k: _interpolate_config(v, config_dir) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_config(v, config_dir) for v in value]
    if isinstance(value, str):
        return _interpolate_env_vars(value, config_dir)
    return value


def find_config_file(start: Optional[Path] = None) -> Optional[Path]:
    """Find careease.yaml or careease.yml in start or any parent directory."""
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        for filename in CONFIG_FILENAMES:
            candidate = directory / filename
            if candidate.is_file():
                return candidate
    return None


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load Settings from a YAML file.

    With no path, the current directory and its parents are searched; if no
    file is found the defaults are used.
    """
    if config_path is None:
        config_path = find_config_file()
        if config_path is None:
            return Settings()

    p = Path(config_path).expanduser()
    if not p.exists():
        raise ConfigurationError(f"Config file not found: {p}")
    try:
        with open(p, "r", encoding="utf-8") as f:
            data: Dict[str, Any] = yaml.safe_load(f) or {}
        # Allow top-level 'careease' key or flat structure
        if isinstance(data.get("careease"), dict):
            data = data["careease"]
        data = _interpolate_config(data, p.parent.resolve())
        return Settings(**data)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file {p}: {e}") from e
    except Exception as e:
        raise ConfigurationError(f"Failed to load config from {p}: {e}") from e
