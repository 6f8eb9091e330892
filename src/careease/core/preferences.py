"""Client preferences: the session token and the display theme, kept in one JSON file."""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

TOKEN_KEY = "careease-token"
THEME_KEY = "careease-theme"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


DEFAULT_THEME = Theme.DARK


class Preferences:
    """Process-wide client state persisted to a small JSON file.

    This is the only place that reads or writes the session token and the
    theme. Values are loaded once on construction and written back on every
    change.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path).expanduser() if path else None
        self._data: Dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            loaded = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable preferences file %s: %s", self.path, e)
            return
        if isinstance(loaded, dict):
            self._data = loaded

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), encoding="utf-8")

    # Token

    @property
    def token(self) -> Optional[str]:
        return self._data.get(TOKEN_KEY) or None

    @token.setter
    def token(self, value: Optional[str]) -> None:
        if value:
            self._data[TOKEN_KEY] = value
        else:
            self._data.pop(TOKEN_KEY, None)
        self._save()

    def clear_token(self) -> None:
        self.token = None

    # Theme

    @property
    def theme(self) -> Theme:
        try:
            return Theme(self._data.get(THEME_KEY, DEFAULT_THEME.value))
        except ValueError:
            return DEFAULT_THEME

    @theme.setter
    def theme(self, value: Theme | str) -> None:
        self._data[THEME_KEY] = Theme(value).value
        self._save()

    def effective_theme(self, system_theme: Theme | str = Theme.DARK) -> Theme:
        """Resolve 'system' to the given OS theme."""
        theme = self.theme
        if theme is Theme.SYSTEM:
            system = Theme(system_theme)
            return Theme.DARK if system is Theme.SYSTEM else system
        return theme

    def toggle_theme(self) -> Theme:
        """Cycle light -> dark -> system -> light."""
        self.theme = _THEME_CYCLE[self.theme]
        return self.theme


_THEME_CYCLE = {
    Theme.LIGHT: Theme.DARK,
    Theme.DARK: Theme.SYSTEM,
    Theme.SYSTEM: Theme.LIGHT,
}
