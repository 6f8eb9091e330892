"""
Core module for the CareEase client.

Exports:
- TranscriptView: chat transcript with optimistic sends and reply reveal
- DisplayMessage / MessageSource: transcript view-model and backend protocol
- Settings / load_settings: YAML configuration
- Preferences: persisted session token and theme
- Notifier: transient user-visible notifications
- AlarmWatcher: due-alarm loop
- Error taxonomy
"""

from .alarms import AlarmWatcher
from .config import Settings, load_settings
from .exceptions import (
    ApiError,
    CareEaseError,
    ConfigurationError,
    NetworkError,
)
from .notifications import Notification, Notifier
from .preferences import Preferences, Theme
from .transcript import DisplayMessage, MessageSource, TranscriptView

__all__ = [
    "AlarmWatcher",
    "ApiError",
    "CareEaseError",
    "ConfigurationError",
    "DisplayMessage",
    "MessageSource",
    "NetworkError",
    "Notification",
    "Notifier",
    "Preferences",
    "Settings",
    "Theme",
    "TranscriptView",
    "load_settings",
]
