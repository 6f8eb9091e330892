"""
CareEase: client for the CareEase care-assistance API.

Provides the chat transcript engine, REST service clients, alarm watching,
report assembly and a terminal front end.
"""

__version__ = "0.1.0"

# Re-export core components for convenience
from .core import Notifier, Preferences, Settings, TranscriptView

__all__ = [
    "Notifier",
    "Preferences",
    "Settings",
    "TranscriptView",
]
