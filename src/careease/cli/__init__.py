"""Terminal front end for the CareEase client."""

from .terminal import ClientContext, TranscriptRenderer

__all__ = ["ClientContext", "TranscriptRenderer"]
