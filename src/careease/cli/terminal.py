"""Terminal wiring: client context and an incremental transcript renderer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import typer

from ..core.config import Settings
from ..core.logging import get_session_logger
from ..core.notifications import Notification, Notifier
from ..core.preferences import Preferences
from ..core.transcript import DisplayMessage, TranscriptView
from ..core.models import Role
from ..services import AdminService, ApiClient, AuthService, AuthSession, ChatService, UserService

SPEAKERS = {Role.USER: "You", Role.ASSISTANT: "CareEase"}
NOTIFICATION_COLORS = {
    "success": typer.colors.GREEN,
    "info": typer.colors.BLUE,
    "warning": typer.colors.YELLOW,
    "error": typer.colors.RED,
    "alarm": typer.colors.MAGENTA,
}


@dataclass
class ClientContext:
    """Everything a command needs, built from Settings."""

    settings: Settings
    preferences: Preferences
    notifier: Notifier
    api: ApiClient
    auth: AuthSession
    chats: ChatService
    users: UserService
    admin: AdminService

    @classmethod
    def create(cls, settings: Settings) -> "ClientContext":
        preferences = Preferences(settings.preferences_path)
        notifier = Notifier(ttl=settings.notification_ttl, maxsize=settings.notification_max)
        notifier.subscribe(print_notification)
        api = ApiClient(settings, preferences)
        return cls(
            settings=settings,
            preferences=preferences,
            notifier=notifier,
            api=api,
            auth=AuthSession(AuthService(api), preferences, notifier),
            chats=ChatService(api),
            users=UserService(api),
            admin=AdminService(api),
        )

    def transcript(self, echo: Callable[..., None] = typer.echo) -> TranscriptView:
        renderer = TranscriptRenderer(echo)
        return TranscriptView(
            self.chats,
            notifier=self.notifier,
            reveal_interval=self.settings.reveal_interval,
            on_update=renderer,
            session_logger=get_session_logger(self.settings.log_dir),
        )

    async def __aenter__(self) -> "ClientContext":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.api.aclose()


def print_notification(note: Notification) -> None:
    color = NOTIFICATION_COLORS.get(note.level)
    typer.secho(f"[{note.level}] {note.message}", fg=color, err=note.level == "error")


@dataclass
class TranscriptRenderer:
    """Prints transcript changes as they happen.

    New entries are printed once; the entry being revealed is extended in
    place by printing only the newly revealed suffix.
    """

    echo: Callable[..., None] = typer.echo
    _printed: Dict[str, int] = field(default_factory=dict)
    _open_line: Optional[str] = None

    def __call__(self, displayed: List[DisplayMessage]) -> None:
        if not displayed:
            self._close_line()
            self._printed.clear()
            return
        for entry in displayed:
            if entry.id not in self._printed:
                self._print_new(entry)
            elif entry.id == self._open_line:
                self._extend(entry)

    def _print_new(self, entry: DisplayMessage) -> None:
        self._close_line()
        self.echo(f"{SPEAKERS[entry.role]}: {entry.content}", nl=not entry.is_typing)
        self._printed[entry.id] = len(entry.content)
        if entry.is_typing:
            self._open_line = entry.id

    def _extend(self, entry: DisplayMessage) -> None:
        shown = self._printed[entry.id]
        if len(entry.content) > shown:
            self.echo(entry.content[shown:], nl=False)
            self._printed[entry.id] = len(entry.content)
        if not entry.is_typing:
            self.echo("")
            self._open_line = None

    def _close_line(self) -> None:
        if self._open_line is not None:
            self.echo("")
            self._open_line = None


def parse_chat_input(line: str) -> Tuple[str, Optional[str]]:
    """Classify a line typed in the interactive chat.

    Returns ("quit", None), ("switch", chat_id or None when the id is
    missing) or ("message", line).
    """
    words = line.split()
    if words and words[0] == "/quit":
        return "quit", None
    if words and words[0] == "/switch":
        return "switch", words[1] if len(words) == 2 else None
    return "message", line
