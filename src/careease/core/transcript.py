"""Chat transcript with optimistic sends and word-by-word reveal of assistant replies."""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Deque, Dict, List, Optional, Protocol, Sequence, Set, Tuple

from .exceptions import CareEaseError
from .logging import SessionLogger
from .models import Message, Role, utcnow
from .notifications import Notifier

logger = logging.getLogger(__name__)

DEFAULT_REVEAL_INTERVAL = 0.05  # seconds per word
SEND_FAILED_MESSAGE = "Failed to send message"
LOAD_FAILED_MESSAGE = "Failed to load chat"

UpdateHook = Callable[[List["DisplayMessage"]], None]
ScrollHook = Callable[[], None]


class MessageSource(Protocol):
    """Backend collaborator: fetches the persisted transcript and accepts new user messages."""

    async def get_messages(self, chat_id: str) -> List[Message]:  # pragma: no cover - protocol
        ...

    async def send_message(self, chat_id: str, content: str) -> object:  # pragma: no cover - protocol
        ...


@dataclass
class DisplayMessage:
    """View-model for one transcript entry. Exists only while a chat is open."""

    id: str
    role: Role
    content: str
    timestamp: datetime
    is_typing: bool = False
    server_id: Optional[str] = None
    server_index: Optional[int] = None
    optimistic: bool = False


@dataclass
class RevealState:
    """The single reveal in progress."""

    message: DisplayMessage
    target: str
    server_index: int
    generation: int
    words_revealed: int = 0


class TranscriptView:
    """Owns the transcript shown for the currently open chat.

    Server messages are the source of truth; user submissions appear at once
    and are matched to their server echo later. A newly arrived assistant
    reply is revealed one word per ``reveal_interval`` instead of appearing
    all at once. Only one reveal runs at a time; later arrivals queue behind
    it. Opening another chat resets everything, and a generation counter
    turns any callback or fetch started for the previous chat into a no-op.
    """

    def __init__(
        self,
        source: MessageSource,
        *,
        notifier: Optional[Notifier] = None,
        reveal_interval: float = DEFAULT_REVEAL_INTERVAL,
        on_update: Optional[UpdateHook] = None,
        on_scroll: Optional[ScrollHook] = None,
        session_logger: Optional[SessionLogger] = None,
    ):
        self.source = source
        self.notifier = notifier
        self.reveal_interval = reveal_interval
        self.on_update = on_update
        self.on_scroll = on_scroll
        self.session_logger = session_logger

        self.chat_id: Optional[str] = None
        self.displayed: List[DisplayMessage] = []
        self.revealing: Optional[RevealState] = None
        self.server_count = 0

        self._ids = itertools.count(1)
        self._generation = 0
        self._in_flight: Set[str] = set()
        self._pending_reveals: Deque[Tuple[int, Message]] = deque()
        self._reveal_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def open_session(self, chat_id: Optional[str]) -> None:
        """Switch to another chat and load its transcript from the server."""
        self.reset(chat_id)
        if chat_id is not None:
            await self.refresh()

    def reset(self, chat_id: Optional[str] = None) -> None:
        """Discard all transcript state and make ``chat_id`` the current chat."""
        self._generation += 1
        if self._reveal_task is not None and not self._reveal_task.done():
            self._reveal_task.cancel()
        self._reveal_task = None
        self.revealing = None
        self._pending_reveals.clear()
        self.displayed = []
        self.server_count = 0
        self.chat_id = chat_id
        self._emit_update()
        if chat_id is not None:
            self._scroll()

    async def close(self) -> None:
        """Stop polling and any reveal in progress."""
        await self.stop_polling()
        self.reset(None)

    @property
    def is_sending(self) -> bool:
        return self.chat_id is not None and self.chat_id in self._in_flight

    @property
    def is_revealing(self) -> bool:
        return self.revealing is not None

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def submit(self, text: str) -> Optional[DisplayMessage]:
        """Show ``text`` as a user message at once and send it to the server.

        Returns the optimistic entry, or None if the submission was rejected
        (blank text, no open chat, or a send already in flight for this chat).
        """
        content = (text or "").strip()
        chat_id = self.chat_id
        if not content or chat_id is None:
            return None
        if chat_id in self._in_flight:
            logger.debug("Send already in flight for chat %s; ignoring submit", chat_id)
            return None

        entry = DisplayMessage(
            id=f"user-{next(self._ids)}",
            role=Role.USER,
            content=content,
            timestamp=utcnow(),
            optimistic=True,
        )
        self.displayed.append(entry)
        self._in_flight.add(chat_id)
        self._emit_update()
        self._scroll()

        try:
            await self.source.send_message(chat_id, content)
        except Exception as exc:
            # The optimistic entry stays; the user may retry.
            logger.warning("Sending message to chat %s failed: %s", chat_id, exc)
            self._notify_error(SEND_FAILED_MESSAGE)
            await self._log(chat_id, "send_failed", {"error": str(exc), "length": len(content)}, level="ERROR")
            return entry
        finally:
            self._in_flight.discard(chat_id)

        await self._log(chat_id, "message_sent", {"length": len(content)})
        if self.chat_id == chat_id:
            await self.refresh()
        return entry

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def refresh(self) -> bool:
        """Fetch the current chat's messages and reconcile them.

        Returns False when nothing was applied (no chat, fetch failed, or the
        chat changed while the request was outstanding).
        """
        chat_id, generation = self.chat_id, self._generation
        if chat_id is None:
            return False
        try:
            messages = await self.source.get_messages(chat_id)
        except Exception as exc:
            logger.warning("Fetching messages for chat %s failed: %s", chat_id, exc)
            self._notify_error(str(exc) if isinstance(exc, CareEaseError) else LOAD_FAILED_MESSAGE)
            return False
        if generation != self._generation:
            logger.debug("Discarding messages fetched for chat %s after a session switch", chat_id)
            return False
        self.apply_server_messages(messages)
        return True

    def apply_server_messages(self, messages: Sequence[Message]) -> None:
        """Merge the server's message sequence into the transcript."""
        if self.chat_id is None:
            return
        messages = list(messages)

        if not self.displayed:
            self.displayed = [self._from_server(i, m) for i, m in enumerate(messages)]
            self.server_count = len(messages)
            if messages:
                self._emit_update()
                self._scroll()
            return

        # Server history is append-only: nothing new means nothing to do.
        if len(messages) <= self.server_count:
            return
        previous_count, self.server_count = self.server_count, len(messages)

        merged, leftovers, fresh = self._merge(messages, previous_count)

        newest_index = len(messages) - 1
        held_back: Optional[Tuple[int, Message]] = None
        newest = messages[newest_index]
        if newest.role is Role.ASSISTANT and newest_index in fresh:
            held_back = (newest_index, newest)
            merged = [m for m in merged if m is not fresh[newest_index]]

        self.displayed = merged + leftovers

        if held_back is not None:
            if self.revealing is None:
                self._start_reveal(*held_back)
            else:
                self._pending_reveals.append(held_back)

        self._emit_update()
        self._scroll()

    def _merge(
        self, messages: List[Message], previous_count: int
    ) -> Tuple[List[DisplayMessage], List[DisplayMessage], Dict[int, DisplayMessage]]:
        """Line local entries up against the server sequence.

        Confirmed entries match by server id, else by the server index they
        were confirmed at. Optimistic entries only match messages past
        ``previous_count``: identical content first, then by role from the
        tail, so an unconfirmed entry never claims older history. The reveal
        placeholder keeps its server index and queued replies are left out.
        Returns the merged list in server order, the unmatched local entries,
        and the entries created for server messages that had no local
        counterpart.
        """
        revealing = self.revealing
        skipped = {index for index, _ in self._pending_reveals}
        if revealing is not None:
            skipped.add(revealing.server_index)

        by_server_id: Dict[str, DisplayMessage] = {}
        by_index: Dict[int, DisplayMessage] = {}
        optimistic: List[DisplayMessage] = []
        for entry in self.displayed:
            if revealing is not None and entry is revealing.message:
                continue
            if entry.optimistic:
                optimistic.append(entry)
                continue
            if entry.server_id is not None:
                by_server_id[entry.server_id] = entry
            if entry.server_index is not None:
                by_index[entry.server_index] = entry

        matches: Dict[int, DisplayMessage] = {}
        claimed: Set[int] = set()
        for index, msg in enumerate(messages):
            if index in skipped:
                continue
            local = by_server_id.get(msg.id) if msg.id else None
            if local is None:
                local = by_index.get(index)
                if local is not None and (local.role is not msg.role or local.server_id not in (None, msg.id)):
                    local = None
            if local is not None and id(local) not in claimed:
                matches[index] = local
                claimed.add(id(local))

        open_indices = [
            i for i in range(previous_count, len(messages))
            if i not in skipped and i not in matches
        ]
        self._match_optimistic(optimistic, messages, open_indices, matches)

        merged: List[DisplayMessage] = []
        fresh: Dict[int, DisplayMessage] = {}
        for index, msg in enumerate(messages):
            if revealing is not None and index == revealing.server_index:
                merged.append(revealing.message)
                continue
            if index in skipped:
                continue

            local = matches.get(index)
            if local is None:
                entry = self._from_server(index, msg)
                fresh[index] = entry
                merged.append(entry)
                continue

            local.optimistic = False
            local.server_index = index
            if msg.id:
                local.server_id = msg.id
            if msg.role is Role.ASSISTANT:
                local.content = msg.content
            merged.append(local)

        matched = {id(m) for m in merged}
        leftovers = [
            m for m in self.displayed
            if id(m) not in matched and not (revealing is not None and m is revealing.message)
        ]
        return merged, leftovers, fresh

    @staticmethod
    def _match_optimistic(
        entries: List[DisplayMessage],
        messages: List[Message],
        open_indices: List[int],
        matches: Dict[int, DisplayMessage],
    ) -> None:
        """Assign optimistic entries to newly arrived server messages, in place."""
        unmatched = list(entries)
        for entry in reversed(entries):
            for i in reversed(open_indices):
                if messages[i].role is entry.role and messages[i].content == entry.content:
                    matches[i] = entry
                    open_indices.remove(i)
                    unmatched = [e for e in unmatched if e is not entry]
                    break
        # Remaining entries pair with the newest messages of the same role
        for entry in reversed(unmatched):
            for i in reversed(open_indices):
                if messages[i].role is entry.role:
                    matches[i] = entry
                    open_indices.remove(i)
                    break

    def _from_server(self, index: int, msg: Message) -> DisplayMessage:
        return DisplayMessage(
            id=f"server-{index}",
            role=msg.role,
            content=msg.content,
            timestamp=msg.timestamp or utcnow(),
            server_id=msg.id,
            server_index=index,
        )

    # ------------------------------------------------------------------
    # Reveal
    # ------------------------------------------------------------------

    def _start_reveal(self, server_index: int, msg: Message) -> None:
        placeholder = DisplayMessage(
            id=f"typing-{next(self._ids)}",
            role=Role.ASSISTANT,
            content="",
            timestamp=msg.timestamp or utcnow(),
            is_typing=True,
            server_id=msg.id,
            server_index=server_index,
        )
        # Slotted in by server position; unconfirmed entries stay below it.
        position = len(self.displayed)
        for i, entry in enumerate(self.displayed):
            if entry.server_index is None or entry.server_index > server_index:
                position = i
                break
        self.displayed.insert(position, placeholder)

        state = RevealState(
            message=placeholder,
            target=msg.content,
            server_index=server_index,
            generation=self._generation,
        )
        self.revealing = state
        self._reveal_task = asyncio.get_running_loop().create_task(self._run_reveal(state))

    def _is_current(self, state: RevealState) -> bool:
        return state.generation == self._generation and self.revealing is state

    async def _run_reveal(self, state: RevealState) -> None:
        words = state.target.split()
        for count in range(1, len(words) + 1):
            await asyncio.sleep(self.reveal_interval)
            if not self._is_current(state):
                return
            state.message.content = " ".join(words[:count])
            state.words_revealed = count
            self._emit_update()
            self._scroll()

        if not self._is_current(state):
            return
        chat_id = self.chat_id
        self._finish_reveal(state)
        if chat_id is not None:
            await self._log(chat_id, "reply_revealed", {"words": len(words)})

    def _finish_reveal(self, state: RevealState) -> None:
        state.message.is_typing = False
        state.message.content = state.target
        self.revealing = None
        self._reveal_task = None
        self._emit_update()

        if self._pending_reveals:
            self._start_reveal(*self._pending_reveals.popleft())
            self._emit_update()

    async def wait_for_reveal(self) -> None:
        """Wait until no reveal is running or queued."""
        while self._reveal_task is not None:
            task = self._reveal_task
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
            if self._reveal_task is task:
                break

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def start_polling(self, interval: float) -> None:
        """Refetch the open chat every ``interval`` seconds until stopped."""
        if self._poll_task is not None and not self._poll_task.done():
            return
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop(interval))

    async def stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _poll_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            if self.chat_id is not None:
                await self.refresh()

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _emit_update(self) -> None:
        if self.on_update is None:
            return
        try:
            self.on_update(list(self.displayed))
        except Exception as exc:  # pragma: no cover - logging branch only
            logger.warning("Transcript update hook raised: %s", exc, exc_info=True)

    def _scroll(self) -> None:
        if self.on_scroll is None:
            return
        try:
            self.on_scroll()
        except Exception as exc:  # pragma: no cover - logging branch only
            logger.warning("Scroll hook raised: %s", exc, exc_info=True)

    def _notify_error(self, message: str) -> None:
        if self.notifier is not None:
            self.notifier.error(message)

    async def _log(self, chat_id: str, event_type: str, details: Dict[str, object], level: str = "INFO") -> None:
        if self.session_logger is not None:
            await self.session_logger.log_event(chat_id, event_type, details, level=level)
