#%% Alarm Watcher
"""
Due-alarm detection for the CareEase client.

Polls the user's alarms on a fixed interval and raises an "alarm"
notification when an active alarm comes due. Dismissing a due alarm
deactivates it on the server.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Set

from .exceptions import ApiError
from .models import Alarm, utcnow
from .notifications import Notifier

logger = logging.getLogger(__name__)


class AlarmSource(Protocol):
    async def list_alarms(self) -> List[Alarm]:  # pragma: no cover - protocol
        ...

    async def set_alarm_active(self, alarm_id: str, active: bool) -> Alarm:  # pragma: no cover - protocol
        ...


class AlarmWatcher:
    """
    Background loop that checks alarms and announces the due ones.

    Each alarm is announced once per due window; the set of announced ids is
    kept until the alarm is dismissed or drops out of the window.
    """

    def __init__(
        self,
        source: AlarmSource,
        notifier: Notifier,
        *,
        check_interval: float = 30.0,
        due_window: float = 60.0,
        clock: Callable[[], datetime] = utcnow,
        on_due: Optional[Callable[[Alarm], Awaitable[None]]] = None,
    ):
        self.source = source
        self.notifier = notifier
        self.check_interval = check_interval
        self.due_window = due_window
        self.clock = clock
        self.on_due = on_due
        self.running = False
        self.watch_task: Optional[asyncio.Task] = None
        self._announced: Set[str] = set()
        self.alarms: Dict[str, Alarm] = {}

    async def start(self) -> None:
        """Start the watcher background task."""
        if self.running:
            return
        self.running = True
        self.watch_task = asyncio.create_task(self._watch_loop())
        logger.info("Alarm watcher started")

    async def stop(self) -> None:
        """Stop the watcher background task."""
        self.running = False
        if self.watch_task:
            self.watch_task.cancel()
            try:
                await self.watch_task
            except asyncio.CancelledError:
                pass
            self.watch_task = None
        logger.info("Alarm watcher stopped")

    async def _watch_loop(self) -> None:
        retry_count = 0
        max_retries = 5

        while self.running:
            try:
                await self.check_once()
                retry_count = 0
                await asyncio.sleep(self.check_interval)
            except asyncio.CancelledError:
                logger.debug("Alarm watcher cancelled")
                raise
            except Exception as e:
                retry_count += 1
                if isinstance(e, ApiError):
                    logger.warning("Alarm check failed (attempt %d/%d): %s", retry_count, max_retries, e)
                else:
                    logger.error(
                        "Unexpected error in alarm watcher (attempt %d/%d): %s",
                        retry_count, max_retries, e, exc_info=True,
                    )
                if retry_count > max_retries:
                    logger.error("Alarm watcher stopped after %d consecutive failures", max_retries)
                    self.running = False
                    break
                # Linear backoff, capped at five minutes
                await asyncio.sleep(min(self.check_interval * retry_count, 300))

    async def check_once(self) -> List[Alarm]:
        """Fetch alarms once and announce any that just came due."""
        alarms = await self.source.list_alarms()
        self.alarms = {a.id: a for a in alarms}
        now = self.clock()

        due = [a for a in alarms if a.is_due(now, self.due_window)]
        due_ids = {a.id for a in due}
        # Forget alarms that left the window so a rescheduled alarm fires again
        self._announced &= due_ids

        newly_due = [a for a in due if a.id not in self._announced]
        for alarm in newly_due:
            self._announced.add(alarm.id)
            self.notifier.notify("alarm", f"\U0001F514 {alarm.name}")
            if self.on_due is not None:
                await self.on_due(alarm)
        return newly_due

    async def dismiss(self, alarm: Alarm) -> Alarm:
        """Deactivate a due alarm."""
        updated = await self.source.set_alarm_active(alarm.id, False)
        self._announced.discard(alarm.id)
        self.alarms[updated.id] = updated
        return updated

    def active_count(self) -> int:
        return sum(1 for a in self.alarms.values() if a.is_active and not a.is_completed)
