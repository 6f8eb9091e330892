"""Dashboard, pending ratings and alarm endpoints for the signed-in user."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from ..core.exceptions import AlarmValidationError
from ..core.models import (
    Alarm,
    AlarmCreate,
    AlarmUpdate,
    ChatSession,
    DashboardStats,
    to_payload,
    utcnow,
)
from .api import ApiClient


class UserService:
    """Dashboard statistics, pending ratings and alarms for the signed-in user."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def dashboard_stats(self) -> DashboardStats:
        data = await self.api.get("/user/dashboard")
        return DashboardStats.model_validate(data.get("stats") or {})

    async def pending_ratings(self) -> List[ChatSession]:
        """Chats the user has not reviewed yet."""
        data = await self.api.get("/user/pending-ratings")
        return [ChatSession.model_validate(c) for c in data.get("pendingChats") or []]

    async def list_alarms(self) -> List[Alarm]:
        data = await self.api.get("/user/alarms")
        return [Alarm.model_validate(a) for a in data.get("alarms") or []]

    async def create_alarm(self, alarm: AlarmCreate, *, now: Optional[datetime] = None) -> Alarm:
        now = now or utcnow()
        alarm_time = alarm.time if alarm.time.tzinfo else alarm.time.astimezone()
        if alarm_time <= now:
            raise AlarmValidationError("Please select a future time")
        data = await self.api.post("/user/alarms", to_payload(alarm))
        return Alarm.model_validate(data["alarm"])

    async def update_alarm(self, alarm_id: str, update: AlarmUpdate) -> Alarm:
        data = await self.api.put(f"/user/alarms/{alarm_id}", to_payload(update))
        return Alarm.model_validate(data["alarm"])

    async def set_alarm_active(self, alarm_id: str, active: bool) -> Alarm:
        return await self.update_alarm(alarm_id, AlarmUpdate(is_active=active))

    async def delete_alarm(self, alarm_id: str) -> None:
        await self.api.delete(f"/user/alarms/{alarm_id}")
