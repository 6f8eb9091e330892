"""Admin console endpoints and the dashboard's system alerts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..core.models import (
    AdminAnalytics,
    ChatPage,
    ChatSession,
    ModerationReport,
    User,
    UserPage,
)
from .api import ApiClient

BANNED_SHARE_THRESHOLD = 0.1
LOW_RATING_THRESHOLD = 3.0


@dataclass
class SystemAlert:
    type: str  # warning, info
    message: str
    severity: str  # low, medium


def system_alerts(analytics: AdminAnalytics) -> List[SystemAlert]:
    """Alerts shown on the admin dashboard for a given analytics snapshot."""
    alerts: List[SystemAlert] = []
    users, chats = analytics.users, analytics.chats
    if users.banned > users.total * BANNED_SHARE_THRESHOLD:
        alerts.append(SystemAlert("warning", "High number of banned users detected", "medium"))
    if (chats.average_rating or 0) < LOW_RATING_THRESHOLD and chats.total > 0:
        alerts.append(SystemAlert("warning", "User satisfaction rating is below average", "medium"))
    if users.active == 0:
        alerts.append(SystemAlert("info", "No active users currently online", "low"))
    return alerts


class AdminService:
    """Admin console endpoints: analytics, user and chat moderation."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def dashboard_analytics(self, timeframe: str = "30d") -> AdminAnalytics:
        data = await self.api.get("/admin/dashboard/analytics", params={"timeframe": timeframe})
        return AdminAnalytics.model_validate(data.get("analytics") or data)

    async def list_users(self, **params: Any) -> UserPage:
        data = await self.api.get("/admin/users", params=params)
        return UserPage.model_validate(data)

    async def get_user(self, user_id: str) -> User:
        data = await self.api.get(f"/admin/users/{user_id}")
        return User.model_validate(data["user"])

    async def set_user_ban(self, user_id: str, banned: bool, reason: Optional[str] = None) -> User:
        payload: Dict[str, Any] = {"banned": banned}
        if reason:
            payload["banReason"] = reason
        data = await self.api.put(f"/admin/users/{user_id}/ban", payload)
        return User.model_validate(data["user"])

    async def user_chat_history(self, user_id: str) -> List[ChatSession]:
        data = await self.api.get(f"/admin/users/{user_id}/chats")
        return [ChatSession.model_validate(c) for c in data.get("chats") or []]

    async def list_chats(self, **params: Any) -> ChatPage:
        data = await self.api.get("/admin/chats", params=params)
        return ChatPage.model_validate(data)

    async def get_chat(self, chat_id: str) -> ChatSession:
        data = await self.api.get(f"/admin/chats/{chat_id}")
        return ChatSession.model_validate(data["chat"])

    async def list_reports(self, **params: Any) -> List[ModerationReport]:
        data = await self.api.get("/admin/reports", params=params)
        return [ModerationReport.model_validate(r) for r in data.get("reports") or []]

    async def update_report(self, report_id: str, update: Dict[str, Any]) -> ModerationReport:
        data = await self.api.put(f"/admin/reports/{report_id}", update)
        return ModerationReport.model_validate(data["report"])
