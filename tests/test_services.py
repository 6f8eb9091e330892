"""Tests for the REST service clients against a mocked transport."""

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from careease.core.config import Settings
from careease.core.exceptions import (
    AccountBannedError,
    AlarmValidationError,
    ApiError,
    AuthenticationError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    RequestValidationError,
    ServerError,
)
from careease.core.models import (
    AdminAnalytics,
    AlarmCreate,
    ChatCreate,
    ChatStatus,
    ChatUpdate,
    ReviewCreate,
)
from careease.core.notifications import Notifier
from careease.core.preferences import Preferences
from careease.services import (
    AdminService,
    ApiClient,
    AuthService,
    AuthSession,
    ChatService,
    UserService,
    system_alerts,
)

API_URL = "http://careease.test/api"

CHAT = {
    "_id": "c1",
    "title": "Knee pain",
    "issue": "My knee hurts when climbing stairs",
    "category": "mobility",
    "priority": "high",
    "status": "active",
    "messages": [
        {"_id": "m1", "role": "user", "content": "Hello", "timestamp": "2024-05-01T10:00:00Z"},
        {"_id": "m2", "role": "assistant", "content": "Hi there friend", "timestamp": "2024-05-01T10:00:02Z"},
    ],
    "metadata": {"lastActivity": "2024-05-01T10:00:02Z"},
}

USER = {
    "_id": "u1",
    "email": "ann@example.com",
    "firstName": "Ann",
    "lastName": "Lee",
    "role": "user",
}


class Router:
    """Maps (method, path) to canned responses and records requests."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"success": False, "message": "Route not found"})
        status, body = self.routes[key]
        if isinstance(body, Exception):
            raise body
        return httpx.Response(status, json=body)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


def make_api(routes, token="tok-123"):
    router = Router(routes)
    preferences = Preferences()
    preferences.token = token
    client = httpx.AsyncClient(base_url=API_URL, transport=httpx.MockTransport(router))
    api = ApiClient(Settings(api_url=API_URL), preferences, client=client)
    return api, router, preferences


def ok(data):
    return 200, {"success": True, "data": data}


# ApiClient

async def test_request_adds_bearer_token_and_unwraps_data():
    api, router, _ = make_api({("GET", "/api/chat/c1"): ok({"chat": CHAT})})

    data = await api.get("/chat/c1")

    assert data == {"chat": CHAT}
    assert router.last.headers["Authorization"] == "Bearer tok-123"
    await api.aclose()


async def test_request_without_token_sends_no_auth_header():
    api, router, _ = make_api({("GET", "/api/chat"): ok({"chats": []})}, token=None)

    await api.get("/chat")

    assert "Authorization" not in router.last.headers
    await api.aclose()


async def test_request_drops_empty_params():
    api, router, _ = make_api({("GET", "/api/chat"): ok({"chats": []})})

    await api.get("/chat", params={"page": 2, "status": None, "search": ""})

    assert dict(router.last.url.params) == {"page": "2"}
    await api.aclose()


async def test_transport_error_becomes_network_error():
    api, _, _ = make_api({("GET", "/api/chat"): (0, httpx.ConnectError("refused"))})

    with pytest.raises(NetworkError) as exc_info:
        await api.get("/chat")

    assert exc_info.value.message == "Network error. Please check your connection."
    await api.aclose()


@pytest.mark.parametrize(
    "status,body,error_type,message",
    [
        (403, {"message": "Admin only"}, PermissionDeniedError, "Admin only"),
        (404, {}, NotFoundError, "Resource not found"),
        (429, {}, RateLimitError, "Too many requests. Please slow down."),
        (500, {"message": "stack trace"}, ServerError, "Server error. Please try again later."),
        (503, {}, ServerError, "Service temporarily unavailable"),
        (400, {"message": "Bad input"}, ApiError, "Bad input"),
    ],
)
async def test_status_codes_map_to_errors(status, body, error_type, message):
    api, _, _ = make_api({("GET", "/api/chat"): (status, body)})

    with pytest.raises(error_type) as exc_info:
        await api.get("/chat")

    assert exc_info.value.message == message
    assert exc_info.value.status_code == status
    await api.aclose()


async def test_validation_error_collects_field_messages():
    body = {"message": "Validation failed", "errors": [{"message": "Title is required"}, {"msg": "Too short"}]}
    api, _, _ = make_api({("POST", "/api/chat"): (422, body)})

    with pytest.raises(RequestValidationError) as exc_info:
        await api.post("/chat", {})

    assert exc_info.value.errors == ["Title is required", "Too short"]
    await api.aclose()


async def test_invalid_token_clears_stored_token():
    api, _, preferences = make_api({("GET", "/api/auth/profile"): (401, {"message": "Invalid token"})})

    with pytest.raises(AuthenticationError):
        await api.get("/auth/profile")

    assert preferences.token is None
    await api.aclose()


async def test_wrong_password_keeps_stored_token():
    api, _, preferences = make_api({("POST", "/api/auth/login"): (401, {"message": "Invalid credentials"})})

    with pytest.raises(AuthenticationError):
        await api.post("/auth/login", {"email": "a", "password": "b"})

    assert preferences.token == "tok-123"
    await api.aclose()


async def test_banned_account_clears_token_and_carries_reason():
    body = {"message": "Account is banned", "banReason": "Abuse"}
    api, _, preferences = make_api({("GET", "/api/chat"): (403, body)})

    with pytest.raises(AccountBannedError) as exc_info:
        await api.get("/chat")

    assert exc_info.value.ban_reason == "Abuse"
    assert exc_info.value.message == "Account banned: Abuse"
    assert preferences.token is None
    await api.aclose()


# ChatService

async def test_chat_service_endpoints():
    api, router, _ = make_api({
        ("POST", "/api/chat"): (201, {"success": True, "data": {"chat": CHAT}}),
        ("GET", "/api/chat"): ok({"chats": [CHAT], "pagination": {"current": 1, "pages": 3, "total": 21}}),
        ("GET", "/api/chat/c1"): ok({"chat": CHAT}),
        ("POST", "/api/chat/c1/messages"): ok({"message": "sent"}),
        ("PUT", "/api/chat/c1"): ok({"chat": {**CHAT, "status": "resolved"}}),
        ("POST", "/api/chat/c1/review"): ok({"review": {"rating": 4}}),
        ("DELETE", "/api/chat/c1"): (200, {"success": True, "message": "Chat deleted"}),
    })
    chats = ChatService(api)

    created = await chats.create_chat(ChatCreate(title="Knee pain", issue="Stairs"))
    assert created.id == "c1"
    assert json.loads(router.last.content) == {
        "title": "Knee pain",
        "issue": "Stairs",
        "category": "health",
        "priority": "medium",
    }

    page = await chats.list_chats(page=2, limit=10, status=ChatStatus.ACTIVE)
    assert page.pagination.total == 21
    assert dict(router.last.url.params) == {"page": "2", "limit": "10", "status": "active"}

    messages = await chats.get_messages("c1")
    assert [m.id for m in messages] == ["m1", "m2"]
    assert messages[1].content == "Hi there friend"

    await chats.send_message("c1", "How are you?")
    assert json.loads(router.last.content) == {"content": "How are you?"}

    updated = await chats.update_chat("c1", ChatUpdate(status=ChatStatus.RESOLVED))
    assert updated.status is ChatStatus.RESOLVED
    assert json.loads(router.last.content) == {"status": "resolved"}

    await chats.add_review("c1", ReviewCreate(rating=4, feedback="Helpful"))
    assert json.loads(router.last.content) == {"rating": 4, "feedback": "Helpful"}

    await chats.delete_chat("c1")
    assert router.last.method == "DELETE"
    await api.aclose()


# UserService

async def test_user_dashboard_and_pending_ratings():
    api, _, _ = make_api({
        ("GET", "/api/user/dashboard"): ok({"stats": {"totalChats": 5, "activeChats": 2, "resolvedChats": 3, "averageRating": 4.5}}),
        ("GET", "/api/user/pending-ratings"): ok({"pendingChats": [CHAT]}),
    })
    users = UserService(api)

    stats = await users.dashboard_stats()
    assert (stats.total_chats, stats.active_chats, stats.resolved_chats) == (5, 2, 3)
    assert stats.average_rating == 4.5

    pending = await users.pending_ratings()
    assert [c.id for c in pending] == ["c1"]
    await api.aclose()


async def test_create_alarm_in_the_past_is_rejected_without_request():
    api, router, _ = make_api({})
    users = UserService(api)
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    with pytest.raises(AlarmValidationError, match="future time"):
        await users.create_alarm(AlarmCreate(name="Pills", time=now - timedelta(minutes=1)), now=now)

    assert router.requests == []
    await api.aclose()


async def test_alarm_endpoints():
    alarm = {"_id": "a1", "name": "Pills", "time": "2030-01-01T09:00:00Z", "isActive": True}
    api, router, _ = make_api({
        ("POST", "/api/user/alarms"): (201, {"success": True, "data": {"alarm": alarm}}),
        ("GET", "/api/user/alarms"): ok({"alarms": [alarm]}),
        ("PUT", "/api/user/alarms/a1"): ok({"alarm": {**alarm, "isActive": False}}),
        ("DELETE", "/api/user/alarms/a1"): (200, {"success": True}),
    })
    users = UserService(api)

    created = await users.create_alarm(
        AlarmCreate(name="  Pills ", time=datetime(2030, 1, 1, 9, tzinfo=timezone.utc))
    )
    assert created.id == "a1"
    assert json.loads(router.last.content)["name"] == "Pills"

    assert [a.name for a in await users.list_alarms()] == ["Pills"]

    toggled = await users.set_alarm_active("a1", False)
    assert toggled.is_active is False
    assert json.loads(router.last.content) == {"isActive": False}

    await users.delete_alarm("a1")
    assert router.last.url.path == "/api/user/alarms/a1"
    await api.aclose()


# Auth

async def test_login_stores_token_and_notifies():
    api, router, preferences = make_api(
        {("POST", "/api/auth/login"): ok({"token": "new-token", "user": USER})},
        token=None,
    )
    notifier = Notifier()
    session = AuthSession(AuthService(api), preferences, notifier)

    user = await session.login("ann@example.com", "secret")

    assert user.full_name == "Ann Lee"
    assert preferences.token == "new-token"
    assert session.is_authenticated
    assert not session.is_admin()
    assert [n.message for n in notifier.active()] == ["Welcome back, Ann!"]
    assert json.loads(router.last.content) == {"email": "ann@example.com", "password": "secret"}
    await api.aclose()


async def test_login_failure_notifies_and_raises():
    api, _, preferences = make_api(
        {("POST", "/api/auth/login"): (401, {"message": "Invalid credentials"})},
        token=None,
    )
    notifier = Notifier()
    session = AuthSession(AuthService(api), preferences, notifier)

    with pytest.raises(AuthenticationError):
        await session.login("ann@example.com", "wrong")

    assert preferences.token is None
    assert [(n.level, n.message) for n in notifier.active()] == [("error", "Invalid credentials")]
    await api.aclose()


async def test_logout_clears_token_even_when_request_fails():
    api, _, preferences = make_api({("POST", "/api/auth/logout"): (500, {})})
    session = AuthSession(AuthService(api), preferences, Notifier())
    session.user = MagicMock()

    await session.logout()

    assert preferences.token is None
    assert session.user is None
    await api.aclose()


async def test_restore_with_rejected_token_clears_it():
    api, _, preferences = make_api({("GET", "/api/auth/profile"): (401, {"message": "Token expired"})})
    session = AuthSession(AuthService(api), preferences)

    assert await session.restore() is None
    assert preferences.token is None
    await api.aclose()


async def test_restore_loads_profile():
    api, _, preferences = make_api({("GET", "/api/auth/profile"): ok({"user": {**USER, "role": "admin"}})})
    session = AuthSession(AuthService(api), preferences)

    user = await session.restore()

    assert user.email == "ann@example.com"
    assert session.is_admin()
    await api.aclose()


# Admin

async def test_admin_endpoints():
    analytics = {
        "users": {"total": 10, "new": 2, "active": 4, "banned": 1},
        "chats": {"total": 30, "new": 5, "averageRating": 4.2},
        "trends": {"chatCreation": [{"_id": "2024-05-01", "count": 3}]},
    }
    api, router, _ = make_api({
        ("GET", "/api/admin/dashboard/analytics"): ok({"analytics": analytics}),
        ("GET", "/api/admin/users"): ok({"users": [USER], "pagination": {"current": 1, "pages": 1, "total": 1}}),
        ("PUT", "/api/admin/users/u1/ban"): ok({"user": {**USER, "isBanned": True, "banReason": "Spam"}}),
        ("GET", "/api/admin/users/u1/chats"): ok({"chats": [CHAT]}),
        ("GET", "/api/admin/reports"): ok({"reports": [{"_id": "r1", "status": "pending"}]}),
        ("PUT", "/api/admin/reports/r1"): ok({"report": {"_id": "r1", "status": "resolved"}}),
    })
    admin = AdminService(api)

    result = await admin.dashboard_analytics("7d")
    assert result.users.banned == 1
    assert result.trends.chat_creation[0].date == "2024-05-01"
    assert dict(router.last.url.params) == {"timeframe": "7d"}

    page = await admin.list_users(search="ann", page=1)
    assert page.users[0].email == "ann@example.com"

    banned = await admin.set_user_ban("u1", True, "Spam")
    assert banned.is_banned and banned.ban_reason == "Spam"
    assert json.loads(router.last.content) == {"banned": True, "banReason": "Spam"}

    history = await admin.user_chat_history("u1")
    assert history[0].title == "Knee pain"

    reports = await admin.list_reports(status="pending")
    assert reports[0].status == "pending"
    resolved = await admin.update_report("r1", {"status": "resolved"})
    assert resolved.status == "resolved"
    await api.aclose()


def test_system_alerts():
    analytics = AdminAnalytics.model_validate({
        "users": {"total": 10, "active": 0, "banned": 2},
        "chats": {"total": 5, "averageRating": 2.5},
    })

    alerts = system_alerts(analytics)

    assert [(a.type, a.message, a.severity) for a in alerts] == [
        ("warning", "High number of banned users detected", "medium"),
        ("warning", "User satisfaction rating is below average", "medium"),
        ("info", "No active users currently online", "low"),
    ]


def test_system_alerts_quiet_when_healthy():
    analytics = AdminAnalytics.model_validate({
        "users": {"total": 100, "active": 12, "banned": 3},
        "chats": {"total": 40, "averageRating": 4.1},
    })

    assert system_alerts(analytics) == []


def test_low_rating_alert_needs_chats():
    analytics = AdminAnalytics.model_validate({"users": {"total": 5, "active": 1}})

    assert system_alerts(analytics) == []
