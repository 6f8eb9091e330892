from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Category(str, Enum):
    HEALTH = "health"
    MEDICATION = "medication"
    MOBILITY = "mobility"
    EMOTIONAL = "emotional"
    DAILY_CARE = "daily_care"
    EMERGENCY = "emergency"
    OTHER = "other"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ChatStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"
    ARCHIVED = "archived"


class ApiModel(BaseModel):
    """Base for payloads exchanged with the API (camelCase keys, Mongo ``_id``)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(ApiModel):
    """A persisted chat message. Immutable once created."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: Optional[str] = Field(default=None, alias="_id")
    role: Role
    content: str = ""
    timestamp: Optional[datetime] = None


class Review(ApiModel):
    rating: int = Field(ge=1, le=5)
    feedback: Optional[str] = None
    reviewed_at: Optional[datetime] = Field(default=None, alias="reviewedAt")


class ChatMetadata(ApiModel):
    last_activity: Optional[datetime] = Field(default=None, alias="lastActivity")


class ChatSession(ApiModel):
    """A conversation between a user and the assistant backend."""
    id: str = Field(alias="_id")
    title: str
    issue: str = ""
    category: Category = Category.HEALTH
    priority: Priority = Priority.MEDIUM
    status: ChatStatus = ChatStatus.ACTIVE
    messages: List[Message] = Field(default_factory=list)
    review: Optional[Review] = None
    metadata: ChatMetadata = Field(default_factory=ChatMetadata)

    @property
    def last_activity(self) -> Optional[datetime]:
        return self.metadata.last_activity


class Alarm(ApiModel):
    id: str = Field(alias="_id")
    name: str
    time: datetime
    description: Optional[str] = None
    is_active: bool = Field(default=True, alias="isActive")
    is_completed: bool = Field(default=False, alias="isCompleted")

    def is_due(self, now: datetime, window: float = 60.0) -> bool:
        """True when the alarm is armed and its time is within +/- window seconds of now."""
        if not self.is_active or self.is_completed:
            return False
        delta = (self.time - now).total_seconds()
        return -window < delta <= window


class User(ApiModel):
    id: str = Field(alias="_id")
    email: str
    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")
    role: str = "user"
    is_banned: bool = Field(default=False, alias="isBanned")
    ban_reason: Optional[str] = Field(default=None, alias="banReason")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    last_login: Optional[datetime] = Field(default=None, alias="lastLogin")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class AuthResult(ApiModel):
    token: str
    user: User


class Pagination(ApiModel):
    current: int = 1
    pages: int = 1
    total: int = 0


class ChatPage(ApiModel):
    chats: List[ChatSession] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class UserPage(ApiModel):
    users: List[User] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class DashboardStats(ApiModel):
    total_chats: int = Field(default=0, alias="totalChats")
    active_chats: int = Field(default=0, alias="activeChats")
    resolved_chats: int = Field(default=0, alias="resolvedChats")
    recent_resolved: int = Field(default=0, alias="recentResolved")
    average_rating: Optional[float] = Field(default=None, alias="averageRating")


class UserAnalytics(ApiModel):
    total: int = 0
    new: int = 0
    active: int = 0
    banned: int = 0


class ChatAnalytics(ApiModel):
    total: int = 0
    new: int = 0
    average_rating: Optional[float] = Field(default=None, alias="averageRating")


class TrendPoint(ApiModel):
    date: str = Field(alias="_id")
    count: int = 0


class AnalyticsTrends(ApiModel):
    chat_creation: List[TrendPoint] = Field(default_factory=list, alias="chatCreation")


class AdminAnalytics(ApiModel):
    users: UserAnalytics = Field(default_factory=UserAnalytics)
    chats: ChatAnalytics = Field(default_factory=ChatAnalytics)
    trends: AnalyticsTrends = Field(default_factory=AnalyticsTrends)


class ModerationReport(ApiModel):
    id: str = Field(alias="_id")
    status: str = "pending"
    reason: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


# Request payloads

class ChatCreate(ApiModel):
    title: str
    issue: str
    category: Category = Category.HEALTH
    priority: Priority = Priority.MEDIUM


class ChatUpdate(ApiModel):
    title: Optional[str] = None
    status: Optional[ChatStatus] = None
    priority: Optional[Priority] = None


class ReviewCreate(ApiModel):
    rating: int = Field(default=5, ge=1, le=5)
    feedback: str = ""


class AlarmCreate(ApiModel):
    name: str
    time: datetime
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Alarm name is required")
        return v


class AlarmUpdate(ApiModel):
    is_active: Optional[bool] = Field(default=None, alias="isActive")
    is_completed: Optional[bool] = Field(default=None, alias="isCompleted")


class ProfileUpdate(ApiModel):
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: Optional[str] = None


def to_payload(model: BaseModel) -> Dict[str, Any]:
    """Serialize a request model the way the API expects it."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def minutes_from_now(minutes: float) -> datetime:
    return utcnow() + timedelta(minutes=minutes)
