"""Client-side chat filtering and plain-text report assembly."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from .models import Category, ChatSession, ChatStatus, DashboardStats, Priority


@dataclass
class ReportFilters:
    search: str = ""
    category: Optional[Category] = None
    priority: Optional[Priority] = None
    status: Optional[ChatStatus] = None

    def describe(self) -> List[str]:
        parts = []
        if self.search:
            parts.append(f'Search: "{self.search}"')
        if self.category:
            parts.append(f"Category: {self.category.value}")
        if self.priority:
            parts.append(f"Priority: {self.priority.value}")
        if self.status:
            parts.append(f"Status: {self.status.value}")
        return parts

    def matches(self, chat: ChatSession) -> bool:
        if self.category and chat.category is not self.category:
            return False
        if self.priority and chat.priority is not self.priority:
            return False
        if self.status and chat.status is not self.status:
            return False
        if self.search:
            needle = self.search.lower()
            if needle not in (chat.title or "").lower() and needle not in (chat.issue or "").lower():
                return False
        return True


def filter_chats(chats: Iterable[ChatSession], filters: ReportFilters) -> List[ChatSession]:
    return [c for c in chats if filters.matches(c)]


def format_rating(rating: Optional[float]) -> str:
    return f"{rating:.1f}/5" if rating else "N/A"


def build_report(
    stats: DashboardStats,
    chats: Iterable[ChatSession],
    filters: Optional[ReportFilters] = None,
    *,
    title: str = "CareEase Reports",
    generated_at: Optional[datetime] = None,
) -> str:
    """Render statistics, applied filters and the matching chats as text."""
    filters = filters or ReportFilters()
    generated_at = generated_at or datetime.now()
    selected = filter_chats(chats, filters)

    lines = [
        title,
        "=" * len(title),
        f"Generated on: {generated_at:%Y-%m-%d} at {generated_at:%H:%M:%S}",
        "",
        "STATISTICS OVERVIEW",
        f"  Total Chats: {stats.total_chats}",
        f"  Active Chats: {stats.active_chats}",
        f"  Resolved Chats: {stats.resolved_chats}",
        f"  Average Rating: {format_rating(stats.average_rating)}",
        "",
        "FILTERS APPLIED",
    ]
    described = filters.describe()
    if described:
        lines.extend(f"  - {d}" for d in described)
    else:
        lines.append("  No filters applied")

    lines += ["", f"CHATS ({len(selected)})"]
    if not selected:
        lines.append("  No chats found matching the current filters.")
    for chat in selected:
        last = chat.last_activity.strftime("%Y-%m-%d") if chat.last_activity else "-"
        rating = f"{chat.review.rating}/5" if chat.review else "unrated"
        lines.append(
            f"  {chat.title} | {chat.category.value} | {chat.priority.value} | "
            f"{chat.status.value} | {len(chat.messages)} messages | {rating} | {last}"
        )
    return "\n".join(lines) + "\n"
