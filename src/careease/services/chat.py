"""Chat endpoints."""

from __future__ import annotations

from typing import List, Optional

from ..core.models import (
    ChatCreate,
    ChatPage,
    ChatSession,
    ChatStatus,
    ChatUpdate,
    Message,
    ReviewCreate,
    to_payload,
)
from .api import ApiClient


class ChatService:
    """Chat endpoints. Also serves as the transcript's MessageSource."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def create_chat(self, chat: ChatCreate) -> ChatSession:
        data = await self.api.post("/chat", to_payload(chat))
        return ChatSession.model_validate(data["chat"])

    async def list_chats(
        self,
        *,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        status: Optional[ChatStatus] = None,
    ) -> ChatPage:
        params = {
            "page": page,
            "limit": limit,
            "status": status.value if status else None,
        }
        data = await self.api.get("/chat", params=params)
        return ChatPage.model_validate(data)

    async def get_chat(self, chat_id: str) -> ChatSession:
        data = await self.api.get(f"/chat/{chat_id}")
        return ChatSession.model_validate(data["chat"])

    async def get_messages(self, chat_id: str) -> List[Message]:
        chat = await self.get_chat(chat_id)
        return chat.messages

    async def send_message(self, chat_id: str, content: str) -> dict:
        """Persist a user message. The assistant's reply arrives via get_chat."""
        return await self.api.post(f"/chat/{chat_id}/messages", {"content": content})

    async def update_chat(self, chat_id: str, update: ChatUpdate) -> ChatSession:
        data = await self.api.put(f"/chat/{chat_id}", to_payload(update))
        return ChatSession.model_validate(data["chat"])

    async def add_review(self, chat_id: str, review: ReviewCreate) -> dict:
        return await self.api.post(f"/chat/{chat_id}/review", to_payload(review))

    async def delete_chat(self, chat_id: str) -> None:
        await self.api.delete(f"/chat/{chat_id}")
