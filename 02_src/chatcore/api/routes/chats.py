"""Chat and message routes."""

from typing import Any

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, ConfigDict, Field

from ...app import Application
from ...config import MAX_ROW_ID
from ...errors import AuthorizationError, NotFoundError
from ...models import AuthenticatedUser, ResolveStatus
from ...session import MessageBody
from ..dependencies import create_current_user_dependency


class InitiateChatRequest(BaseModel):
    """Request model for opening a direct chat."""

    model_config = ConfigDict(populate_by_name=True)

    target_id: int = Field(alias="targetId", ge=1, le=MAX_ROW_ID)


class InitiateChatResponse(BaseModel):
    """Response model for opening a direct chat."""

    model_config = ConfigDict(populate_by_name=True)

    chat_id: int = Field(alias="chatId")
    status: ResolveStatus


def create_chats_router(app: Application) -> APIRouter:
    """Create chats router."""
    router = APIRouter(prefix="/chats", tags=["chats"])
    current_user = create_current_user_dependency(app)

    @router.post("/initiate", response_model=InitiateChatResponse)
    async def initiate_direct_chat(
        request: InitiateChatRequest,
        user: AuthenticatedUser = Depends(current_user),
    ) -> InitiateChatResponse:
        """Find or create the direct chat between the caller and the target."""
        chat_id, status = await app.resolver.find_or_create_direct(
            user.user_id, request.target_id
        )
        return InitiateChatResponse(chat_id=chat_id, status=status)

    @router.get("")
    async def list_chats(
        user: AuthenticatedUser = Depends(current_user),
    ) -> list[dict[str, Any]]:
        chats = await app.storage.list_chats(user.user_id)
        return [c.to_payload() for c in chats]

    @router.get("/{chat_id}")
    async def get_chat(
        chat_id: int = Path(ge=1, le=MAX_ROW_ID),
        user: AuthenticatedUser = Depends(current_user),
    ) -> dict[str, Any]:
        if not await app.storage.is_participant(chat_id, user.user_id):
            raise AuthorizationError("Not authorized to view this chat info")
        chat = await app.storage.get_chat(chat_id)
        if chat is None:
            raise NotFoundError(f"Chat with ID {chat_id} not found")
        return chat.to_payload()

    @router.get("/{chat_id}/messages")
    async def get_history(
        chat_id: int = Path(ge=1, le=MAX_ROW_ID),
        user: AuthenticatedUser = Depends(current_user),
    ) -> dict[str, Any]:
        """Full history of the chat, oldest first."""
        messages = await app.pipeline.history(user, chat_id)
        return {
            "chatId": chat_id,
            "messages": [m.to_payload() for m in messages],
        }

    @router.post("/{chat_id}/messages")
    async def send_message(
        body: MessageBody,
        chat_id: int = Path(ge=1, le=MAX_ROW_ID),
        user: AuthenticatedUser = Depends(current_user),
    ) -> dict[str, Any]:
        """Submit a message over HTTP; live participants get it pushed."""
        message = await app.pipeline.submit(
            user, chat_id, body.content, body.new_files()
        )
        return message.to_payload()

    return router
