"""User lookup routes."""

from typing import Any

from fastapi import APIRouter, Depends, Path, Query

from ...app import Application
from ...config import MAX_ROW_ID
from ...errors import NotFoundError
from ..dependencies import create_current_user_dependency


def create_users_router(app: Application) -> APIRouter:
    """Create users router."""
    router = APIRouter(prefix="/users", tags=["users"])
    current_user = create_current_user_dependency(app)

    @router.get("")
    async def search_users(
        username: str | None = Query(None, description="Username substring"),
        _=Depends(current_user),
    ) -> list[dict[str, Any]]:
        users = await app.storage.search_users(username)
        return [u.to_payload() for u in users]

    @router.get("/{user_id}")
    async def get_user(
        user_id: int = Path(ge=1, le=MAX_ROW_ID),
        _=Depends(current_user),
    ) -> dict[str, Any]:
        user = await app.storage.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User with ID {user_id} not found")
        return user.to_payload()

    return router
