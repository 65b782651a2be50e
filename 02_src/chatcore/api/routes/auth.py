"""Login route."""

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from ...app import Application


class LoginRequest(BaseModel):
    """Request model for login."""

    username: str


class LoginResponse(BaseModel):
    """Response model for login."""

    model_config = ConfigDict(populate_by_name=True)

    token: str
    user_id: int = Field(alias="userId")
    username: str


def create_auth_router(app: Application) -> APIRouter:
    """Create auth router."""
    router = APIRouter(tags=["auth"])

    @router.post("/login", response_model=LoginResponse)
    async def login(request: LoginRequest) -> LoginResponse:
        """Find or create the user and issue a bearer token."""
        user, token = await app.authenticator.login(request.username)
        return LoginResponse(token=token, user_id=user.id, username=user.username)

    return router
