"""Request dependencies shared by the routers."""

from typing import Callable

from fastapi import Header

from ..app import Application
from ..auth import parse_bearer
from ..models import AuthenticatedUser


def create_current_user_dependency(app: Application) -> Callable[..., AuthenticatedUser]:
    """FastAPI dependency returning the authenticated caller."""

    def get_current_user(
        authorization: str | None = Header(default=None),
    ) -> AuthenticatedUser:
        return app.authenticator.authenticate(parse_bearer(authorization))

    return get_current_user
