"""User-related data models."""

from dataclasses import dataclass
from typing import Any


@dataclass
class User:
    """A registered user."""

    id: int
    username: str
    display_name: str | None = None
    bio: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "displayName": self.display_name,
            "bio": self.bio,
        }


@dataclass(frozen=True)
class AuthenticatedUser:
    """Principal established by the authenticator for one request or connection."""

    user_id: int
    username: str
