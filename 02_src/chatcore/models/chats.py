"""Chat-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ChatType(str, Enum):
    """Chat type tag."""

    DIRECT = "direct"
    GROUP = "group"
    SERVER = "server"


class ResolveStatus(str, Enum):
    """Outcome of a direct-chat resolution."""

    EXISTED = "existed"
    CREATED = "created"


@dataclass
class Chat:
    """A conversation and its current participants."""

    id: int
    chat_type: ChatType
    created_at: datetime
    name: str | None = None
    participants: list[int] = field(default_factory=list)  # user ids

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "chatType": self.chat_type.value,
            "createdAt": self.created_at.isoformat(),
            "participants": list(self.participants),
        }
