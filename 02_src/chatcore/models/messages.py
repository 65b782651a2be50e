"""Message-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class FileType(str, Enum):
    """Kind of an attached file."""

    PICTURE = "picture"
    VIDEO = "video"
    AUDIO = "audio"
    FILE = "file"


@dataclass
class NewFile:
    """An attachment reference supplied with an outgoing message."""

    type: FileType
    url: str
    filename: str
    size_bytes: int
    mime_type: str | None = None


@dataclass
class MediaAsset:
    """A persisted attachment reference."""

    id: int
    type: FileType
    url: str
    filename: str
    size_bytes: int
    created_at: datetime
    mime_type: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "url": self.url,
            "filename": self.filename,
            "mimeType": self.mime_type,
            "sizeBytes": self.size_bytes,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class Message:
    """A single persisted chat message."""

    id: int
    chat_id: int
    sender_id: int
    timestamp: datetime
    content: str | None = None
    files: list[MediaAsset] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """Wire shape pushed to live sessions and returned by history."""
        return {
            "id": self.id,
            "chatId": self.chat_id,
            "senderId": self.sender_id,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "files": [f.to_payload() for f in self.files],
        }
