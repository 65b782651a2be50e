"""Inbound wire models for the push connection and the HTTP send route."""

from pydantic import BaseModel, ConfigDict, Field

from ..config import MAX_ROW_ID
from ..models import FileType, NewFile


class IncomingFile(BaseModel):
    """Attachment reference sent by a client."""

    model_config = ConfigDict(populate_by_name=True)

    type: FileType
    url: str
    filename: str
    mime_type: str | None = Field(default=None, alias="mimeType")
    size_bytes: int = Field(alias="sizeBytes")

    def to_new_file(self) -> NewFile:
        return NewFile(
            type=self.type,
            url=self.url,
            filename=self.filename,
            mime_type=self.mime_type,
            size_bytes=self.size_bytes,
        )


class MessageBody(BaseModel):
    """Text and attachment references of an outgoing message."""

    model_config = ConfigDict(populate_by_name=True)

    content: str | None = None
    files: list[IncomingFile] | None = None

    def new_files(self) -> list[NewFile]:
        return [f.to_new_file() for f in self.files or []]


class IncomingMessage(MessageBody):
    """Client → server frame: ``{chatId, content?, files?}``."""

    chat_id: int = Field(alias="chatId", ge=1, le=MAX_ROW_ID)
