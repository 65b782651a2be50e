"""Core data models for the chat core."""

from .chats import Chat, ChatType, ResolveStatus
from .messages import FileType, MediaAsset, Message, NewFile
from .users import AuthenticatedUser, User

__all__ = [
    # Users
    "User",
    "AuthenticatedUser",
    # Chats
    "Chat",
    "ChatType",
    "ResolveStatus",
    # Messages
    "Message",
    "MediaAsset",
    "NewFile",
    "FileType",
]
