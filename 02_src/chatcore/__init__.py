"""Chat core: connection registry, message pipeline and direct-chat resolution."""

from .app import Application, IApplication
from .auth import IAuthenticator, TokenAuthenticator
from .chats import ChatResolver, IChatResolver
from .errors import (
    AuthorizationError,
    ChatCoreError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from .models import (
    AuthenticatedUser,
    Chat,
    ChatType,
    FileType,
    MediaAsset,
    Message,
    NewFile,
    ResolveStatus,
    User,
)
from .pipeline import IMessagePipeline, MessagePipeline
from .registry import ConnectionRegistry, FanoutChannel, IConnectionRegistry, Subscription
from .session import ConnectionSession, ITransport
from .storage import IStorage, Storage

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Errors
    "ChatCoreError",
    "ValidationError",
    "AuthorizationError",
    "NotFoundError",
    "StorageError",
    # Models
    "User",
    "AuthenticatedUser",
    "Chat",
    "ChatType",
    "ResolveStatus",
    "Message",
    "MediaAsset",
    "NewFile",
    "FileType",
    # Components
    "IStorage",
    "Storage",
    "IConnectionRegistry",
    "ConnectionRegistry",
    "FanoutChannel",
    "Subscription",
    "IChatResolver",
    "ChatResolver",
    "IMessagePipeline",
    "MessagePipeline",
    "IAuthenticator",
    "TokenAuthenticator",
    "ITransport",
    "ConnectionSession",
]
