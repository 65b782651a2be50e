"""Connection session module."""

from .protocol import IncomingFile, IncomingMessage, MessageBody
from .session import ConnectionSession, ITransport

__all__ = [
    "ConnectionSession",
    "ITransport",
    "IncomingFile",
    "IncomingMessage",
    "MessageBody",
]
