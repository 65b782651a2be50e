"""Message pipeline module."""

from .pipeline import IMessagePipeline, MessagePipeline, validate_content

__all__ = ["IMessagePipeline", "MessagePipeline", "validate_content"]
