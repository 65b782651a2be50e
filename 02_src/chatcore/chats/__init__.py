"""Chats module."""

from .resolver import ChatResolver, IChatResolver

__all__ = ["ChatResolver", "IChatResolver"]
