"""ChatResolver implementation."""

import asyncio
from datetime import datetime, timezone
from typing import Protocol

from ..errors import NotFoundError, ValidationError
from ..logging_config import context, get_logger
from ..models import ResolveStatus
from ..storage import IStorage

logger = get_logger(__name__)


class IChatResolver(Protocol):
    """Idempotent resolution of the canonical direct chat between two users."""

    async def find_or_create_direct(
        self, user_id: int, target_id: int
    ) -> tuple[int, ResolveStatus]:
        """Return the direct chat id for the pair and whether it was created."""
        ...


class ChatResolver:
    """Finds or creates direct chats.

    Lookup is a plain read. Creation happens under a lock keyed by the
    unordered pair and re-checks the lookup first, so concurrent first
    contact inside this process yields a single chat.
    """

    def __init__(self, storage: IStorage):
        self._storage = storage
        self._pair_locks: dict[frozenset[int], asyncio.Lock] = {}
        self._pair_waiters: dict[frozenset[int], int] = {}

    async def find_or_create_direct(
        self, user_id: int, target_id: int
    ) -> tuple[int, ResolveStatus]:
        """Return the direct chat id for the pair and whether it was created.

        ``user_id`` must be the authenticated caller.
        """
        if user_id == target_id:
            raise ValidationError("Cannot start a direct chat with yourself")

        target = await self._storage.get_user(target_id)
        if target is None:
            raise NotFoundError("Target user not found")

        chat_id = await self._storage.find_direct_chat(user_id, target_id)
        if chat_id is not None:
            return chat_id, ResolveStatus.EXISTED

        pair = frozenset((user_id, target_id))
        async with self._lock_for(pair):
            chat_id = await self._storage.find_direct_chat(user_id, target_id)
            if chat_id is not None:
                return chat_id, ResolveStatus.EXISTED

            chat = await self._storage.create_direct_chat(
                user_id, target_id, datetime.now(timezone.utc)
            )

        logger.info(
            "Direct chat %s created",
            chat.id,
            extra=context(chat_id=chat.id, participants=[user_id, target_id]),
        )
        return chat.id, ResolveStatus.CREATED

    def _lock_for(self, pair: frozenset[int]) -> "_PairLock":
        return _PairLock(self, pair)


class _PairLock:
    """Async context manager for a per-pair lock that is discarded when unused."""

    def __init__(self, resolver: ChatResolver, pair: frozenset[int]):
        self._resolver = resolver
        self._pair = pair

    async def __aenter__(self) -> None:
        locks = self._resolver._pair_locks
        waiters = self._resolver._pair_waiters
        lock = locks.setdefault(self._pair, asyncio.Lock())
        waiters[self._pair] = waiters.get(self._pair, 0) + 1
        try:
            await lock.acquire()
        except BaseException:
            self._leave()
            raise

    async def __aexit__(self, *exc_info) -> None:
        self._resolver._pair_locks[self._pair].release()
        self._leave()

    def _leave(self) -> None:
        waiters = self._resolver._pair_waiters
        waiters[self._pair] -= 1
        if waiters[self._pair] == 0:
            del waiters[self._pair]
            del self._resolver._pair_locks[self._pair]
