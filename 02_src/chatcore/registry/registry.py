"""Connection registry: per-user fan-out channels for live push."""

import asyncio
from typing import AsyncIterator, Protocol

from ..config import FANOUT_CAPACITY
from ..logging_config import get_logger

logger = get_logger(__name__)


class Subscription:
    """One receive-end of a FanoutChannel, owned by a single session.

    Buffers at most ``capacity`` pending messages. ``offer`` never blocks:
    when the buffer is full the offered message is dropped.
    """

    def __init__(self, channel: "FanoutChannel", capacity: int):
        self._channel = channel
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=capacity)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, message: str) -> bool:
        """Try to enqueue without waiting. Returns False if closed or full."""
        if self._closed:
            return False
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            return False
        return True

    async def recv(self) -> str | None:
        """Wait for the next message. Returns None once the subscription is closed."""
        if self._closed:
            return None
        return await self._queue.get()

    def close(self) -> None:
        """Detach from the channel and wake a pending recv()."""
        if self._closed:
            return
        self._closed = True
        self._channel._unsubscribe(self)

        # Pending messages are discarded; the sentinel unblocks recv()
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    def __aiter__(self) -> AsyncIterator[str]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[str]:
        while True:
            message = await self.recv()
            if message is None:
                return
            yield message


class FanoutChannel:
    """Multi-consumer delivery channel shared by all sessions of one user."""

    def __init__(self, username: str, capacity: int = FANOUT_CAPACITY):
        self.username = username
        self._capacity = capacity
        self._subscribers: list[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        """Create a fresh receive-end."""
        subscription = Subscription(self, self._capacity)
        self._subscribers.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    def try_send(self, message: str) -> int:
        """Offer message to every subscriber. Returns how many accepted it."""
        delivered = 0
        for subscription in list(self._subscribers):
            if subscription.offer(message):
                delivered += 1
            else:
                logger.debug("Dropped live push for %s: buffer full", self.username)
        return delivered


class IConnectionRegistry(Protocol):
    """Process-wide directory from username to fan-out channel."""

    def register(self, username: str) -> FanoutChannel:
        """Return the user's channel, creating it on first use."""
        ...

    def publish(self, username: str, message: str) -> int:
        """Best-effort push. Returns the number of receive-ends reached."""
        ...

    def release(self, username: str, channel: FanoutChannel) -> None:
        """Drop the registration once it has no subscribers."""
        ...


class ConnectionRegistry:
    """In-memory registry of live users.

    Confined to the event loop: none of the methods await, so each call runs
    to completion without interleaving with other tasks. That is what makes
    ``register`` create at most one channel per username.
    """

    def __init__(self, capacity: int = FANOUT_CAPACITY):
        self._capacity = capacity
        self._channels: dict[str, FanoutChannel] = {}

    def register(self, username: str) -> FanoutChannel:
        """Return the user's channel, creating it on first use."""
        channel = self._channels.get(username)
        if channel is None:
            channel = FanoutChannel(username, self._capacity)
            self._channels[username] = channel
            logger.debug("Registered fan-out channel for %s", username)
        return channel

    def publish(self, username: str, message: str) -> int:
        """Best-effort push. Returns the number of receive-ends reached.

        A user without a registration counts as offline; nothing is raised.
        """
        channel = self._channels.get(username)
        if channel is None:
            return 0
        return channel.try_send(message)

    def release(self, username: str, channel: FanoutChannel) -> None:
        """Drop the registration once it has no subscribers."""
        if self._channels.get(username) is channel and channel.subscriber_count == 0:
            del self._channels[username]
            logger.debug("Released fan-out channel for %s", username)

    def is_online(self, username: str) -> bool:
        channel = self._channels.get(username)
        return channel is not None and channel.subscriber_count > 0

    def online_usernames(self) -> list[str]:
        return sorted(
            name
            for name, channel in self._channels.items()
            if channel.subscriber_count > 0
        )

    def __contains__(self, username: str) -> bool:
        """Whether the username currently holds a registration."""
        return username in self._channels
