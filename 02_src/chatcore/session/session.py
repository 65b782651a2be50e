"""ConnectionSession implementation."""

import asyncio
from typing import Protocol

from pydantic import ValidationError as PydanticValidationError

from ..errors import ChatCoreError
from ..logging_config import context, get_logger
from ..models import AuthenticatedUser
from ..pipeline import IMessagePipeline
from ..registry import IConnectionRegistry, Subscription
from .protocol import IncomingMessage

logger = get_logger(__name__)


class ITransport(Protocol):
    """Duplex text-frame stream of one live connection."""

    async def accept(self) -> None:
        """Complete the handshake."""
        ...

    async def receive_text(self) -> str | None:
        """Next text frame, or None once the peer has closed."""
        ...

    async def send_text(self, data: str) -> None:
        """Write one text frame. Raises if the peer is gone."""
        ...

    async def close(self, code: int = 1000) -> None:
        """Close the connection if it is still open."""
        ...


class ConnectionSession:
    """Bridges one authenticated connection to the registry and the pipeline.

    Runs an inbound and an outbound loop as two tasks. Whichever finishes
    first ends the session and the other one is cancelled.
    """

    def __init__(
        self,
        user: AuthenticatedUser,
        transport: ITransport,
        registry: IConnectionRegistry,
        pipeline: IMessagePipeline,
    ):
        self._user = user
        self._transport = transport
        self._registry = registry
        self._pipeline = pipeline

    @property
    def user(self) -> AuthenticatedUser:
        return self._user

    async def run(self) -> None:
        """Register, subscribe, accept, then serve until either loop ends."""
        username = self._user.username
        channel = self._registry.register(username)
        # Subscribed before accept so nothing published after the handshake is missed
        subscription = channel.subscribe()

        try:
            await self._transport.accept()
            logger.info(
                "Session opened for %s",
                username,
                extra=context(user_id=self._user.user_id, sessions=channel.subscriber_count),
            )
            await self._serve(subscription)
        finally:
            subscription.close()
            self._registry.release(username, channel)
            await self._transport.close()
            logger.info("Session closed for %s", username)

    async def _serve(self, subscription: Subscription) -> None:
        username = self._user.username
        outbound = asyncio.create_task(
            self._outbound_loop(subscription), name=f"outbound:{username}"
        )
        inbound = asyncio.create_task(self._inbound_loop(), name=f"inbound:{username}")
        tasks = (outbound, inbound)

        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.info(
                    "Loop %s for %s ended: %r",
                    task.get_name(),
                    username,
                    task.exception(),
                )

    async def _outbound_loop(self, subscription: Subscription) -> None:
        async for message in subscription:
            await self._transport.send_text(message)

    async def _inbound_loop(self) -> None:
        while True:
            frame = await self._transport.receive_text()
            if frame is None:
                return
            await self._handle_frame(frame)

    async def _handle_frame(self, frame: str) -> None:
        """Decode one frame and submit it. Bad frames are logged and dropped."""
        try:
            incoming = IncomingMessage.model_validate_json(frame)
        except PydanticValidationError as e:
            logger.warning(
                "Discarded malformed frame from %s: %s",
                self._user.username,
                e.errors(include_url=False),
            )
            return

        try:
            await self._pipeline.submit(
                self._user,
                incoming.chat_id,
                incoming.content,
                incoming.new_files(),
            )
        except ChatCoreError as e:
            logger.warning(
                "Failed to process message from %s: %s",
                self._user.username,
                e.message,
                extra=context(chat_id=incoming.chat_id, error=type(e).__name__),
            )
        except Exception:
            logger.error(
                "Unexpected error handling frame from %s",
                self._user.username,
                exc_info=True,
                extra=context(chat_id=incoming.chat_id),
            )
