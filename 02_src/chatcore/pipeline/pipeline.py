"""MessagePipeline implementation."""

import asyncio
import json
from datetime import datetime, timezone
from typing import Protocol

from ..config import MAX_FILE_SIZE_BYTES, MAX_FILES_PER_MESSAGE
from ..errors import AuthorizationError, ValidationError
from ..logging_config import context, get_logger
from ..models import AuthenticatedUser, Message, NewFile
from ..registry import IConnectionRegistry
from ..storage import IStorage

logger = get_logger(__name__)


class IMessagePipeline(Protocol):
    """Single choke point for chat messages: validate, authorize, persist, fan out."""

    async def submit(
        self,
        sender: AuthenticatedUser,
        chat_id: int,
        content: str | None = None,
        files: list[NewFile] | None = None,
    ) -> Message:
        """Persist a message and push it to every live participant."""
        ...

    async def history(self, caller: AuthenticatedUser, chat_id: int) -> list[Message]:
        """Return the chat's messages in ascending timestamp order."""
        ...


def validate_content(content: str | None, files: list[NewFile]) -> None:
    """Raise ValidationError unless the message has text or files within limits."""
    has_content = content is not None and content.strip() != ""
    if not has_content and not files:
        raise ValidationError("Message must have text or at least one file")

    if len(files) > MAX_FILES_PER_MESSAGE:
        raise ValidationError(
            f"Maximum {MAX_FILES_PER_MESSAGE} files allowed per message"
        )

    for new_file in files:
        if new_file.size_bytes < 0:
            raise ValidationError(f"File {new_file.filename} has a negative size")
        if new_file.size_bytes > MAX_FILE_SIZE_BYTES:
            raise ValidationError(
                f"File {new_file.filename} exceeds "
                f"{MAX_FILE_SIZE_BYTES // (1024 * 1024)}MB limit"
            )


class MessagePipeline:
    """Validates, authorizes, persists and fans out chat messages."""

    def __init__(self, storage: IStorage, registry: IConnectionRegistry):
        self._storage = storage
        self._registry = registry
        self._last_timestamp: datetime | None = None

    async def submit(
        self,
        sender: AuthenticatedUser,
        chat_id: int,
        content: str | None = None,
        files: list[NewFile] | None = None,
    ) -> Message:
        """Persist a message and push it to every live participant.

        Raises ValidationError, AuthorizationError or StorageError. Once
        persistence has started the call is shielded from cancellation and
        runs to commit or failure.
        """
        files = list(files or [])

        try:
            validate_content(content, files)
        except ValidationError as e:
            logger.warning(
                "Message rejected: %s",
                e.message,
                extra=context(sender_id=sender.user_id, chat_id=chat_id),
            )
            raise

        await self._authorize(sender, chat_id)

        persist = asyncio.ensure_future(
            self._persist_and_fan_out(sender, chat_id, content, files)
        )
        try:
            return await asyncio.shield(persist)
        except asyncio.CancelledError:
            # Nobody awaits the write any more; its outcome goes to the log
            persist.add_done_callback(self._log_detached_result)
            raise

    async def history(self, caller: AuthenticatedUser, chat_id: int) -> list[Message]:
        """Return the chat's messages in ascending timestamp order."""
        await self._authorize(caller, chat_id)
        return await self._storage.get_messages(chat_id)

    async def _authorize(self, user: AuthenticatedUser, chat_id: int) -> None:
        if not await self._storage.is_participant(chat_id, user.user_id):
            logger.warning(
                "User %s is not a participant of chat %s",
                user.username,
                chat_id,
                extra=context(user_id=user.user_id, chat_id=chat_id),
            )
            raise AuthorizationError("Not authorized for this chat")

    async def _persist_and_fan_out(
        self,
        sender: AuthenticatedUser,
        chat_id: int,
        content: str | None,
        files: list[NewFile],
    ) -> Message:
        message = await self._storage.insert_message(
            chat_id=chat_id,
            sender_id=sender.user_id,
            content=content,
            files=files,
            timestamp=self._next_timestamp(),
        )
        logger.info(
            "Message %s stored in chat %s",
            message.id,
            chat_id,
            extra=context(
                message_id=message.id,
                chat_id=chat_id,
                sender_id=sender.user_id,
                file_count=len(message.files),
            ),
        )

        await self._fan_out(message)
        return message

    async def _fan_out(self, message: Message) -> None:
        """Push to every participant, sender included. Never raises past persistence."""
        try:
            usernames = await self._storage.get_participant_usernames(message.chat_id)
        except Exception as e:
            # The message is already committed; recipients catch up from history
            logger.error(
                "Fan-out skipped for message %s: %s", message.id, e, exc_info=True
            )
            return

        payload = json.dumps(message.to_payload())
        delivered = 0
        for username in usernames:
            delivered += self._registry.publish(username, payload)

        logger.debug(
            "Message %s pushed to %s live sessions",
            message.id,
            delivered,
        )

    def _log_detached_result(self, persist: "asyncio.Future[Message]") -> None:
        if persist.cancelled():
            return
        error = persist.exception()
        if error is not None:
            logger.error(
                "Message write failed after the sender went away: %s",
                error,
                exc_info=error,
            )

    def _next_timestamp(self) -> datetime:
        """Wall-clock UTC time, never earlier than the previous one handed out."""
        now = datetime.now(timezone.utc)
        if self._last_timestamp is not None and now < self._last_timestamp:
            now = self._last_timestamp
        self._last_timestamp = now
        return now
