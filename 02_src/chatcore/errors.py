"""Error taxonomy shared by the pipeline, resolver, store and API layer."""


class ChatCoreError(Exception):
    """Base class for errors surfaced to the caller of a core operation."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ChatCoreError):
    """Malformed, oversized or empty content. Never retried."""

    status_code = 400


class AuthorizationError(ChatCoreError):
    """Bad or missing credential, or caller is not a participant."""

    status_code = 401


class NotFoundError(ChatCoreError):
    """Referenced user or chat does not exist."""

    status_code = 404


class StorageError(ChatCoreError):
    """Transaction failure or lost connection to the durable store.

    The outcome of the failed operation is unknown to the caller, so nothing
    retries it automatically.
    """

    status_code = 500
