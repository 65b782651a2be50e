"""Application bootstrap and lifecycle management."""

from typing import Protocol

from .auth import TokenAuthenticator
from .chats import ChatResolver
from .config import Settings, load_settings, resolve_db_path
from .logging_config import get_logger
from .pipeline import MessagePipeline
from .registry import ConnectionRegistry
from .storage import IStorage, Storage

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...


class Application:
    """Main application bootstrap.

    Owns exactly one instance of each component and hands shared references
    to the HTTP/WebSocket layer.
    """

    def __init__(
        self,
        db_path: str | None = None,
        jwt_secret: str | None = None,
        settings: Settings | None = None,
    ):
        self._settings = settings or load_settings()
        env_db_path = self._settings.database_url if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self._jwt_secret = jwt_secret or self._settings.jwt_secret

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._registry: ConnectionRegistry | None = None
        self._authenticator: TokenAuthenticator | None = None
        self._resolver: ChatResolver | None = None
        self._pipeline: MessagePipeline | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        if not self._jwt_secret:
            raise ValueError("JWT_SECRET environment variable not set")

        logger.info("Starting application")

        # 1. Storage (no dependencies)
        storage = Storage(self._db_path)
        await storage.init()
        self._storage = storage

        # 2. Registry (no dependencies, in-memory)
        self._registry = ConnectionRegistry(capacity=self._settings.fanout_capacity)

        # 3. Authenticator (depends on Storage)
        self._authenticator = TokenAuthenticator(
            storage=self._storage,
            secret=self._jwt_secret,
            ttl_seconds=self._settings.token_ttl_seconds,
        )

        # 4. ChatResolver (depends on Storage)
        self._resolver = ChatResolver(self._storage)

        # 5. MessagePipeline (depends on Storage + Registry)
        self._pipeline = MessagePipeline(self._storage, self._registry)
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        self._pipeline = None
        self._resolver = None
        self._authenticator = None
        self._registry = None
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def registry(self) -> ConnectionRegistry:
        """Get connection registry instance."""
        if not self._registry:
            raise RuntimeError("Application not started")
        return self._registry

    @property
    def authenticator(self) -> TokenAuthenticator:
        """Get authenticator instance."""
        if not self._authenticator:
            raise RuntimeError("Application not started")
        return self._authenticator

    @property
    def resolver(self) -> ChatResolver:
        """Get chat resolver instance."""
        if not self._resolver:
            raise RuntimeError("Application not started")
        return self._resolver

    @property
    def pipeline(self) -> MessagePipeline:
        """Get message pipeline instance."""
        if not self._pipeline:
            raise RuntimeError("Application not started")
        return self._pipeline
