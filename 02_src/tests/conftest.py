"""Pytest configuration and fixtures."""

import asyncio
import json
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from chatcore.models import AuthenticatedUser, FileType, NewFile  # noqa: E402

TEST_JWT_SECRET = "test-secret-key-with-enough-bytes-for-hs256"


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from chatcore.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def registry():
    """Create an empty connection registry."""
    from chatcore.registry import ConnectionRegistry

    return ConnectionRegistry(capacity=5)


@pytest.fixture
def resolver(storage):
    """Create ChatResolver over storage."""
    from chatcore.chats import ChatResolver

    return ChatResolver(storage)


@pytest.fixture
def pipeline(storage, registry):
    """Create MessagePipeline wired to storage and registry."""
    from chatcore.pipeline import MessagePipeline

    return MessagePipeline(storage, registry)


@pytest.fixture
def authenticator(storage):
    """Create TokenAuthenticator with a test secret."""
    from chatcore.auth import TokenAuthenticator

    return TokenAuthenticator(storage=storage, secret=TEST_JWT_SECRET)


async def _principal(storage, username: str) -> AuthenticatedUser:
    user = await storage.get_or_create_user(username)
    return AuthenticatedUser(user_id=user.id, username=user.username)


@pytest_asyncio.fixture
async def alice(storage) -> AuthenticatedUser:
    return await _principal(storage, "alice")


@pytest_asyncio.fixture
async def bob(storage) -> AuthenticatedUser:
    return await _principal(storage, "bob")


@pytest_asyncio.fixture
async def carol(storage) -> AuthenticatedUser:
    return await _principal(storage, "carol")


@pytest_asyncio.fixture
async def direct_chat(resolver, alice, bob) -> int:
    """Direct chat between alice and bob."""
    chat_id, _ = await resolver.find_or_create_direct(alice.user_id, bob.user_id)
    return chat_id


def make_file(name: str = "photo.png", size: int = 1024, **overrides) -> NewFile:
    """Build an attachment reference for tests."""
    fields = {
        "type": FileType.PICTURE,
        "url": f"/uploads/{name}",
        "filename": name,
        "mime_type": "image/png",
        "size_bytes": size,
    }
    fields.update(overrides)
    return NewFile(**fields)


async def wait_for_condition(predicate, timeout: float = 1.0) -> None:
    """Yield to the loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class FakeTransport:
    """In-memory ITransport driven by the test."""

    def __init__(self):
        self.accepted = False
        self.closed = False
        self.fail_sends = False
        self._inbound: asyncio.Queue = asyncio.Queue()
        self._sent: asyncio.Queue[str] = asyncio.Queue()

    async def accept(self) -> None:
        self.accepted = True

    async def receive_text(self) -> str | None:
        item = await self._inbound.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send_text(self, data: str) -> None:
        if self.fail_sends:
            raise ConnectionResetError("peer gone")
        self._sent.put_nowait(data)

    async def close(self, code: int = 1000) -> None:
        self.closed = True

    def feed(self, frame) -> None:
        """Queue an inbound frame (str), None for close, or an exception."""
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        self._inbound.put_nowait(frame)

    def disconnect(self) -> None:
        self._inbound.put_nowait(None)

    async def next_sent(self, timeout: float = 1.0) -> dict:
        return json.loads(await asyncio.wait_for(self._sent.get(), timeout))

    def sent_count(self) -> int:
        return self._sent.qsize()


@pytest.fixture
def make_transport():
    """Factory for FakeTransport instances."""
    return FakeTransport


async def assert_nothing_pending(registry, username: str, subscription) -> None:
    """Check no earlier push is buffered by sending a marker through first."""
    assert registry.publish(username, "marker") >= 1
    assert await asyncio.wait_for(subscription.recv(), 1) == "marker"
