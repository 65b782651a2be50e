"""Tests for Storage."""

from datetime import datetime, timedelta, timezone

import aiosqlite
import pytest

from chatcore.errors import StorageError
from chatcore.models import ChatType, FileType
from chatcore.storage import Storage
from conftest import make_file


async def count_rows(storage, table: str) -> int:
    async with storage._conn.execute(f"SELECT COUNT(*) FROM {table}") as cursor:
        row = await cursor.fetchone()
    return row[0]


class TestStorageInit:
    """Tests for Storage initialization."""

    async def test_init_creates_tables(self, storage):
        """Test that init creates all tables."""
        async with storage._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ) as cursor:
            tables = [row[0] for row in await cursor.fetchall()]
            assert "users" in tables
            assert "chats" in tables
            assert "chat_participants" in tables
            assert "messages" in tables
            assert "files" in tables
            assert "message_files" in tables

    async def test_uninitialized_storage_raises(self):
        """Test that using storage before init raises RuntimeError."""
        st = Storage(":memory:")
        with pytest.raises(RuntimeError, match="not initialized"):
            await st.get_user(1)

    async def test_close_resets_connection(self):
        """Test that close drops the connection."""
        st = Storage(":memory:")
        await st.init()
        await st.close()
        assert st._conn is None


class TestStorageUsers:
    """Tests for User storage."""

    async def test_get_or_create_user_creates(self, storage):
        """Test creating a new user."""
        user = await storage.get_or_create_user("alice")
        assert user.id is not None
        assert user.username == "alice"

    async def test_get_or_create_user_is_idempotent(self, storage):
        """Test that the same username maps to the same user."""
        first = await storage.get_or_create_user("alice")
        second = await storage.get_or_create_user("alice")
        assert first.id == second.id
        assert await count_rows(storage, "users") == 1

    async def test_get_user(self, storage):
        """Test retrieving a user."""
        created = await storage.get_or_create_user("alice")
        retrieved = await storage.get_user(created.id)
        assert retrieved is not None
        assert retrieved.username == "alice"

    async def test_get_nonexistent_user(self, storage):
        """Test retrieving nonexistent user returns None."""
        assert await storage.get_user(999) is None

    async def test_search_users(self, storage):
        """Test substring search over usernames."""
        for name in ("alice", "alicia", "bob"):
            await storage.get_or_create_user(name)

        matches = await storage.search_users("ali")
        assert [u.username for u in matches] == ["alice", "alicia"]

        everyone = await storage.search_users()
        assert len(everyone) == 3


class TestStorageChats:
    """Tests for chat and participant storage."""

    async def test_create_and_find_direct_chat(self, storage, alice, bob):
        """Test direct chat lookup works in both argument orders."""
        chat = await storage.create_direct_chat(
            alice.user_id, bob.user_id, datetime.now(timezone.utc)
        )

        assert chat.chat_type == ChatType.DIRECT
        assert await storage.find_direct_chat(alice.user_id, bob.user_id) == chat.id
        assert await storage.find_direct_chat(bob.user_id, alice.user_id) == chat.id

    async def test_find_direct_chat_missing(self, storage, alice, bob):
        """Test lookup returns None when no chat exists."""
        assert await storage.find_direct_chat(alice.user_id, bob.user_id) is None

    async def test_find_direct_chat_requires_exact_pair(self, storage, alice, bob, carol):
        """Test a chat with a third participant is not the direct chat of a pair."""
        chat = await storage.create_direct_chat(
            alice.user_id, bob.user_id, datetime.now(timezone.utc)
        )
        await storage._conn.execute(
            "INSERT INTO chat_participants (chat_id, user_id) VALUES (?, ?)",
            (chat.id, carol.user_id),
        )
        await storage._conn.commit()

        assert await storage.find_direct_chat(alice.user_id, bob.user_id) is None

    async def test_participants(self, storage, alice, bob, carol, direct_chat):
        """Test membership queries."""
        assert await storage.is_participant(direct_chat, alice.user_id)
        assert await storage.is_participant(direct_chat, bob.user_id)
        assert not await storage.is_participant(direct_chat, carol.user_id)
        assert await storage.get_participant_ids(direct_chat) == sorted(
            [alice.user_id, bob.user_id]
        )
        assert set(await storage.get_participant_usernames(direct_chat)) == {
            "alice",
            "bob",
        }

    async def test_get_chat(self, storage, alice, bob, direct_chat):
        """Test reading a chat with participants."""
        chat = await storage.get_chat(direct_chat)
        assert chat is not None
        assert chat.chat_type == ChatType.DIRECT
        assert set(chat.participants) == {alice.user_id, bob.user_id}

    async def test_get_missing_chat(self, storage):
        """Test reading a missing chat returns None."""
        assert await storage.get_chat(12345) is None

    async def test_list_chats_newest_first(self, storage, alice, bob, carol):
        """Test listing a user's chats."""
        now = datetime.now(timezone.utc)
        older = await storage.create_direct_chat(alice.user_id, bob.user_id, now)
        newer = await storage.create_direct_chat(
            alice.user_id, carol.user_id, now + timedelta(seconds=1)
        )

        chats = await storage.list_chats(alice.user_id)
        assert [c.id for c in chats] == [newer.id, older.id]
        assert [c.id for c in await storage.list_chats(bob.user_id)] == [older.id]


class TestStorageMessages:
    """Tests for message storage."""

    async def test_insert_message_with_files(self, storage, alice, direct_chat):
        """Test that message, files and join rows are written together."""
        ts = datetime.now(timezone.utc)
        message = await storage.insert_message(
            chat_id=direct_chat,
            sender_id=alice.user_id,
            content="look",
            files=[make_file("a.png"), make_file("b.png")],
            timestamp=ts,
        )

        assert message.id is not None
        assert [f.filename for f in message.files] == ["a.png", "b.png"]
        assert all(f.created_at == ts for f in message.files)
        assert await count_rows(storage, "files") == 2
        assert await count_rows(storage, "message_files") == 2

    async def test_get_messages_resolves_files(self, storage, alice, direct_chat):
        """Test that history returns each file exactly once, in order."""
        ts = datetime.now(timezone.utc)
        await storage.insert_message(
            direct_chat,
            alice.user_id,
            None,
            [make_file("1.png"), make_file("2.mp4", type=FileType.VIDEO)],
            ts,
        )

        messages = await storage.get_messages(direct_chat)

        assert len(messages) == 1
        assert messages[0].content is None
        assert [f.filename for f in messages[0].files] == ["1.png", "2.mp4"]
        assert messages[0].files[1].type == FileType.VIDEO
        assert messages[0].timestamp == ts

    async def test_get_messages_ordered_by_timestamp(self, storage, alice, bob, direct_chat):
        """Test ascending timestamp order regardless of insertion order."""
        base = datetime.now(timezone.utc)
        await storage.insert_message(direct_chat, alice.user_id, "second", [], base + timedelta(seconds=2))
        await storage.insert_message(direct_chat, bob.user_id, "first", [], base)
        await storage.insert_message(direct_chat, bob.user_id, "tie", [], base + timedelta(seconds=2))

        messages = await storage.get_messages(direct_chat)

        assert [m.content for m in messages] == ["first", "second", "tie"]

    async def test_failure_mid_file_loop_rolls_back(
        self, storage, alice, direct_chat, monkeypatch
    ):
        """Test that a failure on the second file leaves no rows behind."""
        real_insert_file = storage._insert_file
        calls = 0

        async def flaky_insert_file(conn, message_id, new_file, created_at):
            nonlocal calls
            calls += 1
            if calls == 2:
                raise aiosqlite.OperationalError("disk I/O error")
            return await real_insert_file(conn, message_id, new_file, created_at)

        monkeypatch.setattr(storage, "_insert_file", flaky_insert_file)

        with pytest.raises(StorageError):
            await storage.insert_message(
                direct_chat,
                alice.user_id,
                "doomed",
                [make_file("1.png"), make_file("2.png"), make_file("3.png")],
                datetime.now(timezone.utc),
            )

        assert await count_rows(storage, "messages") == 0
        assert await count_rows(storage, "files") == 0
        assert await count_rows(storage, "message_files") == 0
        assert await storage.get_messages(direct_chat) == []

    async def test_storage_usable_after_rollback(
        self, storage, alice, direct_chat, monkeypatch
    ):
        """Test that the connection keeps working after a rolled-back transaction."""

        async def failing_insert_file(*args):
            raise aiosqlite.IntegrityError("constraint failed")

        monkeypatch.setattr(storage, "_insert_file", failing_insert_file)
        with pytest.raises(StorageError):
            await storage.insert_message(
                direct_chat, alice.user_id, None, [make_file()], datetime.now(timezone.utc)
            )
        monkeypatch.undo()

        message = await storage.insert_message(
            direct_chat, alice.user_id, "ok", [], datetime.now(timezone.utc)
        )
        assert [m.id for m in await storage.get_messages(direct_chat)] == [message.id]

    async def test_constraint_violation_becomes_storage_error(self, storage, alice):
        """Test that a foreign key failure surfaces as StorageError."""
        with pytest.raises(StorageError):
            await storage.insert_message(
                9999, alice.user_id, "orphan", [], datetime.now(timezone.utc)
            )
        assert await count_rows(storage, "messages") == 0

    async def test_unbindable_id_becomes_storage_error(self, storage, alice):
        """Test that an id too large for an SQLite INTEGER surfaces as StorageError."""
        with pytest.raises(StorageError):
            await storage.is_participant(2**64, alice.user_id)
