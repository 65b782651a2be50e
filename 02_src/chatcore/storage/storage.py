"""SQLite storage implementation."""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Protocol

import aiosqlite

from ..config import resolve_db_path
from ..errors import StorageError
from ..logging_config import get_logger
from ..models import Chat, ChatType, FileType, MediaAsset, Message, NewFile, User

logger = get_logger(__name__)


def _to_db_ts(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db_ts(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


class IStorage(Protocol):
    """Durable store for users, chats, participants, messages and files."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Users
    async def get_or_create_user(self, username: str) -> User:
        """Return the user with this username, creating it if needed."""
        ...

    async def get_user(self, user_id: int) -> User | None:
        """Get a user by ID."""
        ...

    async def search_users(self, username: str | None = None) -> list[User]:
        """List users, optionally filtered by a username substring."""
        ...

    # Chats
    async def find_direct_chat(self, user_a: int, user_b: int) -> int | None:
        """Find the direct chat whose participants are exactly {user_a, user_b}."""
        ...

    async def create_direct_chat(
        self, user_a: int, user_b: int, created_at: datetime
    ) -> Chat:
        """Insert a direct chat and both participant rows in one transaction."""
        ...

    async def get_chat(self, chat_id: int) -> Chat | None:
        """Get a chat with its participant ids."""
        ...

    async def list_chats(self, user_id: int) -> list[Chat]:
        """Chats the user participates in, newest first."""
        ...

    # Participants
    async def is_participant(self, chat_id: int, user_id: int) -> bool:
        """Check committed membership."""
        ...

    async def get_participant_ids(self, chat_id: int) -> list[int]:
        """User ids of a chat's participants."""
        ...

    async def get_participant_usernames(self, chat_id: int) -> list[str]:
        """Usernames of a chat's participants."""
        ...

    # Messages
    async def insert_message(
        self,
        chat_id: int,
        sender_id: int,
        content: str | None,
        files: list[NewFile],
        timestamp: datetime,
    ) -> Message:
        """Insert a message, its files and join rows atomically."""
        ...

    async def get_messages(self, chat_id: int) -> list[Message]:
        """All messages of a chat in ascending timestamp order, files resolved."""
        ...


class Storage:
    """SQLite storage implementation.

    One aiosqlite connection is shared by every caller. Each public method
    holds ``_lock`` for its whole span, so a transaction never interleaves
    with another caller's statements on that connection and readers never
    observe uncommitted rows. The lock is never held outside a store call.
    """

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)
        await self._conn.execute("PRAGMA foreign_keys = ON")

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()
        logger.info("Storage initialized at %s", self._db_path)

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    @asynccontextmanager
    async def _read(self) -> AsyncIterator[aiosqlite.Connection]:
        conn = self._require_conn()
        async with self._lock:
            try:
                yield conn
            except (aiosqlite.Error, OverflowError) as e:
                raise StorageError(f"Storage read failed: {e}") from e

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run the body as one transaction: commit on success, roll back otherwise."""
        conn = self._require_conn()
        async with self._lock:
            try:
                yield conn
                await conn.commit()
            except (aiosqlite.Error, OverflowError) as e:
                await conn.rollback()
                logger.error("Transaction rolled back: %s", e)
                raise StorageError(f"Storage transaction failed: {e}") from e
            except BaseException:
                await conn.rollback()
                raise

    # Users
    async def get_or_create_user(self, username: str) -> User:
        """Return the user with this username, creating it if needed."""
        async with self._transaction() as conn:
            await conn.execute(
                "INSERT OR IGNORE INTO users (username) VALUES (?)",
                (username,),
            )
            cursor = await conn.execute(
                """
                SELECT id, username, display_name, bio
                FROM users
                WHERE username = ?
                """,
                (username,),
            )
            row = await cursor.fetchone()

        return User(id=row[0], username=row[1], display_name=row[2], bio=row[3])

    async def get_user(self, user_id: int) -> User | None:
        """Get a user by ID."""
        async with self._read() as conn:
            cursor = await conn.execute(
                """
                SELECT id, username, display_name, bio
                FROM users
                WHERE id = ?
                """,
                (user_id,),
            )
            row = await cursor.fetchone()

        if not row:
            return None

        return User(id=row[0], username=row[1], display_name=row[2], bio=row[3])

    async def search_users(self, username: str | None = None) -> list[User]:
        """List users, optionally filtered by a username substring."""
        async with self._read() as conn:
            if username:
                cursor = await conn.execute(
                    """
                    SELECT id, username, display_name, bio
                    FROM users
                    WHERE username LIKE ?
                    ORDER BY username
                    """,
                    (f"%{username}%",),
                )
            else:
                cursor = await conn.execute(
                    """
                    SELECT id, username, display_name, bio
                    FROM users
                    ORDER BY username
                    """
                )
            rows = await cursor.fetchall()

        return [
            User(id=row[0], username=row[1], display_name=row[2], bio=row[3])
            for row in rows
        ]

    # Chats
    async def find_direct_chat(self, user_a: int, user_b: int) -> int | None:
        """Find the direct chat whose participants are exactly {user_a, user_b}."""
        async with self._read() as conn:
            cursor = await conn.execute(
                """
                SELECT c.id
                FROM chats c
                JOIN chat_participants cp1 ON c.id = cp1.chat_id
                JOIN chat_participants cp2 ON c.id = cp2.chat_id
                WHERE c.chat_type = 'direct'
                  AND cp1.user_id = ?
                  AND cp2.user_id = ?
                  AND (
                      SELECT COUNT(*) FROM chat_participants cp
                      WHERE cp.chat_id = c.id
                  ) = 2
                ORDER BY c.id
                LIMIT 1
                """,
                (user_a, user_b),
            )
            row = await cursor.fetchone()

        return row[0] if row else None

    async def create_direct_chat(
        self, user_a: int, user_b: int, created_at: datetime
    ) -> Chat:
        """Insert a direct chat and both participant rows in one transaction."""
        async with self._transaction() as conn:
            cursor = await conn.execute(
                "INSERT INTO chats (chat_type, created_at) VALUES (?, ?)",
                (ChatType.DIRECT.value, _to_db_ts(created_at)),
            )
            chat_id = cursor.lastrowid
            await conn.executemany(
                "INSERT INTO chat_participants (chat_id, user_id) VALUES (?, ?)",
                [(chat_id, user_a), (chat_id, user_b)],
            )

        return Chat(
            id=chat_id,
            chat_type=ChatType.DIRECT,
            created_at=created_at,
            participants=[user_a, user_b],
        )

    async def get_chat(self, chat_id: int) -> Chat | None:
        """Get a chat with its participant ids."""
        async with self._read() as conn:
            cursor = await conn.execute(
                """
                SELECT id, name, chat_type, created_at
                FROM chats
                WHERE id = ?
                """,
                (chat_id,),
            )
            row = await cursor.fetchone()
            if not row:
                return None
            participants = await self._participant_ids(conn, chat_id)

        return Chat(
            id=row[0],
            name=row[1],
            chat_type=ChatType(row[2]),
            created_at=_from_db_ts(row[3]),
            participants=participants,
        )

    async def list_chats(self, user_id: int) -> list[Chat]:
        """Chats the user participates in, newest first."""
        async with self._read() as conn:
            cursor = await conn.execute(
                """
                SELECT c.id, c.name, c.chat_type, c.created_at
                FROM chats c
                JOIN chat_participants cp ON c.id = cp.chat_id
                WHERE cp.user_id = ?
                ORDER BY c.created_at DESC, c.id DESC
                """,
                (user_id,),
            )
            rows = await cursor.fetchall()

            chats = []
            for row in rows:
                chats.append(
                    Chat(
                        id=row[0],
                        name=row[1],
                        chat_type=ChatType(row[2]),
                        created_at=_from_db_ts(row[3]),
                        participants=await self._participant_ids(conn, row[0]),
                    )
                )

        return chats

    # Participants
    async def is_participant(self, chat_id: int, user_id: int) -> bool:
        """Check committed membership."""
        async with self._read() as conn:
            cursor = await conn.execute(
                "SELECT 1 FROM chat_participants WHERE chat_id = ? AND user_id = ?",
                (chat_id, user_id),
            )
            row = await cursor.fetchone()

        return row is not None

    async def get_participant_ids(self, chat_id: int) -> list[int]:
        """User ids of a chat's participants."""
        async with self._read() as conn:
            return await self._participant_ids(conn, chat_id)

    async def get_participant_usernames(self, chat_id: int) -> list[str]:
        """Usernames of a chat's participants."""
        async with self._read() as conn:
            cursor = await conn.execute(
                """
                SELECT u.username
                FROM chat_participants cp
                JOIN users u ON cp.user_id = u.id
                WHERE cp.chat_id = ?
                ORDER BY u.id
                """,
                (chat_id,),
            )
            rows = await cursor.fetchall()

        return [row[0] for row in rows]

    async def _participant_ids(
        self, conn: aiosqlite.Connection, chat_id: int
    ) -> list[int]:
        cursor = await conn.execute(
            "SELECT user_id FROM chat_participants WHERE chat_id = ? ORDER BY user_id",
            (chat_id,),
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    # Messages
    async def insert_message(
        self,
        chat_id: int,
        sender_id: int,
        content: str | None,
        files: list[NewFile],
        timestamp: datetime,
    ) -> Message:
        """Insert a message, its files and join rows atomically."""
        async with self._transaction() as conn:
            cursor = await conn.execute(
                """
                INSERT INTO messages (chat_id, sender_id, content, timestamp)
                VALUES (?, ?, ?, ?)
                """,
                (chat_id, sender_id, content, _to_db_ts(timestamp)),
            )
            message_id = cursor.lastrowid

            assets = []
            for new_file in files:
                asset = await self._insert_file(conn, message_id, new_file, timestamp)
                assets.append(asset)

        return Message(
            id=message_id,
            chat_id=chat_id,
            sender_id=sender_id,
            content=content,
            timestamp=timestamp,
            files=assets,
        )

    async def _insert_file(
        self,
        conn: aiosqlite.Connection,
        message_id: int,
        new_file: NewFile,
        created_at: datetime,
    ) -> MediaAsset:
        cursor = await conn.execute(
            """
            INSERT INTO files (type, url, filename, mime_type, size_bytes, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                new_file.type.value,
                new_file.url,
                new_file.filename,
                new_file.mime_type,
                new_file.size_bytes,
                _to_db_ts(created_at),
            ),
        )
        file_id = cursor.lastrowid
        await conn.execute(
            "INSERT INTO message_files (message_id, file_id) VALUES (?, ?)",
            (message_id, file_id),
        )
        return MediaAsset(
            id=file_id,
            type=new_file.type,
            url=new_file.url,
            filename=new_file.filename,
            mime_type=new_file.mime_type,
            size_bytes=new_file.size_bytes,
            created_at=created_at,
        )

    async def get_messages(self, chat_id: int) -> list[Message]:
        """All messages of a chat in ascending timestamp order, files resolved."""
        async with self._read() as conn:
            cursor = await conn.execute(
                """
                SELECT id, chat_id, sender_id, content, timestamp
                FROM messages
                WHERE chat_id = ?
                ORDER BY timestamp ASC, id ASC
                """,
                (chat_id,),
            )
            rows = await cursor.fetchall()

            messages = []
            for row in rows:
                # Get files for this message
                file_cursor = await conn.execute(
                    """
                    SELECT f.id, f.type, f.url, f.filename, f.mime_type,
                           f.size_bytes, f.created_at
                    FROM files f
                    JOIN message_files mf ON f.id = mf.file_id
                    WHERE mf.message_id = ?
                    ORDER BY f.id
                    """,
                    (row[0],),
                )
                file_rows = await file_cursor.fetchall()

                files = [
                    MediaAsset(
                        id=f[0],
                        type=FileType(f[1]),
                        url=f[2],
                        filename=f[3],
                        mime_type=f[4],
                        size_bytes=f[5],
                        created_at=_from_db_ts(f[6]),
                    )
                    for f in file_rows
                ]

                messages.append(
                    Message(
                        id=row[0],
                        chat_id=row[1],
                        sender_id=row[2],
                        content=row[3],
                        timestamp=_from_db_ts(row[4]),
                        files=files,
                    )
                )

        return messages
