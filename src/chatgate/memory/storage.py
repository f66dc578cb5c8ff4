"""Conversation stores: an in-process store and a SQLite backend."""

import json
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from chatgate.conversation.schema import Conversation, Message
from chatgate.errors import PersistenceError

_MESSAGES = TypeAdapter(list[Message])


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ConversationStore(Protocol):
    """Storage collaborator used by the persistence hook and the HTTP surface.

    Implementations are synchronous; async callers go through
    ``asyncio.to_thread``.
    """

    def create_conversation(
        self,
        title: str,
        owner_id: str | None = None,
        conversation_id: str | None = None,
    ) -> Conversation:
        """Create an empty conversation and return it."""
        ...

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Load a conversation with its messages, or None if absent."""
        ...

    def append_messages(self, conversation_id: str, messages: list[Message]) -> None:
        """Append messages in order. Messages whose id is already stored are skipped."""
        ...

    def get_user_api_keys(self, user_id: str) -> dict[str, str]:
        """Per-user provider keys, keyed by provider tag."""
        ...

    def set_user_api_key(self, user_id: str, provider: str, api_key: str | None) -> None:
        """Store a user's key for a provider. An empty key removes it."""
        ...


class InMemoryConversationStore:
    """Process-local store. Contents are lost on restart."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._conversations: dict[str, Conversation] = {}
        self._keys: dict[str, dict[str, str]] = {}

    def create_conversation(
        self,
        title: str,
        owner_id: str | None = None,
        conversation_id: str | None = None,
    ) -> Conversation:
        conversation = Conversation(
            id=conversation_id or uuid.uuid4().hex,
            owner_id=owner_id,
            title=title,
        )
        with self._lock:
            if conversation.id in self._conversations:
                raise PersistenceError(f"Conversation '{conversation.id}' already exists")
            self._conversations[conversation.id] = conversation
        return conversation.model_copy(deep=True)

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        with self._lock:
            conversation = self._conversations.get(conversation_id)
            return conversation.model_copy(deep=True) if conversation else None

    def append_messages(self, conversation_id: str, messages: list[Message]) -> None:
        with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                raise PersistenceError(f"Conversation '{conversation_id}' not found")
            known = {m.id for m in conversation.messages}
            for message in messages:
                if message.id not in known:
                    conversation.messages.append(message.model_copy(deep=True))
                    known.add(message.id)
            conversation.updated_at = _now()

    def get_user_api_keys(self, user_id: str) -> dict[str, str]:
        with self._lock:
            return dict(self._keys.get(user_id, {}))

    def set_user_api_key(self, user_id: str, provider: str, api_key: str | None) -> None:
        with self._lock:
            keys = self._keys.setdefault(user_id, {})
            if api_key:
                keys[provider] = api_key
            else:
                keys.pop(provider, None)


class SQLiteConversationStore:
    """SQLite-backed store. Message parts are stored as JSON."""

    def __init__(self, db_path: str | Path):
        """Initialize storage with database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _initialize_db(self) -> None:
        """Create tables and indexes if they don't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS conversations (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT,
                    title TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL,
                    conversation_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    parts TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    UNIQUE (conversation_id, id),
                    FOREIGN KEY (conversation_id) REFERENCES conversations(id) ON DELETE CASCADE
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS user_api_keys (
                    user_id TEXT NOT NULL,
                    provider TEXT NOT NULL,
                    api_key TEXT NOT NULL,
                    PRIMARY KEY (user_id, provider)
                )
            """)

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_messages_conversation "
                "ON messages(conversation_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_conversations_owner ON conversations(owner_id)"
            )

            conn.commit()

    def create_conversation(
        self,
        title: str,
        owner_id: str | None = None,
        conversation_id: str | None = None,
    ) -> Conversation:
        """Create a new conversation.

        Args:
            title: Display title
            owner_id: Owning user, None for anonymous
            conversation_id: Client-chosen id (generated when omitted)

        Returns:
            Created conversation

        Raises:
            PersistenceError: If the id is already taken
        """
        conversation = Conversation(
            id=conversation_id or uuid.uuid4().hex,
            owner_id=owner_id,
            title=title,
        )

        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO conversations (id, owner_id, title, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                """,
                    (
                        conversation.id,
                        conversation.owner_id,
                        conversation.title,
                        conversation.created_at.isoformat(),
                        conversation.updated_at.isoformat(),
                    ),
                )
                conn.commit()
        except sqlite3.IntegrityError as e:
            raise PersistenceError(f"Conversation '{conversation.id}' already exists") from e

        return conversation

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Get a conversation and its messages by id.

        Args:
            conversation_id: Conversation identifier

        Returns:
            Conversation or None if not found
        """
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
            ).fetchone()
            if not row:
                return None

            rows = conn.execute(
                "SELECT * FROM messages WHERE conversation_id = ? ORDER BY seq ASC",
                (conversation_id,),
            ).fetchall()

        try:
            messages = _MESSAGES.validate_python(
                [
                    {
                        "id": r["id"],
                        "role": r["role"],
                        "createdAt": r["created_at"],
                        "parts": json.loads(r["parts"]),
                    }
                    for r in rows
                ]
            )
        except (ValidationError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Corrupt messages in conversation '{conversation_id}'") from e

        return Conversation(
            id=row["id"],
            owner_id=row["owner_id"],
            title=row["title"],
            messages=messages,
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def append_messages(self, conversation_id: str, messages: list[Message]) -> None:
        """Append messages to a conversation, skipping ids already stored.

        Raises:
            PersistenceError: If the conversation does not exist
        """
        with self._connect() as conn:
            exists = conn.execute(
                "SELECT 1 FROM conversations WHERE id = ?", (conversation_id,)
            ).fetchone()
            if not exists:
                raise PersistenceError(f"Conversation '{conversation_id}' not found")

            for message in messages:
                parts = [p.model_dump(mode="json", by_alias=True) for p in message.parts]
                conn.execute(
                    """
                    INSERT OR IGNORE INTO messages
                    (id, conversation_id, role, parts, created_at)
                    VALUES (?, ?, ?, ?, ?)
                """,
                    (
                        message.id,
                        conversation_id,
                        message.role,
                        json.dumps(parts),
                        message.created_at.isoformat(),
                    ),
                )

            conn.execute(
                "UPDATE conversations SET updated_at = ? WHERE id = ?",
                (_now().isoformat(), conversation_id),
            )
            conn.commit()

    def get_user_api_keys(self, user_id: str) -> dict[str, str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT provider, api_key FROM user_api_keys WHERE user_id = ?", (user_id,)
            ).fetchall()
        return {r["provider"]: r["api_key"] for r in rows}

    def set_user_api_key(self, user_id: str, provider: str, api_key: str | None) -> None:
        with self._connect() as conn:
            if api_key:
                conn.execute(
                    """
                    INSERT INTO user_api_keys (user_id, provider, api_key) VALUES (?, ?, ?)
                    ON CONFLICT(user_id, provider) DO UPDATE SET api_key = excluded.api_key
                """,
                    (user_id, provider, api_key),
                )
            else:
                conn.execute(
                    "DELETE FROM user_api_keys WHERE user_id = ? AND provider = ?",
                    (user_id, provider),
                )
            conn.commit()


def create_store(backend: str, path: str | Path | None = None) -> ConversationStore:
    """Build a store from the ``storage`` config section."""
    if backend == "sqlite":
        if path is None:
            raise ValueError("sqlite storage requires a path")
        return SQLiteConversationStore(path)
    return InMemoryConversationStore()
