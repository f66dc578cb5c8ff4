"""Conversation persistence.

Stores hold conversations and per-user provider keys; the hook writes a
run's transcript after its stream has finished.
"""

from chatgate.memory.hook import derive_title, persist_run
from chatgate.memory.storage import (
    ConversationStore,
    InMemoryConversationStore,
    SQLiteConversationStore,
    create_store,
)

__all__ = [
    "ConversationStore",
    "InMemoryConversationStore",
    "SQLiteConversationStore",
    "create_store",
    "derive_title",
    "persist_run",
]
