"""Write a finished run's transcript to the conversation store."""

import asyncio
import logging

from chatgate.agent.events import RunResult
from chatgate.conversation.schema import Message
from chatgate.errors import PersistenceError
from chatgate.memory.storage import ConversationStore

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Conversation"
_TITLE_LENGTH = 80


def derive_title(messages: list[Message]) -> str:
    """Title from the first user text, truncated."""
    for message in messages:
        if message.role == "user":
            text = " ".join(message.text.split())
            if text:
                if len(text) > _TITLE_LENGTH:
                    return text[: _TITLE_LENGTH - 3].rstrip() + "..."
                return text
    return DEFAULT_TITLE


def _persist(
    store: ConversationStore,
    conversation_id: str,
    owner_id: str | None,
    incoming: list[Message],
    generated: list[Message],
    title: str | None,
) -> int:
    conversation = store.get_conversation(conversation_id)
    if conversation is None:
        conversation = store.create_conversation(
            title=title or derive_title(incoming),
            owner_id=owner_id,
            conversation_id=conversation_id,
        )
    elif conversation.owner_id != owner_id:
        raise PersistenceError(f"Conversation '{conversation_id}' belongs to another user")

    known = {m.id for m in conversation.messages}
    new_messages = [m for m in incoming if m.id not in known]
    new_messages.extend(generated)
    store.append_messages(conversation_id, new_messages)
    return len(new_messages)


async def persist_run(
    store: ConversationStore,
    conversation_id: str,
    owner_id: str | None,
    incoming: list[Message],
    result: RunResult,
    title: str | None = None,
) -> bool:
    """Persist one run's incoming and generated messages.

    Creates the conversation if it does not exist yet. Failures are logged
    and reported through the return value; they never raise.

    Args:
        store: Conversation store
        conversation_id: Conversation the run belongs to
        owner_id: Session user, None for anonymous
        incoming: Messages the client sent
        result: Terminal result of the run
        title: Title for a newly created conversation

    Returns:
        True if the transcript was written
    """
    try:
        count = await asyncio.to_thread(
            _persist, store, conversation_id, owner_id, incoming, result.messages, title
        )
    except PersistenceError as e:
        logger.warning(f"Failed to persist conversation {conversation_id}: {e}")
        return False
    except Exception as e:
        logger.warning(
            f"Failed to persist conversation {conversation_id}: {type(e).__name__}: {e}"
        )
        return False

    logger.debug(f"Persisted {count} message(s) to conversation {conversation_id}")
    return True
