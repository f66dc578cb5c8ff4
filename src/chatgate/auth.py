"""Identity collaborator: who is calling, and which provider keys they hold."""

import asyncio
from typing import Protocol

from starlette.requests import Request

from chatgate.memory.storage import ConversationStore


class IdentityProvider(Protocol):
    """Interface for identifying the current user."""

    def get_session_user(self, request: Request) -> str | None:
        """Return the id of the session user, or None for anonymous callers."""
        ...

    async def get_user_api_keys(self, user_id: str) -> dict[str, str]:
        """Return the user's provider keys keyed by provider tag."""
        ...


class HeaderIdentityProvider:
    """Trusts a user id header set by an upstream authenticating proxy."""

    def __init__(self, store: ConversationStore, header: str = "X-User-Id"):
        self.store = store
        self.header = header

    def get_session_user(self, request: Request) -> str | None:
        user_id = request.headers.get(self.header, "").strip()
        return user_id or None

    async def get_user_api_keys(self, user_id: str) -> dict[str, str]:
        return await asyncio.to_thread(self.store.get_user_api_keys, user_id)
