"""API routes for the chatgate server."""

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from chatgate import __version__
from chatgate.errors import CredentialError, InputError, PersistenceError
from chatgate.gateway import ChatGateway
from chatgate.llm.providers import ProviderTag

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    models: int


class ModelInfo(BaseModel):
    """Public registry entry."""

    value: str
    label: str
    provider: str
    supports_tools: bool
    reasoning: bool
    fast: bool
    multimodal: bool


class CreateConversationRequest(BaseModel):
    """Request body for creating a conversation."""

    id: str | None = Field(default=None, min_length=1)
    title: str = Field(default="New Conversation", min_length=1)


class ConversationResponse(BaseModel):
    """A newly created conversation."""

    id: str
    title: str
    created_at: str


class ApiKeyUpdate(BaseModel):
    """Request body for setting (or clearing) a provider key."""

    provider: ProviderTag
    api_key: str | None = None


class ApiKeysResponse(BaseModel):
    """A user's provider keys, masked."""

    keys: dict[str, str]


def mask_key(key: str) -> str:
    """Show only the last four characters of a key."""
    if len(key) <= 8:
        return "*" * len(key)
    return f"{key[:3]}...{key[-4:]}"


def _error(status_code: int, message: str, details: Any = None) -> JSONResponse:
    content: dict[str, Any] = {"error": message}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def create_router(gateway: ChatGateway) -> APIRouter:
    """Create the API router around a configured gateway.

    Args:
        gateway: Request pipeline with its registry, resolver and store

    Returns:
        Configured API router
    """
    router = APIRouter()
    storage_config = gateway.config.storage

    def require_user(request: Request) -> str:
        user_id = gateway.identity.get_session_user(request)
        if user_id is None:
            raise HTTPException(status_code=401, detail="Unauthorized")
        return user_id

    @router.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            version=__version__,
            models=len(gateway.registry),
        )

    @router.get("/api/models", response_model=list[ModelInfo])
    async def list_models() -> list[ModelInfo]:
        """Public model listing for model pickers."""
        return [
            ModelInfo.model_validate(model.model_dump())
            for model in gateway.registry.list_models()
        ]

    @router.post("/api/chat")
    async def chat(request: Request) -> Any:
        """Chat endpoint - Server-Sent Events stream of one agent run.

        Client errors (malformed body, unknown model, missing credential)
        are answered with a JSON error before any event is streamed.
        """
        try:
            body = await request.json()
        except ValueError:
            return _error(
                400,
                "Invalid request body",
                [{"loc": ["body"], "msg": "Body is not valid JSON", "type": "json_invalid"}],
            )

        user_id = gateway.identity.get_session_user(request)
        if user_id is None and storage_config.require_auth:
            return _error(401, "Unauthorized")

        try:
            prepared = await gateway.prepare(body, user_id)
        except InputError as e:
            logger.info(f"Rejected chat request: {e.message}")
            return _error(400, e.message, e.details)
        except CredentialError as e:
            logger.info(f"Rejected chat request: {e}")
            return _error(400, str(e))
        except Exception:
            logger.exception("Unexpected error preparing chat request")
            return _error(500, "Internal server error")

        return EventSourceResponse(gateway.stream(prepared))

    @router.post("/api/conversations", status_code=201, response_model=ConversationResponse)
    async def create_conversation(
        body: CreateConversationRequest, request: Request
    ) -> ConversationResponse:
        """Create an empty conversation owned by the session user."""
        user_id = require_user(request)
        try:
            conversation = await asyncio.to_thread(
                gateway.store.create_conversation,
                body.title,
                user_id,
                body.id,
            )
        except PersistenceError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e

        return ConversationResponse(
            id=conversation.id,
            title=conversation.title,
            created_at=conversation.created_at.isoformat(),
        )

    @router.get("/api/settings/keys", response_model=ApiKeysResponse)
    async def get_api_keys(request: Request) -> ApiKeysResponse:
        """The session user's provider keys, masked."""
        user_id = require_user(request)
        keys = await gateway.identity.get_user_api_keys(user_id)
        return ApiKeysResponse(keys={provider: mask_key(key) for provider, key in keys.items()})

    @router.post("/api/settings/keys", response_model=ApiKeysResponse)
    async def set_api_key(body: ApiKeyUpdate, request: Request) -> ApiKeysResponse:
        """Set or clear one provider key for the session user."""
        user_id = require_user(request)
        api_key = (body.api_key or "").strip() or None
        await asyncio.to_thread(
            gateway.store.set_user_api_key, user_id, body.provider.value, api_key
        )
        logger.info(
            f"User {user_id} {'set' if api_key else 'cleared'} key for {body.provider.value}"
        )
        keys = await gateway.identity.get_user_api_keys(user_id)
        return ApiKeysResponse(keys={provider: mask_key(key) for provider, key in keys.items()})

    return router
