"""Pydantic models for chatgate.yaml configuration."""

from typing import Literal

from pydantic import BaseModel, Field

from chatgate.llm.registry import ModelConfig


class ServerConfig(BaseModel):
    """API server configuration."""

    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
        description="Allowed CORS origins (use ['*'] for development only)",
    )


class AgentConfig(BaseModel):
    """Orchestration loop configuration."""

    max_steps: int = Field(
        default=20,
        description="Maximum generation steps per run",
        ge=1,
        le=100,
    )
    system_prompt: str = Field(
        default=(
            "You are a helpful assistant. You can call tools to look things up, "
            "do calculations, read web pages and run code. Use them when they help "
            "answer the user, and answer directly when they do not."
        ),
        description="System prompt prepended to every conversation",
    )
    backend_timeout: float = Field(
        default=120.0,
        description="Timeout in seconds for a single backend generation call",
        gt=0,
    )
    tool_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for a single tool execution",
        gt=0,
    )
    run_timeout: float = Field(
        default=300.0,
        description="Wall-clock ceiling in seconds for a whole run",
        gt=0,
    )
    temperature: float | None = Field(
        default=None,
        description="Sampling temperature (None = provider default)",
        ge=0.0,
        le=2.0,
    )
    max_tokens: int | None = Field(
        default=None,
        description="Maximum output tokens per generation step",
        ge=1,
    )
    save_partial: bool = Field(
        default=False,
        description="Persist partial transcripts when a run is cancelled",
    )


class ProvidersConfig(BaseModel):
    """Provider credential configuration."""

    api_keys: dict[str, str] = Field(
        default_factory=dict,
        description="Default API key per provider tag (falls back to environment variables)",
    )
    unknown_provider: Literal["reject", "fallback"] = Field(
        default="reject",
        description=(
            "What to do with registry entries naming an unknown provider: "
            "'reject' fails at load time, 'fallback' rebinds them to fallback_provider"
        ),
    )
    fallback_provider: str | None = Field(
        default=None,
        description="Provider tag used for unknown providers when unknown_provider='fallback'",
    )


class ToolsConfig(BaseModel):
    """Tool availability configuration."""

    time: bool = Field(default=True, description="Enable the current time tool")
    calculate: bool = Field(default=True, description="Enable the arithmetic tool")
    search: bool = Field(default=True, description="Enable web search")
    scrape: bool = Field(default=True, description="Enable web page text scraping")
    code_executor: bool = Field(default=False, description="Enable local code execution")
    send_email: bool = Field(default=True, description="Enable the (simulated) email tool")


class StorageConfig(BaseModel):
    """Conversation persistence configuration."""

    backend: Literal["memory", "sqlite"] = Field(
        default="memory",
        description="Conversation store backend",
    )
    path: str = Field(
        default="~/.chatgate/chatgate.db",
        description="SQLite database path (sqlite backend only)",
    )
    require_auth: bool = Field(
        default=False,
        description="Reject chat requests without a session user (401)",
    )
    persist_anonymous: bool = Field(
        default=False,
        description="Persist conversations of anonymous users",
    )
    user_header: str = Field(
        default="X-User-Id",
        description="Request header carrying the authenticated user id",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level for the chatgate package",
    )


class GatewayConfig(BaseModel):
    """Root configuration model."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    models: list[ModelConfig] = Field(
        default_factory=list,
        description="Additional registry entries (override built-ins with the same value)",
    )
    include_builtin_models: bool = Field(
        default=True,
        description="Include the built-in model catalog",
    )
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
