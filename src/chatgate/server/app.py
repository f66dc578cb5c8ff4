"""FastAPI application factory."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatgate import __version__
from chatgate.config.schema import GatewayConfig
from chatgate.gateway import ChatGateway
from chatgate.server.routes import create_router


def create_app(config: GatewayConfig, gateway: ChatGateway | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        config: Gateway configuration
        gateway: Pre-built gateway (built from config when omitted)

    Returns:
        Configured FastAPI app
    """
    logging.getLogger("chatgate").setLevel(config.logging.level)

    if gateway is None:
        gateway = ChatGateway.from_config(config)

    app = FastAPI(
        title="chatgate",
        description="Conversational AI gateway with a tool-calling agent loop",
        version=__version__,
    )
    app.state.gateway = gateway

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routes
    router = create_router(gateway)
    app.include_router(router)

    return app
