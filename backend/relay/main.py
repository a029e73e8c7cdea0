"""Chat Relay Application.

This is the main entry point for the chat relay service. The relay binds
WebSocket connections to user identities, groups them into two-party
conversation rooms and relays messages and typing signals between them.

Modules:
    - chat: connection/room/history registries, event routing, WebSocket endpoint
    - debug: read-only listing and state dump endpoints
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from relay.chat.events import EventRouter
from relay.chat.router import router as chat_router
from relay.chat.state import RelayState
from relay.config import get_config
from relay.debug.router import router as debug_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in relay.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    logger.info(
        f"Relay running on ws://{config.server.host}:{config.server.port}/ws"
    )

    yield  # Application runs here

    # Shutdown
    state: RelayState = app.state.relay
    logger.info(
        "Application shutdown complete (%d users, %d rooms, %d messages discarded)",
        len(state.connections),
        len(state.rooms),
        state.history.total(),
    )


def create_app(state: Optional[RelayState] = None) -> FastAPI:
    """Build the FastAPI application around one relay state.

    Args:
        state: State to serve. A fresh one is built from config if omitted.
    """
    if state is None:
        state = RelayState(get_config().chat)

    app = FastAPI(
        title="Chat Relay",
        description="Real-time two-party chat relay",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.relay = state
    app.state.events = EventRouter(state)

    app.include_router(chat_router)
    app.include_router(debug_router)

    @app.get("/health")
    async def health() -> dict:
        """Health check endpoint.

        Returns:
            dict: Status object indicating the server is running.
        """
        return {"status": "ok"}

    return app


app = create_app()
