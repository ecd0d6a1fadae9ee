"""Lost & Found Chat Backend Application.

This is the main entry point for the realtime chat service of the Lost &
Found app. Users who report lost or found items talk to each other in
one-to-one chats.

Modules:
    - chat: WebSocket gateway, message store, chat directory, inbox and feed
    - storage: attachment storage (local directory or S3)
    - users: read-only user profile lookups
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lostfound.chat.router import router as chat_router
from lostfound.chat.services import build_services, get_services, set_services
from lostfound.config import get_config
from lostfound.storage.router import router as storage_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence verbose third-party loggers.
# botocore.auth logs the full SigV4 canonical request, including the
# session token. urllib3/httpx/httpcore log every connection.
for _noisy in (
    "botocore",
    "boto3",
    "urllib3",
    "urllib3.connectionpool",
    "httpx",
    "httpcore",
    "httpcore.http11",
    "httpcore.connection",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    # `logging.level: "debug"` in lostfound.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    # Tests install their own services before the app starts.
    owns_services = get_services() is None
    if owns_services:
        set_services(build_services(config))
    logger.info(
        f"Chat server running on http://{config.server.host}:{config.server.port}"
    )

    yield  # Application runs here

    # Shutdown
    if owns_services:
        services = get_services()
        if services is not None:
            services.db.close()
        set_services(None)
    logger.info("Application shutdown complete")


# Create FastAPI application with metadata
app = FastAPI(
    title="Lost & Found Chat API",
    description="Realtime chat backend for the Lost & Found app",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().server.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register all routers
app.include_router(chat_router)
app.include_router(storage_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    return {"status": "ok"}
