"""
FastAPI server for the school-records NLQ pipeline with SSE streaming.

This module handles application setup, lifespan management, and middleware configuration.
Route handlers are organized in the routers/ package.

Settings, the metadata bundles and the pipeline clients are created once
at startup and shared by every request through ``app.state``.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from api.routers import chat_router
from config.settings import get_settings
from dotenv import load_dotenv
from entities.metadata_store import MetadataStore
from entities.pipeline import create_pipeline_clients
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

# Configure logging - use force=True to prevent duplicate handlers
logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, force=True)

# Reduce noise from Azure SDK and other libraries
logging.getLogger("azure").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
# Reduce agent_framework verbosity (it logs all message content at INFO level)
logging.getLogger("agent_framework").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan handler.

    Loads the metadata bundles and builds the pipeline clients on startup.
    A malformed metadata bundle fails startup.
    """
    logger.info("School NLQ API starting")

    settings = get_settings()
    store = MetadataStore(settings.metadata_path)
    store.load()

    application.state.clients = create_pipeline_clients(settings, store=store)
    if not settings.sql_connection_string:
        logger.warning("SQL_CONNECTION_STRING is not set; data queries will fail to execute")

    yield

    application.state.clients = None
    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(title="School NLQ", lifespan=lifespan)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(chat_router)


@app.get("/health")
async def health_check() -> dict[str, object]:
    """Health check endpoint."""
    pipeline_ready = getattr(app.state, "clients", None) is not None
    return {"status": "healthy", "pipeline_ready": pipeline_ready}


if __name__ == "__main__":
    uvicorn.run("api.main:app", host="0.0.0.0", port=8000, reload=True)  # noqa: S104
