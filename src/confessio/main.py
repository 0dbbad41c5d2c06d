# src/confessio/main.py
"""Main entry point for the Confess.io application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from confessio.api.v1 import (
    confessions_router,
    matchmaker_router,
    search_router,
    session_router,
    system_router,
)
from confessio.core.settings import settings
from confessio.services.gemini import get_gemini_client
from confessio.services.registry import reset_client_registry

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Confess.io API",
    description="Anonymous confessions with AI-assisted moderation",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Inline media makes payloads large; compress them
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(confessions_router, prefix="/api/v1")
app.include_router(search_router, prefix="/api/v1")
app.include_router(session_router, prefix="/api/v1")
app.include_router(matchmaker_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    if not settings.gemini_enabled:
        logger.warning("GEMINI_API_KEY is not set; analysis will use the neutral fallback")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    # Releases every client's camera and realtime subscription.
    reset_client_registry()
    await get_gemini_client().close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "Confess.io API",
        "version": settings.app_version,
        "description": "Anonymous confessions with AI-assisted moderation",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("confessio.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
