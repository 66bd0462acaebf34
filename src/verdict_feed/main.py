"""Main entry point for the Verdict Feed post store."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from verdict_feed.api.v1 import posts_router, system_router, votes_router
from verdict_feed.core.logging import configure_logging
from verdict_feed.core.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging(settings.log_level)
    logger.info("%s %s starting", settings.app_name, settings.app_version)
    yield


# Initialize FastAPI app
app = FastAPI(
    title="Verdict Feed API",
    description="Post store for rapid up/down judgment of short statements",
    version=settings.app_version,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(posts_router, prefix="/api/v1")
app.include_router(votes_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Post store for rapid up/down judgment of short statements",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("verdict_feed.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
