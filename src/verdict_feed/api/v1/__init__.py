# src/verdict_feed/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import posts_router, system_router, votes_router

__all__ = [
    "posts_router",
    "votes_router",
    "system_router",
]
