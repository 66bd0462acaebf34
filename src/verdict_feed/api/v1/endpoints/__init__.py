# src/verdict_feed/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .posts import router as posts_router
from .system import router as system_router
from .votes import router as votes_router

__all__ = [
    "posts_router",
    "system_router",
    "votes_router",
]
