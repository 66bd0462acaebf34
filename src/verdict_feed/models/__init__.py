# src/verdict_feed/models/__init__.py
"""SQLAlchemy models for the Verdict Feed post store."""

from .post import Post
from .vote import PostVote

__all__ = [
    "Post",
    "PostVote",
]
