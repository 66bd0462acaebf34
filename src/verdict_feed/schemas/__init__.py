# src/verdict_feed/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
The same ``FeedPost`` model is the post value object used by the voting engine.
"""

from .post import FeedPost, PostCreate
from .vote import Direction, RateLimitDetail, VoteCreate, VoteResult

__all__ = [
    "Direction",
    "FeedPost", "PostCreate",
    "RateLimitDetail", "VoteCreate", "VoteResult",
]
