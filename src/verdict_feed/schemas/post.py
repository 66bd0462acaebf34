"""Post-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .vote import Direction


class PostCreate(BaseModel):
    """Schema for submitting a new post."""

    content: str = Field(..., min_length=1, description="Statement to put up for judgment")
    author_id: str = Field(
        "anonymous",
        min_length=1,
        max_length=128,
        description="Username or anonymous voter id of the author",
    )

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FeedPost(BaseModel):
    """Snapshot of a post as served by the post store and consumed by the engine.

    Instances are immutable; engine operations that change a post return a
    copy via ``model_copy`` and leave every other post untouched.
    """

    id: str
    title: str = ""
    vote_count: int = 0
    author_id: str | None = None
    created_at: datetime | None = None
    voter_directions: dict[str, Direction] = Field(default_factory=dict)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )
