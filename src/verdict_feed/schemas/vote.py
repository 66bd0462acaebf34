"""Vote-related Pydantic schemas."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Direction(str, Enum):
    """Direction of a single judgment."""

    UP = "up"
    DOWN = "down"


class VoteCreate(BaseModel):
    """Schema for casting a vote on a post."""

    direction: Direction = Field(..., description="'up' or 'down'")
    voter_id: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="Username or anonymous voter id",
    )

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VoteResult(BaseModel):
    """Authoritative post state returned after a vote has been applied."""

    id: str
    vote_count: int
    voter_directions: dict[str, Direction] = Field(default_factory=dict)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RateLimitDetail(BaseModel):
    """Body of the ``detail`` field on a 429 vote response."""

    message: str
    cooldown_seconds: int = Field(..., ge=0)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
