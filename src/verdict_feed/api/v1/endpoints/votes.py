# src/verdict_feed/api/v1/endpoints/votes.py
"""Vote submission endpoint for the Verdict Feed post store."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from verdict_feed.db.session import get_db
from verdict_feed.models import Post
from verdict_feed.repositories.post_repo import PostRepository
from verdict_feed.schemas.vote import Direction, RateLimitDetail, VoteCreate, VoteResult
from verdict_feed.services.rate_limit import VoteRateLimiter, get_vote_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["votes"])

SessionDep = Annotated[Session, Depends(get_db)]
RateLimiterDep = Annotated[VoteRateLimiter, Depends(get_vote_rate_limiter)]


def _rate_limited(cooldown_seconds: int) -> HTTPException:
    detail = RateLimitDetail(
        message="Too many votes, slow down",
        cooldown_seconds=cooldown_seconds,
    )
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=detail.model_dump(by_alias=True),
        headers={"Retry-After": str(cooldown_seconds)},
    )


def _get_post_or_404(repo: PostRepository, post_id: str) -> Post:
    post = repo.get_by_id(post_id)
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post


@router.post("/{post_id}/vote", response_model=VoteResult)
async def cast_vote(
    post_id: str,
    vote_data: VoteCreate,
    db: SessionDep,
    limiter: RateLimiterDep,
) -> VoteResult:
    """Record a voter's judgment on a post.

    Voting the same direction twice is idempotent; switching direction moves
    the count by two.

    Args:
        post_id: Post being judged
        vote_data: Direction and voter id
        db: Database session
        limiter: Per-voter vote throttle

    Returns:
        The authoritative count and voter record after the vote

    Raises:
        HTTPException: 404 for unknown posts, 429 with ``cooldownSeconds``
            when the voter is throttled
    """
    repo = PostRepository(db)
    post = _get_post_or_404(repo, post_id)

    remaining = limiter.acquire(vote_data.voter_id)
    if remaining is not None:
        logger.info(
            "Refused vote by %s on %s; %d seconds left",
            vote_data.voter_id,
            post_id,
            remaining,
        )
        raise _rate_limited(remaining)

    repo.apply_vote(post, vote_data.voter_id, vote_data.direction)
    db.commit()
    db.refresh(post)

    return VoteResult(
        id=post.id,
        vote_count=post.vote_count,
        voter_directions={
            voter_id: Direction(direction)
            for voter_id, direction in post.voter_directions.items()
        },
    )
