# src/verdict_feed/api/v1/endpoints/posts.py
"""Post-related endpoints for the Verdict Feed post store."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from verdict_feed.core.settings import settings
from verdict_feed.db.session import get_db
from verdict_feed.models import Post
from verdict_feed.repositories.post_repo import PostRepository
from verdict_feed.schemas.post import FeedPost, PostCreate
from verdict_feed.schemas.vote import Direction

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["posts"])

SessionDep = Annotated[Session, Depends(get_db)]


def get_post_repository(db: SessionDep) -> PostRepository:
    """Return a repository bound to the request's session."""
    return PostRepository(db)


PostRepositoryDep = Annotated[PostRepository, Depends(get_post_repository)]


def to_feed_post(post: Post) -> FeedPost:
    """Convert an ORM post into the wire snapshot consumed by voting sessions."""
    return FeedPost(
        id=post.id,
        title=post.title,
        vote_count=post.vote_count,
        author_id=post.author_id,
        created_at=post.created_at,
        voter_directions={
            voter_id: Direction(direction)
            for voter_id, direction in post.voter_directions.items()
        },
    )


@router.get("", response_model=list[FeedPost])
async def list_posts(repo: PostRepositoryDep) -> list[FeedPost]:
    """Return the full snapshot of posts.

    Args:
        repo: Post repository

    Returns:
        Every post with its aggregate count and voter record
    """
    return [to_feed_post(post) for post in repo.list_all()]


@router.get("/{post_id}", response_model=FeedPost)
async def get_post(post_id: str, repo: PostRepositoryDep) -> FeedPost:
    """Return a single post by id."""
    post = repo.get_by_id(post_id)
    if post is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Post not found",
        )
    return to_feed_post(post)


@router.post(
    "",
    response_model=FeedPost,
    status_code=status.HTTP_201_CREATED,
)
async def create_post(
    post_data: PostCreate,
    db: SessionDep,
    repo: PostRepositoryDep,
) -> FeedPost:
    """Put a new statement up for judgment.

    Each author may submit one post per UTC day.

    Args:
        post_data: Statement text and author id
        db: Database session
        repo: Post repository

    Returns:
        The created post

    Raises:
        HTTPException: If the text is blank or too long, or the author
            already posted today
    """
    content = post_data.content.strip()
    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Post content must not be blank",
        )
    if len(content) > settings.max_post_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Post content exceeds {settings.max_post_length} characters",
        )
    if repo.has_submitted_today(post_data.author_id):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Only one post per day is allowed",
        )

    post = repo.create(title=content, author_id=post_data.author_id)
    db.commit()
    db.refresh(post)
    logger.info("Post %s created by %s", post.id, post_data.author_id)
    return to_feed_post(post)
