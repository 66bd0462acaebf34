"""Data access helpers for working with posts."""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from verdict_feed.db.time import utcnow
from verdict_feed.models.post import Post
from verdict_feed.models.vote import PostVote
from verdict_feed.schemas.vote import Direction
from verdict_feed.services.vote_delta import calculate_vote_delta

__all__ = ["PostRepository"]


class PostRepository:
    """Thin wrapper around database access for post entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get_by_id(self, post_id: str) -> Post | None:
        """Return a post by identifier."""
        return self.session.execute(select(Post).where(Post.id == post_id)).scalars().first()

    def list_all(self) -> list[Post]:
        """Return every post, newest first."""
        result = self.session.execute(select(Post).order_by(Post.created_at.desc(), Post.id))
        return list(result.scalars())

    def create(self, *, title: str, author_id: str | None, post_id: str | None = None) -> Post:
        """Insert a new post and return the persisted ORM instance.

        A known author starts the post off with their own up vote.
        """
        post = Post(
            id=post_id or uuid.uuid4().hex,
            title=title,
            author_id=author_id,
            vote_count=0,
        )
        if author_id:
            post.votes.append(PostVote(voter_id=author_id, direction=Direction.UP.value))
            post.vote_count = 1
        self.session.add(post)
        self.session.flush()
        return post

    def has_submitted_since(self, author_id: str, since: datetime) -> bool:
        """Return True if ``author_id`` created a post at or after ``since``."""
        count = self.session.execute(
            select(func.count())
            .select_from(Post)
            .where(Post.author_id == author_id, Post.created_at >= since)
        ).scalar_one()
        return count > 0

    def has_submitted_today(self, author_id: str, now: datetime | None = None) -> bool:
        """Return True if ``author_id`` already posted during the current UTC day."""
        now = now or utcnow()
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return self.has_submitted_since(author_id, day_start)

    def apply_vote(self, post: Post, voter_id: str, direction: Direction) -> Post:
        """Record ``voter_id``'s judgment and adjust the aggregate count.

        Repeating the same direction is a no-op; switching moves the count by
        two.
        """
        existing = next((vote for vote in post.votes if vote.voter_id == voter_id), None)
        previous = Direction(existing.direction) if existing is not None else None
        delta = calculate_vote_delta(previous, direction)
        if delta == 0:
            return post

        if existing is None:
            post.votes.append(PostVote(voter_id=voter_id, direction=direction.value))
        else:
            existing.direction = direction.value
        post.vote_count += delta
        self.session.flush()
        return post
