# src/verdict_feed/models/vote.py
"""Models capturing voting interactions on posts."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from verdict_feed.db.session import Base

if TYPE_CHECKING:
    from .post import Post


class PostVote(Base):
    """Per-voter judgment on a post.

    Guests and authenticated users share this table; ``voter_id`` is the
    username or the anonymous voter id, whichever was active when voting.
    """

    __tablename__ = "post_vote"
    __table_args__ = (
        CheckConstraint("direction IN ('up', 'down')", name="ck_post_vote_direction"),
        Index("ix_post_vote_post_id", "post_id"),
    )

    post_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("post.id", ondelete="CASCADE"),
        primary_key=True,
    )

    # Composite primary key prevents duplicate votes from the same voter.
    voter_id: Mapped[str] = mapped_column(String(128), primary_key=True)

    direction: Mapped[str] = mapped_column(String(4), nullable=False)

    post: Mapped[Post] = relationship("Post", back_populates="votes")
