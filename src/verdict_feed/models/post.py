# src/verdict_feed/models/post.py
"""SQLAlchemy models for posts."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from verdict_feed.db.session import Base
from verdict_feed.db.time import utcnow

if TYPE_CHECKING:
    from .vote import PostVote


class Post(Base):
    """A short statement put up for the crowd to judge.

    ``vote_count`` is the authoritative aggregate; the per-voter record lives
    in ``PostVote`` rows and is exposed through ``voter_directions``.
    """

    __tablename__ = "post"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    vote_count: Mapped[int] = mapped_column(default=0, nullable=False)
    # Free-form voter id of the author (username or anonymous id).
    author_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    votes: Mapped[list[PostVote]] = relationship(
        "PostVote",
        back_populates="post",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def voter_directions(self) -> dict[str, str]:
        """Return the server-side record of who voted which way."""
        return {vote.voter_id: vote.direction for vote in self.votes}
