"""Visibility rules deciding which posts may be shown or bulk-voted."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Final

from verdict_feed.schemas.post import FeedPost
from verdict_feed.schemas.vote import Direction

DOWNVOTE_THRESHOLD: Final[int] = -5


def is_above_threshold(post: FeedPost, threshold: int = DOWNVOTE_THRESHOLD) -> bool:
    """Return True if the post scores strictly above ``threshold``."""
    return post.vote_count > threshold


def filter_by_threshold(
    posts: Iterable[FeedPost],
    hide_low_score: bool,
    threshold: int = DOWNVOTE_THRESHOLD,
) -> list[FeedPost]:
    """Drop posts at or below ``threshold`` when low scores are hidden.

    The boundary is exclusive: a post sitting exactly on the threshold is
    hidden.
    """
    if not hide_low_score:
        return list(posts)
    return [post for post in posts if is_above_threshold(post, threshold)]


def bulk_vote_targets(
    posts: Iterable[FeedPost],
    local_votes: Mapping[str, Direction],
    voter_id: str | None,
    hide_low_score: bool,
    threshold: int = DOWNVOTE_THRESHOLD,
) -> list[FeedPost]:
    """Return the posts a bulk vote should touch.

    Only the local vote map is consulted: after a cooldown wipe every post is
    open for judgment again even though the server still remembers the old
    votes. The voter's own posts are never targeted.
    """
    candidates = [
        post
        for post in posts
        if post.id not in local_votes and (voter_id is None or post.author_id != voter_id)
    ]
    return filter_by_threshold(candidates, hide_low_score, threshold)
