"""Bookkeeping for optimistic votes and their reconciliation with the server.

Three sources describe what a voter has judged: the server's per-post
``voter_directions``, the voter's local vote map and the optimistic change that
is still in flight. Every function here returns new collections so that
earlier references to the previous state stay intact.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from verdict_feed.schemas.post import FeedPost
from verdict_feed.schemas.vote import Direction, VoteResult
from verdict_feed.services.vote_delta import calculate_vote_delta


@dataclass(frozen=True)
class PendingVote:
    """Optimistic vote waiting for the post store to confirm it."""

    post_id: str
    direction: Direction
    previous: Direction | None
    delta: int

    @classmethod
    def create(
        cls,
        post_id: str,
        direction: Direction,
        local_votes: Mapping[str, Direction],
    ) -> PendingVote:
        """Build the pending record for a vote against the current local map."""
        previous = local_votes.get(post_id)
        return cls(
            post_id=post_id,
            direction=direction,
            previous=previous,
            delta=calculate_vote_delta(previous, direction),
        )


@dataclass(frozen=True)
class RevertedVoteState:
    """Post collection and local vote map after undoing an optimistic vote."""

    posts: list[FeedPost]
    votes: dict[str, Direction]


def _adjust_count(posts: Sequence[FeedPost], post_id: str, delta: int) -> list[FeedPost]:
    return [
        post.model_copy(update={"vote_count": post.vote_count + delta})
        if post.id == post_id
        else post
        for post in posts
    ]


def apply_optimistic(posts: Sequence[FeedPost], post_id: str, delta: int) -> list[FeedPost]:
    """Add ``delta`` to the target post; every other post is passed through as is."""
    return _adjust_count(posts, post_id, delta)


def record_local_vote(
    local_votes: Mapping[str, Direction],
    post_id: str,
    direction: Direction,
) -> dict[str, Direction]:
    """Return a copy of the local vote map with ``post_id`` set to ``direction``."""
    updated = dict(local_votes)
    updated[post_id] = direction
    return updated


def revert_vote(
    posts: Sequence[FeedPost],
    post_id: str,
    delta: int,
    local_votes: Mapping[str, Direction],
    previous: Direction | None,
) -> RevertedVoteState:
    """Undo an optimistic vote after the submission failed.

    The post is located by id in the full collection, so the revert is safe
    even when the voter has already moved on to another card. The local map
    gets ``previous`` back, or loses the entry when there was none.
    """
    updated_votes = dict(local_votes)
    if previous is not None:
        updated_votes[post_id] = previous
    else:
        updated_votes.pop(post_id, None)
    return RevertedVoteState(posts=_adjust_count(posts, post_id, -delta), votes=updated_votes)


def revert_pending(
    posts: Sequence[FeedPost],
    local_votes: Mapping[str, Direction],
    pending: PendingVote,
) -> RevertedVoteState:
    """Shortcut for :func:`revert_vote` driven by a :class:`PendingVote`."""
    return revert_vote(posts, pending.post_id, pending.delta, local_votes, pending.previous)


def reconcile(posts: Sequence[FeedPost], result: VoteResult) -> list[FeedPost]:
    """Replace the voted post's count and voter record with the server's answer."""
    return [
        post.model_copy(
            update={
                "vote_count": result.vote_count,
                "voter_directions": dict(result.voter_directions),
            }
        )
        if post.id == result.id
        else post
        for post in posts
    ]


def has_judged(post: FeedPost, local_votes: Mapping[str, Direction], voter_id: str) -> bool:
    """Return True if either the server or the local cache knows of a vote."""
    return voter_id in post.voter_directions or post.id in local_votes


def voted_count(
    posts: Sequence[FeedPost],
    local_votes: Mapping[str, Direction],
    voter_id: str,
) -> int:
    """Count posts judged by ``voter_id``, each post at most once.

    The local cache is wiped on cooldown expiry while the server keeps its
    record, so both sources are consulted.
    """
    return sum(1 for post in posts if has_judged(post, local_votes, voter_id))
