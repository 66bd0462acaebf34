"""Vote-count deltas shared by the engine and the post store."""

from __future__ import annotations

from verdict_feed.schemas.vote import Direction


def direction_value(direction: Direction) -> int:
    """Return +1 for an upvote and -1 for a downvote."""
    return 1 if direction == Direction.UP else -1


def calculate_vote_delta(previous: Direction | None, new: Direction) -> int:
    """Return the change in a post's count when a voter moves to ``new``.

    A fresh vote is worth one point, a flip undoes the previous vote as well
    (two points) and repeating the same direction changes nothing. Reverting
    an optimistic update subtracts the same value.
    """
    if previous == new:
        return 0
    if previous is None:
        return direction_value(new)
    return 2 * direction_value(new)
