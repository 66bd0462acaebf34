"""Selection of the next post(s) to present to a voter.

Two presentation modes are supported:

- focus mode shows a single card and never offers the voter's own posts;
- grid mode shows ``VISIBLE_COUNT`` cards side by side.

Both walk the sorted collection in order and track which posts were already
offered during the current cycle (the "shown" set). When every unvoted post has
been shown the cycle starts over; when no unvoted post is left at all the
selector returns nothing, which is the exhaustion signal.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Final

from verdict_feed.schemas.post import FeedPost
from verdict_feed.schemas.vote import Direction

VISIBLE_COUNT: Final[int] = 4


class SelectionMode(str, Enum):
    """How posts are presented to the voter."""

    FOCUS = "focus"
    GRID = "grid"


class SortOrder(str, Enum):
    """Ordering applied to the collection before selection."""

    TOP = "top"
    NEW = "new"
    RANDOM = "random"


class AnimState(str, Enum):
    """Presentation state of a grid slot."""

    VISIBLE = "visible"
    VOTED = "voted"
    FADING_OUT = "fadingOut"
    FADING_IN = "fadingIn"


@dataclass(frozen=True)
class Slot:
    """One card position in grid mode."""

    post_id: str
    anim_state: AnimState = AnimState.VISIBLE


@dataclass(frozen=True)
class SwipeSelection:
    """Result of a focus-mode selection.

    ``should_reset_shown`` is True only when the pick relied on starting a new
    cycle; the caller clears its shown set exactly then.
    """

    next_post: FeedPost | None
    should_reset_shown: bool = False


@dataclass(frozen=True)
class InitialSelection:
    """Freshly computed selection for either mode."""

    slots: tuple[Slot, ...] = ()
    swipe_post_id: str | None = None


def sort_posts(
    posts: Iterable[FeedPost],
    order: SortOrder = SortOrder.TOP,
    *,
    seed: int | None = None,
) -> list[FeedPost]:
    """Return the posts in presentation order."""
    items = list(posts)
    if order is SortOrder.TOP:
        return sorted(items, key=lambda post: post.vote_count, reverse=True)
    if order is SortOrder.NEW:
        dated = [post for post in items if post.created_at is not None]
        undated = [post for post in items if post.created_at is None]
        dated.sort(key=lambda post: _timestamp(post.created_at), reverse=True)
        return dated + undated
    random.Random(seed).shuffle(items)
    return items


def _timestamp(value: datetime | None) -> float:
    if value is None:
        return 0.0
    if value.tzinfo is None:
        # Naive values come back from SQLite; they are stored as UTC.
        return value.replace(tzinfo=UTC).timestamp()
    return value.timestamp()


def _first(
    posts: Sequence[FeedPost],
    predicate: Callable[[FeedPost], bool],
) -> FeedPost | None:
    for post in posts:
        if predicate(post):
            return post
    return None


def next_unvoted_post(
    sorted_posts: Sequence[FeedPost],
    visible_ids: set[str] | frozenset[str],
    shown_ids: set[str] | frozenset[str],
    vote_map: Mapping[str, Direction],
) -> FeedPost | None:
    """Return the post that should fill a freed grid slot.

    Phase 1 looks for an unvoted post that is neither visible nor shown this
    cycle. Phase 2 ignores the shown set as long as any non-visible unvoted
    post remains; callers should clear their shown set when the returned post
    was already in it. ``None`` means every post has been judged.
    """
    def unvoted_hidden(post: FeedPost) -> bool:
        return post.id not in visible_ids and post.id not in vote_map

    candidate = _first(sorted_posts, lambda post: unvoted_hidden(post) and post.id not in shown_ids)
    if candidate is not None:
        return candidate
    return _first(sorted_posts, unvoted_hidden)


def next_swipe_post(
    sorted_posts: Sequence[FeedPost],
    current_post_id: str | None,
    shown_ids: set[str] | frozenset[str],
    vote_map: Mapping[str, Direction],
    voter_id: str | None,
) -> SwipeSelection:
    """Return the next card for focus mode.

    Excludes the card currently on screen and the voter's own posts in both
    phases. ``SwipeSelection(None, False)`` is returned only when no unvoted,
    non-own, non-current post is left.
    """
    def eligible(post: FeedPost) -> bool:
        return (
            post.id != current_post_id
            and post.id not in vote_map
            and (voter_id is None or post.author_id != voter_id)
        )

    candidate = _first(sorted_posts, lambda post: eligible(post) and post.id not in shown_ids)
    if candidate is not None:
        return SwipeSelection(candidate, should_reset_shown=False)

    candidate = _first(sorted_posts, eligible)
    if candidate is not None:
        return SwipeSelection(candidate, should_reset_shown=True)
    return SwipeSelection(None, should_reset_shown=False)


def initial_selection(
    sorted_posts: Sequence[FeedPost],
    vote_map: Mapping[str, Direction],
    voter_id: str | None,
    mode: SelectionMode,
    visible_count: int = VISIBLE_COUNT,
) -> InitialSelection:
    """Compute the selection shown when the feed is (re)opened.

    Focus mode picks the first unvoted post not authored by the voter. Grid
    mode prefers unvoted posts and tops up with voted ones so the grid stays
    full while any post exists; the voter's own posts are allowed there.
    """
    if mode is SelectionMode.FOCUS:
        first = _first(
            sorted_posts,
            lambda post: post.id not in vote_map
            and (voter_id is None or post.author_id != voter_id),
        )
        return InitialSelection(swipe_post_id=first.id if first is not None else None)

    unvoted = [post for post in sorted_posts if post.id not in vote_map]
    voted = [post for post in sorted_posts if post.id in vote_map]
    chosen = (unvoted + voted)[:visible_count]
    return InitialSelection(slots=tuple(Slot(post.id) for post in chosen))


def replace_voted_slot(
    slots: Sequence[Slot],
    post_id: str,
    next_post: FeedPost | None,
) -> tuple[Slot, ...]:
    """Swap the slot holding ``post_id`` for ``next_post``.

    The slot is dropped when there is nothing left to show, which is how the
    grid shrinks on exhaustion.
    """
    result: list[Slot] = []
    for slot in slots:
        if slot.post_id != post_id:
            result.append(slot)
        elif next_post is not None:
            result.append(Slot(next_post.id, AnimState.FADING_IN))
    return tuple(result)


def mark_slot_voted(slots: Sequence[Slot], post_id: str) -> tuple[Slot, ...]:
    """Flag the slot holding ``post_id`` as just voted."""
    return tuple(
        replace(slot, anim_state=AnimState.VOTED) if slot.post_id == post_id else slot
        for slot in slots
    )


def settle_slots(slots: Sequence[Slot]) -> tuple[Slot, ...]:
    """Return every slot to the resting ``visible`` state."""
    return tuple(replace(slot, anim_state=AnimState.VISIBLE) for slot in slots)
