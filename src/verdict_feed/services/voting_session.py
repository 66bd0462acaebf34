"""Stateful host driving the voting engine for one voter.

The session is the only place that owns mutable state; everything it does is
expressed through the pure engine functions. A vote follows a two-phase
protocol: the optimistic change is applied and the selection advances before
the post store is contacted, then the authoritative answer is reconciled or
the change is reverted.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum

from verdict_feed.core.settings import Settings, settings
from verdict_feed.schemas.post import FeedPost
from verdict_feed.schemas.vote import Direction
from verdict_feed.services.cooldown import (
    CooldownPhase,
    CooldownState,
    apply_rate_limit,
    expire,
    is_expired,
    is_guest_at_limit,
    mark_exhausted,
    mark_initialized,
    remaining_seconds,
    should_trigger_exhaustion,
    start_cooldown,
)
from verdict_feed.services.eligibility import bulk_vote_targets, filter_by_threshold
from verdict_feed.services.identity import VoterIdentity
from verdict_feed.services.local_store import LocalStateStore
from verdict_feed.services.post_store import (
    PostStoreClient,
    PostStoreError,
    RateLimitedError,
    get_post_store_client,
)
from verdict_feed.services.queue_selector import (
    AnimState,
    SelectionMode,
    Slot,
    SortOrder,
    initial_selection,
    mark_slot_voted,
    next_swipe_post,
    next_unvoted_post,
    replace_voted_slot,
    settle_slots,
    sort_posts,
)
from verdict_feed.services.streak import VoteStreak, reset_streak, update_vote_streak
from verdict_feed.services.vote_ledger import (
    PendingVote,
    apply_optimistic,
    reconcile,
    record_local_vote,
    revert_pending,
    voted_count,
)

logger = logging.getLogger(__name__)


class VotingSessionError(RuntimeError):
    """Base exception for votes refused before anything was applied."""


class CooldownActiveError(VotingSessionError):
    """Raised when voting while a cool-down is running."""

    def __init__(self, remaining: int) -> None:
        super().__init__(f"Voting resumes in {remaining} seconds")
        self.remaining_seconds = remaining


class GuestLimitReachedError(VotingSessionError):
    """Raised when an anonymous voter has no free votes left."""


class UnknownPostError(VotingSessionError):
    """Raised when voting on a post missing from the loaded collection."""


class VoteStatus(str, Enum):
    """How the post store settled a vote."""

    CONFIRMED = "confirmed"
    REVERTED = "reverted"
    RATE_LIMITED = "rate_limited"


@dataclass(frozen=True)
class VoteOutcome:
    """Everything the UI needs to react to a single vote."""

    post_id: str
    direction: Direction
    delta: int
    status: VoteStatus
    trigger_popup: bool
    cooldown_started: bool


class VotingSession:
    """Voting state for the identity currently in front of the feed."""

    def __init__(
        self,
        client: PostStoreClient | None,
        store: LocalStateStore,
        identity: VoterIdentity,
        *,
        mode: SelectionMode = SelectionMode.FOCUS,
        sort_order: SortOrder = SortOrder.TOP,
        hide_low_score: bool = False,
        clock: Callable[[], float] = time.time,
        config: Settings | None = None,
    ) -> None:
        self.client = client if client is not None else get_post_store_client()
        self.store = store
        self.identity = identity
        self.mode = mode
        self.sort_order = sort_order
        self.hide_low_score = hide_low_score
        self.config = config or settings
        self._clock = clock
        self._sort_seed = random.randrange(2**32)

        self.posts: list[FeedPost] = []
        self.local_votes: dict[str, Direction] = store.load_votes(identity.voter_id)
        self.shown_ids: frozenset[str] = frozenset()
        self.current_post_id: str | None = None
        self.slots: tuple[Slot, ...] = ()
        self.streak: VoteStreak = reset_streak()
        self.cooldown = self._load_cooldown(identity)
        self.limit_prompt_showing = is_guest_at_limit(
            identity.username,
            store.guest_vote_count(),
            self.config.guest_vote_limit,
        )

    # --- Derived views ---------------------------------------------------------------
    @property
    def sorted_posts(self) -> list[FeedPost]:
        """Eligible posts in presentation order."""
        eligible = filter_by_threshold(
            self.posts,
            self.hide_low_score,
            self.config.downvote_threshold,
        )
        return sort_posts(eligible, self.sort_order, seed=self._sort_seed)

    @property
    def voted_count(self) -> int:
        return voted_count(self.posts, self.local_votes, self.identity.voter_id)

    @property
    def current_post(self) -> FeedPost | None:
        return self._find(self.current_post_id)

    @property
    def visible_posts(self) -> list[FeedPost]:
        """Posts currently on screen, in slot order for grid mode."""
        if self.mode is SelectionMode.FOCUS:
            post = self.current_post
            return [post] if post is not None else []
        return [post for slot in self.slots if (post := self._find(slot.post_id)) is not None]

    def remaining_cooldown(self) -> int:
        return remaining_seconds(self.cooldown, self._clock())

    def _find(self, post_id: str | None) -> FeedPost | None:
        if post_id is None:
            return None
        return next((post for post in self.posts if post.id == post_id), None)

    # --- Loading and selection -------------------------------------------------------
    async def load(self) -> None:
        """Fetch the post snapshot and compute the first selection."""
        self.posts = await self.client.fetch_posts()
        logger.debug("Loaded %d posts for %s", len(self.posts), self.identity.voter_id)
        if is_expired(self.cooldown, self._clock()):
            self.expire_cooldown()
        self.initialize_selection()

    async def refresh(self) -> None:
        """Re-fetch posts, keeping the selection unless it points at vanished posts."""
        self.posts = await self.client.fetch_posts()
        known = {post.id for post in self.posts}
        on_screen = (
            [self.current_post_id] if self.mode is SelectionMode.FOCUS
            else [slot.post_id for slot in self.slots]
        )
        if any(post_id is not None and post_id not in known for post_id in on_screen):
            self.initialize_selection()

    def initialize_selection(self) -> None:
        """(Re)compute the visible selection and arm the exhaustion check."""
        selection = initial_selection(
            self.sorted_posts,
            self.local_votes,
            self.identity.voter_id,
            self.mode,
            self.config.visible_count,
        )
        if self.mode is SelectionMode.FOCUS:
            self.current_post_id = selection.swipe_post_id
            if selection.swipe_post_id is not None:
                self.shown_ids = self.shown_ids | {selection.swipe_post_id}
        else:
            self.slots = selection.slots
            self.shown_ids = self.shown_ids | {slot.post_id for slot in selection.slots}
        self.cooldown = mark_initialized(self.cooldown)

    def _advance_after_vote(self, post_id: str) -> None:
        if self.mode is SelectionMode.FOCUS:
            if post_id != self.current_post_id:
                return
            selection = next_swipe_post(
                self.sorted_posts,
                self.current_post_id,
                self.shown_ids,
                self.local_votes,
                self.identity.voter_id,
            )
            shown = frozenset() if selection.should_reset_shown else self.shown_ids
            if selection.next_post is not None:
                shown = shown | {selection.next_post.id}
                self.current_post_id = selection.next_post.id
            else:
                self.current_post_id = None
            self.shown_ids = shown
            return

        # Earlier replacements have finished fading in by the next vote.
        self.slots = settle_slots(self.slots)
        visible = {slot.post_id for slot in self.slots}
        if post_id not in visible:
            return
        next_post = next_unvoted_post(self.sorted_posts, visible, self.shown_ids, self.local_votes)
        shown = self.shown_ids
        if next_post is not None:
            if next_post.id in shown:
                # The pick came from a fresh cycle.
                shown = frozenset()
            shown = shown | {next_post.id}
        self.shown_ids = shown
        self.slots = replace_voted_slot(mark_slot_voted(self.slots, post_id), post_id, next_post)

    def _restore_after_revert(self, post_id: str) -> None:
        """Put a reverted post back on screen if advancing left a gap for it."""
        if self.mode is SelectionMode.FOCUS:
            if self.current_post_id is None:
                self.initialize_selection()
            return

        if any(slot.post_id == post_id for slot in self.slots):
            return
        if len(self.slots) >= self.config.visible_count:
            return
        if all(post.id != post_id for post in self.sorted_posts):
            return
        self.slots = (*self.slots, Slot(post_id, AnimState.FADING_IN))
        self.shown_ids = self.shown_ids | {post_id}

    # --- Voting ----------------------------------------------------------------------
    def _guard_vote(self, post_id: str) -> None:
        self.tick()
        if self.cooldown.phase is CooldownPhase.COOLING:
            raise CooldownActiveError(self.remaining_cooldown())
        if is_guest_at_limit(
            self.identity.username,
            self.store.guest_vote_count(),
            self.config.guest_vote_limit,
        ):
            self.limit_prompt_showing = True
            raise GuestLimitReachedError("Log in to keep voting")
        if self._find(post_id) is None:
            raise UnknownPostError(f"Post {post_id} is not in the loaded collection")

    def _set_local_votes(self, votes: Mapping[str, Direction]) -> None:
        self.local_votes = dict(votes)
        self.store.save_votes(self.identity.voter_id, self.local_votes)

    def _revert(self, pending: PendingVote, voter_id: str) -> None:
        if voter_id == self.identity.voter_id:
            reverted = revert_pending(self.posts, self.local_votes, pending)
            self.posts = reverted.posts
            self._set_local_votes(reverted.votes)
            return
        # The identity changed while the vote was in flight.
        reverted = revert_pending(self.posts, self.store.load_votes(voter_id), pending)
        self.posts = reverted.posts
        self.store.save_votes(voter_id, reverted.votes)

    async def _submit(self, pending: PendingVote, voter_id: str) -> VoteStatus:
        try:
            result = await self.client.submit_vote(pending.post_id, pending.direction, voter_id)
        except RateLimitedError as exc:
            self._revert(pending, voter_id)
            seconds = exc.cooldown_seconds
            if seconds <= 0:
                seconds = self.config.vote_rate_limit_cooldown_seconds
            self.cooldown = apply_rate_limit(self.cooldown, self._clock(), seconds)
            if self.cooldown.end_time is not None:
                self.store.save_cooldown_end(self.identity.cooldown_key, self.cooldown.end_time)
            logger.warning(
                "Vote by %s on %s rate limited; cooling down for %d seconds",
                voter_id,
                pending.post_id,
                seconds,
            )
            return VoteStatus.RATE_LIMITED
        except PostStoreError as exc:
            self._revert(pending, voter_id)
            logger.warning("Vote by %s on %s reverted: %s", voter_id, pending.post_id, exc)
            return VoteStatus.REVERTED

        self.posts = reconcile(self.posts, result)
        return VoteStatus.CONFIRMED

    async def vote(self, post_id: str, direction: Direction) -> VoteOutcome:
        """Cast a vote, advance the selection and settle with the post store."""
        self._guard_vote(post_id)
        voter_id = self.identity.voter_id

        pending = PendingVote.create(post_id, direction, self.local_votes)
        self.posts = apply_optimistic(self.posts, post_id, pending.delta)
        self._set_local_votes(record_local_vote(self.local_votes, post_id, direction))

        update = update_vote_streak(self.streak, direction, self.config.streak_threshold)
        self.streak = update.streak

        if self.identity.is_guest:
            count = self.store.increment_guest_vote_count()
            self.limit_prompt_showing = is_guest_at_limit(
                self.identity.username,
                count,
                self.config.guest_vote_limit,
            )

        self._advance_after_vote(post_id)
        status = await self._submit(pending, voter_id)
        if status is not VoteStatus.CONFIRMED and voter_id == self.identity.voter_id:
            self._restore_after_revert(post_id)
        cooldown_started = self.check_exhaustion()

        return VoteOutcome(
            post_id=post_id,
            direction=direction,
            delta=pending.delta,
            status=status,
            trigger_popup=update.trigger_popup,
            cooldown_started=cooldown_started,
        )

    async def bulk_vote(self, direction: Direction) -> list[VoteOutcome]:
        """Vote ``direction`` on every eligible post not yet judged locally."""
        targets = bulk_vote_targets(
            self.posts,
            self.local_votes,
            self.identity.voter_id,
            self.hide_low_score,
            self.config.downvote_threshold,
        )
        outcomes: list[VoteOutcome] = []
        for post in targets:
            if self.cooldown.phase is CooldownPhase.COOLING:
                break
            try:
                outcomes.append(await self.vote(post.id, direction))
            except (CooldownActiveError, GuestLimitReachedError):
                break
        return outcomes

    # --- Cool-down -------------------------------------------------------------------
    def _load_cooldown(self, identity: VoterIdentity) -> CooldownState:
        end_time = self.store.load_cooldown_end(identity.cooldown_key)
        return CooldownState(end_time=end_time, triggered=end_time is not None)

    def check_exhaustion(self) -> bool:
        """Start a cool-down if the voter has run out of posts."""
        if not should_trigger_exhaustion(
            mode=self.mode,
            current_post_id=self.current_post_id,
            visible_slot_count=len(self.slots),
            initialized=self.cooldown.initialized,
            cooldown_end=self.cooldown.end_time,
            triggered=self.cooldown.triggered,
            post_count=len(self.sorted_posts),
            limit_prompt_showing=self.limit_prompt_showing,
        ):
            return False

        now = self._clock()
        self.cooldown = start_cooldown(
            mark_exhausted(self.cooldown),
            now,
            self.config.exhaustion_cooldown_seconds,
        )
        if self.cooldown.end_time is not None:
            self.store.save_cooldown_end(self.identity.cooldown_key, self.cooldown.end_time)
        logger.info(
            "Voter %s exhausted the feed; cooling down for %d seconds",
            self.identity.voter_id,
            self.config.exhaustion_cooldown_seconds,
        )
        return True

    def expire_cooldown(self) -> None:
        """End the cool-down and wipe per-cycle state so posts can be judged again."""
        self.cooldown = expire(self.cooldown)
        self.store.clear_cooldown(self.identity.cooldown_key)
        self.local_votes = {}
        self.store.clear_votes(self.identity.voter_id)
        self.shown_ids = frozenset()
        self.current_post_id = None
        self.slots = ()
        self.streak = reset_streak()
        logger.info("Cool-down expired for %s", self.identity.voter_id)

    def tick(self) -> bool:
        """Expire a finished cool-down and repopulate the selection.

        Returns True if a cool-down ended on this tick.
        """
        if not is_expired(self.cooldown, self._clock()):
            return False
        self.expire_cooldown()
        self.initialize_selection()
        return True

    # --- Identity --------------------------------------------------------------------
    def switch_identity(
        self,
        identity: VoterIdentity,
        *,
        carry_cooldown: bool | None = None,
    ) -> None:
        """Move the session to another identity (login or logout).

        A running cool-down follows the voter on logout so it cannot be
        dodged; on login it is only carried when ``carry_cooldown`` is True.
        """
        previous = self.identity
        if identity == previous:
            return

        carry = identity.is_guest if carry_cooldown is None else carry_cooldown
        if carry:
            self.store.carry_over_cooldown(previous.cooldown_key, identity.cooldown_key)

        self.identity = identity
        self.local_votes = self.store.load_votes(identity.voter_id)
        self.cooldown = self._load_cooldown(identity)
        self.limit_prompt_showing = is_guest_at_limit(
            identity.username,
            self.store.guest_vote_count(),
            self.config.guest_vote_limit,
        )
        self.shown_ids = frozenset()
        logger.info("Voter switched from %s to %s", previous.voter_id, identity.voter_id)
        self.initialize_selection()
