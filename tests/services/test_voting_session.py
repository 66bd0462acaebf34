"""Tests for the voting session host."""

from unittest.mock import AsyncMock, call, patch

import pytest

from tests.conftest import feed_post
from verdict_feed.core.settings import settings
from verdict_feed.schemas.vote import Direction, VoteResult
from verdict_feed.services.cooldown import CooldownPhase
from verdict_feed.services.identity import VoterIdentity
from verdict_feed.services.local_store import LocalStateStore
from verdict_feed.services.post_store import PostStoreClient, PostStoreError, RateLimitedError
from verdict_feed.services.queue_selector import AnimState, SelectionMode, Slot
from verdict_feed.services.voting_session import (
    CooldownActiveError,
    GuestLimitReachedError,
    UnknownPostError,
    VoteStatus,
    VotingSession,
)

UP = Direction.UP
DOWN = Direction.DOWN
ALICE = VoterIdentity(username="alice", anonymous_voter_id="guest_1")
GUEST = ALICE.logout()


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _echo_vote(post_id: str, direction: Direction, voter_id: str) -> VoteResult:
    return VoteResult(id=post_id, vote_count=0, voter_directions={voter_id: direction})


@pytest.fixture
def mock_client():
    client = AsyncMock(spec=PostStoreClient)
    client.submit_vote.side_effect = _echo_vote
    return client


@pytest.fixture
def store() -> LocalStateStore:
    return LocalStateStore({})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_session(mock_client, store, clock):
    async def _make(posts, identity=ALICE, **kwargs) -> VotingSession:
        mock_client.fetch_posts.return_value = posts
        session = VotingSession(mock_client, store, identity, clock=clock, **kwargs)
        await session.load()
        return session

    return _make


@pytest.mark.asyncio
async def test_load_selects_first_unvoted_post(make_session, mock_client) -> None:
    session = await make_session([feed_post("p1", 5), feed_post("p2", 3), feed_post("p3", 1)])

    mock_client.fetch_posts.assert_awaited_once()
    assert session.current_post_id == "p1"
    assert session.shown_ids == frozenset({"p1"})
    assert session.cooldown.initialized is True


@pytest.mark.asyncio
async def test_confirmed_vote_reconciles_and_advances(make_session, mock_client, store) -> None:
    session = await make_session([feed_post("p1", 5), feed_post("p2", 3), feed_post("p3", 1)])
    mock_client.submit_vote.side_effect = None
    mock_client.submit_vote.return_value = VoteResult(
        id="p1", vote_count=8, voter_directions={"alice": UP, "bob": UP},
    )

    outcome = await session.vote("p1", UP)

    mock_client.submit_vote.assert_awaited_once_with("p1", UP, "alice")
    assert outcome.status is VoteStatus.CONFIRMED
    assert outcome.delta == 1
    assert session.posts[0].vote_count == 8
    assert session.local_votes == {"p1": UP}
    assert store.load_votes("alice") == {"p1": UP}
    assert session.current_post_id == "p2"
    assert session.streak.count == 1


@pytest.mark.asyncio
async def test_failed_vote_is_reverted(make_session, mock_client, store) -> None:
    session = await make_session([feed_post("p1", 10), feed_post("p2", 3)])
    mock_client.submit_vote.side_effect = PostStoreError("boom")

    outcome = await session.vote("p1", DOWN)

    assert outcome.status is VoteStatus.REVERTED
    assert outcome.delta == -1
    assert session.posts[0].vote_count == 10
    assert "p1" not in session.local_votes
    assert store.load_votes("alice") == {}
    # The selection has already moved on and stays there.
    assert session.current_post_id == "p2"


@pytest.mark.asyncio
async def test_rate_limit_reverts_and_starts_cooldown(make_session, mock_client, store, clock) -> None:
    session = await make_session([feed_post("p1", 2), feed_post("p2", 1)])
    mock_client.submit_vote.side_effect = RateLimitedError(120)

    outcome = await session.vote("p1", UP)

    assert outcome.status is VoteStatus.RATE_LIMITED
    assert session.posts[0].vote_count == 2
    assert session.cooldown.phase is CooldownPhase.COOLING
    assert store.load_cooldown_end("cooldown_alice") == clock.now + 120

    with pytest.raises(CooldownActiveError) as exc_info:
        await session.vote("p2", UP)
    assert exc_info.value.remaining_seconds == 120


@pytest.mark.asyncio
async def test_exhaustion_starts_cooldown_and_expiry_resets(make_session, store, clock) -> None:
    session = await make_session([feed_post("p1", 2), feed_post("p2", 1)])

    first = await session.vote("p1", UP)
    second = await session.vote("p2", UP)

    assert first.cooldown_started is False
    assert second.cooldown_started is True
    assert session.current_post_id is None
    assert session.cooldown.phase is CooldownPhase.COOLING
    assert store.load_cooldown_end("cooldown_alice") == clock.now + settings.exhaustion_cooldown_seconds
    assert session.voted_count == 2

    clock.now += settings.exhaustion_cooldown_seconds
    assert session.tick() is True

    assert session.cooldown.phase is CooldownPhase.IDLE
    assert session.cooldown.initialized is True
    assert session.local_votes == {}
    assert store.load_votes("alice") == {}
    assert store.load_cooldown_end("cooldown_alice") is None
    assert session.streak.count == 0
    assert session.current_post_id == "p1"
    # The server still remembers the earlier votes.
    assert session.voted_count == 2
    assert session.check_exhaustion() is False


@pytest.mark.asyncio
async def test_tick_without_cooldown_does_nothing(make_session) -> None:
    session = await make_session([feed_post("p1")])
    assert session.tick() is False
    assert session.current_post_id == "p1"


@pytest.mark.asyncio
async def test_expired_persisted_cooldown_is_cleared_on_load(make_session, store) -> None:
    store.save_cooldown_end("cooldown_alice", 500.0)
    store.save_votes("alice", {"p1": UP})

    session = await make_session([feed_post("p1"), feed_post("p2")])

    assert session.cooldown.phase is CooldownPhase.IDLE
    assert store.load_cooldown_end("cooldown_alice") is None
    assert session.local_votes == {}
    assert session.current_post_id == "p1"


@pytest.mark.asyncio
async def test_guest_limit_blocks_sixth_vote(make_session, mock_client, store) -> None:
    posts = [feed_post(f"p{i}") for i in range(1, 8)]
    session = await make_session(posts, identity=GUEST)

    for _ in range(settings.guest_vote_limit):
        await session.vote(session.current_post_id, UP)

    assert store.guest_vote_count() == settings.guest_vote_limit
    assert session.limit_prompt_showing is True
    assert session.cooldown.phase is CooldownPhase.IDLE

    with pytest.raises(GuestLimitReachedError):
        await session.vote(session.current_post_id, UP)
    assert mock_client.submit_vote.await_count == settings.guest_vote_limit


@pytest.mark.asyncio
async def test_unknown_post_changes_nothing(make_session, mock_client) -> None:
    session = await make_session([feed_post("p1", 3)])

    with pytest.raises(UnknownPostError):
        await session.vote("missing", UP)

    mock_client.submit_vote.assert_not_awaited()
    assert session.local_votes == {}
    assert session.posts[0].vote_count == 3


@pytest.mark.asyncio
async def test_streak_popup(make_session) -> None:
    config = settings.model_copy(update={"streak_threshold": 3})
    posts = [feed_post(f"p{i}") for i in range(1, 6)]
    session = await make_session(posts, config=config)

    outcomes = [await session.vote(session.current_post_id, UP) for _ in range(3)]

    assert [outcome.trigger_popup for outcome in outcomes] == [False, False, True]


@pytest.mark.asyncio
async def test_grid_vote_replaces_slot(make_session) -> None:
    posts = [feed_post(f"p{i}") for i in range(1, 7)]
    session = await make_session(posts, mode=SelectionMode.GRID)
    assert [slot.post_id for slot in session.slots] == ["p1", "p2", "p3", "p4"]

    await session.vote("p2", DOWN)

    assert session.slots == (
        Slot("p1"),
        Slot("p5", AnimState.FADING_IN),
        Slot("p3"),
        Slot("p4"),
    )
    assert "p5" in session.shown_ids

    await session.vote("p3", UP)

    assert session.slots == (
        Slot("p1"),
        Slot("p5"),
        Slot("p6", AnimState.FADING_IN),
        Slot("p4"),
    )


@pytest.mark.asyncio
async def test_grid_shrinks_when_nothing_is_left(make_session) -> None:
    posts = [feed_post(f"p{i}") for i in range(1, 6)]
    session = await make_session(posts, mode=SelectionMode.GRID)

    await session.vote("p1", UP)
    await session.vote("p5", UP)

    assert [slot.post_id for slot in session.slots] == ["p2", "p3", "p4"]
    assert session.cooldown.phase is CooldownPhase.IDLE


@pytest.mark.asyncio
async def test_bulk_vote_targets_unjudged_posts(make_session, mock_client, store) -> None:
    store.save_votes("alice", {"p1": UP})
    posts = [feed_post("p1"), feed_post("p2", author_id="alice"), feed_post("p3"), feed_post("p4")]
    session = await make_session(posts)
    assert session.current_post_id == "p3"

    outcomes = await session.bulk_vote(UP)

    assert [outcome.post_id for outcome in outcomes] == ["p3", "p4"]
    assert mock_client.submit_vote.await_args_list == [
        call("p3", UP, "alice"),
        call("p4", UP, "alice"),
    ]
    assert outcomes[-1].cooldown_started is True


@pytest.mark.asyncio
async def test_logout_carries_running_cooldown(make_session, store) -> None:
    store.save_cooldown_end("cooldown_alice", 5000.0)
    session = await make_session([feed_post("p1")])
    assert session.remaining_cooldown() == 4000

    session.switch_identity(ALICE.logout())

    assert session.identity == GUEST
    assert store.load_cooldown_end("cooldown_guest_1") == 5000.0
    assert session.cooldown.phase is CooldownPhase.COOLING


@pytest.mark.asyncio
async def test_login_carries_cooldown_only_on_request(make_session, store) -> None:
    store.save_cooldown_end("cooldown_guest_1", 5000.0)
    session = await make_session([feed_post("p1")], identity=GUEST)

    session.switch_identity(GUEST.login("alice"))
    assert session.cooldown.phase is CooldownPhase.IDLE
    assert store.load_cooldown_end("cooldown_alice") is None

    session.switch_identity(GUEST)
    session.switch_identity(GUEST.login("alice"), carry_cooldown=True)
    assert store.load_cooldown_end("cooldown_alice") == 5000.0
    assert session.cooldown.phase is CooldownPhase.COOLING


@pytest.mark.asyncio
async def test_switch_identity_loads_that_voters_votes(make_session, store) -> None:
    store.save_votes("guest_1", {"p1": DOWN})
    session = await make_session([feed_post("p1"), feed_post("p2")])
    assert session.current_post_id == "p1"

    session.switch_identity(GUEST)

    assert session.local_votes == {"p1": DOWN}
    assert session.current_post_id == "p2"


@pytest.mark.asyncio
async def test_late_failure_after_identity_switch(make_session, mock_client, store) -> None:
    session = await make_session([feed_post("p1", 4), feed_post("p2")])

    async def switch_then_fail(post_id, direction, voter_id):
        session.switch_identity(GUEST)
        raise PostStoreError("timeout")

    mock_client.submit_vote.side_effect = switch_then_fail

    outcome = await session.vote("p1", UP)

    assert outcome.status is VoteStatus.REVERTED
    assert session.identity == GUEST
    assert store.load_votes("alice") == {}
    assert session.local_votes == {}
    assert session.posts[0].vote_count == 4


@pytest.mark.asyncio
async def test_refresh_reselects_when_current_post_vanishes(make_session, mock_client) -> None:
    session = await make_session([feed_post("p1"), feed_post("p2")])
    mock_client.fetch_posts.return_value = [feed_post("p2")]

    await session.refresh()

    assert session.current_post_id == "p2"


@pytest.mark.asyncio
@pytest.mark.parametrize("mode", [SelectionMode.FOCUS, SelectionMode.GRID])
async def test_failed_vote_on_last_post_does_not_exhaust(make_session, mock_client, mode) -> None:
    session = await make_session([feed_post("p1", 4)], mode=mode)
    mock_client.submit_vote.side_effect = PostStoreError("connection reset")

    outcome = await session.vote("p1", UP)

    assert outcome.status is VoteStatus.REVERTED
    assert outcome.cooldown_started is False
    assert session.cooldown.phase is CooldownPhase.IDLE
    assert session.cooldown.end_time is None
    assert [post.id for post in session.visible_posts] == ["p1"]

    # The post can be judged again once the store recovers.
    mock_client.submit_vote.side_effect = _echo_vote
    retry = await session.vote("p1", UP)
    assert retry.status is VoteStatus.CONFIRMED
    assert retry.cooldown_started is True


@pytest.mark.asyncio
async def test_failed_grid_vote_keeps_full_grid(make_session, mock_client) -> None:
    posts = [feed_post(f"p{i}") for i in range(1, 6)]
    session = await make_session(posts, mode=SelectionMode.GRID)
    mock_client.submit_vote.side_effect = PostStoreError("boom")

    await session.vote("p2", UP)

    # The replacement stays; the reverted post is not squeezed back in.
    assert [slot.post_id for slot in session.slots] == ["p1", "p5", "p3", "p4"]
    assert session.local_votes == {}


@pytest.mark.asyncio
async def test_rate_limit_without_hint_uses_configured_cooldown(
    make_session, mock_client, store, clock,
) -> None:
    session = await make_session([feed_post("p1"), feed_post("p2")])
    store.save_votes("alice", {"p9": DOWN})
    session.local_votes = {"p9": DOWN}
    mock_client.submit_vote.side_effect = RateLimitedError(0)

    outcome = await session.vote("p1", UP)

    expected_end = clock.now + settings.vote_rate_limit_cooldown_seconds
    assert outcome.status is VoteStatus.RATE_LIMITED
    assert session.cooldown.end_time == expected_end
    assert store.load_cooldown_end("cooldown_alice") == expected_end

    assert session.tick() is False
    assert session.cooldown.phase is CooldownPhase.COOLING
    assert session.local_votes == {"p9": DOWN}


def test_session_defaults_to_shared_post_store_client(store) -> None:
    shared = AsyncMock(spec=PostStoreClient)
    with patch(
        "verdict_feed.services.voting_session.get_post_store_client",
        return_value=shared,
    ):
        session = VotingSession(None, store, ALICE)

    assert session.client is shared
