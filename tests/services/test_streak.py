"""Tests for the same-direction vote streak."""

from verdict_feed.schemas.vote import Direction
from verdict_feed.services.streak import (
    STREAK_THRESHOLD,
    VoteStreak,
    reset_streak,
    update_vote_streak,
)


def _run(directions, streak=None):
    streak = streak or reset_streak()
    popups = []
    for direction in directions:
        update = update_vote_streak(streak, direction)
        streak = update.streak
        popups.append(update.trigger_popup)
    return streak, popups


def test_popup_fires_once_on_exact_threshold() -> None:
    streak, popups = _run([Direction.UP] * (STREAK_THRESHOLD + 2))
    assert streak.count == STREAK_THRESHOLD + 2
    assert popups.count(True) == 1
    assert popups[STREAK_THRESHOLD - 1] is True


def test_direction_change_restarts_at_one() -> None:
    update = update_vote_streak(VoteStreak(Direction.UP, 7), Direction.DOWN)
    assert update.streak == VoteStreak(Direction.DOWN, 1)
    assert update.trigger_popup is False


def test_first_downvote_from_reset_counts_one() -> None:
    streak, _ = _run([Direction.DOWN])
    assert streak == VoteStreak(Direction.DOWN, 1)


def test_interrupted_run_needs_full_threshold_again() -> None:
    directions = [Direction.UP] * 9 + [Direction.DOWN] + [Direction.UP] * 9
    _, popups = _run(directions)
    assert not any(popups)


def test_custom_threshold() -> None:
    update = update_vote_streak(VoteStreak(Direction.UP, 2), Direction.UP, threshold=3)
    assert update.trigger_popup is True
