# src/verdict_feed/services/__init__.py
"""Voting engine and post store services for Verdict Feed."""

from .identity import VoterIdentity
from .local_store import LocalStateStore
from .post_store import PostStoreClient, PostStoreError, RateLimitedError
from .rate_limit import VoteRateLimiter
from .voting_session import VoteOutcome, VoteStatus, VotingSession

__all__ = [
    "LocalStateStore",
    "PostStoreClient",
    "PostStoreError",
    "RateLimitedError",
    "VoteOutcome",
    "VoteRateLimiter",
    "VoteStatus",
    "VoterIdentity",
    "VotingSession",
]
