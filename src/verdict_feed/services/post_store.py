"""HTTP client for the post store consumed by the voting session.

Only two calls matter to the engine: a full snapshot of posts and the vote
submission. A 429 answer is surfaced as :class:`RateLimitedError` carrying the
server's cool-down hint; everything else that is not a 2xx becomes a
:class:`PostStoreError`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError

from verdict_feed.core.settings import settings
from verdict_feed.schemas.post import FeedPost
from verdict_feed.schemas.vote import Direction, VoteCreate, VoteResult

logger = logging.getLogger(__name__)

HTTP_TOO_MANY_REQUESTS = 429


class PostStoreError(RuntimeError):
    """Base exception for failed post store calls."""


class RateLimitedError(PostStoreError):
    """Raised when the post store refuses a vote with a cool-down."""

    def __init__(self, cooldown_seconds: int, message: str = "Vote rate limit reached") -> None:
        super().__init__(message)
        self.cooldown_seconds = cooldown_seconds


@dataclass(frozen=True)
class PostStoreConfig:
    """Immutable configuration for the post store client."""

    base_url: str
    timeout_seconds: float


def load_post_store_config() -> PostStoreConfig:
    """Build configuration object from global settings."""
    return PostStoreConfig(
        base_url=settings.post_store_base_url,
        timeout_seconds=float(settings.post_store_timeout_seconds),
    )


def _cooldown_from_response(response: httpx.Response) -> int:
    """Extract the cool-down hint from a 429 response."""
    try:
        body: Any = response.json()
    except ValueError:
        body = None
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, dict) and "cooldownSeconds" in detail:
        try:
            return max(0, int(detail["cooldownSeconds"]))
        except (TypeError, ValueError):
            pass
    retry_after = response.headers.get("Retry-After")
    if retry_after is not None and retry_after.isdigit():
        return int(retry_after)
    return int(settings.vote_rate_limit_cooldown_seconds)


class PostStoreClient:
    """Async wrapper around the post store HTTP API."""

    def __init__(
        self,
        config: PostStoreConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_post_store_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = await self._ensure_client()
        try:
            return await client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise PostStoreError(f"Post store request failed: {exc}") from exc

    async def fetch_posts(self) -> list[FeedPost]:
        """Return the full post snapshot."""
        response = await self._request("GET", "/posts")
        if response.status_code != httpx.codes.OK:
            raise PostStoreError(f"Post store responded with {response.status_code}")
        try:
            return [FeedPost.model_validate(item) for item in response.json()]
        except (ValueError, ValidationError) as exc:
            raise PostStoreError(f"Malformed post snapshot: {exc}") from exc

    async def submit_vote(
        self,
        post_id: str,
        direction: Direction,
        voter_id: str,
    ) -> VoteResult:
        """Submit a vote and return the authoritative post state."""
        payload = VoteCreate(direction=direction, voter_id=voter_id).model_dump(
            mode="json",
            by_alias=True,
        )
        response = await self._request("POST", f"/posts/{post_id}/vote", json=payload)

        if response.status_code == HTTP_TOO_MANY_REQUESTS:
            cooldown = _cooldown_from_response(response)
            logger.info("Vote on %s rate limited for %d seconds", post_id, cooldown)
            raise RateLimitedError(cooldown)
        if not response.is_success:
            raise PostStoreError(
                f"Vote on {post_id} rejected with status {response.status_code}",
            )
        try:
            return VoteResult.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise PostStoreError(f"Malformed vote response: {exc}") from exc

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class _PostStoreClientSingleton:
    """Singleton wrapper for PostStoreClient."""

    _instance: PostStoreClient | None = None

    @classmethod
    def get_instance(cls) -> PostStoreClient:
        if cls._instance is None:
            cls._instance = PostStoreClient()
        return cls._instance


def get_post_store_client() -> PostStoreClient:
    """Return a singleton post store client instance."""
    return _PostStoreClientSingleton.get_instance()
