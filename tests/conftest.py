# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Generator, Iterator
from datetime import UTC, datetime, timedelta
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from verdict_feed.core.settings import Settings, settings
from verdict_feed.db.session import Base
from verdict_feed.db.session import get_db as app_get_session
from verdict_feed.main import app as fastapi_app
from verdict_feed.models import Post
from verdict_feed.schemas.post import FeedPost
from verdict_feed.services.rate_limit import VoteRateLimiter, get_vote_rate_limiter

TEST_DB_URL = "sqlite://"

_POST_ID_COUNTER = count(1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    session.begin_nested()

    @event.listens_for(session, "after_transaction_end")
    def restart_savepoint(sess: Session, trans) -> None:  # pragma: no cover - SQLAlchemy internals
        if trans.nested and not getattr(trans._parent, "nested", False):
            session.begin_nested()

    try:
        yield session
    finally:
        event.remove(session, "after_transaction_end", restart_savepoint)
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture(autouse=True)
def reset_vote_rate_limiter() -> Iterator[None]:
    """Start every test with an empty process-wide vote throttle."""
    get_vote_rate_limiter().reset()
    yield
    get_vote_rate_limiter().reset()


@pytest.fixture()
def strict_rate_limiter(app: FastAPI) -> Iterator[VoteRateLimiter]:
    """Swap in a limiter that blocks after three votes."""
    limiter = VoteRateLimiter(max_votes=3, window_seconds=60, cooldown_seconds=120)
    app.dependency_overrides[get_vote_rate_limiter] = lambda: limiter
    try:
        yield limiter
    finally:
        app.dependency_overrides.pop(get_vote_rate_limiter, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Provide a Settings instance aligned with runtime configuration."""
    return settings.model_copy()


@pytest.fixture()
def make_post(db_session: Session) -> Callable[..., Post]:
    """Return a factory persisting posts with sensible defaults."""

    def _make_post(
        title: str = "Thou shalt test thy code",
        *,
        author_id: str | None = "author",
        vote_count: int = 0,
        created_at: datetime | None = None,
    ) -> Post:
        post = Post(
            id=f"post-{next(_POST_ID_COUNTER)}",
            title=title,
            author_id=author_id,
            vote_count=vote_count,
            created_at=created_at or datetime.now(UTC),
        )
        db_session.add(post)
        db_session.flush()
        db_session.refresh(post)
        return post

    return _make_post


@pytest.fixture()
def test_post(make_post: Callable[..., Post]) -> Post:
    """Create a baseline post for tests."""
    return make_post("Test post content", author_id="someone_else")


def feed_post(
    post_id: str,
    vote_count: int = 0,
    *,
    author_id: str | None = None,
    age_minutes: int = 0,
    voter_directions: dict | None = None,
) -> FeedPost:
    """Build an engine-side post snapshot for unit tests."""
    return FeedPost(
        id=post_id,
        title=f"Post {post_id}",
        vote_count=vote_count,
        author_id=author_id,
        created_at=datetime(2026, 3, 1, tzinfo=UTC) - timedelta(minutes=age_minutes),
        voter_directions=voter_directions or {},
    )
