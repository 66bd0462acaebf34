"""System endpoints for the Verdict Feed post store."""

from __future__ import annotations

import logging
import time
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from verdict_feed.core.settings import settings
from verdict_feed.db.session import get_db
from verdict_feed.models import Post, PostVote

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/system", tags=["system"])

SessionDep = Annotated[Session, Depends(get_db)]


@router.get("/config")
async def get_public_config() -> dict[str, object]:
    """Return the public runtime configuration voting clients rely on.

    Excludes connection strings; suitable for configuring a voting session.
    """
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "debug": settings.debug,
        },
        "engine": settings.engine_constants,
        "cooldowns": {
            "exhaustion_seconds": settings.exhaustion_cooldown_seconds,
            "rate_limit_seconds": settings.vote_rate_limit_cooldown_seconds,
        },
        "rate_limit": {
            "votes": settings.vote_rate_limit_count,
            "window_seconds": settings.vote_rate_limit_window_seconds,
        },
        "posts": {
            "max_length": settings.max_post_length,
        },
    }


@router.get("/health")
async def get_system_health(db: SessionDep) -> dict[str, object]:
    """Health check covering database connectivity and basic counters.

    Args:
        db: Database session

    Returns:
        Dictionary with overall status, component health and activity counts
    """
    posts = votes = 0
    try:
        db.execute(text("SELECT 1"))
        posts = db.execute(select(func.count()).select_from(Post)).scalar_one()
        votes = db.execute(select(func.count()).select_from(PostVote)).scalar_one()
        db_status = "healthy"
    except SQLAlchemyError as e:
        logger.warning("Database health check failed: %s", e)
        db_status = f"unhealthy: {e}"

    return {
        "status": "healthy" if db_status == "healthy" else "unhealthy",
        "timestamp": int(time.time()),
        "components": {
            "database": db_status,
        },
        "activity": {
            "posts": int(posts),
            "votes": int(votes),
        },
        "version": settings.app_version,
    }
