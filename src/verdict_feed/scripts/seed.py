# src/verdict_feed/scripts/seed.py
"""Create the post tables and insert a starter set of posts."""
from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from verdict_feed.db.session import SessionLocal, create_tables
from verdict_feed.models import Post, PostVote


@dataclass(frozen=True)
class StarterPost:
    title: str
    author_id: str
    vote_count: int
    created_at: datetime


def _at(day: int, hour: int, minute: int) -> datetime:
    return datetime(2026, 3, day, hour, minute, tzinfo=UTC)


STARTER_POSTS: tuple[StarterPost, ...] = (
    StarterPost("Thou Shall Not Murder", "jake_from_maine", 25, _at(1, 6, 0)),
    StarterPost(
        "Thou shalt protect the vulnerable even when it costs thee",
        "jake_from_maine", 12, _at(1, 8, 20),
    ),
    StarterPost(
        "Thou shalt not wear socks with sandals unless thou art a dad",
        "quietstormm", 10, _at(1, 13, 45),
    ),
    StarterPost("Thou shalt listen more than thou speakest", "linds_22", 9, _at(2, 9, 10)),
    StarterPost(
        "Thou shalt not take the last slice without offering it first",
        "big_ted_talks", 8, _at(2, 15, 30),
    ),
    StarterPost("Thou shalt forgive but remember the lesson", "morningglory_k", 7, _at(3, 7, 55)),
    StarterPost(
        "Thou shalt not send voice messages longer than 30 seconds",
        "not_a_robot_07", 6, _at(3, 12, 15),
    ),
    StarterPost(
        "Thou shalt not profit from another's suffering",
        "danielle_rae", 5, _at(4, 10, 40),
    ),
    StarterPost(
        "Thou shalt return thy shopping cart to the corral",
        "the_real_steve", 5, _at(4, 17, 5),
    ),
    StarterPost(
        "Thou shalt teach thy children kindness before ambition",
        "pocketwatch_phil", 4, _at(5, 8, 0),
    ),
    StarterPost(
        "Thou shalt not recline thy airplane seat during a short flight",
        "sunsetsally", 3, _at(5, 14, 25),
    ),
)


def seed_posts(db: Session, *, reset: bool = False) -> int:
    """Insert the starter posts that are not present yet; returns how many were added."""
    if reset:
        db.execute(delete(PostVote))
        db.execute(delete(Post))

    added = 0
    for index, starter in enumerate(STARTER_POSTS, start=1):
        post_id = f"seed-{index:02d}"
        if db.get(Post, post_id) is not None:
            continue
        db.add(
            Post(
                id=post_id,
                title=starter.title,
                author_id=starter.author_id,
                vote_count=starter.vote_count,
                created_at=starter.created_at,
            )
        )
        added += 1
    db.commit()
    return added


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the post store with starter posts")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Delete every existing post and vote before seeding.",
    )
    args = parser.parse_args()

    try:
        create_tables()
        with SessionLocal() as db:
            added = seed_posts(db, reset=args.reset)
    except SQLAlchemyError as exc:
        print(f"[seed] ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
    print(f"[seed] inserted {added} posts")


if __name__ == "__main__":
    main()
