"""create post tables

Revision ID: 3c1f0a9d2b7e
Revises:
Create Date: 2026-10-16 09:12:41.518204

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c1f0a9d2b7e"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the post and post_vote tables."""
    op.create_table(
        "post",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("vote_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("author_id", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_post_author_id", "post", ["author_id"])

    op.create_table(
        "post_vote",
        sa.Column("post_id", sa.String(length=64), nullable=False),
        sa.Column("voter_id", sa.String(length=128), nullable=False),
        sa.Column("direction", sa.String(length=4), nullable=False),
        sa.CheckConstraint("direction IN ('up', 'down')", name="ck_post_vote_direction"),
        sa.ForeignKeyConstraint(["post_id"], ["post.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("post_id", "voter_id"),
    )
    op.create_index("ix_post_vote_post_id", "post_vote", ["post_id"])


def downgrade() -> None:
    """Drop the post tables."""
    op.drop_index("ix_post_vote_post_id", table_name="post_vote")
    op.drop_table("post_vote")
    op.drop_index("ix_post_author_id", table_name="post")
    op.drop_table("post")
