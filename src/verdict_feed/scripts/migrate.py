# src/verdict_feed/scripts/migrate.py
"""Upgrade the configured database to the latest Alembic revision."""
from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config

from verdict_feed.core.settings import settings

MIGRATIONS_DIR = Path(__file__).resolve().parents[3] / "migrations"


def build_config(url: str | None = None) -> Config:
    """Return an Alembic config pointing at the project's migrations."""
    cfg = Config(str(MIGRATIONS_DIR / "alembic.ini"))
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    cfg.set_main_option("sqlalchemy.url", url or settings.database_url_sync)
    return cfg


def run_upgrade_head(url: str | None = None) -> None:
    command.upgrade(build_config(url), "head")


if __name__ == "__main__":
    run_upgrade_head()
