"""Application settings and configuration.

This module defines all configuration options for the Verdict Feed post store
and the voting session engine. Settings are loaded from environment variables
with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Verdict Feed", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./verdict.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Voting engine constants
    visible_count: int = Field(default=4, alias="VISIBLE_COUNT")
    guest_vote_limit: int = Field(default=5, alias="GUEST_VOTE_LIMIT")
    downvote_threshold: int = Field(default=-5, alias="DOWNVOTE_THRESHOLD")
    streak_threshold: int = Field(default=10, alias="STREAK_THRESHOLD")

    # Cool-down imposed once a voter has judged every eligible post
    exhaustion_cooldown_seconds: int = Field(
        default=300,
        alias="EXHAUSTION_COOLDOWN_SECONDS",
    )

    # Server-side vote throttling (per voter, rolling window)
    vote_rate_limit_count: int = Field(default=60, alias="VOTE_RATE_LIMIT_COUNT")
    vote_rate_limit_window_seconds: int = Field(
        default=60,
        alias="VOTE_RATE_LIMIT_WINDOW_SECONDS",
    )
    vote_rate_limit_cooldown_seconds: int = Field(
        default=300,
        alias="VOTE_RATE_LIMIT_COOLDOWN_SECONDS",
    )

    # Post submission rules
    max_post_length: int = Field(default=80, alias="MAX_POST_LENGTH")

    # Post store client settings
    post_store_base_url: str = Field(
        default="http://localhost:8000/api/v1",
        alias="POST_STORE_BASE_URL",
    )
    post_store_timeout_seconds: float = Field(
        default=10.0,
        alias="POST_STORE_TIMEOUT_SECONDS",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def engine_constants(self) -> dict[str, int]:
        """Return the voting engine constants as a convenience dictionary."""
        return {
            "visible_count": self.visible_count,
            "guest_vote_limit": self.guest_vote_limit,
            "downvote_threshold": self.downvote_threshold,
            "streak_threshold": self.streak_threshold,
        }


settings = Settings()
