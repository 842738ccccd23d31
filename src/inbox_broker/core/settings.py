"""Application settings and configuration.

This module defines all configuration options for the Inbox Broker service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Inbox Broker", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./inbox_broker.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    auto_create_tables: bool = Field(default=True, alias="AUTO_CREATE_TABLES")

    # Base URL used when handing endpoint URLs back to inbox owners
    public_base_url: str = Field(default="http://localhost:8000", alias="PUBLIC_BASE_URL")

    # Retrieval bounds
    query_default_limit: int = Field(default=20, alias="QUERY_DEFAULT_LIMIT")
    view_default_limit: int = Field(default=100, alias="VIEW_DEFAULT_LIMIT")
    query_max_limit: int = Field(default=500, alias="QUERY_MAX_LIMIT")
    list_inboxes_limit: int = Field(default=50, alias="LIST_INBOXES_LIMIT")

    # Live subscriptions
    subscribe_heartbeat_seconds: int = Field(default=15, alias="SUBSCRIBE_HEARTBEAT_SECONDS")
    subscribe_send_timeout_seconds: float = Field(
        default=30.0,
        alias="SUBSCRIBE_SEND_TIMEOUT_SECONDS",
    )
    subscriber_queue_size: int = Field(default=1000, alias="SUBSCRIBER_QUEUE_SIZE")

    # CORS configuration for dashboard access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "DELETE", "OPTIONS"],
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
        like Alembic migrations and the broker's own session factory.

        Returns:
            Database URL compatible with synchronous database drivers
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides.

        Returns:
            The active database URL (test database if in testing mode, otherwise production)
        """
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    def endpoint_url(self, inbox_id: str) -> str:
        """Return the public ingestion URL for an inbox."""
        return f"{self.public_base_url.rstrip('/')}/api/v1/inbox/{inbox_id}"

    def monitor_url(self, inbox_id: str) -> str:
        """Return the owner-facing live stream URL for an inbox."""
        return f"{self.public_base_url.rstrip('/')}/api/v1/inboxes/{inbox_id}/stream"


settings = Settings()
