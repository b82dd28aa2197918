"""Application settings and configuration.

This module defines all configuration options for the NeuraPay access backend.
Settings are loaded from environment variables with sensible defaults.
"""

from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="NeuraPay", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database configuration
    database_url: str = Field(default="sqlite:///./neurapay.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Chain (Avalanche Fuji testnet by default)
    chain_rpc_url: str = Field(
        default="https://api.avax-test.network/ext/bc/C/rpc",
        alias="CHAIN_RPC_URL",
    )
    chain_id: int = Field(default=43113, alias="CHAIN_ID")
    chain_name: str = Field(default="Avalanche Fuji Testnet", alias="CHAIN_NAME")
    chain_currency_symbol: str = Field(default="AVAX", alias="CHAIN_CURRENCY_SYMBOL")
    chain_explorer_url: str = Field(
        default="https://testnet.snowtrace.io/",
        alias="CHAIN_EXPLORER_URL",
    )
    chain_http_timeout_seconds: float = Field(default=20.0, alias="CHAIN_HTTP_TIMEOUT_SECONDS")
    contract_address: str = Field(
        default="0x8b145549ae006dd1e8440cf50f8ee77ed6f94bd7",
        alias="CONTRACT_ADDRESS",
    )
    payment_confirmation_timeout_seconds: float = Field(
        default=120.0,
        alias="PAYMENT_CONFIRMATION_TIMEOUT_SECONDS",
    )
    payment_poll_interval_seconds: float = Field(
        default=2.0,
        alias="PAYMENT_POLL_INTERVAL_SECONDS",
    )

    # Access grants
    access_duration_seconds: int = Field(default=60 * 60, gt=0, alias="ACCESS_DURATION_SECONDS")
    countdown_interval_seconds: float = Field(default=1.0, gt=0, alias="COUNTDOWN_INTERVAL_SECONDS")
    leaderboard_limit: int = Field(default=10, gt=0, alias="LEADERBOARD_LIMIT")

    # Client side: where the orchestrator reaches the tracking backend
    tracker_base_url: str = Field(default="http://localhost:8000", alias="TRACKER_BASE_URL")
    tracker_http_timeout_seconds: float = Field(
        default=10.0,
        alias="TRACKER_HTTP_TIMEOUT_SECONDS",
    )

    # Client side: wallet adapters
    wallet_private_key: str | None = Field(default=None, alias="WALLET_PRIVATE_KEY")
    wallet_node_rpc_url: str | None = Field(default=None, alias="WALLET_NODE_RPC_URL")
    preferred_wallet: str | None = Field(default=None, alias="PREFERRED_WALLET")

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
        """Return a sync-compatible database URL for tooling such as Alembic."""
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
    def access_duration(self) -> timedelta:
        """Length of the window granted by one payment."""
        return timedelta(seconds=self.access_duration_seconds)


settings = Settings()
