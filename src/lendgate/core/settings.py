"""Application settings and configuration.

This module defines all configuration options for the Lendgate service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Lendgate", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    step_up_token_ttl_seconds: int = Field(default=300, alias="STEP_UP_TOKEN_TTL_SECONDS")

    # Database configuration
    database_url: str = Field(default="sqlite:///./lendgate.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    create_tables_on_startup: bool = Field(default=False, alias="CREATE_TABLES_ON_STARTUP")

    # Redis configuration for the optional rate-limit counter backend
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")

    # Rate limiting (attempts per window, per caller and action)
    rate_limit_backend: str = Field(default="database", alias="RATE_LIMIT_BACKEND")
    rate_limit_window_minutes: int = Field(default=60, alias="RATE_LIMIT_WINDOW_MINUTES")
    rate_limit_admin_create_user: int = Field(default=10, alias="RATE_LIMIT_ADMIN_CREATE_USER")
    rate_limit_admin_update_user: int = Field(default=20, alias="RATE_LIMIT_ADMIN_UPDATE_USER")
    rate_limit_admin_delete_user: int = Field(default=5, alias="RATE_LIMIT_ADMIN_DELETE_USER")
    rate_limit_admin_reset_password: int = Field(
        default=10,
        alias="RATE_LIMIT_ADMIN_RESET_PASSWORD",
    )
    rate_limit_admin_get_users: int = Field(default=100, alias="RATE_LIMIT_ADMIN_GET_USERS")
    rate_limit_audit_log: int = Field(default=100, alias="RATE_LIMIT_AUDIT_LOG")
    rate_limit_blockchain_hash: int = Field(default=50, alias="RATE_LIMIT_BLOCKCHAIN_HASH")
    rate_limit_scan_document: int = Field(default=30, alias="RATE_LIMIT_SCAN_DOCUMENT")
    rate_limit_fail_closed_actions: list[str] = Field(
        default_factory=list,
        alias="RATE_LIMIT_FAIL_CLOSED_ACTIONS",
    )

    # Geo/IP risk scoring
    geo_strict_mode: bool = Field(default=False, alias="GEO_STRICT_MODE")
    geo_fail_open: bool = Field(default=True, alias="GEO_FAIL_OPEN")
    geo_lookup_url: str = Field(default="https://ipapi.co/{ip}/json/", alias="GEO_LOOKUP_URL")
    geo_lookup_timeout_seconds: float = Field(default=5.0, alias="GEO_LOOKUP_TIMEOUT_SECONDS")

    # Document scanning
    virustotal_api_key: str | None = Field(default=None, alias="VIRUSTOTAL_API_KEY")
    virustotal_base_url: str = Field(
        default="https://www.virustotal.com/api/v3",
        alias="VIRUSTOTAL_BASE_URL",
    )
    virustotal_timeout_seconds: float = Field(default=10.0, alias="VIRUSTOTAL_TIMEOUT_SECONDS")
    scan_cache_hours: int = Field(default=24, alias="SCAN_CACHE_HOURS")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=False, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["authorization", "x-client-info", "apikey", "content-type"],
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
    def rate_limits(self) -> dict[str, int]:
        """Return the configured attempt budget for every rate-limited action."""
        return {
            "admin_create_user": self.rate_limit_admin_create_user,
            "admin_update_user": self.rate_limit_admin_update_user,
            "admin_delete_user": self.rate_limit_admin_delete_user,
            "admin_reset_password": self.rate_limit_admin_reset_password,
            "admin_get_users": self.rate_limit_admin_get_users,
            "audit_log": self.rate_limit_audit_log,
            "blockchain_hash": self.rate_limit_blockchain_hash,
            "scan_document": self.rate_limit_scan_document,
        }


settings = Settings()  # type: ignore[call-arg]
