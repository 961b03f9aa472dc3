"""Application configuration using pydantic-settings.

All environment variables should be accessed through the settings object
rather than using os.getenv() directly. This ensures:
1. Type validation at startup
2. Centralized configuration
3. Documentation of available settings
4. Proper defaults
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Where operational entities come from: the remote REST backend or
    # the local SQL mirror of the hotel database
    entity_source: Literal["rest", "database"] = "rest"

    # Database - only used when entity_source == "database"
    database_url: str = "sqlite:///./data/hotel.db"
    database_echo: bool = False

    # Security
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 240  # 4 hours

    # CORS - comma-separated origins or "*" for development only
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    # ==========================================================================
    # Upstream REST backend
    # ==========================================================================
    backend_api_url: str = "http://localhost:8000/api/v1"
    backend_timeout_seconds: float = 10.0
    # Service account used by the notification poller
    backend_username: Optional[str] = None
    backend_password: Optional[str] = None

    backend_reservations_path: str = "/hotel/reservations/"
    backend_rooms_path: str = "/hotel/rooms/"
    backend_housekeeping_path: str = "/hotel/housekeeping-tasks/"
    backend_payments_path: str = "/billing/payments/"
    backend_login_path: str = "/api-token-auth/"  # relative to the API root
    backend_logout_path: str = "/auth/logout/"
    # Query parameter carrying the status filter, repeated once per value
    # (use e.g. "status__in" for backends that expect a comma list instead)
    backend_status_param: str = "status"
    # Paginated collections are followed through "next" up to this many pages
    backend_max_pages: int = 50

    # ==========================================================================
    # Notification policy (hours / days thresholds)
    # ==========================================================================
    notify_task_high_hours: int = 4
    notify_task_urgent_hours: int = 24
    notify_payment_high_days: int = 2
    notify_payment_urgent_days: int = 7
    notification_poll_interval_seconds: int = 300  # badge refresh, 5 minutes

    # ==========================================================================
    # Reporting
    # ==========================================================================
    recent_reservations_limit: int = 5
    report_default_days: int = 30
    report_max_days: int = 366
    currency_code: str = "IDR"
    currency_decimals: int = 0  # Rupiah is displayed without minor units

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        if v == "change-me-in-production":
            import warnings
            warnings.warn(
                "Using default SECRET_KEY is insecure! Set SECRET_KEY environment variable.",
                UserWarning,
                stacklevel=2,
            )
        return v

    @field_validator("backend_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate settings for production safety."""
        if not self.debug:
            if self.secret_key == "change-me-in-production":
                raise ValueError(
                    "FATAL: Cannot start in production mode with default SECRET_KEY. "
                    "Set a secure SECRET_KEY environment variable (minimum 32 characters)."
                )
            if len(self.secret_key) < 32:
                raise ValueError(
                    f"FATAL: SECRET_KEY must be at least 32 characters in production mode "
                    f"(current length: {len(self.secret_key)})."
                )

        if self.notify_task_high_hours > self.notify_task_urgent_hours:
            raise ValueError("notify_task_high_hours must not exceed notify_task_urgent_hours")
        if self.notify_payment_high_days > self.notify_payment_urgent_days:
            raise ValueError("notify_payment_high_days must not exceed notify_payment_urgent_days")

        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def backend_root_url(self) -> str:
        """Backend URL without the /api/v1 suffix, used for token auth."""
        return self.backend_api_url.replace("/api/v1", "")

    # Hotel-local timezone; "today" is evaluated here
    timezone: str = "Asia/Jakarta"

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_requests: int = 100  # requests per window
    rate_limit_window: int = 60  # window in seconds


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
