from functools import lru_cache
from urllib.parse import urlparse

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "Tapcard Provisioning Engine"
    app_env: str = "development"  # development, testing, production
    debug: bool = False
    enable_openapi: bool = True  # Set to False in production

    # Security
    log_user_emails: bool = False  # Set to False in production for GDPR compliance
    allowed_app_url_domains: list[str] = ["localhost", "127.0.0.1"]  # Allowed domains for APP_URL
    # CSP for production (no unsafe-inline, no external CDN) - set to empty string to use default
    csp_production: str = "default-src 'self'; frame-ancestors 'none'"

    # Database
    database_url: str
    database_migrations_url: str | None = None
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # Shutdown
    shutdown_grace_period: int = 30

    # Auth (tokens are issued by the identity service, we only verify them)
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        if v == "change-this-to-a-secure-random-string":
            raise ValueError(
                "JWT_SECRET_KEY must be changed from default value. "
                "Generate a secure secret with: openssl rand -hex 32"
            )
        if len(v) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters")
        return v

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v: list[str]) -> list[str]:
        """Validate CORS origins - reject wildcards when credentials are used."""
        for origin in v:
            if origin == "*":
                raise ValueError(
                    "CORS wildcard '*' is not allowed when allow_credentials=True. "
                    "Specify explicit origins instead."
                )
        return v

    @field_validator("app_url", "public_base_url")
    @classmethod
    def validate_app_url(cls, v: str, info: ValidationInfo) -> str:
        """Validate public URLs are from allowed domain list to prevent SSRF in emails."""
        allowed = info.data.get("allowed_app_url_domains", ["localhost", "127.0.0.1"])
        parsed = urlparse(v)
        hostname = parsed.hostname or ""

        if not any(hostname == domain or hostname.endswith(f".{domain}") for domain in allowed):
            raise ValueError(
                f"URL domain '{hostname}' not in allowed list. "
                f"Add it to ALLOWED_APP_URL_DOMAINS or use: {allowed}"
            )
        return v.rstrip("/")

    # Temporal
    temporal_host: str = "localhost:7233"
    temporal_namespace: str = "default"
    temporal_task_queue: str = "tapcards.jobs"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]
    # Take the client address from X-Forwarded-For (behind a reverse proxy)
    trust_forwarded_for: bool = True

    # Metrics
    metrics_api_key: str | None = None  # If set, /metrics requires this key

    # Email (Resend)
    resend_api_key: str | None = None  # If not set, emails are logged but not sent
    email_from: str = "noreply@example.com"
    email_send_timeout_seconds: int = 10  # Timeout for email API calls
    app_url: str = "http://localhost:3000"  # Frontend URL for claim links
    public_base_url: str = "http://localhost:3000"  # Base URL for card redirects

    # Claim tokens
    claim_token_expire_days: int = 7
    claim_token_max_expire_days: int = 90
    verification_code_expire_minutes: int = 15
    verification_max_failed_attempts: int = 5
    claim_attempt_history_size: int = 50
    bulk_claim_max: int = 100

    # Card minting
    card_id_length: int = 8
    card_id_max_attempts: int = 10
    bulk_mint_max: int = 1000
    bulk_preview_size: int = 10

    # Default tenant quotas (-1 = unbounded)
    default_user_limit: int = 5
    default_card_limit: int = 10
    default_profile_limit: int = 10
    default_storage_limit: int = 100  # MB

    # Expiry sweep (Temporal cron workflow)
    claim_expiry_schedule: str | None = None  # Cron syntax, e.g., "*/15 * * * *"

    # Redis (optional - rate limit storage only)
    redis_url: str | None = None  # e.g., "redis://localhost:6379/0"

    # Rate limits for public claim and tap endpoints (slowapi syntax)
    claim_rate_limit: str = "20/minute"
    verify_code_rate_limit: str = "10/minute"
    tap_rate_limit: str = "120/minute"


@lru_cache
def get_settings() -> Settings:
    return Settings()
