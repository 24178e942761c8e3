"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.03.00"

    # Database
    DATABASE_URL: str = "sqlite:///./assetdesk.db"

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 8

    # First user with this email (or the first user overall) becomes admin
    ADMIN_EMAIL: str = ""

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Frontend (links in notification emails)
    FRONTEND_URL: str = "http://localhost:3000"

    # Internal scheduled endpoints (cron jobs)
    INTERNAL_SECRET: str = ""  # Secret for /internal/scheduled/* endpoints

    # Outbound email (Resend). Unset key means dry run.
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "Asset Desk <no-reply@assetdesk.local>"
    EMAIL_TIMEOUT_SECONDS: float = 30.0

    # Attestation defaults (days since campaign start)
    DEFAULT_REMINDER_DAYS: int = 7
    DEFAULT_ESCALATION_DAYS: int = 10
    DEFAULT_UNREGISTERED_REMINDER_DAYS: int = 7

    # Worker loop
    SCHEDULER_INTERVAL_SECONDS: int = 3600

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_AUTH: int = 5
    RATE_LIMIT_API: int = 60
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only in production."""
        return self.ENV != "dev"


settings = Settings()
