"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./helpdesk.db"
    DB_STATEMENT_TIMEOUT_MS: int = 5000  # PostgreSQL only
    DB_READ_RETRIES: int = 2  # Idempotent reads only, never writes

    # Access token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_ISSUER: str = "helpdesk-api"
    JWT_AUDIENCE: str = "helpdesk-client"
    ACCESS_TOKEN_EXPIRES_MINUTES: int = 60
    # Issuer and validator share this process clock; raise when they don't
    JWT_LEEWAY_SECONDS: int = 0

    # Refresh token (opaque, hashed at rest, rotated on use)
    REFRESH_TOKEN_EXPIRES_DAYS: int = 14

    # Password hashing
    BCRYPT_ROUNDS: int = 12
    PASSWORD_HASH_TIMEOUT_SECONDS: float = 5.0

    # SLA policy: department override (or base) hours scaled per priority
    SLA_BASE_HOURS: float = 48.0
    SLA_PRIORITY_FACTORS: dict[str, float] = {
        "urgent": 1 / 12,
        "high": 0.5,
        "normal": 1.0,
        "low": 1.5,
    }

    # Agents at or above this level may open tickets on behalf of customers
    AGENT_ON_BEHALF_MIN_LEVEL: int = 3

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Rate Limiting (requests per minute)
    RATE_LIMIT_AUTH: int = 5  # Login attempts
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # AI suggestions (Gemini); heuristic fallback when unset
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-1.5-flash"
    AI_TIMEOUT_SECONDS: float = 15.0

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

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


settings = Settings()
