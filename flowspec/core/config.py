"""Application configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Cross-field rules are validated at load time.
"""

from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_SUPPORTED_DATABASE_SCHEMES = ("postgresql+asyncpg://", "sqlite+aiosqlite://")


class Settings(BaseSettings):
    """Application settings loaded from environment and .env.

    Everything has a default so the service starts locally against SQLite;
    GitHub credentials are only required once a workflow run reaches the
    analyze step (missing values fail that run, not startup).
    """

    # App
    app_name: str = "flowspec"
    app_version: str = "1.0.0"
    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///./flowspec.db"
    database_echo: bool = False
    # Optional pool overrides (None = use defaults in database.py; ignored for SQLite)
    db_pool_size: int | None = None
    db_max_overflow: int | None = None
    db_command_timeout: int | None = None

    # CORS / request
    allowed_origins: str = "http://localhost:3000"
    request_id_header: str = "X-Request-ID"

    # GitHub (code host for question tickets and approval pull requests)
    github_token: SecretStr | None = None
    github_owner: str | None = None
    github_api_url: str = "https://api.github.com"
    github_default_branch: str = "main"
    github_repo_prefix: str = "spec-"
    github_private_repos: bool = True
    github_timeout_seconds: float = 30.0
    # Webhook: POST /github/webhook must carry
    # X-Hub-Signature-256: sha256=<hex(hmac_sha256(secret, body))>.
    github_webhook_secret: SecretStr | None = None
    # Public base URL of this service; when set with the webhook secret, the
    # analyze step registers the webhook on each spec repository.
    public_base_url: str | None = None

    # Email (Resend). Without an API key notifications are logged only.
    resend_api_key: SecretStr | None = None
    resend_api_url: str = "https://api.resend.com"
    email_from: str = "noreply@flowspec.local"

    # Archive download
    archive_max_bytes: int = 50 * 1024 * 1024  # 50MB
    archive_download_timeout_seconds: float = 60.0

    # Workflow orchestration
    workflow_question_ticket_enabled: bool = True
    workflow_max_retries: int = Field(default=2, ge=0, le=10)
    workflow_wait_timeout_days: int = Field(default=365, ge=30, le=365)
    workflow_stall_after_minutes: int = Field(default=15, ge=1)

    # OpenTelemetry
    telemetry_enabled: bool = False
    telemetry_exporter: str = "console"
    telemetry_otlp_endpoint: str | None = None
    telemetry_sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    telemetry_environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_database_and_github(self) -> "Settings":
        """Validate the database driver and the GitHub owner/token pairing."""
        if not self.database_url.startswith(_SUPPORTED_DATABASE_SCHEMES):
            raise ValueError(
                "DATABASE_URL must use postgresql+asyncpg:// or sqlite+aiosqlite://, "
                f"got: {self.database_url.split('://', 1)[0]!r}"
            )
        has_token = bool(self.github_token and self.github_token.get_secret_value())
        if has_token and not self.github_owner:
            raise ValueError("GITHUB_OWNER is required when GITHUB_TOKEN is set.")
        return self

    @property
    def is_sqlite(self) -> bool:
        """True when the configured database is SQLite."""
        return self.database_url.startswith("sqlite")

    @property
    def webhook_url(self) -> str | None:
        """Absolute URL GitHub should deliver events to, or None if not configured."""
        if not self.public_base_url:
            return None
        return f"{self.public_base_url.rstrip('/')}/api/v1/github/webhook"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings. Call get_settings.cache_clear() after changing env in tests."""
    return Settings()
