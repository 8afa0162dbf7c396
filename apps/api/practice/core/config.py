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
    DATABASE_URL: str = "sqlite+pysqlite:///./practice.db"

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 8

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173"

    # Tenancy seed data (comma-separated lists)
    SEED_OFFICES: str = ""
    # Office that receives records created before offices existed.
    # Left empty on purpose: the backfill refuses to guess it.
    DEFAULT_OFFICE_NAME: str = ""
    HEAD_OFFICE_EMAILS: str = ""  # Get can_view_all_offices
    DEFAULT_OFFICE_STAFF_EMAILS: str = ""

    # Staff roster per office, JSON: {"Office Name": ["Display Name", ...]}
    STAFF_ROSTER: dict[str, list[str]] = {}

    # Default treatment pipeline (milestone names, in order)
    TREATMENT_PIPELINE: str = (
        "Metal Design Out,Metal ETA,Setup Assigned,Setup Complete,"
        "Processing Assigned,Processing Complete"
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def seed_offices_list(self) -> list[str]:
        """Parse SEED_OFFICES into a list (order preserved)."""
        return _split_csv(self.SEED_OFFICES)

    @property
    def head_office_emails_list(self) -> list[str]:
        """Parse HEAD_OFFICE_EMAILS into lowercase list."""
        return [e.lower() for e in _split_csv(self.HEAD_OFFICE_EMAILS)]

    @property
    def default_office_staff_emails_list(self) -> list[str]:
        """Parse DEFAULT_OFFICE_STAFF_EMAILS into lowercase list."""
        return [e.lower() for e in _split_csv(self.DEFAULT_OFFICE_STAFF_EMAILS)]

    @property
    def treatment_pipeline_list(self) -> list[str]:
        return _split_csv(self.TREATMENT_PIPELINE)

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


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


settings = Settings()
