from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import SecretStr, computed_field, field_validator
from functools import lru_cache
from pathlib import Path

# Get the project root (repository checkout)
PROJECT_ROOT = Path(__file__).parent.parent.parent


class Settings(BaseSettings):

    # Application
    app_env: str = "development"
    app_debug: bool = False

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    application_base_url: str = "http://127.0.0.1:8000"

    # PostgreSQL Configuration
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "newsletter"
    postgres_user: str = "postgres"
    postgres_password: SecretStr = SecretStr("")

    # SQLite (local development and tests)
    use_sqlite: bool = False
    sqlite_url: str = "sqlite+aiosqlite:///./data/newsletter.db"

    @computed_field
    @property
    def database_url(self) -> str:
        """Return the appropriate database URL based on configuration."""
        if self.use_sqlite:
            return self.sqlite_url
        password = self.postgres_password.get_secret_value()
        return f"postgresql+asyncpg://{self.postgres_user}:{password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    # Database pooling (PostgreSQL)
    db_pool_size: int = 10
    db_max_overflow: int = 5
    db_pool_recycle: int = 1800

    # Email delivery API
    email_base_url: str = "http://localhost:9000"
    email_authorization_token: SecretStr = SecretStr("")
    email_sender: str = "newsletter@example.com"
    email_client_timeout_milliseconds: int = 10000

    # Argon2 worker pool
    password_hash_workers: int = 2
    password_hash_queue_factor: int = 4  # in-flight jobs allowed per worker

    @field_validator("application_base_url", "email_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("password_hash_workers", "password_hash_queue_factor")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
