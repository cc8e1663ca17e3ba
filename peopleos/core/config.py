"""
Configuration module - loads all env vars using pydantic-settings.
This is the SINGLE SOURCE OF TRUTH for all config values.
"""

from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Relational database
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "peopleos"
    postgres_password: str = "password"
    postgres_db: str = "peopleos"
    database_url: Optional[str] = None  # overrides the postgres_* values

    # MongoDB
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "peopleos_docs"

    # DeepSeek AI (OpenAI-compatible)
    deepseek_api_key: str = ""
    deepseek_base_url: str = "https://api.deepseek.com/v1"
    deepseek_model: str = "deepseek-chat"
    deepseek_timeout_seconds: float = 60.0

    # JWT Auth
    jwt_secret_key: str = "change-this-secret"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 1440

    # App
    app_name: str = "PeopleOS"
    app_base_url: str = "http://localhost:3000"
    organization_slug: str = "peopleos"
    debug: bool = False
    log_level: str = "INFO"

    # Email (empty smtp_host = log only)
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    email_from: str = "people@localhost"

    # Google (service account JSON as a string)
    google_service_account_key: str = ""
    google_workspace_domain: str = ""
    google_workspace_admin_email: str = ""
    onboarding_sheet_id: str = ""
    onboarding_roster_range: str = "Status!A2:J"

    @property
    def postgres_url(self) -> str:
        """Construct PostgreSQL connection URL"""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def sqlalchemy_url(self) -> str:
        return self.database_url or self.postgres_url

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
