"""
Application configuration using pydantic-settings.
Values come from the environment (or .env) and are read once at the edges;
gateways and the orchestrator receive them as constructor arguments.
"""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    app_env: str = "development"
    app_base_url: str = "http://localhost:8000"
    log_level: str = "INFO"

    # Database
    database_url: str
    database_pool_size: int = 10
    database_max_overflow: int = 5

    # Sentry
    sentry_dsn: str = ""

    # Docebo LMS (OAuth password grant)
    docebo_api_url: str = "https://doceboapi.docebosaas.com"
    docebo_client_id: str = ""
    docebo_client_secret: str = ""
    docebo_api_username: str = ""
    docebo_api_password: str = ""
    docebo_timeout_seconds: float = 10.0

    # Certopus credential service
    certopus_api_url: str = "https://api.certopus.com/v1"
    certopus_api_key: str = ""
    certopus_timeout_seconds: float = 15.0

    # Sentinel used when a webhook does not name its source domain
    default_lms_domain: str = "default"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
