"""Configuration for the reconciler FastAPI service."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Service settings loaded from environment variables."""

    # Entity store (in-memory when unset, for local runs)
    DATABASE_URL: str | None = None

    # DocuSign OAuth client
    DOCUSIGN_INTEGRATION_KEY: str = ""
    DOCUSIGN_CLIENT_SECRET: str = ""

    # Backend functions
    FUNCTIONS_BASE_URL: str = ""
    FUNCTIONS_API_KEY: str = ""

    # Auth
    WORKER_API_KEY: str
    ADMIN_API_KEY: str = ""

    # Logging
    LOG_JSON: bool = True


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
