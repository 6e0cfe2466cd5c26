"""
Application configuration.

All configuration is loaded from environment variables.
Never hardcode secrets or connection strings in code.
"""

import os
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Admin Override Engine"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql://localhost:5432/override_engine"
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Expiry sweep
    EXPIRY_SCHEDULER_ENABLED: bool = (
        os.getenv("EXPIRY_SCHEDULER_ENABLED", "true").lower() == "true"
    )
    EXPIRY_SWEEP_INTERVAL_SECONDS: float = float(
        os.getenv("EXPIRY_SWEEP_INTERVAL_SECONDS", "60")
    )

    # Upper bound on a single handler call against an external system
    HANDLER_TIMEOUT_SECONDS: float = float(
        os.getenv("HANDLER_TIMEOUT_SECONDS", "10")
    )

    # Actor recorded for transitions the engine makes on its own
    SYSTEM_ACTOR_ID: str = os.getenv("SYSTEM_ACTOR_ID", "system")


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Using lru_cache means the Settings object is created once
    and reused for all subsequent calls.
    """
    return Settings()
