"""
Application Configuration
Load settings from environment variables (.env file)
"""

import logging

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Define all config here so it can be used throughout the app.
    Example: from bikewear.config import settings
    """

    # ========================================================================
    # DATABASE CONFIGURATION
    # ========================================================================

    DATABASE_URL: str
    """PostgreSQL connection string (sqlite:// is accepted for local runs)"""

    DATABASE_POOL_SIZE: int = 10
    """Number of database connections to keep in pool"""

    DATABASE_MAX_OVERFLOW: int = 20
    """Additional connections beyond pool_size when needed"""

    # ========================================================================
    # AUTHENTICATION CONFIGURATION
    # ========================================================================

    SECRET_KEY: str
    """Secret key used to verify bearer tokens issued by the auth service"""

    ALGORITHM: str = "HS256"
    """Algorithm for JWT token signing"""

    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours
    """JWT token expiration time in minutes"""

    # ========================================================================
    # WEAR ENGINE LIMITS
    # ========================================================================

    MAX_BULK_COMPONENTS: int = 50
    """Row cap for bulk baseline updates and bulk service logging"""

    MAX_RIDES_PER_ASSIGNMENT: int = 2000
    """Row cap for bulk ride -> bike assignment"""

    MIGRATION_TIMEOUT_MS: int = 30000
    """Statement timeout for the paired component backfill"""

    # ========================================================================
    # APPLICATION CONFIGURATION
    # ========================================================================

    ENVIRONMENT: str = "development"
    """Environment: development, staging, or production"""

    LOG_LEVEL: str = "INFO"
    """Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"""

    FRONTEND_URL: str = "http://localhost:5173"
    """Frontend application URL for CORS"""

    # ========================================================================
    # PYDANTIC CONFIGURATION
    # ========================================================================

    class Config:
        """Load from .env file"""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra env variables


# ============================================================================
# INSTANTIATE SETTINGS
# ============================================================================

settings = Settings()

# ============================================================================
# VALIDATION
# ============================================================================


def validate_settings():
    """Validate that all required settings are configured"""
    required_fields = [
        "DATABASE_URL",
        "SECRET_KEY",
    ]

    missing = []
    for field in required_fields:
        if not getattr(settings, field):
            missing.append(field)

    if settings.MAX_BULK_COMPONENTS <= 0:
        missing.append("MAX_BULK_COMPONENTS (must be positive)")

    if missing:
        raise ValueError(
            f"Missing required environment variables: {', '.join(missing)}. "
            f"Please check your .env file."
        )


# Validate on import (will fail fast if .env is missing required vars)
try:
    validate_settings()
except ValueError as e:
    logger.warning(f"⚠️  {str(e)}")
