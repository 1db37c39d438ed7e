"""
Application configuration: environment-aware settings.

All environment variables are documented here. A local .env file is loaded
on import.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).parent


# ---------------------------------------------------------------------------
# Feature flags: simple dict, no external service
# ---------------------------------------------------------------------------
FEATURE_FLAGS: dict[str, bool] = {
    "status_detection": True,
    "badges": True,
    "leaderboard": True,
}


class BaseConfig:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-in-production")
    DATABASE = os.environ.get("DATABASE_URL", str(BASE_DIR / "study_tracker.db"))

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Redis (cache + task queue); empty means in-process fallbacks
    REDIS_URL = os.environ.get("REDIS_URL", "")

    # Account status sweep
    STATUS_SWEEP_HOUR = int(os.environ.get("STATUS_SWEEP_HOUR", "3"))

    # Leaderboard
    LEADERBOARD_CACHE_TTL = int(os.environ.get("LEADERBOARD_CACHE_TTL", "300"))
    LEADERBOARD_SIZE = int(os.environ.get("LEADERBOARD_SIZE", "20"))

    FEATURE_FLAGS = FEATURE_FLAGS


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")

    @classmethod
    def validate(cls):
        """Fail fast on missing or insecure configuration in production."""
        errors: list[str] = []

        if cls.SECRET_KEY in ("dev-key-change-in-production", ""):
            errors.append("SECRET_KEY must be set to a secure value in production.")

        if not 0 <= cls.STATUS_SWEEP_HOUR <= 23:
            errors.append("STATUS_SWEEP_HOUR must be between 0 and 23.")

        if not cls.REDIS_URL:
            warnings.warn("REDIS_URL is not set; cache and tasks run in-process.")

        if errors:
            raise RuntimeError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class TestingConfig(BaseConfig):
    TESTING = True


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
