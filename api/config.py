"""
Environment-aware configuration.
Values come from the environment (and .env via python-dotenv); the config
class is picked from APP_ENV (dev / test / prod).
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

from croniter import croniter

from services.access_tokens import ttl_to_seconds

load_dotenv()  # Read .env if present


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///auth.db")
    SQL_ECHO = _env_bool("SQL_ECHO", "false")
    # jwt configurations
    JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me-dev-secret-change-me")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("ACCESS_TOKEN_EXPIRES_SECONDS", "900")))
    REFRESH_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("REFRESH_TOKEN_EXPIRES_SECONDS", "604800")))
    # refresh token garbage collection (cron syntax)
    TOKEN_CLEANUP_CRON = os.getenv("TOKEN_CLEANUP_CRON", "0 3 * * *")
    TOKEN_CLEANUP_ENABLED = _env_bool("TOKEN_CLEANUP_ENABLED", "true")
    DEFAULT_ROLE = os.getenv("DEFAULT_ROLE", "user")


class DevelopmentConfig(BaseConfig):
    DEBUG = True


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = "sqlite:///:memory:"
    JWT_SECRET = "test-secret-key-for-testing-only-do-not-use-in-production"
    TOKEN_CLEANUP_ENABLED = False


class ProductionConfig(BaseConfig):
    DEBUG = False


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig


def validate_config(config) -> None:
    """Fail fast on settings the token core cannot run with."""
    if not (config.get("JWT_SECRET") or "").strip():
        raise ValueError("JWT_SECRET must be set")
    try:
        ttl_to_seconds(config.get("ACCESS_TOKEN_EXPIRES"))
    except ValueError as exc:
        raise ValueError(f"ACCESS_TOKEN_EXPIRES: {exc}") from exc
    value = config.get("REFRESH_TOKEN_EXPIRES")
    if not isinstance(value, timedelta) or value <= timedelta(0):
        raise ValueError("REFRESH_TOKEN_EXPIRES must be a positive duration")
    if not croniter.is_valid(config.get("TOKEN_CLEANUP_CRON", "")):
        raise ValueError(f"TOKEN_CLEANUP_CRON is not a valid cron expression: {config.get('TOKEN_CLEANUP_CRON')!r}")
