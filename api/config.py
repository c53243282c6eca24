"""
Environment-aware configuration.
Token lifetimes and the retention window are read here once and handed to the
token services as an explicit TokenSettings value (see token_settings()).
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

from services.settings import TokenSettings

load_dotenv()  # Read .env if present


def _seconds(name: str, default: int) -> timedelta:
    return timedelta(seconds=int(os.getenv(name, str(default))))


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///refresh-tokens.db")
    DB_TIMEOUT_SECONDS = float(os.getenv("DB_TIMEOUT_SECONDS", "5"))
    LOCK_TIMEOUT_SECONDS = float(os.getenv("LOCK_TIMEOUT_SECONDS", "10"))

    JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "refresh-token-api")
    ACCESS_TOKEN_EXPIRES = _seconds("ACCESS_TOKEN_EXPIRES_SECONDS", 15 * 60)
    REFRESH_TOKEN_EXPIRES = _seconds("REFRESH_TOKEN_EXPIRES_SECONDS", 7 * 24 * 3600)
    # inactive refresh tokens are kept this long before being pruned
    REFRESH_TOKEN_TTL = _seconds("REFRESH_TOKEN_TTL_SECONDS", 2 * 24 * 3600)
    REFRESH_COOKIE_NAME = os.getenv("REFRESH_COOKIE_NAME", "refreshToken")
    SEED_USERS = os.getenv("SEED_USERS", "false").lower() in ("1", "true", "yes")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    JWT_SECRET = "testing-secret-with-enough-length-for-hs256"


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


def token_settings(config) -> TokenSettings:
    """Build the TokenSettings value from a Flask config mapping."""
    return TokenSettings(
        jwt_secret=config["JWT_SECRET"],
        jwt_algorithm=config["JWT_ALGORITHM"],
        jwt_issuer=config["JWT_ISSUER"],
        access_token_lifetime=config["ACCESS_TOKEN_EXPIRES"],
        refresh_token_lifetime=config["REFRESH_TOKEN_EXPIRES"],
        refresh_token_ttl=config["REFRESH_TOKEN_TTL"],
        lock_timeout=config["LOCK_TIMEOUT_SECONDS"],
    )
