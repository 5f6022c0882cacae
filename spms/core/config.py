# core/config.py
"""
Configuration settings for the SPMS core.
"""
from typing import Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings.
    All settings can be overridden by environment variables or a `.env` file.
    """
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # --- Application ---
    APP_NAME: str = "Spare Parts Management System"
    DEBUG: bool = False
    ENV: str = "development"
    BASE_PATH: str = ""

    # --- Database ---
    DATABASE_URL: str = "sqlite+aiosqlite:///./spms.db"
    ECHO_SQL: bool = False

    # --- Session ---
    SESSION_COOKIE_NAME: str = "SPMS_SESSION"
    SESSION_LIFETIME: int = 3600  # seconds since login before the session expires
    SESSION_REGENERATE_INTERVAL: int = 300
    SESSION_BACKEND: str = "memory"  # Options: memory, redis
    REDIS_URL: Optional[str] = None

    # --- Remember me ---
    REMEMBER_COOKIE_NAME: str = "remember_token"
    REMEMBER_TOKEN_DAYS: int = 30

    # --- Login throttling ---
    MAX_LOGIN_ATTEMPTS: int = 5
    LOCKOUT_SECONDS: int = 900

    # --- CSRF ---
    CSRF_TOKEN_NAME: str = "csrf_token"
    CSRF_HEADER_NAME: str = "X-CSRF-Token"
    CSRF_TOKEN_TTL: int = 3600
    CSRF_MAX_TOKENS: int = 10
    CSRF_TOKEN_BYTES: int = 32

    # --- Passwords ---
    BCRYPT_ROUNDS: int = 12

    # --- Redirect targets ---
    LOGIN_URL: str = "/login"
    UNAUTHORIZED_URL: str = "/unauthorized"
    HOME_URL: str = "/dashboard"

    # --- Superuser (initial setup) ---
    SUPERUSER_USERNAME: str = "admin"
    SUPERUSER_EMAIL: str = "admin@example.com"
    SUPERUSER_PASSWORD: Optional[str] = None

    # --- Server ---
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    @field_validator("BASE_PATH")
    def strip_base_path(cls, v):
        return v.rstrip("/")

    @field_validator("CSRF_MAX_TOKENS")
    def validate_max_tokens(cls, v):
        return max(1, v)

    @field_validator("CSRF_TOKEN_BYTES")
    def validate_token_bytes(cls, v):
        return max(16, v)

    @field_validator("SESSION_BACKEND")
    def validate_backend(cls, v):
        if v not in ("memory", "redis"):
            raise ValueError("SESSION_BACKEND must be 'memory' or 'redis'")
        return v


# Global settings instance
settings = Settings()
