from pydantic_settings import BaseSettings
from typing import List
import os
import re

raw_redis_port = os.getenv("REDIS_PORT", "6379")
match = re.search(r"(\d+)$", raw_redis_port)
PARSED_REDIS_PORT = int(match.group(1)) if match else 6379

class Settings(BaseSettings):
    # Application
    APP_NAME: str = "rolegate"
    APP_ENV: str = os.getenv("APP_ENV", "development")
    DEBUG: bool = False
    TESTING: bool = False

    # Database (document store)
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite+aiosqlite:///./rolegate.db"
    )

    # Redis
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = PARSED_REDIS_PORT
    REDIS_PASSWORD: str = os.getenv("REDIS_PASSWORD", "")

    # Session state: "redis" or "memory"
    SESSION_BACKEND: str = os.getenv("SESSION_BACKEND", "redis")
    SESSION_TTL_SECONDS: int = 8 * 60 * 60

    # JWT
    JWT_SECRET: str = os.getenv("JWT_SECRET", "your-secret-key-change-in-production")
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_HOURS: int = 24

    # Shared secret the sign-in layer presents when handing over a verified identity
    IDENTITY_HANDOFF_SECRET: str = os.getenv("IDENTITY_HANDOFF_SECRET", "")

    # Persisted keys
    PREVIEW_STORAGE_KEY: str = "role_preview"
    AUTH_STORAGE_KEY: str = "auth_user"

    # Document store collections
    ROLES_COLLECTION: str = "roles"
    OVERRIDES_COLLECTION: str = "rolePermissions"
    SETTINGS_COLLECTION: str = "systemSettings"
    DEFAULT_MAX_ROLES_PER_USER: int = 5

    SEED_ON_STARTUP: bool = False

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173", "http://127.0.0.1"]

    class Config:
        env_file = ".env"

settings = Settings()
