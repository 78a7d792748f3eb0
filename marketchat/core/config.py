from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "Marketplace Messaging"

    # MongoDB. Multi-document transactions need a replica set, e.g.
    # mongodb://localhost:27017/?replicaSet=rs0
    MONGO_URL: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "marketplace"
    MONGO_ENSURE_INDEXES: bool = True

    # JWT configuration (provide a fallback for local development)
    JWT_SECRET: str = "fallback_secret_for_dev_only"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    LOG_LEVEL: str = "INFO"

    PREVIEW_MAX_LENGTH: int = 200

    # Firebase Cloud Messaging; push stays disabled while either is empty
    FCM_SERVICE_ACCOUNT_FILE: Optional[str] = None
    FCM_PROJECT_ID: Optional[str] = None


@lru_cache
def get_settings() -> Settings:
    return Settings()
