from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300

    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_PUBSUB_CHANNEL: str = "communication.fanout"

    CACHE_ENABLED: bool = True
    CACHE_DEFAULT_TTL: int = 300
    CACHE_SHORT_TTL: int = 60
    CACHE_LONG_TTL: int = 1800
    PRESENCE_CACHE_TTL: int = 60
    TYPING_TTL: int = 10

    JWT_SECRET: str = ""
    JWT_VERIFY_MODE: Literal["hs256", "jwks"] = "hs256"
    JWT_ALGORITHM: str = "HS256"
    JWKS_URL: str | None = None

    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    CORS_ORIGINS: list[str] = ["*"]

    LOG_LEVEL: str = "INFO"

    OUTBOX_POLL_INTERVAL: float = 1.0
    OUTBOX_BATCH_SIZE: int = 50
    OUTBOX_MAX_ATTEMPTS: int = 5

    NOTIFICATION_POLL_INTERVAL: float = 5.0
    NOTIFICATION_BATCH_SIZE: int = 10
    NOTIFICATION_MAX_ATTEMPTS: int = 3
    NOTIFICATION_RETRY_DELAY: int = 60
    NOTIFICATION_CLAIM_TIMEOUT: int = 300

    EMAIL_GATEWAY_URL: str | None = None
    SMS_GATEWAY_URL: str | None = None
    PUSH_GATEWAY_URL: str | None = None
    GATEWAY_API_KEY: str = ""
    GATEWAY_TIMEOUT: float = 10.0
    EMAIL_FROM: str = "noreply@hockeyhub.local"

    PRESENCE_AWAY_AFTER: int = 300
    PRESENCE_OFFLINE_AFTER: int = 900
    PRESENCE_SWEEP_INTERVAL: float = 60.0

    MESSAGE_MAX_LENGTH: int = 5000
    MESSAGE_EDIT_WINDOW_SECONDS: int = 900

    WS_HEARTBEAT_SECONDS: int = 30

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def sync_database_url(self) -> str:
        return self.database_url.replace("+asyncpg", "+psycopg2")

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
