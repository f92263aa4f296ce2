from pydantic import BaseModel, ConfigDict, field_validator

from app.shared.config import config


class AppEnvironConfig(BaseModel):
    model_config = ConfigDict(validate_default=True)

    DEBUG: bool = config.get_bool("DEBUG")
    # Prefix for every Redis key, channel and queue owned by this service
    SERVICE_KEY: str = config.get_str("SERVICE_KEY", "livecast")

    # Storage
    MONGO_URL: str = config.get_mongo_url()
    MONGO_DATABASE: str = config.get_str("MONGO_DATABASE", "livecast")
    REDIS_URL: str = config.get_redis_url()
    REDIS_QUEUE_URL: str = config.get_redis_url("queue")

    # LiveKit configuration
    LIVEKIT_URL: str | None = config.get_str("LIVEKIT_URL") or None
    LIVEKIT_API_KEY: str | None = config.get_str("LIVEKIT_API_KEY") or None
    LIVEKIT_API_SECRET: str | None = config.get_str("LIVEKIT_API_SECRET") or None
    TOKEN_EXPIRATION_HOURS: int = config.get_int("TOKEN_EXPIRATION_HOURS", 24)

    # Session defaults
    DEFAULT_MAX_PARTICIPANTS: int = config.get_int("DEFAULT_MAX_PARTICIPANTS", 100)
    DEFAULT_EMPTY_TIMEOUT: int = config.get_int("DEFAULT_EMPTY_TIMEOUT", 600)

    # Webhook queue
    WEBHOOK_QUEUE_CONCURRENCY: int = config.get_int("WEBHOOK_QUEUE_CONCURRENCY", 10)
    WEBHOOK_QUEUE_MAX_TRIES: int = config.get_int("WEBHOOK_QUEUE_MAX_TRIES", 3)
    WEBHOOK_QUEUE_BACKOFF_SECONDS: float = config.get_float("WEBHOOK_QUEUE_BACKOFF_SECONDS", 1.0)
    WEBHOOK_QUEUE_FAILED_LIMIT: int = config.get_int("WEBHOOK_QUEUE_FAILED_LIMIT", 500)
    PROCESSED_NOTIFICATION_TTL_HOURS: int = config.get_int("PROCESSED_NOTIFICATION_TTL_HOURS", 24)

    # Live state fan-out
    SESSION_STATE_TTL_SECONDS: int = config.get_int("SESSION_STATE_TTL_SECONDS", 24 * 60 * 60)
    VIEWER_COUNT_THROTTLE_SECONDS: float = config.get_float("VIEWER_COUNT_THROTTLE_SECONDS", 5.0)
    VIEWER_COUNT_THRESHOLD_PERCENT: float = config.get_float("VIEWER_COUNT_THRESHOLD_PERCENT", 0.1)
    VIEWER_COUNT_THRESHOLD_ABSOLUTE: int = config.get_int("VIEWER_COUNT_THRESHOLD_ABSOLUTE", 5)

    # Reconciliation
    RECONCILIATION_INTERVAL_MINUTES: int = config.get_int("RECONCILIATION_INTERVAL_MINUTES", 10)

    # HTTP server
    API_HOST: str = config.get_str("API_HOST", "0.0.0.0")
    API_PORT: int = config.get_int("API_PORT", 8000)
    API_WORKERS: int = config.get_int("API_WORKERS", 1)
    API_CORS_ORIGINS: list[str] = [
        x.strip() for x in config.get_str("API_CORS_ORIGINS", "*").split(",") if x.strip()
    ]

    # Observability
    LOGFIRE_ENABLE: bool = config.get_bool("LOGFIRE_ENABLE")
    LOGFIRE_TOKEN: str | None = config.get_str("LOGFIRE_TOKEN") or None

    @field_validator("RECONCILIATION_INTERVAL_MINUTES")
    @classmethod
    def _interval_divides_hour(cls, v: int) -> int:
        # Expressed as a cron minute set, so the interval must tile the hour
        if v < 1 or v > 60 or 60 % v != 0:
            raise ValueError("RECONCILIATION_INTERVAL_MINUTES must divide 60")
        return v

    @field_validator("WEBHOOK_QUEUE_CONCURRENCY", "WEBHOOK_QUEUE_MAX_TRIES")
    @classmethod
    def _at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


_app_environ_config = AppEnvironConfig()


def get_app_environ_config() -> AppEnvironConfig:
    return _app_environ_config
