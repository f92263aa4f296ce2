"""arq-backed queue for LiveKit webhook notifications."""

from typing import Any

import orjson
from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from loguru import logger

from app.app_config import AppEnvironConfig, get_app_environ_config
from app.domain.utils.clock import utc_now

PROCESS_NOTIFICATION_JOB = "process_notification"


def notification_queue_name(service_key: str) -> str:
    return f"{service_key}:arq:notifications"


def failed_notifications_key(service_key: str) -> str:
    return f"{service_key}:notifications:failed"


class NotificationQueue:
    """Submit notifications keyed by their id and keep the ones that ran out of retries.

    The notification id is the arq job id, so resubmitting an id that is still
    queued, running or holding a result is a no-op.
    """

    def __init__(
        self,
        pool: ArqRedis,
        *,
        queue_name: str,
        failed_key: str,
        failed_limit: int = 500,
    ):
        self._pool = pool
        self.queue_name = queue_name
        self.failed_key = failed_key
        self.failed_limit = failed_limit

    @classmethod
    async def connect(cls, cfg: AppEnvironConfig | None = None) -> "NotificationQueue":
        cfg = cfg or get_app_environ_config()
        pool = await create_pool(
            RedisSettings.from_dsn(cfg.REDIS_QUEUE_URL),
            default_queue_name=notification_queue_name(cfg.SERVICE_KEY),
        )
        return cls(
            pool,
            queue_name=notification_queue_name(cfg.SERVICE_KEY),
            failed_key=failed_notifications_key(cfg.SERVICE_KEY),
            failed_limit=cfg.WEBHOOK_QUEUE_FAILED_LIMIT,
        )

    async def submit(self, notification_id: str, event_type: str, payload: dict[str, Any]) -> bool:
        """Queue a notification. Returns False if a job with this id already exists."""
        job = await self._pool.enqueue_job(
            PROCESS_NOTIFICATION_JOB,
            notification_id,
            event_type,
            payload,
            _job_id=notification_id,
            _queue_name=self.queue_name,
        )
        if job is None:
            logger.info(f"Notification {notification_id} ({event_type}) already queued")
            return False
        logger.debug(f"📥 Queued notification {notification_id} ({event_type})")
        return True

    async def record_failure(
        self,
        notification_id: str,
        event_type: str,
        payload: dict[str, Any],
        error: str,
        tries: int,
    ) -> None:
        entry = {
            "notification_id": notification_id,
            "event_type": event_type,
            "payload": payload,
            "error": error,
            "tries": tries,
            "failed_at": utc_now().isoformat(),
        }
        await self._pool.lpush(self.failed_key, orjson.dumps(entry))
        await self._pool.ltrim(self.failed_key, 0, self.failed_limit - 1)
        logger.error(f"💀 Notification {notification_id} ({event_type}) failed after {tries} tries: {error}")

    async def failed_jobs(self, limit: int = 50) -> list[dict[str, Any]]:
        raw = await self._pool.lrange(self.failed_key, 0, max(limit, 1) - 1)
        return [orjson.loads(item) for item in raw]

    async def health(self) -> dict[str, Any]:
        queued = await self._pool.zcard(self.queue_name)
        failed = await self._pool.llen(self.failed_key)
        return {"queued": queued, "failed": failed}

    async def close(self) -> None:
        await self._pool.aclose()
