"""arq worker for LiveKit notifications, reconciliation and ledger cleanup.

Run with:
    arq app.workers.notification_worker.WorkerSettings
"""

from __future__ import annotations

from typing import Any

from arq import Retry, cron
from arq.connections import RedisSettings
from arq.worker import func
from loguru import logger

from app.app_config import get_app_environ_config
from app.container import AppContainer
from app.domain.live.notification.processor import NotificationProcessor
from app.domain.utils.clock import utc_now
from app.shared.api.utils import format_error, init_logger

from .notification_queue import (
    PROCESS_NOTIFICATION_JOB,
    NotificationQueue,
    notification_queue_name,
)

cfg = get_app_environ_config()


def retry_delay(job_try: int, base_seconds: float) -> float:
    """Exponential backoff: base, 2*base, 4*base, ..."""
    return base_seconds * 2 ** (max(job_try, 1) - 1)


async def run_notification_job(
    ctx: dict[str, Any],
    processor: NotificationProcessor,
    queue: NotificationQueue,
    notification_id: str,
    event_type: str,
    payload: dict[str, Any],
    *,
    max_tries: int,
    backoff_seconds: float,
) -> dict[str, Any]:
    """Process one notification, turning failures into arq retries.

    On the last allowed try the job is added to the failed list and the error
    re-raised so arq records a failed result.
    """
    job_try = ctx.get("job_try", 1)
    try:
        result = await processor.process(notification_id, event_type, payload)
    except Exception as e:
        if job_try < max_tries:
            delay = retry_delay(job_try, backoff_seconds)
            logger.warning(
                f"⚠️  Notification {notification_id} failed on try {job_try}/{max_tries}, "
                f"retrying in {delay:.1f}s: {e!s}"
            )
            raise Retry(defer=delay) from e

        await queue.record_failure(notification_id, event_type, payload, format_error(e), job_try)
        raise
    return result.model_dump()


async def startup(ctx: dict[str, Any]) -> None:
    init_logger()
    logger.info("Starting notification worker")
    ctx["container"] = await AppContainer(cfg).start()


async def shutdown(ctx: dict[str, Any]) -> None:
    container: AppContainer | None = ctx.get("container")
    if container is not None:
        await container.close()
    logger.info("Notification worker stopped")


async def process_notification(
    ctx: dict[str, Any],
    notification_id: str,
    event_type: str,
    payload: dict[str, Any],
) -> dict[str, Any]:
    container: AppContainer = ctx["container"]
    return await run_notification_job(
        ctx,
        container.processor,
        container.queue,
        notification_id,
        event_type,
        payload,
        max_tries=cfg.WEBHOOK_QUEUE_MAX_TRIES,
        backoff_seconds=cfg.WEBHOOK_QUEUE_BACKOFF_SECONDS,
    )


async def reconcile_sessions(ctx: dict[str, Any]) -> dict[str, Any]:
    container: AppContainer = ctx["container"]
    logger.info("🧹 Running session reconciliation")
    stats = await container.sweeper.run()
    return stats.model_dump()


async def cleanup_processed_notifications(ctx: dict[str, Any]) -> int:
    container: AppContainer = ctx["container"]
    deleted = await container.store.purge_expired_notifications(utc_now())
    logger.info(f"🧹 Removed {deleted} expired processed-notification rows")
    return deleted


class WorkerSettings:
    functions = [
        func(
            process_notification,
            name=PROCESS_NOTIFICATION_JOB,
            max_tries=cfg.WEBHOOK_QUEUE_MAX_TRIES,
        )
    ]
    cron_jobs = [
        cron(
            reconcile_sessions,
            minute=set(range(0, 60, cfg.RECONCILIATION_INTERVAL_MINUTES)),
            run_at_startup=True,
            unique=True,
        ),
        cron(
            cleanup_processed_notifications,
            minute=0,
            run_at_startup=True,
            unique=True,
        ),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(cfg.REDIS_QUEUE_URL)
    queue_name = notification_queue_name(cfg.SERVICE_KEY)
    max_jobs = cfg.WEBHOOK_QUEUE_CONCURRENCY
    max_tries = cfg.WEBHOOK_QUEUE_MAX_TRIES
