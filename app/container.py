"""Process-wide collaborators, built at startup and closed at shutdown."""

from datetime import timedelta
from typing import Any

from loguru import logger
from pymongo import AsyncMongoClient

from app.app_config import AppEnvironConfig, get_app_environ_config
from app.domain.live.live_store import MongoLiveStore
from app.domain.live.notification.processor import NotificationProcessor
from app.domain.live.reconciliation.sweeper import ReconciliationSweeper
from app.domain.live.session.session_domain import SessionService
from app.domain.live.state.state_fanout import StateFanout
from app.domain.live.state.viewer_throttle import ViewerCountThrottle
from app.schemas import init_beanie_odm
from app.services.ephemeral_store import RedisEphemeralStore
from app.services.integrations.livekit_service import LivekitService
from app.workers.notification_queue import NotificationQueue


class AppContainer:
    """Owns every connection used by the API and worker processes."""

    def __init__(self, cfg: AppEnvironConfig | None = None):
        self.cfg = cfg or get_app_environ_config()
        self.mongo_client: AsyncMongoClient | None = None
        self.store: MongoLiveStore | None = None
        self.ephemeral: RedisEphemeralStore | None = None
        self.fanout: StateFanout | None = None
        self.livekit: LivekitService | None = None
        self.sessions: SessionService | None = None
        self.processor: NotificationProcessor | None = None
        self.sweeper: ReconciliationSweeper | None = None
        self.queue: NotificationQueue | None = None

    async def start(self) -> "AppContainer":
        cfg = self.cfg

        self.mongo_client = AsyncMongoClient(cfg.MONGO_URL, tz_aware=True)
        await init_beanie_odm(self.mongo_client, cfg.MONGO_DATABASE)
        self.store = MongoLiveStore(self.mongo_client)
        logger.info(f"MongoDB ready (database={cfg.MONGO_DATABASE})")

        self.ephemeral = RedisEphemeralStore.from_url(cfg.REDIS_URL)
        self.fanout = StateFanout(
            self.ephemeral,
            service_key=cfg.SERVICE_KEY,
            state_ttl_seconds=cfg.SESSION_STATE_TTL_SECONDS,
            throttle=ViewerCountThrottle(
                interval_seconds=cfg.VIEWER_COUNT_THROTTLE_SECONDS,
                threshold_percent=cfg.VIEWER_COUNT_THRESHOLD_PERCENT,
                threshold_absolute=cfg.VIEWER_COUNT_THRESHOLD_ABSOLUTE,
            ),
        )

        self.livekit = LivekitService(cfg)
        self.sessions = SessionService(self.store, self.livekit, self.fanout, cfg)
        self.processor = NotificationProcessor(
            self.store,
            self.sessions,
            ledger_ttl=timedelta(hours=cfg.PROCESSED_NOTIFICATION_TTL_HOURS),
        )
        self.sweeper = ReconciliationSweeper(self.store, self.livekit, self.sessions)

        self.queue = await NotificationQueue.connect(cfg)
        logger.info("App container started")
        return self

    async def close(self) -> None:
        """Close subscribers first, then the connections they read from."""
        if self.fanout is not None:
            await self.fanout.close()
        if self.ephemeral is not None:
            await self.ephemeral.close()
        if self.queue is not None:
            await self.queue.close()
        if self.mongo_client is not None:
            await self.mongo_client.close()
        logger.info("App container closed")

    async def health(self) -> dict[str, Any]:
        checks: dict[str, Any] = {}

        try:
            checks["mongo"] = bool(self.store and await self.store.ping())
        except Exception as e:
            logger.warning(f"MongoDB health check failed: {e}")
            checks["mongo"] = False

        if self.fanout is not None:
            checks["state"] = await self.fanout.health()
        else:
            checks["state"] = {"healthy": False}

        try:
            checks["queue"] = await self.queue.health() if self.queue else None
        except Exception as e:
            logger.warning(f"Queue health check failed: {e}")
            checks["queue"] = None

        checks["healthy"] = bool(
            checks["mongo"] and checks["state"].get("healthy") and checks["queue"] is not None
        )
        return checks
