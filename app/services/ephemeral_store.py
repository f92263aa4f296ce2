"""Redis-backed ephemeral key/value store with per-session pub/sub channels."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Protocol

from loguru import logger
from redis.asyncio import Redis
from redis.asyncio.client import PubSub

MessageHandler = Callable[[str], Awaitable[None]]


class EphemeralStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set_with_ttl(self, key: str, value: str, seconds: int) -> None: ...

    async def publish(self, channel: str, message: str) -> int: ...

    async def subscribe(self, channel: str, handler: MessageHandler) -> None: ...

    async def unsubscribe(self, channel: str) -> None: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class RedisEphemeralStore:
    """One command connection plus one shared pub/sub connection per process.

    Channel messages are read by a single background task and dispatched to the
    handler registered for the channel. The task starts with the first
    subscription and stops when the last channel is unsubscribed.
    """

    def __init__(self, redis: Redis):
        self._redis = redis
        self._pubsub: PubSub | None = None
        self._handlers: dict[str, MessageHandler] = {}
        self._reader: asyncio.Task | None = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_url(cls, url: str) -> "RedisEphemeralStore":
        return cls(Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        return await self._redis.get(key)

    async def set_with_ttl(self, key: str, value: str, seconds: int) -> None:
        await self._redis.setex(key, seconds, value)

    async def publish(self, channel: str, message: str) -> int:
        return await self._redis.publish(channel, message)

    async def subscribe(self, channel: str, handler: MessageHandler) -> None:
        async with self._lock:
            if self._pubsub is None:
                self._pubsub = self._redis.pubsub()
            self._handlers[channel] = handler
            await self._pubsub.subscribe(channel)
            if self._reader is None or self._reader.done():
                self._reader = asyncio.create_task(self._read_loop(), name="ephemeral-pubsub-reader")
        logger.debug(f"📡 Subscribed to {channel}")

    async def unsubscribe(self, channel: str) -> None:
        async with self._lock:
            if self._handlers.pop(channel, None) is None:
                return
            if self._pubsub is not None:
                await self._pubsub.unsubscribe(channel)
            if not self._handlers:
                await self._stop_reader()
        logger.debug(f"📴 Unsubscribed from {channel}")

    async def ping(self) -> bool:
        return bool(await self._redis.ping())

    async def close(self) -> None:
        async with self._lock:
            self._handlers.clear()
            await self._stop_reader()
            if self._pubsub is not None:
                await self._pubsub.aclose()
                self._pubsub = None
        await self._redis.aclose()

    async def _stop_reader(self) -> None:
        reader, self._reader = self._reader, None
        if reader is None:
            return
        if reader is asyncio.current_task():
            # Called from a channel handler; the loop exits once the handler returns
            return
        reader.cancel()
        try:
            await reader
        except asyncio.CancelledError:
            pass

    async def _read_loop(self) -> None:
        pubsub = self._pubsub
        if pubsub is None:
            return
        while self._reader is asyncio.current_task():
            try:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Pub/sub read failed, retrying: {e}")
                await asyncio.sleep(1.0)
                continue

            if not message or message.get("type") != "message":
                continue

            channel = message["channel"]
            handler = self._handlers.get(channel)
            if handler is None:
                continue
            try:
                await handler(message["data"])
            except Exception:
                logger.exception(f"Handler for channel {channel} failed")
