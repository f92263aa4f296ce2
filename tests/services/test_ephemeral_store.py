"""RedisEphemeralStore against a real Redis (skipped unless REDIS_URL_TEST is set)."""

import asyncio
import os

import pytest
import pytest_asyncio

from app.services.ephemeral_store import RedisEphemeralStore


@pytest_asyncio.fixture
async def redis_store():
    url = os.environ.get("REDIS_URL_TEST")
    if not url:
        pytest.skip("REDIS_URL_TEST not set")
    store = RedisEphemeralStore.from_url(url)
    yield store
    await store.close()


async def wait_for(predicate, timeout: float = 3.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.02)


class TestRedisEphemeralStore:
    async def test_set_with_ttl_and_get(self, redis_store):
        await redis_store.set_with_ttl("test:ephemeral:key", "value", 30)

        assert await redis_store.get("test:ephemeral:key") == "value"
        assert await redis_store.ping() is True

    async def test_publish_reaches_handler(self, redis_store):
        received: list[str] = []

        async def handler(message: str) -> None:
            received.append(message)

        await redis_store.subscribe("test:ephemeral:channel", handler)
        await asyncio.sleep(0.1)
        await redis_store.publish("test:ephemeral:channel", "hello")

        await wait_for(lambda: received == ["hello"])

    async def test_handler_may_unsubscribe_itself(self, redis_store):
        received: list[str] = []

        async def handler(message: str) -> None:
            received.append(message)
            await redis_store.unsubscribe("test:ephemeral:self")

        await redis_store.subscribe("test:ephemeral:self", handler)
        await asyncio.sleep(0.1)
        await redis_store.publish("test:ephemeral:self", "bye")

        await wait_for(lambda: received == ["bye"])
        # Subscribing again restarts the reader
        await redis_store.subscribe("test:ephemeral:self", handler)
        await asyncio.sleep(0.1)
        await redis_store.publish("test:ephemeral:self", "again")
        await wait_for(lambda: received == ["bye", "again"])
