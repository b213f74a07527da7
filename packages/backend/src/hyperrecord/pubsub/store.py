"""Subscription store — Redis hashes of session id → last refresh time.

Learn: One Redis hash per subscription key. Each subscribed session owns
one field, so concurrent subscribers never conflict: HSET/HDEL are atomic
per field and no extra locking is needed.

    HRPS__Post__42 = {"sess-a": "1718000000.12", "sess-b": "1718003600.5"}

Timestamps are stored as the string form of epoch seconds.
"""

from collections.abc import AsyncIterator, Iterable
from typing import Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from hyperrecord.pubsub.errors import StoreUnavailableError

FieldEntry = tuple[str, str, str]  # (key, session_id, timestamp)


class SubscriptionStore(Protocol):
    """What the publisher and registrar need from a store."""

    async def get_all(self, key: str) -> dict[str, str]: ...

    async def set_field(self, key: str, session_id: str, timestamp: str) -> None: ...

    async def set_fields(self, entries: Iterable[FieldEntry]) -> int: ...

    async def delete_fields(self, key: str, *session_ids: str) -> int: ...

    async def delete_key(self, key: str) -> None: ...


class RedisSubscriptionStore:
    """SubscriptionStore backed by redis.asyncio with decode_responses=True."""

    def __init__(self, redis: aioredis.Redis):
        self.redis = redis

    async def get_all(self, key: str) -> dict[str, str]:
        """All entries for a key, empty when the key does not exist."""
        try:
            return await self.redis.hgetall(key)
        except RedisError as e:
            raise StoreUnavailableError(f"HGETALL {key} failed: {e}") from e

    async def set_field(self, key: str, session_id: str, timestamp: str) -> None:
        try:
            await self.redis.hset(key, session_id, timestamp)
        except RedisError as e:
            raise StoreUnavailableError(f"HSET {key} failed: {e}") from e

    async def set_fields(self, entries: Iterable[FieldEntry]) -> int:
        """Upsert many fields in one pipelined round trip.

        Learn: transaction=False — this is batching, not MULTI/EXEC.
        A crash halfway through may leave some keys updated, which is fine
        for subscriptions.
        """
        entries = list(entries)
        if not entries:
            return 0
        try:
            async with self.redis.pipeline(transaction=False) as pipe:
                for key, session_id, timestamp in entries:
                    pipe.hset(key, session_id, timestamp)
                await pipe.execute()
        except RedisError as e:
            raise StoreUnavailableError(f"pipelined HSET failed: {e}") from e
        return len(entries)

    async def delete_field(self, key: str, session_id: str) -> int:
        return await self.delete_fields(key, session_id)

    async def delete_fields(self, key: str, *session_ids: str) -> int:
        """Remove fields; deleting an absent field is a no-op."""
        if not session_ids:
            return 0
        try:
            return await self.redis.hdel(key, *session_ids)
        except RedisError as e:
            raise StoreUnavailableError(f"HDEL {key} failed: {e}") from e

    async def delete_key(self, key: str) -> None:
        try:
            await self.redis.delete(key)
        except RedisError as e:
            raise StoreUnavailableError(f"DEL {key} failed: {e}") from e

    async def scan_keys(self, pattern: str) -> AsyncIterator[str]:
        """Iterate keys matching a glob. Inspection only, never on hot paths."""
        try:
            async for key in self.redis.scan_iter(match=pattern):
                yield key
        except RedisError as e:
            raise StoreUnavailableError(f"SCAN {pattern} failed: {e}") from e
