"""Push transports — pluggable delivery backends.

Learn: The publisher never branches on which backend is configured. It
hands batches of channel names to whatever Transport it was given:

- NullTransport: delivers nothing. The default, so publishing still scrubs
  stale subscribers when real-time delivery is switched off.
- PusherTransport: Pusher Channels via the official `pusher` client.
  Pusher caps the number of channels per trigger call, hence batch_size.
- RedisTransport: Redis PUBLISH per channel, picked up by our own
  WebSocket endpoint (realtime/websocket.py).

The registry maps config names to classes:
    transport = build_transport("pusher", settings)
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Optional

import pusher
import redis.asyncio as aioredis
import structlog
from pusher.errors import PusherError
from redis.exceptions import RedisError

from hyperrecord.config import PUSHER_MAX_CHANNELS, Settings
from hyperrecord.pubsub.errors import TransportUnavailableError, UnknownTransportError

logger = structlog.get_logger()

DEFAULT_BATCH_SIZE = 50


class Transport(ABC):
    """Abstract base for channel-based push delivery."""

    def __init__(self, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.batch_size = batch_size

    @property
    @abstractmethod
    def name(self) -> str:
        """Transport identifier, e.g. 'pusher', 'redis', 'none'."""

    @property
    def enabled(self) -> bool:
        return True

    @abstractmethod
    async def trigger(self, channels: list[str], event: str, payload: dict) -> None:
        """Deliver one event to up to batch_size channels.

        Raises TransportUnavailableError when the backend rejects or
        cannot be reached. No retries.
        """

    async def close(self) -> None:
        pass

    @classmethod
    def from_settings(
        cls, settings: Settings, redis: Optional[aioredis.Redis] = None
    ) -> "Transport":
        return cls(batch_size=settings.transport_batch_size)


class NullTransport(Transport):
    """Accepts every batch and delivers nothing."""

    @property
    def name(self) -> str:
        return "none"

    @property
    def enabled(self) -> bool:
        return False

    async def trigger(self, channels: list[str], event: str, payload: dict) -> None:
        return None


class PusherTransport(Transport):
    """Pusher Channels delivery.

    Learn: The pusher client is synchronous (requests under the hood), so
    each trigger runs in a worker thread to keep the event loop free.
    """

    def __init__(self, client: pusher.Pusher, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size > PUSHER_MAX_CHANNELS:
            raise ValueError(
                f"Pusher accepts at most {PUSHER_MAX_CHANNELS} channels per trigger, "
                f"got batch_size={batch_size}"
            )
        super().__init__(batch_size=batch_size)
        self.client = client

    @property
    def name(self) -> str:
        return "pusher"

    async def trigger(self, channels: list[str], event: str, payload: dict) -> None:
        try:
            await asyncio.to_thread(self.client.trigger, channels, event, payload)
        except (PusherError, OSError, ValueError) as e:
            # requests' connection errors are OSError subclasses; ValueError
            # is the client rejecting a request before sending it
            raise TransportUnavailableError(
                f"pusher trigger to {len(channels)} channel(s) failed: {e}"
            ) from e

    @classmethod
    def from_settings(cls, settings: Settings, redis: Optional[aioredis.Redis] = None):
        client = pusher.Pusher(
            app_id=settings.pusher_app_id,
            key=settings.pusher_key,
            secret=settings.pusher_secret,
            cluster=settings.pusher_cluster,
            ssl=True,
            timeout=settings.pusher_timeout_seconds,
        )
        return cls(client, batch_size=settings.transport_batch_size)


class RedisTransport(Transport):
    """Redis pub/sub delivery — one PUBLISH per channel, pipelined per batch.

    Learn: Redis pub/sub is fire-and-forget. If no WebSocket is listening
    on a session's channel the message is simply lost, which matches the
    best-effort contract of this layer.
    """

    def __init__(self, redis: aioredis.Redis, batch_size: int = DEFAULT_BATCH_SIZE):
        super().__init__(batch_size=batch_size)
        self.redis = redis

    @property
    def name(self) -> str:
        return "redis"

    async def trigger(self, channels: list[str], event: str, payload: dict) -> None:
        message = json.dumps({"event": event, "data": payload}, default=str)
        try:
            async with self.redis.pipeline(transaction=False) as pipe:
                for channel in channels:
                    pipe.publish(channel, message)
                await pipe.execute()
        except RedisError as e:
            raise TransportUnavailableError(
                f"redis publish to {len(channels)} channel(s) failed: {e}"
            ) from e

    @classmethod
    def from_settings(cls, settings: Settings, redis: Optional[aioredis.Redis] = None):
        if redis is None:
            raise ValueError("The redis transport needs a Redis connection")
        return cls(redis, batch_size=settings.transport_batch_size)


# ─── Registry ──────────────────────────────────────────────

_TRANSPORTS: dict[str, type[Transport]] = {
    "none": NullTransport,
    "pusher": PusherTransport,
    "redis": RedisTransport,
}


def build_transport(
    name: str,
    settings: Settings,
    redis: Optional[aioredis.Redis] = None,
) -> Transport:
    """Instantiate the transport registered under `name`.

    Raises UnknownTransportError if nothing is registered under that name.
    """
    cls = _TRANSPORTS.get(name)
    if not cls:
        available = ", ".join(sorted(_TRANSPORTS))
        raise UnknownTransportError(f"Unknown transport '{name}'. Available: {available}")
    transport = cls.from_settings(settings, redis)
    logger.info("pubsub.transport_selected", transport=transport.name)
    return transport


def list_transports() -> list[str]:
    return sorted(_TRANSPORTS)


def register_transport(name: str, transport_cls: type[Transport]) -> None:
    """Register a custom transport.

    Override `from_settings` when the constructor needs more than a
    batch size.
    """
    _TRANSPORTS[name] = transport_cls
