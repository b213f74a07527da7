"""Fan-out coordinator — subscribe the current viewer, then publish.

Learn: Every data read by a viewer is an implicit subscribe and every
write is a publish. pub_sub_* couples the two so the viewer who triggered
an event is registered before the subscriber set is read. They receive
their own (harmless) notification too: at-least-once, no dedup.

Failure policy: notifications must never block persistence. Store and
transport failures are logged and swallowed here, unless the service was
built with strict=True.
"""

import time
from typing import Any, Callable, Iterable, Optional

import redis.asyncio as aioredis
import structlog

from hyperrecord.config import Settings
from hyperrecord.pubsub.errors import NotificationError
from hyperrecord.pubsub.keys import KeySpace
from hyperrecord.pubsub.messages import RecordRef
from hyperrecord.pubsub.publisher import DEFAULT_FRESHNESS_WINDOW, Publisher, PublishResult
from hyperrecord.pubsub.registrar import SubscriberRegistrar
from hyperrecord.pubsub.store import RedisSubscriptionStore, SubscriptionStore
from hyperrecord.pubsub.transports import Transport, build_transport
from hyperrecord.session import current_session_id

logger = structlog.get_logger()


class PubSubService:
    """Record/relation/scope subscriptions and change notifications."""

    def __init__(
        self,
        store: SubscriptionStore,
        transport: Transport,
        *,
        session_provider: Callable[[], Optional[str]] = current_session_id,
        keys: Optional[KeySpace] = None,
        freshness_window: float = DEFAULT_FRESHNESS_WINDOW,
        event: str = "update",
        clock: Callable[[], float] = time.time,
        strict: bool = False,
    ):
        self.store = store
        self.transport = transport
        self.session_provider = session_provider
        self.keys = keys or KeySpace()
        self.strict = strict
        self.registrar = SubscriberRegistrar(store, keys=self.keys, clock=clock)
        self.publisher = Publisher(
            store,
            transport,
            keys=self.keys,
            freshness_window=freshness_window,
            event=event,
            clock=clock,
        )

    @property
    def session_id(self) -> Optional[str]:
        return self.session_provider()

    # ─── Coordinator ──────────────────────────────────────

    async def pub_sub_record(self, record: Any) -> Optional[PublishResult]:
        record = RecordRef.coerce(record)
        try:
            await self.registrar.subscribe_record(record, self.session_id)
            return await self.publisher.publish_record(record)
        except NotificationError as e:
            return self._failed("pub_sub_record", e, record_type=record.kind, id=record.id)

    async def pub_sub_relation(
        self,
        relation: Any,
        base_record: Any,
        relation_name: str,
        causing_record: Any = None,
    ) -> Optional[PublishResult]:
        base_record = RecordRef.coerce(base_record)
        try:
            await self.registrar.subscribe_relation(
                relation, self.session_id, base_record, relation_name
            )
            return await self.publisher.publish_relation(
                base_record, relation_name, causing_record
            )
        except NotificationError as e:
            return self._failed(
                "pub_sub_relation",
                e,
                record_type=base_record.kind,
                id=base_record.id,
                relation=relation_name,
            )

    async def pub_sub_scope(
        self,
        collection: Optional[Iterable[Any]],
        record_class: Any,
        scope_name: str,
    ) -> Optional[PublishResult]:
        try:
            await self.registrar.subscribe_scope(
                collection, self.session_id, record_class, scope_name
            )
            return await self.publisher.publish_scope(record_class, scope_name)
        except NotificationError as e:
            return self._failed("pub_sub_scope", e, scope=scope_name)

    # ─── Individual halves ────────────────────────────────

    async def subscribe_record(self, record: Any) -> Optional[int]:
        try:
            return await self.registrar.subscribe_record(record, self.session_id)
        except NotificationError as e:
            return self._failed("subscribe_record", e)

    async def subscribe_relation(
        self,
        relation: Any,
        base_record: Any = None,
        relation_name: Optional[str] = None,
    ) -> Optional[int]:
        try:
            return await self.registrar.subscribe_relation(
                relation, self.session_id, base_record, relation_name
            )
        except NotificationError as e:
            return self._failed("subscribe_relation", e, relation=relation_name)

    async def subscribe_scope(
        self,
        collection: Optional[Iterable[Any]],
        record_class: Any = None,
        scope_name: Optional[str] = None,
    ) -> Optional[int]:
        try:
            return await self.registrar.subscribe_scope(
                collection, self.session_id, record_class, scope_name
            )
        except NotificationError as e:
            return self._failed("subscribe_scope", e, scope=scope_name)

    async def publish_record(self, record: Any) -> Optional[PublishResult]:
        try:
            return await self.publisher.publish_record(record)
        except NotificationError as e:
            return self._failed("publish_record", e)

    async def publish_relation(
        self,
        base_record: Any,
        relation_name: str,
        causing_record: Any = None,
    ) -> Optional[PublishResult]:
        try:
            return await self.publisher.publish_relation(
                base_record, relation_name, causing_record
            )
        except NotificationError as e:
            return self._failed("publish_relation", e, relation=relation_name)

    async def publish_scope(self, record_class: Any, scope_name: str) -> Optional[PublishResult]:
        try:
            return await self.publisher.publish_scope(record_class, scope_name)
        except NotificationError as e:
            return self._failed("publish_scope", e, scope=scope_name)

    # ─── Inspection ───────────────────────────────────────

    async def subscribers(self, key: str) -> dict[str, str]:
        """Raw entries for a key. Store errors propagate."""
        return await self.store.get_all(key)

    # ─── Internals ────────────────────────────────────────

    def _failed(self, operation: str, error: NotificationError, **context) -> None:
        logger.warning(
            "pubsub.notify_failed",
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
            **context,
        )
        if self.strict:
            raise error
        return None


def build_pubsub_service(settings: Settings, redis: aioredis.Redis) -> PubSubService:
    """Wire a PubSubService from settings and a live Redis connection."""
    transport = build_transport(settings.resource_transport, settings, redis)
    return PubSubService(
        RedisSubscriptionStore(redis),
        transport,
        keys=KeySpace(prefix=settings.key_prefix, channel_prefix=settings.channel_prefix),
        freshness_window=settings.freshness_window_seconds,
        event=settings.update_event,
        strict=settings.notification_errors_fatal,
    )
