"""Publisher — fan a change message out to every live subscriber.

Learn: Every publish follows the same steps:

1. HGETALL the subscription key
2. Split entries at now - freshness_window: older ones are stale, and so
   is any session id that cannot form a valid channel name
3. HDEL the stale sessions (lazy expiry, there is no background sweep)
4. Trigger the `update` event on the live sessions' channels, at most
   transport.batch_size channels per call
5. Destroyed records only: DEL the record key, nobody can watch it any more

Relation and scope keys are never deleted, only pruned.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import structlog

from hyperrecord.pubsub.keys import KeySpace, kind_name
from hyperrecord.pubsub.messages import ChangeMessage, RecordRef
from hyperrecord.pubsub.store import SubscriptionStore
from hyperrecord.pubsub.transports import Transport

logger = structlog.get_logger()

DEFAULT_FRESHNESS_WINDOW = 24 * 60 * 60.0


def last_refreshed(raw: Any) -> float:
    """Parse a stored timestamp. Garbage counts as the epoch, i.e. stale."""
    try:
        return float(raw)
    except (TypeError, ValueError):
        return 0.0


def _chunks(items: list[str], size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


@dataclass
class PublishResult:
    """What one publish did to a subscription key."""

    key: str
    live: list[str] = field(default_factory=list)
    scrubbed: list[str] = field(default_factory=list)
    batches: int = 0
    key_dropped: bool = False

    @property
    def delivered(self) -> bool:
        return self.batches > 0


class Publisher:
    """Publishes record, relation and scope changes."""

    def __init__(
        self,
        store: SubscriptionStore,
        transport: Transport,
        *,
        keys: Optional[KeySpace] = None,
        freshness_window: float = DEFAULT_FRESHNESS_WINDOW,
        event: str = "update",
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.transport = transport
        self.keys = keys or KeySpace()
        self.freshness_window = freshness_window
        self.event = event
        self.clock = clock

    async def publish_record(self, record: RecordRef) -> PublishResult:
        record = RecordRef.coerce(record)
        key = self.keys.record(record.kind, record.id)
        result = await self._fan_out(key, ChangeMessage.for_record(record))

        if record.destroyed:
            await self.store.delete_key(key)
            result.key_dropped = True
            logger.info("pubsub.key_dropped", key=key)
        return result

    async def publish_relation(
        self,
        base_record: RecordRef,
        relation_name: str,
        causing_record: Optional[RecordRef] = None,
    ) -> PublishResult:
        base_record = RecordRef.coerce(base_record)
        if causing_record is not None:
            causing_record = RecordRef.coerce(causing_record)
        key = self.keys.relation(base_record.kind, base_record.id, relation_name)
        message = ChangeMessage.for_relation(base_record, relation_name, causing_record)
        return await self._fan_out(key, message)

    async def publish_scope(self, record_class: Any, scope_name: str) -> PublishResult:
        kind = kind_name(record_class)
        key = self.keys.scope(kind, scope_name)
        return await self._fan_out(key, ChangeMessage.for_scope(kind, scope_name))

    def scrub_threshold(self) -> float:
        """Entries refreshed before this epoch time are stale."""
        return self.clock() - self.freshness_window

    # ─── Internals ────────────────────────────────────────

    async def _fan_out(self, key: str, message: ChangeMessage) -> PublishResult:
        subscribers = await self.store.get_all(key)
        scrub_time = self.scrub_threshold()

        result = PublishResult(key=key)
        for session_id, refreshed_at in subscribers.items():
            if last_refreshed(refreshed_at) < scrub_time:
                result.scrubbed.append(session_id)
            elif not self.keys.has_valid_channel(session_id):
                # undeliverable on every transport
                result.scrubbed.append(session_id)
            else:
                result.live.append(session_id)

        if result.scrubbed:
            await self.store.delete_fields(key, *result.scrubbed)
            logger.info("pubsub.scrubbed", key=key, sessions=len(result.scrubbed))

        if not result.live or not self.transport.enabled:
            return result

        payload = message.to_payload()
        channels = [self.keys.channel(session_id) for session_id in result.live]
        for batch in _chunks(channels, self.transport.batch_size):
            await self.transport.trigger(batch, self.event, payload)
            result.batches += 1

        logger.debug(
            "pubsub.delivered",
            key=key,
            transport=self.transport.name,
            sessions=len(result.live),
            batches=result.batches,
        )
        return result
