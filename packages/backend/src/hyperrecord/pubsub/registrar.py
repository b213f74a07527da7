"""Subscriber registrar — record which session is looking at what.

Learn: Reading data is an implicit subscribe. Reading a has-many relation
subscribes the viewer to every child record individually and, when the
base record and relation name are known, to the relation key as well so
added/removed children also reach them.

All upserts for one call are sent as one pipelined batch. Without a
session id, or with one that cannot form a channel name, there is nothing
to deliver to, so nothing is recorded.
"""

import time
from typing import Any, Callable, Iterable, Optional

import structlog

from hyperrecord.pubsub.keys import KeySpace
from hyperrecord.pubsub.messages import RecordRef, is_collection
from hyperrecord.pubsub.store import FieldEntry, SubscriptionStore
from hyperrecord.session import is_valid_session_id

logger = structlog.get_logger()


class SubscriberRegistrar:
    def __init__(
        self,
        store: SubscriptionStore,
        *,
        keys: Optional[KeySpace] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.keys = keys or KeySpace()
        self.clock = clock

    async def subscribe_record(self, record: RecordRef, session_id: Optional[str]) -> int:
        if not is_valid_session_id(session_id):
            return 0
        record = RecordRef.coerce(record)
        key = self.keys.record(record.kind, record.id)
        await self.store.set_field(key, str(session_id), self._now())
        logger.debug("pubsub.subscribed", key=key)
        return 1

    async def subscribe_relation(
        self,
        relation: Any,
        session_id: Optional[str],
        base_record: Optional[RecordRef] = None,
        relation_name: Optional[str] = None,
    ) -> int:
        """Subscribe to the related record(s) and optionally the relation itself.

        `relation` is a collection for has-many, a single record for
        has-one/belongs-to, or None.
        """
        if not is_valid_session_id(session_id):
            return 0
        session_id = str(session_id)
        now = self._now()

        entries: list[FieldEntry] = []
        if is_collection(relation):
            entries.extend(self._member_entries(relation, session_id, now))
        elif relation is not None:
            member = RecordRef.coerce(relation)
            entries.append((self.keys.record(member.kind, member.id), session_id, now))

        if base_record is not None and relation_name:
            base_record = RecordRef.coerce(base_record)
            key = self.keys.relation(base_record.kind, base_record.id, relation_name)
            entries.append((key, session_id, now))

        count = await self.store.set_fields(entries)
        logger.debug("pubsub.subscribed", relation=relation_name, keys=count)
        return count

    async def subscribe_scope(
        self,
        collection: Optional[Iterable[Any]],
        session_id: Optional[str],
        record_class: Any = None,
        scope_name: Optional[str] = None,
    ) -> int:
        if not is_valid_session_id(session_id):
            return 0
        session_id = str(session_id)
        now = self._now()

        entries: list[FieldEntry] = []
        if is_collection(collection):
            entries.extend(self._member_entries(collection, session_id, now))
        if record_class is not None and scope_name:
            entries.append((self.keys.scope(record_class, scope_name), session_id, now))

        count = await self.store.set_fields(entries)
        logger.debug("pubsub.subscribed", scope=scope_name, keys=count)
        return count

    # ─── Internals ────────────────────────────────────────

    def _now(self) -> str:
        return str(self.clock())

    def _member_entries(self, members: Iterable[Any], session_id: str, now: str):
        for member in members:
            member = RecordRef.coerce(member)
            yield (self.keys.record(member.kind, member.id), session_id, now)
