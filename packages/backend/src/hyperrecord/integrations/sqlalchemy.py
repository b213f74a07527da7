"""SQLAlchemy adapter — model instances in, RecordRefs out.

Learn: The notification layer only knows RecordRef. This module builds
them from mapped instances and collects everything a Session flushed so
the changes can be published once the transaction commits:

    tracker = ChangeTracker()
    tracker.install(session)          # or a sessionmaker / Session class
    ...
    await session.commit()
    await publish_pending(service, session, tracker)

Reads of relations and scopes go through the same translation:

    await pub_sub_relation(service, post, "comments", cause=new_comment)
    await pub_sub_scope(service, session.scalars(published).all(), Post, "published")

Relationship attributes are read with getattr, so with AsyncSession load
them eagerly first (selectinload) or the lazy load fails.

For AsyncSession install on `async_session.sync_session` (or on the
sessionmaker's sync_session_class). Rolled back changes are discarded.
"""

from itertools import chain
from typing import Any, Iterable, Optional, Union

import structlog
from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from hyperrecord.pubsub.messages import RecordRef, is_collection

logger = structlog.get_logger()

CHANGES_KEY = "hyperrecord.changes"


def record_ref(
    instance: Any,
    *,
    updated_at_attr: str = "updated_at",
    destroyed: Optional[bool] = None,
) -> RecordRef:
    """Describe a mapped instance. Composite keys are joined with '-'."""
    state = inspect(instance)
    identity = state.identity or tuple(state.mapper.primary_key_from_instance(instance))
    if len(identity) == 1:
        record_id = identity[0]
    else:
        record_id = "-".join(str(part) for part in identity)

    if destroyed is None:
        destroyed = bool(state.deleted or state.was_deleted)

    if destroyed or state.detached:
        # never lazy-load here: the row may already be gone
        updated_at = state.dict.get(updated_at_attr)
    else:
        updated_at = getattr(instance, updated_at_attr, None)

    return RecordRef(
        kind=type(instance).__name__,
        id=record_id,
        updated_at=updated_at,
        destroyed=destroyed,
    )


class ChangeTracker:
    """Remembers records written by a Session until they are drained."""

    def __init__(
        self,
        models: Optional[Iterable[type]] = None,
        updated_at_attr: str = "updated_at",
    ):
        self.models = tuple(models) if models else None
        self.updated_at_attr = updated_at_attr

    def install(self, target: Any) -> None:
        event.listen(target, "after_flush", self._after_flush)
        event.listen(target, "after_rollback", self._after_rollback)

    def uninstall(self, target: Any) -> None:
        event.remove(target, "after_flush", self._after_flush)
        event.remove(target, "after_rollback", self._after_rollback)

    def drain(self, session: Any) -> list[RecordRef]:
        """Pop collected changes, one per record, newest snapshot wins."""
        changes = session.info.pop(CHANGES_KEY, {})
        return list(changes.values())

    # ─── Session events ───────────────────────────────────

    def _tracked(self, instance: Any) -> bool:
        return self.models is None or isinstance(instance, self.models)

    def _after_flush(self, session: Session, flush_context) -> None:
        # new/dirty/deleted still hold their pre-flush contents here
        changes = session.info.setdefault(CHANGES_KEY, {})
        deleted = set(map(id, session.deleted))
        for instance in chain(session.new, session.dirty, session.deleted):
            if not self._tracked(instance):
                continue
            if instance in session.dirty and not session.is_modified(instance):
                continue
            ref = record_ref(
                instance,
                updated_at_attr=self.updated_at_attr,
                destroyed=id(instance) in deleted,
            )
            changes[(ref.kind, ref.id)] = ref

    def _after_rollback(self, session: Session) -> None:
        session.info.pop(CHANGES_KEY, None)


async def publish_pending(service: Any, session: Any, tracker: ChangeTracker) -> int:
    """pub_sub_record every change the tracker collected. Returns the count."""
    changes = tracker.drain(session)
    for ref in changes:
        await service.pub_sub_record(ref)
    if changes:
        logger.debug("pubsub.orm_changes_published", records=len(changes))
    return len(changes)


def related_refs(value: Any) -> Union[list[RecordRef], RecordRef, None]:
    """Translate a relationship value: collection, single instance or None."""
    if value is None:
        return None
    if is_collection(value):
        return [record_ref(member) for member in value]
    return record_ref(value)


async def pub_sub_relation(
    service: Any,
    instance: Any,
    relation_name: str,
    cause: Any = None,
):
    """pub_sub_relation for a mapped instance and one of its relationships."""
    return await service.pub_sub_relation(
        related_refs(getattr(instance, relation_name)),
        record_ref(instance),
        relation_name,
        record_ref(cause) if cause is not None else None,
    )


async def pub_sub_scope(service: Any, rows: Iterable[Any], model: type, scope_name: str):
    """pub_sub_scope for the rows a named query returned."""
    return await service.pub_sub_scope([record_ref(row) for row in rows], model, scope_name)
