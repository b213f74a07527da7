"""Record references and change messages.

Learn: The notification layer never touches ORM models directly. Callers
hand it a RecordRef (kind + id + updated_at + destroyed), usually built by
an ORM adapter, and it answers with a ChangeMessage that browsers use to
decide what to refetch.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Union

Timestamp = Union[datetime, str, None]


def _isoformat(value: Timestamp) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class RecordRef:
    """Generic descriptor of one persisted record."""

    kind: str
    id: Any
    updated_at: Timestamp = None
    destroyed: bool = False

    @classmethod
    def coerce(cls, value: Any) -> "RecordRef":
        """Accept a RecordRef or a mapping with kind/record_type + id."""
        if isinstance(value, RecordRef):
            return value
        if isinstance(value, Mapping):
            kind = value.get("kind") or value.get("record_type")
            if not kind or "id" not in value:
                raise ValueError(f"Cannot build a record reference from {value!r}")
            return cls(
                kind=str(kind),
                id=value["id"],
                updated_at=value.get("updated_at"),
                destroyed=bool(value.get("destroyed", False)),
            )
        raise TypeError(f"Expected RecordRef or mapping, got {type(value).__name__}")


def is_collection(value: Any) -> bool:
    """True for to-many relation values (lists, sets, query results...)."""
    if isinstance(value, (str, bytes, Mapping, RecordRef)):
        return False
    return isinstance(value, Iterable)


@dataclass(frozen=True)
class ChangeCause:
    """The record whose change triggered a relation-level update."""

    record_type: str
    id: Any
    updated_at: Timestamp = None
    destroyed: bool = False

    @classmethod
    def from_record(cls, record: RecordRef) -> "ChangeCause":
        return cls(
            record_type=record.kind,
            id=record.id,
            updated_at=record.updated_at,
            destroyed=record.destroyed,
        )

    def to_payload(self) -> dict:
        payload = {
            "record_type": self.record_type,
            "id": self.id,
            "updated_at": _isoformat(self.updated_at),
        }
        if self.destroyed:
            payload["destroyed"] = True
        return payload


@dataclass(frozen=True)
class ChangeMessage:
    """Payload sent on the `update` event.

    Field presence is conditional: scope messages carry only record_type
    and scope; `relation`, `cause` and `destroyed` appear only when set.
    """

    record_type: str
    id: Any = None
    updated_at: Timestamp = None
    relation: Optional[str] = None
    scope: Optional[str] = None
    destroyed: bool = False
    cause: Optional[ChangeCause] = None

    @classmethod
    def for_record(cls, record: RecordRef) -> "ChangeMessage":
        return cls(
            record_type=record.kind,
            id=record.id,
            updated_at=record.updated_at,
            destroyed=record.destroyed,
        )

    @classmethod
    def for_relation(
        cls,
        base_record: RecordRef,
        relation_name: str,
        causing_record: Optional[RecordRef] = None,
    ) -> "ChangeMessage":
        return cls(
            record_type=base_record.kind,
            id=base_record.id,
            updated_at=base_record.updated_at,
            relation=relation_name,
            cause=ChangeCause.from_record(causing_record) if causing_record else None,
        )

    @classmethod
    def for_scope(cls, kind: str, scope_name: str) -> "ChangeMessage":
        return cls(record_type=kind, scope=scope_name)

    def to_payload(self) -> dict:
        payload: dict[str, Any] = {"record_type": self.record_type}
        if self.scope is not None:
            payload["scope"] = self.scope
            return payload

        payload["id"] = self.id
        payload["updated_at"] = _isoformat(self.updated_at)
        if self.relation is not None:
            payload["relation"] = self.relation
        if self.cause is not None:
            payload["cause"] = self.cause.to_payload()
        if self.destroyed:
            payload["destroyed"] = True
        return payload
