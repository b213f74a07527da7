"""Pydantic schemas for the notification API.

Learn: Records travel as plain descriptors, never as ORM rows. The API
converts them to RecordRef before they reach the service.
"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field

from hyperrecord.pubsub.messages import RecordRef
from hyperrecord.pubsub.publisher import PublishResult


class RecordIn(BaseModel):
    record_type: str = Field(..., min_length=1)
    id: Union[int, str]
    updated_at: Optional[datetime] = None
    destroyed: bool = False

    def to_ref(self) -> RecordRef:
        return RecordRef(
            kind=self.record_type,
            id=self.id,
            updated_at=self.updated_at,
            destroyed=self.destroyed,
        )


class RecordChange(BaseModel):
    record: RecordIn


class RelationChange(BaseModel):
    base: RecordIn
    relation: str = Field(..., min_length=1)
    # has-many: list, has-one/belongs-to: single record, or nothing loaded
    related: Union[list[RecordIn], RecordIn, None] = None
    cause: Optional[RecordIn] = None

    def related_refs(self):
        if isinstance(self.related, list):
            return [r.to_ref() for r in self.related]
        if self.related is not None:
            return self.related.to_ref()
        return None


class ScopeChange(BaseModel):
    record_type: str = Field(..., min_length=1)
    scope: str = Field(..., min_length=1)
    members: list[RecordIn] = []


class PublishRead(BaseModel):
    """Outcome of a pub/sub call. `notified=False` means it was skipped."""

    notified: bool
    key: Optional[str] = None
    live_sessions: int = 0
    scrubbed_sessions: int = 0
    batches: int = 0
    key_dropped: bool = False

    @classmethod
    def from_result(cls, result: Optional[PublishResult]) -> "PublishRead":
        if result is None:
            return cls(notified=False)
        return cls(
            notified=True,
            key=result.key,
            live_sessions=len(result.live),
            scrubbed_sessions=len(result.scrubbed),
            batches=result.batches,
            key_dropped=result.key_dropped,
        )


class SubscriberRead(BaseModel):
    session_id: str
    last_refreshed: float
    stale: bool


class SubscribersRead(BaseModel):
    key: str
    subscribers: list[SubscriberRead]
