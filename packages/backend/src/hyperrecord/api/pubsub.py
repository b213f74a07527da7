"""Notification API — HTTP entry points for ORM hooks in other processes.

Learn: Each route is a thin wrapper over one coordinator call. The
caller's X-Session-ID becomes the subscribed viewer; without it the
subscribe half is skipped and only the publish runs.

A notification failure never turns into an HTTP error: the service logs
it and the response says `notified: false`.
"""

from fastapi import APIRouter, Depends

from hyperrecord.api.deps import get_pubsub
from hyperrecord.pubsub.service import PubSubService
from hyperrecord.schemas.pubsub import (
    PublishRead,
    RecordChange,
    RelationChange,
    ScopeChange,
)

router = APIRouter(prefix="/pubsub")


@router.post("/record", response_model=PublishRead)
async def pub_sub_record(body: RecordChange, svc: PubSubService = Depends(get_pubsub)):
    """Subscribe the caller to a record, then notify its subscribers."""
    result = await svc.pub_sub_record(body.record.to_ref())
    return PublishRead.from_result(result)


@router.post("/relation", response_model=PublishRead)
async def pub_sub_relation(body: RelationChange, svc: PubSubService = Depends(get_pubsub)):
    """Subscribe the caller to a relation and its members, then notify."""
    result = await svc.pub_sub_relation(
        body.related_refs(),
        body.base.to_ref(),
        body.relation,
        body.cause.to_ref() if body.cause else None,
    )
    return PublishRead.from_result(result)


@router.post("/scope", response_model=PublishRead)
async def pub_sub_scope(body: ScopeChange, svc: PubSubService = Depends(get_pubsub)):
    """Subscribe the caller to a scope and its members, then notify."""
    result = await svc.pub_sub_scope(
        [m.to_ref() for m in body.members],
        body.record_type,
        body.scope,
    )
    return PublishRead.from_result(result)
