"""Subscriber inspection — who would be notified for a key right now."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from hyperrecord.api.deps import get_pubsub
from hyperrecord.pubsub.errors import StoreUnavailableError
from hyperrecord.pubsub.publisher import last_refreshed
from hyperrecord.pubsub.service import PubSubService
from hyperrecord.schemas.pubsub import SubscriberRead, SubscribersRead

router = APIRouter()


@router.get("/subscribers", response_model=SubscribersRead)
async def list_subscribers(
    record_type: str = Query(..., min_length=1),
    id: Optional[str] = None,
    relation: Optional[str] = None,
    scope: Optional[str] = None,
    svc: PubSubService = Depends(get_pubsub),
):
    """List entries of a record, relation or scope key, oldest first.

    Stale entries are reported but not removed; only a publish scrubs.
    """
    if scope:
        key = svc.keys.scope(record_type, scope)
    elif id is None:
        raise HTTPException(status_code=422, detail="id is required unless scope is given")
    elif relation:
        key = svc.keys.relation(record_type, id, relation)
    else:
        key = svc.keys.record(record_type, id)

    try:
        entries = await svc.subscribers(key)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))

    threshold = svc.publisher.scrub_threshold()
    subscribers = sorted(
        (
            SubscriberRead(
                session_id=session_id,
                last_refreshed=last_refreshed(raw),
                stale=last_refreshed(raw) < threshold,
            )
            for session_id, raw in entries.items()
        ),
        key=lambda s: s.last_refreshed,
    )
    return SubscribersRead(key=key, subscribers=subscribers)
