"""Record change-notification fan-out.

Typical use from an ORM hook or request handler:

    service = build_pubsub_service(settings, redis)
    await service.pub_sub_record(RecordRef("Post", 42, updated_at=now))
"""

from hyperrecord.pubsub.errors import (
    NotificationError,
    StoreUnavailableError,
    TransportUnavailableError,
    UnknownTransportError,
)
from hyperrecord.pubsub.keys import KeySpace
from hyperrecord.pubsub.messages import ChangeCause, ChangeMessage, RecordRef
from hyperrecord.pubsub.publisher import Publisher, PublishResult
from hyperrecord.pubsub.registrar import SubscriberRegistrar
from hyperrecord.pubsub.service import PubSubService, build_pubsub_service
from hyperrecord.pubsub.store import RedisSubscriptionStore, SubscriptionStore
from hyperrecord.pubsub.transports import (
    NullTransport,
    PusherTransport,
    RedisTransport,
    Transport,
    build_transport,
    list_transports,
    register_transport,
)

__all__ = [
    "ChangeCause",
    "ChangeMessage",
    "KeySpace",
    "NotificationError",
    "NullTransport",
    "PubSubService",
    "PublishResult",
    "Publisher",
    "PusherTransport",
    "RecordRef",
    "RedisSubscriptionStore",
    "RedisTransport",
    "StoreUnavailableError",
    "SubscriberRegistrar",
    "SubscriptionStore",
    "Transport",
    "TransportUnavailableError",
    "UnknownTransportError",
    "build_pubsub_service",
    "build_transport",
    "list_transports",
    "register_transport",
]
