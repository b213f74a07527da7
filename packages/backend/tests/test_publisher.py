"""Publisher tests — stale scrubbing, delivery, batching, destroyed records.

Learn: The clock is frozen, so "23h59m later" is just clock.advance().
"""

import pytest

from conftest import HOUR, RecordingTransport
from hyperrecord.pubsub.messages import RecordRef
from hyperrecord.pubsub.publisher import Publisher
from hyperrecord.pubsub.registrar import SubscriberRegistrar
from hyperrecord.pubsub.transports import NullTransport

POST = RecordRef("Post", 42, "2024-05-01T12:00:00Z")
KEY = "HRPS__Post__42"


def _publisher(store, transport, clock):
    return Publisher(store, transport, clock=clock)


@pytest.mark.asyncio
async def test_subscriber_inside_window_receives(store, transport, clock):
    """Subscribed at t=0, published at 23h59m: still delivered."""
    await SubscriberRegistrar(store, clock=clock).subscribe_record(POST, "s1")
    clock.advance(23 * HOUR + 59 * 60)

    result = await _publisher(store, transport, clock).publish_record(POST)

    assert result.live == ["s1"]
    assert result.scrubbed == []
    assert transport.sent == [
        (
            ["hyper-record-update-channel-s1"],
            "update",
            {"record_type": "Post", "id": 42, "updated_at": "2024-05-01T12:00:00Z"},
        )
    ]


@pytest.mark.asyncio
async def test_stale_subscriber_is_pruned(store, transport, clock):
    """Published at 25h: s1 gets nothing and is removed from the key."""
    await SubscriberRegistrar(store, clock=clock).subscribe_record(POST, "s1")
    clock.advance(25 * HOUR)

    result = await _publisher(store, transport, clock).publish_record(POST)

    assert result.scrubbed == ["s1"]
    assert transport.sent == []
    assert await store.get_all(KEY) == {}


@pytest.mark.asyncio
async def test_scrub_twice_is_noop(store, transport, clock):
    store.data[KEY] = {"old": str(clock() - 30 * HOUR), "fresh": str(clock())}
    publisher = _publisher(store, transport, clock)

    first = await publisher.publish_record(POST)
    second = await publisher.publish_record(POST)

    assert first.scrubbed == ["old"]
    assert second.scrubbed == []
    assert store.data[KEY] == {"fresh": str(clock())}
    assert transport.sessions() == {"fresh"}


@pytest.mark.asyncio
async def test_unparseable_timestamp_counts_as_stale(store, transport, clock):
    store.data[KEY] = {"weird": "not-a-time"}
    result = await _publisher(store, transport, clock).publish_record(POST)
    assert result.scrubbed == ["weird"]
    assert transport.sent == []


@pytest.mark.asyncio
async def test_destroyed_record_drops_key_after_delivery(store, transport, clock):
    store.data[KEY] = {"s1": str(clock())}
    publisher = _publisher(store, transport, clock)
    destroyed = RecordRef("Post", 42, destroyed=True)

    result = await publisher.publish_record(destroyed)

    assert result.key_dropped
    assert transport.sent[0][2]["destroyed"] is True
    assert KEY not in store.data

    again = await publisher.publish_record(destroyed)
    assert again.live == []
    assert len(transport.sent) == 1


@pytest.mark.asyncio
async def test_relation_key_survives_destroyed_cause(store, transport, clock):
    key = "HRPS__Post__42__comments"
    store.data[key] = {"s1": str(clock())}
    comment = RecordRef("Comment", 9, destroyed=True)

    result = await _publisher(store, transport, clock).publish_relation(POST, "comments", comment)

    assert not result.key_dropped
    assert store.data[key] == {"s1": str(clock())}
    payload = transport.sent[0][2]
    assert payload["relation"] == "comments"
    assert payload["cause"]["destroyed"] is True


@pytest.mark.asyncio
async def test_scope_publish(store, transport, clock):
    store.data["HRPS__Post__scope__published"] = {"s1": str(clock()), "s2": str(clock())}

    result = await _publisher(store, transport, clock).publish_scope("Post", "published")

    assert sorted(result.live) == ["s1", "s2"]
    assert len(transport.sent) == 1
    assert transport.sent[0][2] == {"record_type": "Post", "scope": "published"}


@pytest.mark.asyncio
async def test_delivery_batches_at_fifty(store, clock):
    transport = RecordingTransport(batch_size=50)
    store.data[KEY] = {f"s{i}": str(clock()) for i in range(120)}

    result = await _publisher(store, transport, clock).publish_record(POST)

    assert result.batches == 3
    assert [len(channels) for channels, _, _ in transport.sent] == [50, 50, 20]
    assert len(transport.sessions()) == 120


@pytest.mark.asyncio
async def test_null_transport_still_scrubs(store, clock):
    store.data[KEY] = {"old": str(clock() - 48 * HOUR), "fresh": str(clock())}

    result = await _publisher(store, NullTransport(), clock).publish_record(POST)

    assert result.scrubbed == ["old"]
    assert result.live == ["fresh"]
    assert not result.delivered


@pytest.mark.asyncio
async def test_freshness_window_is_configurable(store, transport, clock):
    store.data[KEY] = {"s1": str(clock() - 2 * HOUR)}
    publisher = Publisher(store, transport, clock=clock, freshness_window=HOUR)

    result = await publisher.publish_record(POST)

    assert result.scrubbed == ["s1"]


@pytest.mark.asyncio
async def test_unaddressable_session_is_scrubbed(store, transport, clock):
    """An entry no channel can carry is dropped instead of blocking the batch."""
    store.data[KEY] = {
        "good": str(clock()),
        "abc/def+ghi:1": str(clock()),
        "y" * 180: str(clock()),
    }

    result = await _publisher(store, transport, clock).publish_record(POST)

    assert result.live == ["good"]
    assert sorted(result.scrubbed) == sorted(["abc/def+ghi:1", "y" * 180])
    assert store.data[KEY] == {"good": str(clock())}
    assert transport.channels() == ["hyper-record-update-channel-good"]
