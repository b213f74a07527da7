"""Test fixtures — in-memory store and transport, frozen clock, HTTP client.

Learn: PubSubService takes its store, transport, clock and session
provider as constructor arguments, so tests swap in fakes instead of
needing a live Redis or Pusher account:

- FakeStore keeps the same {key: {session_id: timestamp}} shape as the
  Redis hashes and records every call
- RecordingTransport remembers each trigger(channels, event, payload)
- FakeClock is advanced by hand to cross the freshness window
- Viewer stands in for the request's session id
"""

from typing import Iterable, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from hyperrecord.pubsub.errors import StoreUnavailableError, TransportUnavailableError
from hyperrecord.pubsub.keys import KeySpace
from hyperrecord.pubsub.service import PubSubService
from hyperrecord.pubsub.transports import Transport

T0 = 1_700_000_000.0
HOUR = 60 * 60.0


class FakeStore:
    """Dict-of-dicts SubscriptionStore."""

    def __init__(self):
        self.data: dict[str, dict[str, str]] = {}
        self.calls: list[tuple] = []
        self.fail = False

    def _check(self, op: str):
        if self.fail:
            raise StoreUnavailableError(f"{op} failed: connection refused")

    async def get_all(self, key: str) -> dict[str, str]:
        self._check("HGETALL")
        self.calls.append(("get_all", key))
        return dict(self.data.get(key, {}))

    async def set_field(self, key: str, session_id: str, timestamp: str) -> None:
        self._check("HSET")
        self.calls.append(("set_field", key, session_id))
        self.data.setdefault(key, {})[session_id] = timestamp

    async def set_fields(self, entries: Iterable[tuple[str, str, str]]) -> int:
        self._check("pipeline")
        entries = list(entries)
        if not entries:
            return 0
        self.calls.append(("set_fields", len(entries)))
        for key, session_id, timestamp in entries:
            self.data.setdefault(key, {})[session_id] = timestamp
        return len(entries)

    async def delete_field(self, key: str, session_id: str) -> int:
        return await self.delete_fields(key, session_id)

    async def delete_fields(self, key: str, *session_ids: str) -> int:
        self._check("HDEL")
        self.calls.append(("delete_fields", key, session_ids))
        fields = self.data.get(key, {})
        removed = 0
        for session_id in session_ids:
            if fields.pop(session_id, None) is not None:
                removed += 1
        if key in self.data and not fields:
            del self.data[key]  # Redis drops empty hashes
        return removed

    async def delete_key(self, key: str) -> None:
        self._check("DEL")
        self.calls.append(("delete_key", key))
        self.data.pop(key, None)


class RecordingTransport(Transport):
    """Transport that remembers every batch instead of sending it."""

    def __init__(self, batch_size: int = 50):
        super().__init__(batch_size=batch_size)
        self.sent: list[tuple[list[str], str, dict]] = []
        self.fail = False

    @property
    def name(self) -> str:
        return "recording"

    async def trigger(self, channels: list[str], event: str, payload: dict) -> None:
        if self.fail:
            raise TransportUnavailableError("pusher trigger failed: 503")
        self.sent.append((list(channels), event, payload))

    def channels(self) -> list[str]:
        return [c for batch, _, _ in self.sent for c in batch]

    def sessions(self) -> set[str]:
        prefix = KeySpace().channel("")
        return {c[len(prefix):] for c in self.channels()}


class FakeClock:
    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Viewer:
    """Mutable session provider."""

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id

    def __call__(self) -> Optional[str]:
        return self.session_id


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def store():
    return FakeStore()


@pytest.fixture()
def transport():
    return RecordingTransport()


@pytest.fixture()
def viewer():
    return Viewer()


@pytest.fixture()
def service(store, transport, clock, viewer):
    return PubSubService(store, transport, session_provider=viewer, clock=clock)


@pytest_asyncio.fixture()
async def client(store, transport, clock):
    """HTTP client against the real app with a fake-backed service.

    Learn: ASGITransport does not run the lifespan, so the service the
    lifespan would build is placed on app.state directly. It keeps the
    default session provider, which reads the id bound by
    SessionMiddleware from the X-Session-ID header.
    """
    from hyperrecord.main import app

    app.state.pubsub = PubSubService(store, transport, clock=clock)
    transport_ = ASGITransport(app=app)
    async with AsyncClient(transport=transport_, base_url="http://test") as ac:
        yield ac
    app.state.pubsub = None
