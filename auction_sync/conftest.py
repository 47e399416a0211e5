from __future__ import annotations

import datetime as dt
import json
from decimal import Decimal

import pytest

from auction_sync.auctions.models import Auction
from auction_sync.realtime.bus import BroadcastBus
from auction_sync.realtime.rooms import RoomRegistry

T0 = dt.datetime(2026, 1, 1, 12, 0, 0, tzinfo=dt.UTC)


class FrozenClock:
    """Clock pinned to ``current``; tests move it with ``advance``."""

    def __init__(self, current: dt.datetime = T0):
        self.current = current

    def now(self) -> dt.datetime:
        return self.current

    def now_ms(self) -> int:
        from auction_sync.timesync.clock import to_epoch_ms  # noqa: PLC0415

        return to_epoch_ms(self.current)

    def advance(self, **kwargs) -> dt.datetime:
        self.current += dt.timedelta(**kwargs)
        return self.current


class FakeTransport:
    """In-memory rooms; records frames per connection.

    Connections in ``closed`` are not writable.
    """

    def __init__(self):
        self.rooms: dict[str, set[str]] = {}
        self.sent: dict[str, list[str]] = {}
        self.closed: set[str] = set()
        self.emits: list[tuple[str, list[str]]] = []

    def is_writable(self, sid: str) -> bool:
        return sid not in self.closed

    def enter_room(self, sid: str, room: str) -> None:
        self.rooms.setdefault(room, set()).add(sid)

    def leave_room(self, sid: str, room: str) -> None:
        members = self.rooms.get(room, set())
        members.discard(sid)
        if not members:
            self.rooms.pop(room, None)

    def send(self, sid: str, raw: str) -> None:
        self.sent.setdefault(sid, []).append(raw)

    def emit_to_room(self, room: str, raw: str, skip) -> None:
        self.emits.append((room, list(skip)))
        for sid in sorted(self.rooms.get(room, ())):
            if sid not in skip:
                self.send(sid, raw)

    def messages(self, sid: str) -> list[dict]:
        return [json.loads(raw) for raw in self.sent.get(sid, [])]

    def types(self, sid: str) -> list[str]:
        return [m["type"] for m in self.messages(sid)]


@pytest.fixture
def frozen_clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def registry(transport: FakeTransport) -> RoomRegistry:
    return RoomRegistry(transport)


@pytest.fixture
def bus(registry: RoomRegistry) -> BroadcastBus:
    return BroadcastBus(registry)


@pytest.fixture
def make_auction(frozen_clock: FrozenClock):
    """Create an auction relative to the frozen clock (minutes offsets)."""

    def _make(
        *,
        price: str = "100.00",
        starts_in: float = -1,
        ends_in: float = 5,
        status: str = Auction.Status.RUNNING,
        name: str = "Test auction",
    ) -> Auction:
        return Auction.objects.create(
            name=name,
            start_time=frozen_clock.now() + dt.timedelta(minutes=starts_in),
            end_time=frozen_clock.now() + dt.timedelta(minutes=ends_in),
            current_price=Decimal(price),
            status=status,
        )

    return _make


@pytest.fixture
def use_frozen_clock(monkeypatch, frozen_clock: FrozenClock) -> FrozenClock:
    """Swap the process-wide clock for the frozen one (HTTP-level tests)."""
    from auction_sync.timesync import clock as clock_module  # noqa: PLC0415

    monkeypatch.setattr(clock_module, "clock", frozen_clock)
    return frozen_clock
