"""Auction rooms: which live connections observe which auction.

A connection is identified by its transport session id (the Socket.IO
``sid``). The registry owns the single-room rule and mirrors every change
into the transport's own rooms (``auction-<id>``), which do the fan-out.

Invariants held under ``_lock``:
- a connection belongs to at most one room;
- a room with no members has no entry;
- ``_rooms`` is exactly the inverse of ``_membership``.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Collection
from typing import Any
from typing import Protocol

from django.core.serializers.json import DjangoJSONEncoder

logger = logging.getLogger(__name__)


class Transport(Protocol):
    def is_writable(self, sid: str) -> bool: ...

    def enter_room(self, sid: str, room: str) -> None: ...

    def leave_room(self, sid: str, room: str) -> None: ...

    def send(self, sid: str, raw: str) -> None: ...

    def emit_to_room(self, room: str, raw: str, skip: Collection[str]) -> None: ...


def room_for_auction(auction_id: int) -> str:
    return f"auction-{int(auction_id)}"


def coerce_auction_id(value: Any) -> int | None:
    """Return a positive integer id, or ``None`` for anything unusable."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
        return number if number > 0 else None
    return None


class RoomRegistry:
    def __init__(self, transport: Transport):
        self.transport = transport
        self._lock = threading.RLock()
        self._rooms: dict[int, set[str]] = {}
        self._membership: dict[str, int] = {}

    def join(self, sid: str, auction_id: Any) -> int | None:
        """Put ``sid`` in the room of ``auction_id``, leaving any earlier room.

        Invalid ids are ignored. Returns the room joined, or ``None``.
        """
        room = coerce_auction_id(auction_id)
        if room is None or not sid:
            return None
        with self._lock:
            previous = self._membership.get(sid)
            if previous == room:
                return room
            if previous is not None:
                self._discard(sid, previous)
            self._rooms.setdefault(room, set()).add(sid)
            self._membership[sid] = room
            self.transport.enter_room(sid, room_for_auction(room))
        logger.debug("Connection %s joined auction-%s", sid, room)
        return room

    def leave(self, sid: str) -> int | None:
        """Remove ``sid`` from its room. Returns the room it left, if any."""
        with self._lock:
            room = self._membership.get(sid)
            if room is None:
                return None
            self._discard(sid, room)
        logger.debug("Connection %s left auction-%s", sid, room)
        return room

    def _discard(self, sid: str, room: int) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(sid)
            if not members:
                del self._rooms[room]
        self._membership.pop(sid, None)
        self.transport.leave_room(sid, room_for_auction(room))

    def room_of(self, sid: str) -> int | None:
        with self._lock:
            return self._membership.get(sid)

    def members(self, auction_id: Any) -> frozenset[str]:
        room = coerce_auction_id(auction_id)
        with self._lock:
            return frozenset(self._rooms.get(room, ()))

    def snapshot(self) -> dict[int, frozenset[str]]:
        with self._lock:
            return {room: frozenset(sids) for room, sids in self._rooms.items()}

    def broadcast(self, auction_id: Any, message: dict[str, Any]) -> int:
        """Serialize ``message`` once and emit it to the room in one call.

        Best effort: members whose transport is not writable are skipped and
        nothing is queued. Returns the number of members addressed.
        """
        room = coerce_auction_id(auction_id)
        if room is None:
            return 0
        recipients = self.members(room)
        skip = sorted(sid for sid in recipients if not self.transport.is_writable(sid))
        if len(skip) == len(recipients):
            return 0

        raw = json.dumps(message, cls=DjangoJSONEncoder)
        try:
            self.transport.emit_to_room(room_for_auction(room), raw, skip)
        except Exception:
            logger.exception("Failed to deliver to auction-%s", room)
            return 0
        return len(recipients) - len(skip)
