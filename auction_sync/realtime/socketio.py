"""Global Socket.IO server for auction observers.

Current frontend convention:
- URL base: ws://<host>:8000
- Socket.IO path: /ws/auctions/ (``SOCKETIO_PATH``)
- No auth: observers are anonymous.

Observers talk a small JSON protocol over the ``message`` event (see
``auction_sync.realtime.protocol``). ``RoomRegistry`` enforces the single-room
rule and mirrors membership into Socket.IO rooms named ``auction-<id>``;
broadcasts are one ``emit`` to that room.
"""

from __future__ import annotations

import logging
from collections.abc import Collection
from typing import Any

import socketio
from asgiref.sync import async_to_sync
from asgiref.sync import sync_to_async
from channels.db import database_sync_to_async
from django.db import DatabaseError

from auction_sync.auctions.models import Auction
from auction_sync.realtime.bus import BroadcastBus
from auction_sync.realtime.events.auctions import build_auction_snapshot
from auction_sync.realtime.protocol import JoinAuction
from auction_sync.realtime.protocol import LeaveAuction
from auction_sync.realtime.protocol import parse_inbound
from auction_sync.realtime.rooms import RoomRegistry
from auction_sync.timesync import clock as clock_module

logger = logging.getLogger(__name__)

NAMESPACE = "/"


sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins="*",
    logger=False,
    engineio_logger=False,
)


class SocketIOTransport:
    """Socket.IO side of ``RoomRegistry``.

    Room bookkeeping is synchronous and runs wherever the registry is called.
    ``send`` and ``emit_to_room`` are called from sync code (request threads,
    the sweep thread), so they hop onto the server's loop with ``async_to_sync``.
    """

    def __init__(self, server: socketio.AsyncServer, namespace: str = NAMESPACE):
        self.server = server
        self.namespace = namespace

    def is_writable(self, sid: str) -> bool:
        return bool(self.server.manager.is_connected(sid, self.namespace))

    def enter_room(self, sid: str, room: str) -> None:
        if self.is_writable(sid):
            self.server.manager.basic_enter_room(sid, self.namespace, room)

    def leave_room(self, sid: str, room: str) -> None:
        self.server.manager.basic_leave_room(sid, self.namespace, room)

    def send(self, sid: str, raw: str) -> None:
        async_to_sync(self.server.send)(raw, to=sid, namespace=self.namespace)

    def emit_to_room(self, room: str, raw: str, skip: Collection[str]) -> None:
        async_to_sync(self.server.emit)(
            "message",
            raw,
            room=room,
            skip_sid=list(skip) or None,
            namespace=self.namespace,
        )


registry = RoomRegistry(SocketIOTransport(sio))
bus = BroadcastBus(registry)


@database_sync_to_async
def _load_snapshot(auction_id: int) -> dict[str, Any] | None:
    auction = Auction.objects.filter(pk=auction_id).first()
    if auction is None:
        return None
    return build_auction_snapshot(auction, clock_module.clock.now())


async def handle_join(sid: str, message: JoinAuction) -> dict[str, Any] | None:
    """Join the room, then reply with the current auction stamped with server time.

    Unknown auctions still get a room (observers may subscribe before the
    record exists) but no snapshot.
    """
    if registry.join(sid, message.auction_id) is None:
        return None
    try:
        snapshot = await _load_snapshot(message.auction_id)
    except DatabaseError:
        logger.exception("Failed to load auction %s for %s", message.auction_id, sid)
        return None
    if snapshot is None:
        return None
    return await sync_to_async(bus.send_snapshot)(sid, snapshot)


async def handle_leave(sid: str, message: LeaveAuction) -> None:
    registry.leave(sid)


HANDLERS = {
    JoinAuction: handle_join,
    LeaveAuction: handle_leave,
}


@sio.event
async def connect(sid: str, environ: dict[str, Any], auth: Any | None = None):
    logger.debug("Observer connected: %s", sid)


@sio.event
async def disconnect(sid: str, *args):
    registry.leave(sid)
    logger.debug("Observer disconnected: %s", sid)


@sio.event
async def message(sid: str, data: Any):
    inbound = parse_inbound(data)
    if inbound is None:
        logger.debug("Dropped malformed message from %s: %r", sid, data)
        return
    await HANDLERS[type(inbound)](sid, inbound)


@sio.on("joinAuction")
async def join_auction(sid: str, data: Any):
    """Event-style alias: ``emit("joinAuction", {auctionId})``."""

    inbound = parse_inbound({"type": "joinAuction", "payload": data})
    if inbound is not None:
        await handle_join(sid, inbound)
