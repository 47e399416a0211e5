"""Inbound room protocol.

Observers send ``{"type": ..., "payload": {...}}`` either as JSON text or as
an already-decoded object. Anything that does not parse into one of the known
variants is dropped by the caller.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from auction_sync.realtime.rooms import coerce_auction_id

JOIN_AUCTION = "joinAuction"
LEAVE_AUCTION = "leaveAuction"


@dataclass(frozen=True)
class JoinAuction:
    auction_id: int


@dataclass(frozen=True)
class LeaveAuction:
    pass


InboundMessage = JoinAuction | LeaveAuction


def _decode(data: Any) -> dict[str, Any] | None:
    if isinstance(data, bytes | bytearray):
        data = data.decode(errors="ignore")
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError:
            return None
    return data if isinstance(data, dict) else None


def parse_inbound(data: Any) -> InboundMessage | None:
    message = _decode(data)
    if message is None:
        return None

    body = message.get("payload", message.get("data"))
    if not isinstance(body, dict):
        body = {}

    kind = message.get("type")
    if kind == JOIN_AUCTION:
        auction_id = coerce_auction_id(body.get("auctionId"))
        return JoinAuction(auction_id) if auction_id is not None else None
    if kind == LEAVE_AUCTION:
        return LeaveAuction()
    return None
