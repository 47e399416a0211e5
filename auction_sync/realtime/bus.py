from __future__ import annotations

import json
import logging
import threading
from decimal import Decimal
from typing import TYPE_CHECKING
from typing import Any

from django.core.serializers.json import DjangoJSONEncoder

from auction_sync.realtime.events.auctions import AUCTION_DATA
from auction_sync.realtime.events.auctions import AUCTION_ENDED
from auction_sync.realtime.events.auctions import BID_UPDATE
from auction_sync.realtime.events.auctions import AuctionEnded
from auction_sync.realtime.events.auctions import BidUpdate
from auction_sync.realtime.events.auctions import envelope

if TYPE_CHECKING:  # import for type checking only
    from auction_sync.realtime.rooms import RoomRegistry

logger = logging.getLogger(__name__)

ENDED_MEMORY = 4096


class BroadcastBus:
    """Publishes committed auction events to the auction's room.

    Callers publish only after their store write has committed. Commits for
    one auction can still reach the bus out of order when they race, so the
    bus keeps a per-auction high-water price and the auctions already
    announced as ended, and drops anything that would move an observer
    backwards.

    A high-water mark is dropped when its auction ends. Only the most recent
    ``ended_memory`` ended auctions are remembered; a late ``bidUpdate`` for
    an auction older than that is no longer filtered here, but the store has
    rejected any bid after the end long before then.
    """

    def __init__(self, registry: RoomRegistry, *, ended_memory: int = ENDED_MEMORY):
        self.registry = registry
        self.ended_memory = ended_memory
        self._lock = threading.Lock()
        self._high_water: dict[int, Decimal] = {}
        self._ended: dict[int, None] = {}

    def publish_bid_update(self, update: BidUpdate) -> bool:
        with self._lock:
            if update.auction_id in self._ended:
                logger.debug("Dropped bidUpdate for ended auction %s", update.auction_id)
                return False
            mark = self._high_water.get(update.auction_id)
            if mark is not None and update.new_price <= mark:
                logger.debug(
                    "Dropped stale bidUpdate %s <= %s for auction %s",
                    update.new_price,
                    mark,
                    update.auction_id,
                )
                return False
            self._high_water[update.auction_id] = update.new_price
            # Deliver under the lock so a later price cannot overtake this one.
            self.registry.broadcast(
                update.auction_id,
                envelope(BID_UPDATE, update.as_payload()),
            )
        return True

    def publish_auction_ended(self, event: AuctionEnded) -> bool:
        with self._lock:
            if event.auction_id in self._ended:
                return False
            self._ended[event.auction_id] = None
            while len(self._ended) > self.ended_memory:
                del self._ended[next(iter(self._ended))]
            self._high_water.pop(event.auction_id, None)
            self.registry.broadcast(
                event.auction_id,
                envelope(AUCTION_ENDED, event.as_payload()),
            )
        return True

    def send_snapshot(self, sid: str, snapshot: dict[str, Any]) -> dict | None:
        """Send ``auctionData`` to one observer, never behind what its room saw.

        The snapshot is read from the store before this call, so a bid or the
        end may have been published in between. Those are folded in, and the
        send happens under the lock so no newer event reaches ``sid`` first.
        """
        auction = dict(snapshot["auction"])
        with self._lock:
            if auction["id"] in self._ended:
                auction["status"] = "ended"
            mark = self._high_water.get(auction["id"])
            if mark is not None and mark > Decimal(auction["currentPrice"]):
                auction["currentPrice"] = f"{mark:.2f}"
            if not self.registry.transport.is_writable(sid):
                return None
            reply = envelope(AUCTION_DATA, {**snapshot, "auction": auction})
            self.registry.transport.send(sid, json.dumps(reply, cls=DjangoJSONEncoder))
        return reply
