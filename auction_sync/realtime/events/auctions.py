from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING
from typing import Any

from auction_sync.timesync.clock import isoformat_ms

if TYPE_CHECKING:  # import for type checking only
    from auction_sync.auctions.models import Auction

AUCTION_DATA = "auctionData"
BID_UPDATE = "bidUpdate"
AUCTION_ENDED = "auctionEnded"


@dataclass(frozen=True)
class BidUpdate:
    auction_id: int
    new_price: Decimal
    bidder_id: str
    server_time: dt.datetime

    def as_payload(self) -> dict[str, Any]:
        return {
            "auctionId": self.auction_id,
            "newPrice": f"{self.new_price:.2f}",
            "bidderId": self.bidder_id,
            "serverTime": isoformat_ms(self.server_time),
        }


@dataclass(frozen=True)
class AuctionEnded:
    auction_id: int
    server_time: dt.datetime

    def as_payload(self) -> dict[str, Any]:
        return {
            "auctionId": self.auction_id,
            "serverTime": isoformat_ms(self.server_time),
        }


def build_auction_record(auction: Auction) -> dict[str, Any]:
    return {
        "id": auction.pk,
        "name": auction.name,
        "startTime": isoformat_ms(auction.start_time),
        "endTime": isoformat_ms(auction.end_time),
        "currentPrice": f"{auction.current_price:.2f}",
        "status": auction.status,
    }


def build_auction_snapshot(auction: Auction, server_time: dt.datetime) -> dict:
    return {
        "auction": build_auction_record(auction),
        "serverTime": isoformat_ms(server_time),
    }


def envelope(event_type: str, data: dict[str, Any]) -> dict[str, Any]:
    return {"type": event_type, "data": data}
