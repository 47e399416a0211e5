"""Race-safe bid admission.

A bid is validated against a fresh read of the auction and committed with a
single conditional UPDATE that only applies while the row still holds the
price that was read. Losing that race is a collision, not an error: the
engine re-reads and re-validates, so a lower bid can never overwrite a higher
one that committed first.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING
from typing import Any

from django.conf import settings
from django.db import DatabaseError
from django.db.transaction import on_commit

from auction_sync.auctions.errors import Closed
from auction_sync.auctions.errors import InvalidInput
from auction_sync.auctions.errors import NotFound
from auction_sync.auctions.errors import NotStarted
from auction_sync.auctions.errors import PriceTooLow
from auction_sync.auctions.errors import StoreUnavailable
from auction_sync.auctions.models import Auction
from auction_sync.realtime.events.auctions import BidUpdate
from auction_sync.timesync import clock as clock_module

if TYPE_CHECKING:  # import for type checking only
    import datetime as dt

    from auction_sync.realtime.bus import BroadcastBus
    from auction_sync.timesync.clock import Clock

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
MAX_PRICE = Decimal("99999999.99")


def coerce_amount(value: Any) -> Decimal:
    """Validate a bid amount: a positive, finite JSON number in whole cents.

    The amount is never rounded, so the committed price is exactly the offer.
    """
    if isinstance(value, bool) or not isinstance(value, int | float | Decimal):
        msg = "Bid amount must be a number."
        raise InvalidInput(msg)
    amount = Decimal(str(value))
    if not amount.is_finite():
        msg = "Bid amount must be finite."
        raise InvalidInput(msg)
    if amount <= 0:
        msg = "Bid amount must be positive."
        raise InvalidInput(msg)
    if amount > MAX_PRICE:
        msg = "Bid amount is too large."
        raise InvalidInput(msg)
    if amount != amount.quantize(CENTS):
        msg = "Bid amount must be in whole cents."
        raise InvalidInput(msg)
    return amount.quantize(CENTS)


class BidAdmissionEngine:
    def __init__(
        self,
        *,
        clock: Clock | None = None,
        bus: BroadcastBus | None = None,
        max_attempts: int | None = None,
    ):
        self.clock = clock or clock_module.clock
        self._bus = bus
        if max_attempts is None:
            max_attempts = getattr(settings, "AUCTION_BID_MAX_ATTEMPTS", 5)
        self.max_attempts = max(1, int(max_attempts))

    @property
    def bus(self) -> BroadcastBus:
        if self._bus is None:
            from auction_sync.realtime.socketio import bus  # noqa: PLC0415

            self._bus = bus
        return self._bus

    def submit_bid(
        self,
        auction_id: Any,
        amount: Any,
        bidder_id: str | None = None,
    ) -> BidUpdate:
        """Validate and commit a bid; publish it to the room after commit.

        Checks run in a fixed order: existence, amount, start, end/status,
        price. Raises an ``AuctionError`` subclass on failure.
        """
        bidder = bidder_id or getattr(
            settings, "AUCTION_DEFAULT_BIDDER", "anonymous"
        )
        value: Decimal | None = None

        for attempt in range(1, self.max_attempts + 1):
            auction = self._load(auction_id)
            if value is None:
                value = coerce_amount(amount)
            now = self.clock.now()
            self._check_window(auction, now)
            if value <= auction.current_price:
                msg = (
                    "Bid must be higher than the current price "
                    f"{auction.current_price}."
                )
                raise PriceTooLow(msg)

            if self._advance(auction, value, now):
                break
            logger.info(
                "Bid collision on auction %s (attempt %s/%s, read price %s)",
                auction.pk,
                attempt,
                self.max_attempts,
                auction.current_price,
            )
        else:
            logger.warning(
                "Bid on auction %s gave up after %s attempts",
                auction_id,
                self.max_attempts,
            )
            msg = "Price moved too fast, bid again against the latest price."
            raise PriceTooLow(msg)

        update = BidUpdate(
            auction_id=auction.pk,
            new_price=value,
            bidder_id=str(bidder),
            server_time=self.clock.now(),
        )
        logger.info("Bid accepted on auction %s: %s by %s", auction.pk, value, bidder)
        on_commit(lambda: self.bus.publish_bid_update(update))
        return update

    def _load(self, auction_id: Any) -> Auction:
        if isinstance(auction_id, bool) or not isinstance(auction_id, int | str):
            raise NotFound
        try:
            pk = int(auction_id)
        except ValueError:
            raise NotFound from None
        if pk <= 0:
            raise NotFound
        try:
            return Auction.objects.get(pk=pk)
        except Auction.DoesNotExist:
            raise NotFound from None
        except DatabaseError as exc:
            logger.exception("Auction store read failed for %s", pk)
            raise StoreUnavailable from exc

    def _check_window(self, auction: Auction, now: dt.datetime) -> None:
        if now < auction.start_time:
            raise NotStarted
        if now > auction.end_time or auction.is_ended:
            raise Closed

    def _advance(self, auction: Auction, value: Decimal, now: dt.datetime) -> bool:
        """Compare-and-advance: write only if the row still holds the read price."""
        try:
            updated = (
                Auction.objects.filter(
                    pk=auction.pk,
                    current_price=auction.current_price,
                    start_time__lte=now,
                    end_time__gte=now,
                )
                .exclude(status=Auction.Status.ENDED)
                .update(current_price=value, status=Auction.Status.RUNNING)
            )
        except DatabaseError as exc:
            logger.exception("Auction store write failed for %s", auction.pk)
            raise StoreUnavailable from exc
        return updated == 1
