"""Periodic expiry sweep.

Each tick ends every auction whose window has elapsed. The transition is a
conditional UPDATE, so overlapping ticks (or several server processes) end
and announce a given auction at most once. A failed tick is logged and the
next one simply tries again.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from channels.db import database_sync_to_async
from django.conf import settings
from django.db import DatabaseError
from django.db.transaction import on_commit

from auction_sync.auctions.errors import StoreUnavailable
from auction_sync.auctions.models import Auction
from auction_sync.realtime.events.auctions import AuctionEnded
from auction_sync.timesync import clock as clock_module

if TYPE_CHECKING:  # import for type checking only
    from auction_sync.realtime.bus import BroadcastBus
    from auction_sync.timesync.clock import Clock

logger = logging.getLogger(__name__)


class ExpirySweeper:
    def __init__(
        self,
        *,
        clock: Clock | None = None,
        bus: BroadcastBus | None = None,
        interval: float | None = None,
    ):
        self.clock = clock or clock_module.clock
        self._bus = bus
        if interval is None:
            interval = getattr(settings, "AUCTION_SWEEP_INTERVAL_SECONDS", 1.0)
        self.interval = float(interval)

    @property
    def bus(self) -> BroadcastBus:
        if self._bus is None:
            from auction_sync.realtime.socketio import bus  # noqa: PLC0415

            self._bus = bus
        return self._bus

    def sweep(self) -> list[int]:
        """Run one pass. Returns the ids this pass moved to ``ended``.

        Raises ``StoreUnavailable`` when the store cannot be reached.
        """
        now = self.clock.now()
        ended: list[int] = []
        try:
            # Informational promotion for auctions that opened without bids.
            Auction.objects.filter(
                status=Auction.Status.PENDING,
                start_time__lte=now,
                end_time__gt=now,
            ).update(status=Auction.Status.RUNNING)

            expired = list(
                Auction.objects.exclude(status=Auction.Status.ENDED)
                .filter(end_time__lte=now)
                .values_list("pk", flat=True)
            )
            for pk in expired:
                changed = (
                    Auction.objects.filter(pk=pk, end_time__lte=now)
                    .exclude(status=Auction.Status.ENDED)
                    .update(status=Auction.Status.ENDED)
                )
                if not changed:
                    continue
                ended.append(pk)
                event = AuctionEnded(auction_id=pk, server_time=self.clock.now())
                on_commit(lambda event=event: self.bus.publish_auction_ended(event))
                logger.info("Auction %s ended, broadcasting to its room", pk)
        except DatabaseError as exc:
            raise StoreUnavailable from exc
        return ended

    def tick(self) -> list[int]:
        """``sweep`` that never raises: failures are logged and retried next tick."""
        try:
            return self.sweep()
        except StoreUnavailable:
            logger.exception("Expiry sweep failed, retrying in %ss", self.interval)
            return []

    async def run(self, stop: asyncio.Event) -> None:
        logger.info("Expiry sweeper started (every %ss)", self.interval)
        while not stop.is_set():
            try:
                await database_sync_to_async(self.tick)()
            except Exception:
                logger.exception("Unexpected error in expiry sweep")
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(stop.wait(), timeout=self.interval)
        logger.info("Expiry sweeper stopped")


_stop_event: asyncio.Event | None = None
_task: asyncio.Task | None = None


async def start_expiry_sweeper() -> None:
    """ASGI lifespan hook: start the sweep loop on the server's event loop."""
    global _stop_event, _task  # noqa: PLW0603
    if not getattr(settings, "AUCTION_SWEEP_ENABLED", True) or _task is not None:
        return
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(ExpirySweeper().run(_stop_event))


async def stop_expiry_sweeper() -> None:
    global _stop_event, _task  # noqa: PLW0603
    if _task is None or _stop_event is None:
        return
    _stop_event.set()
    await _task
    _stop_event = None
    _task = None
