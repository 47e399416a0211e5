from decimal import Decimal
from unittest import mock

import pytest
from django.db import OperationalError
from django.db.models import F

from auction_sync.auctions.bidding import BidAdmissionEngine
from auction_sync.auctions.bidding import coerce_amount
from auction_sync.auctions.errors import Closed
from auction_sync.auctions.errors import InvalidInput
from auction_sync.auctions.errors import NotFound
from auction_sync.auctions.errors import NotStarted
from auction_sync.auctions.errors import PriceTooLow
from auction_sync.auctions.errors import StoreUnavailable
from auction_sync.auctions.models import Auction


class InterleavingEngine(BidAdmissionEngine):
    """Runs ``competitor`` right after this bid's read, before its write."""

    def __init__(self, competitor, **kwargs):
        super().__init__(**kwargs)
        self.competitor = competitor

    def _load(self, auction_id):
        auction = super()._load(auction_id)
        if self.competitor is not None:
            competitor, self.competitor = self.competitor, None
            competitor()
        return auction


@pytest.fixture
def engine(frozen_clock, bus):
    return BidAdmissionEngine(clock=frozen_clock, bus=bus)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (150, Decimal("150.00")),
        (120.5, Decimal("120.50")),
        (Decimal("99.9"), Decimal("99.90")),
        (Decimal("1.010"), Decimal("1.01")),
    ],
)
def test_coerce_amount(value, expected):
    assert coerce_amount(value) == expected


@pytest.mark.parametrize(
    "value",
    [None, "150", True, 0, -5, float("nan"), float("inf"), Decimal("NaN"), 10**12],
)
def test_coerce_amount_rejects(value):
    with pytest.raises(InvalidInput):
        coerce_amount(value)


@pytest.mark.parametrize("value", [100.005, 100.004, 0.004, Decimal("1.005")])
def test_coerce_amount_rejects_fractions_of_a_cent(value):
    with pytest.raises(InvalidInput) as exc:
        coerce_amount(value)
    assert exc.value.message == "Bid amount must be in whole cents."


@pytest.mark.django_db
class TestSubmitBid:
    def test_accepts_higher_bid(
        self,
        engine,
        make_auction,
        registry,
        transport,
        django_capture_on_commit_callbacks,
    ):
        auction = make_auction(price="100.00", status=Auction.Status.PENDING)
        registry.join("watcher", auction.pk)

        with django_capture_on_commit_callbacks(execute=True):
            update = engine.submit_bid(auction.pk, 150, "alice")

        assert update.as_payload() == {
            "auctionId": auction.pk,
            "newPrice": "150.00",
            "bidderId": "alice",
            "serverTime": "2026-01-01T12:00:00.000Z",
        }
        auction.refresh_from_db()
        assert auction.current_price == Decimal("150.00")
        assert auction.status == Auction.Status.RUNNING
        assert transport.messages("watcher") == [
            {"type": "bidUpdate", "data": update.as_payload()},
        ]

    def test_default_bidder(self, engine, make_auction):
        auction = make_auction()
        assert engine.submit_bid(auction.pk, 101).bidder_id == "anonymous"

    def test_publish_waits_for_commit(
        self,
        engine,
        make_auction,
        registry,
        transport,
        django_capture_on_commit_callbacks,
    ):
        auction = make_auction()
        registry.join("watcher", auction.pk)
        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            engine.submit_bid(auction.pk, 150)
            assert transport.sent == {}
        assert len(callbacks) == 1

    def test_unknown_auction(self, engine):
        with pytest.raises(NotFound) as exc:
            engine.submit_bid(999, 150)
        assert exc.value.kind == "not_found"

    @pytest.mark.parametrize("auction_id", [0, -1, "abc", None, True])
    def test_invalid_auction_id_is_not_found(self, engine, auction_id):
        with pytest.raises(NotFound):
            engine.submit_bid(auction_id, 150)

    def test_not_found_is_checked_before_amount(self, engine):
        with pytest.raises(NotFound):
            engine.submit_bid(999, "garbage")

    def test_invalid_amount(self, engine, make_auction):
        auction = make_auction()
        with pytest.raises(InvalidInput):
            engine.submit_bid(auction.pk, -1)

    @pytest.mark.parametrize("amount", [100.005, 100.004])
    def test_sub_cent_amount_is_never_committed(self, engine, make_auction, amount):
        auction = make_auction(price="100.00")
        with pytest.raises(InvalidInput):
            engine.submit_bid(auction.pk, amount)
        auction.refresh_from_db()
        assert auction.current_price == Decimal("100.00")

    def test_committed_price_is_exactly_the_offer(self, engine, make_auction):
        auction = make_auction(price="100.00")
        update = engine.submit_bid(auction.pk, 100.01)
        auction.refresh_from_db()
        assert update.new_price == auction.current_price == Decimal("100.01")

    def test_amount_is_checked_before_window(self, engine, make_auction):
        auction = make_auction(status=Auction.Status.ENDED)
        with pytest.raises(InvalidInput):
            engine.submit_bid(auction.pk, "150")

    def test_not_started(self, engine, make_auction):
        auction = make_auction(starts_in=1, ends_in=5, status=Auction.Status.PENDING)
        with pytest.raises(NotStarted):
            engine.submit_bid(auction.pk, 150)

    def test_price_too_low(self, engine, make_auction):
        auction = make_auction(price="100.00")
        with pytest.raises(PriceTooLow):
            engine.submit_bid(auction.pk, 100)
        auction.refresh_from_db()
        assert auction.current_price == Decimal("100.00")

    def test_closed_once_status_ended(self, engine, make_auction):
        auction = make_auction(status=Auction.Status.ENDED)
        with pytest.raises(Closed):
            engine.submit_bid(auction.pk, 500)

    def test_closed_in_gap_before_sweep(self, engine, make_auction, frozen_clock):
        auction = make_auction(ends_in=5)
        frozen_clock.advance(minutes=5, milliseconds=1)
        with pytest.raises(Closed):
            engine.submit_bid(auction.pk, 500)
        auction.refresh_from_db()
        # the sweep has not run; only the bid path's own check rejected it
        assert auction.status == Auction.Status.RUNNING
        assert auction.current_price == Decimal("100.00")

    def test_bid_exactly_at_end_time_is_accepted(
        self,
        engine,
        make_auction,
        frozen_clock,
    ):
        auction = make_auction(ends_in=5)
        frozen_clock.advance(minutes=5)
        assert engine.submit_bid(auction.pk, 101).new_price == Decimal("101.00")

    def test_store_unavailable_on_read(self, engine, make_auction):
        auction = make_auction()
        with mock.patch.object(
            Auction.objects,
            "get",
            side_effect=OperationalError("db down"),
        ), pytest.raises(StoreUnavailable) as exc:
            engine.submit_bid(auction.pk, 150)
        assert exc.value.retryable is True
        assert exc.value.as_dict()["retryable"] is True


@pytest.mark.django_db
class TestConcurrentBids:
    def test_lower_bid_loses_to_higher_commit(
        self,
        frozen_clock,
        bus,
        make_auction,
        registry,
        transport,
        django_capture_on_commit_callbacks,
    ):
        auction = make_auction(price="100.00")
        registry.join("watcher", auction.pk)
        rival = BidAdmissionEngine(clock=frozen_clock, bus=bus)
        slow = InterleavingEngine(
            lambda: rival.submit_bid(auction.pk, 150, "fast"),
            clock=frozen_clock,
            bus=bus,
        )

        with django_capture_on_commit_callbacks(execute=True), pytest.raises(
            PriceTooLow
        ):
            slow.submit_bid(auction.pk, 120, "slow")

        auction.refresh_from_db()
        assert auction.current_price == Decimal("150.00")
        prices = [m["data"]["newPrice"] for m in transport.messages("watcher")]
        assert prices == ["150.00"]

    def test_higher_bid_retries_past_lower_commit(
        self,
        frozen_clock,
        bus,
        make_auction,
        registry,
        transport,
        django_capture_on_commit_callbacks,
    ):
        auction = make_auction(price="100.00")
        registry.join("watcher", auction.pk)
        rival = BidAdmissionEngine(clock=frozen_clock, bus=bus)
        slow = InterleavingEngine(
            lambda: rival.submit_bid(auction.pk, 120, "fast"),
            clock=frozen_clock,
            bus=bus,
        )

        with django_capture_on_commit_callbacks(execute=True):
            update = slow.submit_bid(auction.pk, 150, "slow")

        assert update.new_price == Decimal("150.00")
        auction.refresh_from_db()
        assert auction.current_price == Decimal("150.00")
        prices = [m["data"]["newPrice"] for m in transport.messages("watcher")]
        assert prices == ["120.00", "150.00"]

    def test_equal_bids_first_commit_wins(self, frozen_clock, bus, make_auction):
        auction = make_auction(price="100.00")
        rival = BidAdmissionEngine(clock=frozen_clock, bus=bus)
        slow = InterleavingEngine(
            lambda: rival.submit_bid(auction.pk, 150, "first"),
            clock=frozen_clock,
            bus=bus,
        )
        with pytest.raises(PriceTooLow):
            slow.submit_bid(auction.pk, 150, "second")

    def test_sweep_between_read_and_write_closes_bid(
        self,
        frozen_clock,
        bus,
        make_auction,
    ):
        auction = make_auction()

        def end_it():
            Auction.objects.filter(pk=auction.pk).update(status=Auction.Status.ENDED)

        slow = InterleavingEngine(end_it, clock=frozen_clock, bus=bus)
        with pytest.raises(Closed):
            slow.submit_bid(auction.pk, 500)
        auction.refresh_from_db()
        assert auction.current_price == Decimal("100.00")

    def test_retry_cap(self, frozen_clock, bus, make_auction, caplog):
        auction = make_auction(price="100.00")

        class AlwaysOutbid(BidAdmissionEngine):
            def _load(self, auction_id):
                seen = super()._load(auction_id)
                Auction.objects.filter(pk=auction_id).update(
                    current_price=F("current_price") + 1
                )
                return seen

        engine = AlwaysOutbid(clock=frozen_clock, bus=bus, max_attempts=3)
        with pytest.raises(PriceTooLow):
            engine.submit_bid(auction.pk, 1000)

        auction.refresh_from_db()
        assert auction.current_price == Decimal("103.00")
        assert "gave up after 3 attempts" in caplog.text

    def test_increasing_sequence_keeps_final_max(self, engine, make_auction):
        auction = make_auction(price="100.00")
        for amount in (110, 120, 130, 125, 140):
            try:
                engine.submit_bid(auction.pk, amount)
            except PriceTooLow:
                assert amount == 125
        auction.refresh_from_db()
        assert auction.current_price == Decimal("140.00")
