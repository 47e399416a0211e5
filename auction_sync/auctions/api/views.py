from __future__ import annotations

import logging

from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import mixins
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from auction_sync.auctions.bidding import BidAdmissionEngine
from auction_sync.auctions.errors import AuctionError
from auction_sync.auctions.errors import InvalidInput
from auction_sync.auctions.errors import NotFound
from auction_sync.auctions.errors import error_response
from auction_sync.auctions.models import Auction
from auction_sync.timesync import clock as clock_module
from auction_sync.timesync.clock import isoformat_ms

from .serializers import AuctionErrorSerializer
from .serializers import AuctionSerializer
from .serializers import BidRequestSerializer
from .serializers import BidUpdateSerializer

logger = logging.getLogger(__name__)


@extend_schema_view(
    list=extend_schema(tags=["Auctions"]),
    retrieve=extend_schema(tags=["Auctions"]),
)
class AuctionViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    GenericViewSet,
):
    """Auctions for observers.

    - list: every auction ordered by id
    - retrieve: ``{auction, serverTime}`` so the countdown can start right away
    - bid: submit a bid through the admission engine
    """

    permission_classes = [AllowAny]
    authentication_classes: list = []
    serializer_class = AuctionSerializer
    queryset = Auction.objects.all()

    def retrieve(self, request, *args, **kwargs):
        auction = Auction.objects.filter(pk=kwargs.get("pk")).first()
        if auction is None:
            return error_response(NotFound())
        return Response(
            {
                "auction": self.get_serializer(auction).data,
                "serverTime": isoformat_ms(clock_module.clock.now()),
            }
        )

    @extend_schema(
        tags=["Auctions"],
        request=BidRequestSerializer,
        responses={
            200: BidUpdateSerializer,
            400: AuctionErrorSerializer,
            404: AuctionErrorSerializer,
            409: AuctionErrorSerializer,
            503: AuctionErrorSerializer,
        },
    )
    @action(detail=True, methods=["post"], url_path="bid")
    def bid(self, request, pk=None):
        data = request.data
        if not isinstance(data, dict):
            return error_response(InvalidInput("Request body must be an object."))

        bidder_id = data.get("bidderId", data.get("userId"))
        if bidder_id is not None and (
            isinstance(bidder_id, bool) or not isinstance(bidder_id, str | int)
        ):
            return error_response(InvalidInput("bidderId must be a string."))

        try:
            update = BidAdmissionEngine().submit_bid(
                pk,
                data.get("amount"),
                str(bidder_id) if bidder_id not in (None, "") else None,
            )
        except AuctionError as exc:
            return error_response(exc)
        return Response(update.as_payload())
