from __future__ import annotations

from rest_framework import serializers

from auction_sync.auctions.models import Auction
from auction_sync.timesync.clock import isoformat_ms


class AuctionSerializer(serializers.ModelSerializer):
    """Read serializer; field names follow the realtime payloads."""

    startTime = serializers.SerializerMethodField()  # noqa: N815
    endTime = serializers.SerializerMethodField()  # noqa: N815
    currentPrice = serializers.DecimalField(  # noqa: N815
        source="current_price",
        max_digits=10,
        decimal_places=2,
        read_only=True,
    )

    class Meta:
        model = Auction
        fields = ("id", "name", "startTime", "endTime", "currentPrice", "status")
        read_only_fields = fields

    def get_startTime(self, obj: Auction) -> str:  # noqa: N802
        return isoformat_ms(obj.start_time)

    def get_endTime(self, obj: Auction) -> str:  # noqa: N802
        return isoformat_ms(obj.end_time)


class BidRequestSerializer(serializers.Serializer):
    """Documents the bid body; validation happens in the bid engine."""

    amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    bidderId = serializers.CharField(required=False, max_length=150)  # noqa: N815


class BidUpdateSerializer(serializers.Serializer):
    auctionId = serializers.IntegerField()  # noqa: N815
    newPrice = serializers.CharField()  # noqa: N815
    bidderId = serializers.CharField()  # noqa: N815
    serverTime = serializers.CharField()  # noqa: N815


class AuctionErrorSerializer(serializers.Serializer):
    kind = serializers.CharField()
    message = serializers.CharField()
    retryable = serializers.BooleanField(required=False)
