from __future__ import annotations

from typing import Any

from rest_framework import serializers

from auction_sync.timesync.clock import normalize_client_time


class ClientTimeField(serializers.Field):
    """Epoch milliseconds as a number, a numeric string, or an ISO-8601 string."""

    default_error_messages = {
        "invalid": "clientTime must be a number or a parseable timestamp.",
    }

    def to_internal_value(self, data: Any) -> int | float:
        try:
            return normalize_client_time(data)
        except (TypeError, ValueError):
            self.fail("invalid")

    def to_representation(self, value: int | float) -> int | float:
        return value


class TimeSyncRequestSerializer(serializers.Serializer):
    clientTime = ClientTimeField()  # noqa: N815


class TimeSyncResponseSerializer(serializers.Serializer):
    serverTime = serializers.IntegerField()  # noqa: N815
    clientTime = serializers.FloatField()  # noqa: N815
