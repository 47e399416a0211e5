from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from auction_sync.auctions.errors import InvalidInput
from auction_sync.auctions.errors import error_response
from auction_sync.timesync import clock as clock_module

from .serializers import TimeSyncRequestSerializer
from .serializers import TimeSyncResponseSerializer


class TimeSyncView(APIView):
    """NTP-style offset probe.

    The observer posts its local ``clientTime`` and computes
    ``offset = serverTime - clientTime`` from the reply. ``clientTime`` is only
    echoed; the server never acts on it.
    """

    permission_classes = [AllowAny]
    authentication_classes: list = []

    @extend_schema(
        tags=["Time"],
        request=TimeSyncRequestSerializer,
        responses={200: TimeSyncResponseSerializer},
    )
    def post(self, request):
        data = request.data if isinstance(request.data, dict) else {}
        if "clientTime" not in data:
            return error_response(InvalidInput("clientTime is required."))

        serializer = TimeSyncRequestSerializer(data=data)
        if not serializer.is_valid():
            return error_response(
                InvalidInput("clientTime must be a number or a parseable timestamp.")
            )

        return Response(
            {
                "serverTime": clock_module.clock.now_ms(),
                "clientTime": serializer.validated_data["clientTime"],
            }
        )
