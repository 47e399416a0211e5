"""Failure taxonomy shared by the bid engine, the sweep and the HTTP layer.

Every failure carries a short machine-checkable ``kind`` plus a readable
message. Broadcasts never carry these; they are only returned to the caller
that triggered them.
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response


class AuctionError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Auction request failed."
    default_code = "auction_error"
    retryable = False

    @property
    def kind(self) -> str:
        return self.default_code

    @property
    def message(self) -> str:
        return str(self.detail)

    def as_dict(self) -> dict:
        body = {"kind": self.kind, "message": self.message}
        if self.retryable:
            body["retryable"] = True
        return body


class InvalidInput(AuctionError):
    default_detail = "Malformed request."
    default_code = "invalid_input"


class NotFound(AuctionError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Auction does not exist."
    default_code = "not_found"


class NotStarted(AuctionError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Auction has not started yet."
    default_code = "not_started"


class Closed(AuctionError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Auction has ended."
    default_code = "closed"


class PriceTooLow(AuctionError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Bid must be higher than the current price."
    default_code = "price_too_low"


class StoreUnavailable(AuctionError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Auction store is unavailable, try again."
    default_code = "store_unavailable"
    retryable = True


def error_response(exc: AuctionError) -> Response:
    return Response(exc.as_dict(), status=exc.status_code)
