import pytest

from auction_sync.realtime.protocol import JoinAuction
from auction_sync.realtime.protocol import LeaveAuction
from auction_sync.realtime.protocol import parse_inbound


def test_parse_join_from_text():
    raw = '{"type": "joinAuction", "payload": {"auctionId": 3}}'
    assert parse_inbound(raw) == JoinAuction(3)


def test_parse_join_from_bytes_and_dict():
    assert parse_inbound(b'{"type":"joinAuction","payload":{"auctionId":"4"}}') == (
        JoinAuction(4)
    )
    assert parse_inbound({"type": "joinAuction", "data": {"auctionId": 5}}) == (
        JoinAuction(5)
    )


def test_parse_leave():
    assert parse_inbound({"type": "leaveAuction"}) == LeaveAuction()


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2]",
        None,
        42,
        {"type": "shout"},
        {"payload": {"auctionId": 1}},
        {"type": "joinAuction"},
        {"type": "joinAuction", "payload": {"auctionId": 0}},
        {"type": "joinAuction", "payload": {"auctionId": -2}},
        {"type": "joinAuction", "payload": "3"},
    ],
)
def test_malformed_messages_are_dropped(raw):
    assert parse_inbound(raw) is None
