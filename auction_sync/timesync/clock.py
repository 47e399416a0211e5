"""Authoritative server clock.

Every timestamp that leaves the service and every time comparison made by the
bid engine or the expiry sweep goes through a ``Clock``. Observer-reported
time is echoed back for offset math and never used for decisions.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from decimal import InvalidOperation

from django.utils import timezone
from django.utils.dateparse import parse_datetime

EPOCH = dt.datetime(1970, 1, 1, tzinfo=dt.UTC)


class Clock:
    """Wall clock with millisecond resolution, always timezone-aware (UTC)."""

    def now(self) -> dt.datetime:
        current = timezone.now()
        return current.replace(microsecond=current.microsecond // 1000 * 1000)

    def now_ms(self) -> int:
        return to_epoch_ms(self.now())


# Process-wide authority. Components accept a ``clock`` argument so tests can
# pin time, but production code should not construct other clocks.
clock = Clock()


def to_epoch_ms(value: dt.datetime) -> int:
    if timezone.is_naive(value):
        value = timezone.make_aware(value, dt.UTC)
    delta = value - EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


def isoformat_ms(value: dt.datetime) -> str:
    """Render ``value`` as ISO-8601 UTC with millisecond precision (``...123Z``)."""
    if timezone.is_naive(value):
        value = timezone.make_aware(value, dt.UTC)
    value = value.astimezone(dt.UTC)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize_client_time(value: object) -> int | float:
    """Return the observer's reported time as epoch milliseconds.

    Numbers are echoed verbatim. Strings may hold a number or an ISO-8601
    timestamp (naive values are read as UTC). Anything else raises
    ``ValueError``.
    """
    if isinstance(value, bool):
        msg = "clientTime must be a number or a timestamp string"
        raise TypeError(msg)
    if isinstance(value, int | float):
        if value != value or value in (float("inf"), float("-inf")):  # noqa: PLR0124
            msg = "clientTime must be finite"
            raise ValueError(msg)
        return value
    if not isinstance(value, str):
        msg = "clientTime must be a number or a timestamp string"
        raise TypeError(msg)

    text = value.strip()
    if not text:
        msg = "clientTime is empty"
        raise ValueError(msg)
    try:
        numeric = Decimal(text)
    except InvalidOperation:
        numeric = None
    if numeric is not None:
        if not numeric.is_finite():
            msg = "clientTime must be finite"
            raise ValueError(msg)
        return int(numeric) if numeric == numeric.to_integral_value() else float(numeric)

    parsed = parse_datetime(text.replace("Z", "+00:00"))
    if parsed is None:
        msg = f"Unparseable clientTime: {text!r}"
        raise ValueError(msg)
    return to_epoch_ms(parsed)
