from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.utils.translation import gettext_lazy as _


class Auction(models.Model):
    """A time-boxed bidding window with a monotonically rising price.

    Rows are created outside the realtime core (admin, seed command). After
    that only two paths write to them, both through conditional updates:
    the bid engine advances ``current_price`` and the expiry sweep moves
    ``status`` forward. ``ENDED`` is absorbing.
    """

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        # Also covers "active bidding": set on the first accepted bid.
        RUNNING = "running", _("Running")
        ENDED = "ended", _("Ended")

    name = models.CharField(max_length=255)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    current_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.PENDING,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["status", "end_time"], name="auction_status_end_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(start_time__lt=models.F("end_time")),
                name="auction_window_ordered",
            ),
            models.CheckConstraint(
                condition=models.Q(current_price__gte=0),
                name="auction_price_non_negative",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover - simple repr
        return f"Auction({self.pk}: {self.name})"

    def clean(self):
        if self.start_time and self.end_time and self.start_time >= self.end_time:
            raise ValidationError({"end_time": _("End time must be after start time.")})
        if self.current_price is not None and self.current_price < 0:
            raise ValidationError({"current_price": _("Price cannot be negative.")})

    @property
    def is_ended(self) -> bool:
        return self.status == self.Status.ENDED
