from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.utils.translation import gettext as _

from auction_sync.auctions.models import Auction
from auction_sync.timesync.clock import clock

DEMO_NAME = "Demo auction (auto-generated)"
DEMO_PRICE = Decimal("100.00")


class Command(BaseCommand):
    help = _("Insert a running demo auction (started 1 minute ago, ends in 5).")

    def add_arguments(self, parser):
        parser.add_argument(
            "--force",
            action="store_true",
            help="Insert even when auctions already exist.",
        )
        parser.add_argument(
            "--minutes",
            type=int,
            default=5,
            help="Minutes until the demo auction ends.",
        )

    def handle(self, *args, **options):
        if Auction.objects.exists() and not options["force"]:
            self.stdout.write(_("Auctions already exist; nothing to seed."))
            return

        now = clock.now()
        auction = Auction.objects.create(
            name=DEMO_NAME,
            start_time=now - timedelta(minutes=1),
            end_time=now + timedelta(minutes=max(1, options["minutes"])),
            current_price=DEMO_PRICE,
            status=Auction.Status.RUNNING,
        )
        self.stdout.write(
            self.style.SUCCESS(_("Seeded auction %(id)s.") % {"id": auction.pk})
        )
