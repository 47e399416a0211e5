from django.contrib import admin

from auction_sync.auctions import models


@admin.register(models.Auction)
class AuctionAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "start_time", "end_time", "current_price", "status"]
    search_fields = ["name"]
    list_filter = ["status", "start_time", "end_time"]
    # Price and status only move through the bid engine and the expiry sweep.
    readonly_fields = ["current_price", "status", "created_at"]

    def get_readonly_fields(self, request, obj=None):
        if obj is None:
            return ["created_at"]
        return self.readonly_fields
