from django.conf import settings
from django.urls import path
from rest_framework.routers import DefaultRouter
from rest_framework.routers import SimpleRouter

from auction_sync.auctions.api.views import AuctionViewSet
from auction_sync.timesync.api.views import TimeSyncView

router = DefaultRouter() if settings.DEBUG else SimpleRouter()

router.register("auctions", AuctionViewSet, basename="auctions")


app_name = "api"
urlpatterns = [
    path("time-sync/", TimeSyncView.as_view(), name="time-sync"),
    # Frontend compatibility: clients post without a trailing slash.
    path("time-sync", TimeSyncView.as_view(), name="time-sync-noslash"),
    *router.urls,
]
