"""
ASGI config for auction_sync project.

It exposes the ASGI callable as a module-level variable named ``application``.

For more information on this file, see
https://docs.djangoproject.com/en/dev/howto/deployment/asgi/

"""

import os
import sys
from pathlib import Path

from django.core.asgi import get_asgi_application

# This allows easy placement of apps within the interior
# auction_sync directory.
BASE_DIR = Path(__file__).resolve(strict=True).parent.parent
sys.path.append(str(BASE_DIR / "auction_sync"))

# If DJANGO_SETTINGS_MODULE is unset, select a sensible default based on BUILD_ENV
# Default to local settings for the local dev image, production otherwise.
if "DJANGO_SETTINGS_MODULE" not in os.environ:
    build_env = os.environ.get("BUILD_ENV", "production").lower()
    default_settings = (
        "config.settings.local"
        if build_env == "local"
        else "config.settings.production"
    )
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", default_settings)

django_application = get_asgi_application()

from django.conf import settings  # noqa: E402
from socketio import ASGIApp  # noqa: E402

from auction_sync.auctions.sweeper import start_expiry_sweeper  # noqa: E402
from auction_sync.auctions.sweeper import stop_expiry_sweeper  # noqa: E402
from auction_sync.realtime.socketio import sio  # noqa: E402

# Socket.IO must sit in front of Django because it uses BOTH:
# - HTTP long-polling (Engine.IO)
# - WebSocket upgrades
# The expiry sweep shares this process so its broadcasts reach local rooms.
application = ASGIApp(
    sio,
    other_asgi_app=django_application,
    socketio_path=settings.SOCKETIO_PATH,
    on_startup=start_expiry_sweeper,
    on_shutdown=stop_expiry_sweeper,
)
