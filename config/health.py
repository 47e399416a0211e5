from __future__ import annotations

from typing import Any

from django.db import connection
from django.http import JsonResponse

from auction_sync.timesync.clock import clock


def check_db() -> dict[str, Any]:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1;")
            cursor.fetchone()
    except Exception as exc:  # noqa: BLE001 - health must degrade, not crash
        return {"ok": False, "error": str(exc)}
    else:
        return {"ok": True}


def health(request):
    components = {"db": check_db()}

    all_ok = all(v.get("ok", False) for v in components.values())
    status = "ok" if all_ok else "down"
    http_status = 200 if all_ok else 503

    return JsonResponse(
        {"status": status, "components": components, "serverTime": clock.now_ms()},
        status=http_status,
    )
