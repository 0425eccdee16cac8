"""Unauthenticated utility views.

- `health`: readiness check for load balancers and container orchestration.
  Checks database connectivity and returns a minimal JSON payload.
"""

import logging

from django.db import connection
from django.http import JsonResponse
from django.utils.timezone import now

logger = logging.getLogger(__name__)


def health(request):
    """
    Return 200 `{"app", "time", "db": "ok"}` when the database answers, or 503 with
    `{"db": "down", "error": ...}` when the connection attempt raises.
    """
    status = 200
    payload = {
        "app": "asset-tracker",
        "time": now().isoformat(),
        "db": "ok",
    }
    try:
        connection.ensure_connection()
    except Exception as exc:  # any driver error means "down"
        logger.warning("health check failed: %s", exc)
        payload["db"] = "down"
        payload["error"] = str(exc)
        status = 503
    return JsonResponse(payload, status=status)
