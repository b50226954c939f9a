"""
Core views providing infrastructure endpoints.

This module contains views that are not part of the billing domain but are
essential for operating the service, such as health checks.
"""

from django.conf import settings
from django.core.cache import cache
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET

from core.helpers import isoformat


@require_GET
def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    This endpoint is used by:
    - Docker health checks
    - Kubernetes liveness/readiness probes
    - Load balancers

    Downstream services are reported by URL only; probing them here would
    make this service's liveness depend on theirs.

    Returns:
        JsonResponse with status and component health:
        - status: "OK"
        - cache: "connected" or "disconnected"
        - db_service / notification_service: configured base URLs
        - timestamp: current server time (ISO 8601)

    Example Response:
        {
            "status": "OK",
            "message": "Payment service operational",
            "cache": "connected",
            "db_service": "http://localhost:3004",
            "notification_service": "http://localhost:3006",
            "timestamp": "2025-01-01T00:00:00Z"
        }
    """
    health_status = {
        "status": "OK",
        "message": "Payment service operational",
        "cache": "unknown",
        "db_service": settings.DB_SERVICE_URL,
        "notification_service": settings.NOTIFICATION_SERVICE_URL,
        "timestamp": isoformat(timezone.now()),
    }

    # Cache backs webhook de-duplication; a failure degrades but does not
    # stop event processing (claims fail open)
    try:
        cache.set("health_check", "ok", timeout=1)
        if cache.get("health_check") == "ok":
            health_status["cache"] = "connected"
        else:
            health_status["cache"] = "disconnected"
    except Exception:
        health_status["cache"] = "disconnected"

    return JsonResponse(health_status, status=200)
