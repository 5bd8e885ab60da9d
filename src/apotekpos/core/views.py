"""Core views for Apotek POS."""

from django.http import JsonResponse

from apotekpos.pos import system_client


def health_check(request):
    """Health check endpoint for container orchestration."""
    if system_client.check_health():
        return JsonResponse({"status": "healthy", "device_service": "connected"})

    return JsonResponse(
        {"status": "unhealthy", "device_service": "unreachable"},
        status=503,
    )
