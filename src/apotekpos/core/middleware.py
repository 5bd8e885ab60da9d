"""Core middleware for Apotek POS."""

from functools import wraps

from django.conf import settings
from django.http import JsonResponse

AUTH_REQUIRED_MESSAGE = "Authentication required. Please login first."


class AuthTokenMiddleware:
    """Middleware that exposes the backend bearer token on the request.

    The token comes from the auth cookie set at login, falling back to the
    Authorization header. Sets request.auth_token (None when absent).
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        cookie_name = getattr(settings, "POS_AUTH_COOKIE", "auth-token")
        token = request.COOKIES.get(cookie_name) or request.headers.get("Authorization")
        request.auth_token = token.strip() if token and token.strip() else None

        response = self.get_response(request)
        return response


def require_auth_token(view_func):
    """Decorator to reject requests that carry no backend token."""

    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not getattr(request, "auth_token", None):
            return JsonResponse({"success": False, "message": AUTH_REQUIRED_MESSAGE}, status=401)
        return view_func(request, *args, **kwargs)

    return wrapper
