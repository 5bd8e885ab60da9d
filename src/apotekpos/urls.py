"""URL configuration for Apotek POS project."""

from django.urls import include, path

from apotekpos.core.views import health_check

urlpatterns = [
    # Health check
    path("health/", health_check, name="health_check"),

    # Cart, pending bills and checkout
    path("pos/", include("apotekpos.pos.urls", namespace="pos")),
]
