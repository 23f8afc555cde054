# ed_core/api/urls.py
from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from ed_core.alerts.api.views import AlertViewSet
from ed_core.encounters.api.views import EncounterViewSet

router = DefaultRouter()

router.register(r"encounters", EncounterViewSet, basename="encounter")
router.register(r"alerts", AlertViewSet, basename="alerts")

urlpatterns = [
    # Auth (bearer tokens for staff clients)
    path("auth/token/", TokenObtainPairView.as_view(), name="token-obtain"),
    path("auth/refresh/", TokenRefreshView.as_view(), name="token-refresh"),

    path("", include(router.urls)),
]
