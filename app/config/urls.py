"""
URL configuration for the till ledger service.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/token/            - Obtain JWT pair
    /api/v1/auth/token/refresh/    - Refresh JWT access token
    /api/v1/tills/                 - Till endpoints
        sessions/                  - Open / list sessions
        sessions/{id}/             - Session detail
        sessions/{id}/close/       - Close session
        sessions/{id}/force-close/ - Manager force close
        sessions/{id}/verify/      - Manager verification
        sessions/{id}/summary/     - Session summary
        sessions/{id}/transactions/        - Ledger entries (GET) / record (POST)
        sessions/{id}/drops/               - Multi-currency drop
        sessions/{id}/denomination-counts/ - Save / list counts
        transactions/{id}/void/    - Void with manager approval
        daily-close/               - Daily close / reopen / summary
        shortages/                 - Shortage log
        exchange-rates/            - Current rates / set rate

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("tills/", include("tills.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Till Ledger Admin"
admin.site.site_title = "Till Ledger"
admin.site.index_title = "Cash drawer reconciliation"
