"""
URL configuration for the tills app.

All routes are prefixed with /api/v1/tills/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("tills/", include("tills.urls")),
    ]
"""

from django.urls import path

from tills import views

app_name = "tills"

urlpatterns = [
    # Sessions
    path("sessions/", views.TillSessionListView.as_view(), name="session_list"),
    path("sessions/active/", views.ActiveTillSessionView.as_view(), name="session_active"),
    path("sessions/<uuid:session_id>/", views.TillSessionDetailView.as_view(), name="session_detail"),
    path("sessions/<uuid:session_id>/close/", views.CloseTillSessionView.as_view(), name="session_close"),
    path(
        "sessions/<uuid:session_id>/force-close/",
        views.ForceCloseTillSessionView.as_view(),
        name="session_force_close",
    ),
    path("sessions/<uuid:session_id>/verify/", views.VerifyTillSessionView.as_view(), name="session_verify"),
    path("sessions/<uuid:session_id>/summary/", views.TillSessionSummaryView.as_view(), name="session_summary"),
    # Ledger
    path(
        "sessions/<uuid:session_id>/transactions/",
        views.SessionTransactionsView.as_view(),
        name="session_transactions",
    ),
    path("sessions/<uuid:session_id>/drops/", views.MultiCurrencyDropView.as_view(), name="session_drops"),
    path(
        "transactions/<uuid:transaction_id>/void/",
        views.VoidTransactionView.as_view(),
        name="transaction_void",
    ),
    # Denomination counts
    path(
        "sessions/<uuid:session_id>/denomination-counts/",
        views.DenominationCountView.as_view(),
        name="denomination_counts",
    ),
    # Daily close
    path("daily-close/", views.DailyCloseView.as_view(), name="daily_close"),
    path("daily-close/reopen/", views.ReopenDayView.as_view(), name="daily_close_reopen"),
    path("daily-close/reconcile/", views.ReconcileDayView.as_view(), name="daily_close_reconcile"),
    path("daily-close/summary/", views.DailySummaryView.as_view(), name="daily_summary"),
    # Reports
    path("reports/variance/", views.VarianceReportView.as_view(), name="variance_report"),
    # Shortages
    path("shortages/", views.ShortageListView.as_view(), name="shortages"),
    # Exchange rates
    path("exchange-rates/", views.ExchangeRateView.as_view(), name="exchange_rates"),
]
