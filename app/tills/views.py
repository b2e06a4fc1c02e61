"""
API views for the tills app.

Provides:
- Session endpoints: open, list, detail, close, force close, verify, summary
- Ledger endpoints: record in/out, multi-currency drop, void
- Denomination count endpoints
- Daily close endpoints: close, reopen, reconcile, summary
- Shortage and exchange rate endpoints

The authenticated user is the actor of every action (the staff member
recording or closing, or the approving manager). Business-rule failures
come back as 400 {"error", "error_code"}; missing records as 404.

Related files:
    - services/: Till services
    - serializers.py: Request/response serializers
    - urls.py: URL routing
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.services import ServiceResult
from tills.serializers import (
    CloseSessionSerializer,
    DailyCloseSerializer,
    DailyTillSummarySerializer,
    ExchangeRateSerializer,
    ForceCloseSessionSerializer,
    LogShortageSerializer,
    MultiCurrencyDropSerializer,
    OpenSessionSerializer,
    RecordTransactionSerializer,
    ReopenDaySerializer,
    SaveDenominationCountSerializer,
    SetExchangeRateSerializer,
    ShopDaySerializer,
    ShortageLogSerializer,
    TillDenominationCountSerializer,
    TillSessionSerializer,
    TillSessionSummarySerializer,
    TillTransactionSerializer,
    VerifySessionSerializer,
    VoidTransactionSerializer,
)
from tills.services import (
    DailyCloseService,
    DenominationService,
    ExchangeRateService,
    ShortageService,
    TillReportService,
    TillSessionService,
    TillTransactionService,
    TillVoidService,
)
from tills.state_machines import TransactionDirection


def failure_response(result: ServiceResult) -> Response:
    """Map a failed ServiceResult to 404 for missing records, else 400."""
    code = result.error_code or ""
    http_status = (
        status.HTTP_404_NOT_FOUND
        if code.endswith("NOT_FOUND")
        else status.HTTP_400_BAD_REQUEST
    )
    return Response(
        {"error": result.error, "error_code": result.error_code},
        status=http_status,
    )


def _not_found(what: str) -> Response:
    return Response(
        {"error": f"{what} not found", "error_code": "NOT_FOUND"},
        status=status.HTTP_404_NOT_FOUND,
    )


def _shop_day(query_params) -> ShopDaySerializer:
    serializer = ShopDaySerializer(data=query_params)
    serializer.is_valid(raise_exception=True)
    return serializer


SHOP_PARAM = OpenApiParameter("shop_id", int, required=True)
DATE_PARAM = OpenApiParameter("date", str, required=True, description="YYYY-MM-DD")


# =============================================================================
# Sessions
# =============================================================================


class TillSessionListView(APIView):
    """
    GET  /api/v1/tills/sessions/?shop_id=1  - Session history of a shop
    POST /api/v1/tills/sessions/            - Open a session for the current user
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List sessions",
        parameters=[
            SHOP_PARAM,
            OpenApiParameter("from_date", str, description="YYYY-MM-DD"),
            OpenApiParameter("to_date", str, description="YYYY-MM-DD"),
            OpenApiParameter("staff", str),
            OpenApiParameter("status", str),
        ],
        responses={200: TillSessionSerializer(many=True)},
        tags=["Tills - Sessions"],
    )
    def get(self, request):
        try:
            shop_id = int(request.query_params["shop_id"])
        except (KeyError, ValueError):
            return Response(
                {"error": "shop_id is required", "error_code": "VALIDATION_ERROR"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        sessions = TillSessionService.get_session_history(
            shop_id,
            from_date=request.query_params.get("from_date"),
            to_date=request.query_params.get("to_date"),
            staff_username=request.query_params.get("staff"),
            status=request.query_params.get("status"),
        )
        return Response(TillSessionSerializer(sessions, many=True).data)

    @extend_schema(
        summary="Open session",
        request=OpenSessionSerializer,
        responses={
            201: TillSessionSerializer,
            400: OpenApiResponse(description="Day closed, session already open, bad float"),
        },
        tags=["Tills - Sessions"],
    )
    def post(self, request):
        serializer = OpenSessionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = TillSessionService.open_session(
            staff_username=request.user.get_username(),
            **serializer.validated_data,
        )
        if not result.success:
            return failure_response(result)
        return Response(TillSessionSerializer(result.data).data, status=status.HTTP_201_CREATED)


class TillSessionDetailView(APIView):
    """GET /api/v1/tills/sessions/{id}/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(summary="Session detail", responses={200: TillSessionSerializer}, tags=["Tills - Sessions"])
    def get(self, request, session_id):
        session = TillSessionService.get_session(session_id)
        if session is None:
            return _not_found("Till session")
        return Response(TillSessionSerializer(session).data)


class ActiveTillSessionView(APIView):
    """GET /api/v1/tills/sessions/active/ - The current user's open session"""

    permission_classes = [IsAuthenticated]

    @extend_schema(summary="Current user's open session", responses={200: TillSessionSerializer}, tags=["Tills - Sessions"])
    def get(self, request):
        session = TillSessionService.get_active_session_for_user(request.user.get_username())
        if session is None:
            return _not_found("Open till session")
        data = TillSessionSerializer(session).data
        data["is_stale"] = TillSessionService.is_session_stale(session)
        return Response(data)


class CloseTillSessionView(APIView):
    """POST /api/v1/tills/sessions/{id}/close/ - Owner closes against a count"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Close session",
        request=CloseSessionSerializer,
        responses={200: TillSessionSerializer},
        tags=["Tills - Sessions"],
    )
    def post(self, request, session_id):
        serializer = CloseSessionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = TillSessionService.close_session(
            session_id,
            closed_by=request.user.get_username(),
            **serializer.validated_data,
        )
        if not result.success:
            return failure_response(result)
        return Response(TillSessionSerializer(result.data).data)


class ForceCloseTillSessionView(APIView):
    """POST /api/v1/tills/sessions/{id}/force-close/ - Manager-approved close"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Force close session",
        request=ForceCloseSessionSerializer,
        responses={200: TillSessionSerializer},
        tags=["Tills - Sessions"],
    )
    def post(self, request, session_id):
        serializer = ForceCloseSessionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        closed_by = serializer.validated_data["closed_by"]
        if not closed_by:
            session = TillSessionService.get_session(session_id)
            if session is None:
                return _not_found("Till session")
            closed_by = session.staff_username

        result = TillSessionService.force_close_session(
            session_id,
            approved_by=request.user.get_username(),
            closed_by=closed_by,
            notes=serializer.validated_data["notes"],
        )
        if not result.success:
            return failure_response(result)
        return Response(TillSessionSerializer(result.data).data)


class VerifyTillSessionView(APIView):
    """POST /api/v1/tills/sessions/{id}/verify/ - Manager sign-off"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Verify session",
        request=VerifySessionSerializer,
        responses={200: TillSessionSerializer},
        tags=["Tills - Sessions"],
    )
    def post(self, request, session_id):
        serializer = VerifySessionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = TillSessionService.verify_session(
            session_id,
            verified_by=request.user.get_username(),
            notes=serializer.validated_data["notes"],
        )
        if not result.success:
            return failure_response(result)
        return Response(TillSessionSerializer(result.data).data)


class TillSessionSummaryView(APIView):
    """GET /api/v1/tills/sessions/{id}/summary/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(summary="Session summary", responses={200: TillSessionSummarySerializer}, tags=["Tills - Reports"])
    def get(self, request, session_id):
        summary = TillReportService.get_session_summary(session_id)
        if summary is None:
            return _not_found("Till session")
        return Response(TillSessionSummarySerializer(summary).data)


# =============================================================================
# Ledger
# =============================================================================


class SessionTransactionsView(APIView):
    """
    GET  /api/v1/tills/sessions/{id}/transactions/ - Ledger of a session
    POST /api/v1/tills/sessions/{id}/transactions/ - Record an entry
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(summary="List ledger entries", responses={200: TillTransactionSerializer(many=True)}, tags=["Tills - Ledger"])
    def get(self, request, session_id):
        entries = TillTransactionService.get_transactions(session_id)
        return Response(TillTransactionSerializer(entries, many=True).data)

    @extend_schema(
        summary="Record ledger entry",
        request=RecordTransactionSerializer,
        responses={
            201: TillTransactionSerializer,
            400: OpenApiResponse(description="Closed session, bad amount, insufficient balance, no rate"),
        },
        tags=["Tills - Ledger"],
    )
    def post(self, request, session_id):
        serializer = RecordTransactionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        direction = data.pop("direction")
        transaction_type = data.pop("transaction_type")
        amount = data.pop("amount")
        recorded_by = request.user.get_username()

        if direction == TransactionDirection.IN:
            data.pop("recipient_name")
            data.pop("receipt_number")
            result = TillTransactionService.record_in(
                session_id, transaction_type, amount, recorded_by, **data
            )
        else:
            result = TillTransactionService.record_out(
                session_id, transaction_type, amount, recorded_by, **data
            )

        if not result.success:
            return failure_response(result)
        return Response(TillTransactionSerializer(result.data).data, status=status.HTTP_201_CREATED)


class MultiCurrencyDropView(APIView):
    """POST /api/v1/tills/sessions/{id}/drops/ - Drop several currencies at once"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Multi-currency drop",
        request=MultiCurrencyDropSerializer,
        responses={201: TillTransactionSerializer(many=True)},
        tags=["Tills - Ledger"],
    )
    def post(self, request, session_id):
        serializer = MultiCurrencyDropSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = TillTransactionService.record_multi_currency_drop(
            session_id,
            serializer.validated_data["drops"],
            recorded_by=request.user.get_username(),
            notes=serializer.validated_data["notes"],
        )
        if not result.success:
            return failure_response(result)
        return Response(
            TillTransactionSerializer(result.data, many=True).data,
            status=status.HTTP_201_CREATED,
        )


class VoidTransactionView(APIView):
    """POST /api/v1/tills/transactions/{id}/void/ - Manager approves a void"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Void ledger entry",
        request=VoidTransactionSerializer,
        responses={
            201: OpenApiResponse(response=TillTransactionSerializer, description="The reversal entry"),
            400: OpenApiResponse(description="Self approval, already voided, closed session"),
            404: OpenApiResponse(description="Entry not found"),
        },
        tags=["Tills - Ledger"],
    )
    def post(self, request, transaction_id):
        serializer = VoidTransactionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = TillVoidService.void_transaction(
            transaction_id,
            staff_username=serializer.validated_data["staff_username"],
            manager_username=request.user.get_username(),
            reason=serializer.validated_data["reason"],
        )
        if not result.success:
            return failure_response(result)
        return Response(TillTransactionSerializer(result.data).data, status=status.HTTP_201_CREATED)


# =============================================================================
# Denomination counts
# =============================================================================


class DenominationCountView(APIView):
    """
    GET  /api/v1/tills/sessions/{id}/denomination-counts/
    POST /api/v1/tills/sessions/{id}/denomination-counts/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(summary="List counts", responses={200: TillDenominationCountSerializer(many=True)}, tags=["Tills - Counts"])
    def get(self, request, session_id):
        counts = DenominationService.get_denomination_counts(session_id)
        return Response(TillDenominationCountSerializer(counts, many=True).data)

    @extend_schema(
        summary="Save count",
        request=SaveDenominationCountSerializer,
        responses={201: TillDenominationCountSerializer},
        tags=["Tills - Counts"],
    )
    def post(self, request, session_id):
        serializer = SaveDenominationCountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = DenominationService.save_denomination_count(
            session_id,
            counted_by=request.user.get_username(),
            **serializer.validated_data,
        )
        if not result.success:
            return failure_response(result)
        return Response(
            TillDenominationCountSerializer(result.data).data,
            status=status.HTTP_201_CREATED,
        )


# =============================================================================
# Daily close
# =============================================================================


class DailyCloseView(APIView):
    """POST /api/v1/tills/daily-close/ - Close a shop-day"""

    permission_classes = [IsAuthenticated]

    @extend_schema(summary="Close day", request=ShopDaySerializer, responses={200: DailyCloseSerializer}, tags=["Tills - Daily close"])
    def post(self, request):
        serializer = ShopDaySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = DailyCloseService.perform_daily_close(
            serializer.validated_data["shop_id"],
            serializer.validated_data["date"],
            closed_by=request.user.get_username(),
        )
        if not result.success:
            return failure_response(result)
        return Response(DailyCloseSerializer(result.data).data)


class ReopenDayView(APIView):
    """POST /api/v1/tills/daily-close/reopen/ - Reopen a closed shop-day"""

    permission_classes = [IsAuthenticated]

    @extend_schema(summary="Reopen day", request=ReopenDaySerializer, responses={200: DailyCloseSerializer}, tags=["Tills - Daily close"])
    def post(self, request):
        serializer = ReopenDaySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = DailyCloseService.reopen_day(
            serializer.validated_data["shop_id"],
            serializer.validated_data["date"],
            reason=serializer.validated_data["reason"],
            reopened_by=request.user.get_username(),
        )
        if not result.success:
            return failure_response(result)
        return Response(DailyCloseSerializer(result.data).data)


class ReconcileDayView(APIView):
    """POST /api/v1/tills/daily-close/reconcile/ - Settle a closed, verified day"""

    permission_classes = [IsAuthenticated]

    @extend_schema(summary="Reconcile day", request=ShopDaySerializer, responses={200: DailyCloseSerializer}, tags=["Tills - Daily close"])
    def post(self, request):
        serializer = ShopDaySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = DailyCloseService.mark_reconciled(
            serializer.validated_data["shop_id"],
            serializer.validated_data["date"],
            reconciled_by=request.user.get_username(),
        )
        if not result.success:
            return failure_response(result)
        return Response(DailyCloseSerializer(result.data).data)


class DailySummaryView(APIView):
    """GET /api/v1/tills/daily-close/summary/?shop_id=1&date=2024-01-15"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Daily summary",
        parameters=[SHOP_PARAM, DATE_PARAM],
        responses={200: DailyTillSummarySerializer},
        tags=["Tills - Reports"],
    )
    def get(self, request):
        params = _shop_day(request.query_params).validated_data
        summary = TillReportService.get_daily_summary(params["shop_id"], params["date"])
        return Response(DailyTillSummarySerializer(summary).data)


class VarianceReportView(APIView):
    """GET /api/v1/tills/reports/variance/?shop_id=1 - Recent variance overview"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Variance overview",
        parameters=[SHOP_PARAM, OpenApiParameter("days", int)],
        tags=["Tills - Reports"],
    )
    def get(self, request):
        try:
            shop_id = int(request.query_params["shop_id"])
            days = int(request.query_params.get("days", 7))
        except (KeyError, ValueError):
            return Response(
                {"error": "shop_id is required", "error_code": "VALIDATION_ERROR"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        sessions = TillReportService.get_recent_closed_sessions(shop_id, days=days)
        return Response(
            {
                "alert_count": TillReportService.get_variance_alert_count(shop_id),
                "sessions": [
                    {
                        **TillSessionSerializer(session).data,
                        "total_variance_in_base": str(
                            TillReportService.get_total_variance_in_base(session)
                        ),
                    }
                    for session in sessions
                ],
            }
        )


# =============================================================================
# Shortages
# =============================================================================


class ShortageListView(APIView):
    """
    GET  /api/v1/tills/shortages/?shop_id=1[&staff=alice]
    POST /api/v1/tills/shortages/ - Log a shortage (current user is the manager)
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List shortages",
        parameters=[SHOP_PARAM, OpenApiParameter("staff", str)],
        responses={200: ShortageLogSerializer(many=True)},
        tags=["Tills - Shortages"],
    )
    def get(self, request):
        try:
            shop_id = int(request.query_params["shop_id"])
        except (KeyError, ValueError):
            return Response(
                {"error": "shop_id is required", "error_code": "VALIDATION_ERROR"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        staff = request.query_params.get("staff")
        if staff:
            shortages = ShortageService.get_shortage_logs_by_staff(shop_id, staff)
        else:
            shortages = ShortageService.get_shortage_logs(shop_id)
        return Response(ShortageLogSerializer(shortages, many=True).data)

    @extend_schema(
        summary="Log shortage",
        request=LogShortageSerializer,
        responses={201: ShortageLogSerializer},
        tags=["Tills - Shortages"],
    )
    def post(self, request):
        serializer = LogShortageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ShortageService.log_shortage(
            logged_by=request.user.get_username(),
            **serializer.validated_data,
        )
        if not result.success:
            return failure_response(result)
        return Response(ShortageLogSerializer(result.data).data, status=status.HTTP_201_CREATED)


# =============================================================================
# Exchange rates
# =============================================================================


class ExchangeRateView(APIView):
    """
    GET  /api/v1/tills/exchange-rates/[?shop_id=1] - Rates in force
    POST /api/v1/tills/exchange-rates/             - Set a rate
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Current rates",
        parameters=[OpenApiParameter("shop_id", int)],
        responses={200: ExchangeRateSerializer(many=True)},
        tags=["Tills - Exchange rates"],
    )
    def get(self, request):
        shop_id = request.query_params.get("shop_id")
        rates = ExchangeRateService.get_all_current_rates(int(shop_id) if shop_id else None)
        return Response(ExchangeRateSerializer(list(rates.values()), many=True).data)

    @extend_schema(
        summary="Set rate",
        request=SetExchangeRateSerializer,
        responses={201: ExchangeRateSerializer},
        tags=["Tills - Exchange rates"],
    )
    def post(self, request):
        serializer = SetExchangeRateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ExchangeRateService.set_rate(
            username=request.user.get_username(),
            **serializer.validated_data,
        )
        if not result.success:
            return failure_response(result)
        return Response(ExchangeRateSerializer(result.data).data, status=status.HTTP_201_CREATED)
