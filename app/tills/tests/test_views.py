"""
API tests for the till endpoints.

Requests authenticate with a simplejwt access token; the authenticated
user is the acting staff member or manager.
"""

from decimal import Decimal

import pytest
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from tills.models import TillSession, TillTransaction
from tills.services import TillTransactionService
from tills.state_machines import TillSessionStatus, TransactionType


def _open(client, shop_id=1, opening_float="5000.00"):
    return client.post(
        reverse("tills:session_list"),
        {"shop_id": shop_id, "opening_float": opening_float},
        format="json",
    )


@pytest.fixture
def alice_session(alice_client):
    response = _open(alice_client)
    assert response.status_code == status.HTTP_201_CREATED, response.data
    return TillSession.objects.get(pk=response.data["id"])


class TestAuthentication:
    def test_anonymous_rejected(self, db):
        response = APIClient().get(reverse("tills:session_active"))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestSessionEndpoints:
    def test_open_session(self, alice_client):
        response = _open(alice_client)

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["staff_username"] == "alice"
        assert response.data["status"] == TillSessionStatus.OPEN
        assert response.data["expected_cash"] == "5000.00"
        assert response.data["version"] == 1

    def test_second_open_rejected(self, alice_client, alice_session):
        response = _open(alice_client)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "SESSION_ALREADY_OPEN"

    def test_negative_float_rejected_by_serializer(self, alice_client):
        response = _open(alice_client, opening_float="-1")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "opening_float" in response.data

    def test_active_session(self, alice_client, alice_session):
        response = alice_client.get(reverse("tills:session_active"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["id"] == str(alice_session.id)
        assert response.data["is_stale"] is False

    def test_no_active_session(self, alice_client):
        response = alice_client.get(reverse("tills:session_active"))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_session_detail_unknown(self, alice_client):
        url = reverse("tills:session_detail", args=["00000000-0000-0000-0000-000000000000"])

        response = alice_client.get(url)

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_history_requires_shop(self, alice_client):
        response = alice_client.get(reverse("tills:session_list"))

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_history(self, alice_client, alice_session):
        response = alice_client.get(reverse("tills:session_list"), {"shop_id": 1})

        assert [row["id"] for row in response.data] == [str(alice_session.id)]

    def test_close_verify_flow(self, alice_client, manager_client, alice_session):
        close_url = reverse("tills:session_close", args=[alice_session.id])
        response = alice_client.post(
            close_url,
            {"actual_balances": {"thb": "4900.00"}, "expected_version": 1},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == TillSessionStatus.CLOSED_WITH_VARIANCE
        assert response.data["variance"] == "-100.00"

        self_verify = alice_client.post(reverse("tills:session_verify", args=[alice_session.id]), {})
        assert self_verify.data["error_code"] == "SELF_APPROVAL"

        verified = manager_client.post(
            reverse("tills:session_verify", args=[alice_session.id]),
            {"notes": "Short 100 logged"},
            format="json",
        )
        assert verified.status_code == status.HTTP_200_OK
        assert verified.data["verified_by_username"] == "manager"

    def test_close_by_other_user_rejected(self, manager_client, alice_session):
        response = manager_client.post(
            reverse("tills:session_close", args=[alice_session.id]),
            {"actual_balances": {"THB": "5000"}},
            format="json",
        )

        assert response.data["error_code"] == "NOT_SESSION_OWNER"

    def test_close_with_stale_version(self, alice_client, alice_session):
        TillTransactionService.record_top_up(alice_session.id, Decimal("100"), "alice")

        response = alice_client.post(
            reverse("tills:session_close", args=[alice_session.id]),
            {"actual_balances": {"THB": "5100"}, "expected_version": 1},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "STALE_SESSION"

    def test_force_close_defaults_to_owner(self, manager_client, alice_session):
        response = manager_client.post(
            reverse("tills:session_force_close", args=[alice_session.id]), {}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["is_force_close"] is True
        assert response.data["closed_by_username"] == "alice"
        assert response.data["force_close_approved_by"] == "manager"

    def test_summary(self, alice_client, alice_session):
        response = alice_client.get(reverse("tills:session_summary", args=[alice_session.id]))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["transaction_count"] == 0
        assert response.data["expected_cash"] == "5000.00"


class TestLedgerEndpoints:
    def test_record_in_and_list(self, alice_client, alice_session):
        url = reverse("tills:session_transactions", args=[alice_session.id])

        response = alice_client.post(
            url,
            {
                "direction": "in",
                "transaction_type": TransactionType.RENTAL_PAYMENT.value,
                "amount": "1500.00",
                "payment_id": 10,
                "receipt_number": "ignored",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["amount_in_base_currency"] == "1500.00"
        listing = alice_client.get(url)
        assert len(listing.data) == 1

    def test_record_out_insufficient(self, alice_client, alice_session):
        response = alice_client.post(
            reverse("tills:session_transactions", args=[alice_session.id]),
            {
                "direction": "out",
                "transaction_type": TransactionType.PETTY_CASH.value,
                "amount": "9000.00",
                "recipient_name": "Fuel station",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INSUFFICIENT_BALANCE"

    def test_payment_link_rejected_for_money_out(self, alice_client, alice_session):
        response = alice_client.post(
            reverse("tills:session_transactions", args=[alice_session.id]),
            {
                "direction": "out",
                "transaction_type": TransactionType.DEPOSIT_REFUND.value,
                "amount": "100.00",
                "payment_id": 3,
            },
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "payment_id" in response.data

    def test_multi_currency_drop(self, alice_client, alice_session, usd_rate):
        TillTransactionService.record_foreign_currency_payment(
            alice_session.id, "USD", Decimal("60"), "alice"
        )

        response = alice_client.post(
            reverse("tills:session_drops", args=[alice_session.id]),
            {"drops": [{"currency": "usd", "amount": "50"}, {"currency": "THB", "amount": "1000"}]},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert sorted(row["currency"] for row in response.data) == ["THB", "USD"]

    def test_void_uses_caller_as_manager(self, alice_client, manager_client, alice_session):
        entry = TillTransactionService.record_top_up(alice_session.id, Decimal("100"), "alice").data
        url = reverse("tills:transaction_void", args=[entry.id])

        own = alice_client.post(url, {"staff_username": "alice", "reason": "Oops"}, format="json")
        assert own.data["error_code"] == "SELF_APPROVAL"

        response = manager_client.post(
            url, {"staff_username": "alice", "reason": "Oops"}, format="json"
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["transaction_type"] == TransactionType.VOID_REVERSAL
        assert TillTransaction.objects.get(pk=entry.pk).void_approved_by_username == "manager"

    def test_recorder_cannot_approve_own_entry_void(self, alice_client, alice_session):
        entry = TillTransactionService.record_top_up(alice_session.id, Decimal("100"), "alice").data
        url = reverse("tills:transaction_void", args=[entry.id])

        response = alice_client.post(url, {"staff_username": "carol", "reason": "Oops"}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "SELF_APPROVAL"

    def test_void_unknown_transaction(self, manager_client):
        url = reverse("tills:transaction_void", args=["00000000-0000-0000-0000-000000000000"])

        response = manager_client.post(url, {"staff_username": "alice", "reason": "x"}, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_denomination_count(self, alice_client, alice_session):
        url = reverse("tills:denomination_counts", args=[alice_session.id])

        response = alice_client.post(
            url,
            {
                "count_type": "closing",
                "breakdowns": [{"currency": "THB", "denominations": {"1000": 5, "100": 1}}],
            },
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["total_in_base"] == "5100.00"
        assert len(alice_client.get(url).data) == 1


class TestDailyCloseEndpoints:
    def test_close_reopen_and_summary(self, alice_client, manager_client, alice_session):
        today = timezone.localdate().isoformat()
        alice_client.post(
            reverse("tills:session_close", args=[alice_session.id]),
            {"actual_balances": {"THB": "5000"}},
            format="json",
        )

        closed = manager_client.post(
            reverse("tills:daily_close"), {"shop_id": 1, "date": today}, format="json"
        )
        assert closed.status_code == status.HTTP_200_OK
        assert closed.data["status"] == "closed"

        reopened = manager_client.post(
            reverse("tills:daily_close_reopen"),
            {"shop_id": 1, "date": today, "reason": "Recount"},
            format="json",
        )
        assert reopened.data["status"] == "open"

        summary = manager_client.get(
            reverse("tills:daily_summary"), {"shop_id": 1, "date": today}
        )
        assert summary.data["open_session_count"] == 1
        assert summary.data["session_count"] == 1

    def test_reopen_unknown_day(self, manager_client):
        response = manager_client.post(
            reverse("tills:daily_close_reopen"),
            {"shop_id": 1, "date": "2020-01-01", "reason": "x"},
            format="json",
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_close_with_open_sessions(self, manager_client, alice_session):
        response = manager_client.post(
            reverse("tills:daily_close"),
            {"shop_id": 1, "date": timezone.localdate().isoformat()},
            format="json",
        )

        assert response.data["error_code"] == "SESSIONS_STILL_OPEN"


class TestReportEndpoints:
    def test_variance_report(self, manager_client, closed_session):
        response = manager_client.get(reverse("tills:variance_report"), {"shop_id": 1})

        assert response.status_code == status.HTTP_200_OK
        assert response.data["alert_count"] == 0
        assert response.data["sessions"][0]["total_variance_in_base"] == "0.00"

    def test_shortages(self, manager_client, closed_session):
        created = manager_client.post(
            reverse("tills:shortages"),
            {
                "shop_id": 1,
                "session_id": str(closed_session.id),
                "staff_username": "alice",
                "currency": "THB",
                "amount": "150.00",
                "reason": "Short at close",
            },
            format="json",
        )
        assert created.status_code == status.HTTP_201_CREATED
        assert created.data["logged_by_username"] == "manager"

        listing = manager_client.get(reverse("tills:shortages"), {"shop_id": 1, "staff": "alice"})
        assert [row["amount"] for row in listing.data] == ["150.00"]

    def test_exchange_rates(self, manager_client):
        created = manager_client.post(
            reverse("tills:exchange_rates"),
            {"currency": "USD", "buy_rate": "33.250000"},
            format="json",
        )
        assert created.status_code == status.HTTP_201_CREATED

        listing = manager_client.get(reverse("tills:exchange_rates"))
        assert [row["currency"] for row in listing.data] == ["USD"]

    def test_base_currency_rate_rejected(self, manager_client):
        response = manager_client.post(
            reverse("tills:exchange_rates"),
            {"currency": "THB", "buy_rate": "1"},
            format="json",
        )

        assert response.data["error_code"] == "INVALID_CURRENCY"
