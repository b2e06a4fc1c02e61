"""
Tests for state machine transitions using django-fsm.

Tests valid and invalid state transitions for TillSession and DailyClose.
"""

from decimal import Decimal

import pytest
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from tills.models import TillSession
from tills.state_machines import DailyCloseStatus, SessionCustody, TillSessionStatus
from tills.tests.factories import DailyCloseFactory, TillSessionFactory


def _close(session, thb="5000.00", tolerance=Decimal("0.00")):
    session.close(
        closed_by=session.staff_username,
        actual_balances={"THB": Decimal(thb)},
        actual_cash=Decimal(thb),
        tolerance=tolerance,
    )
    session.save()
    return session


# =============================================================================
# TillSession State Transition Tests
# =============================================================================


class TestTillSessionTransitions:
    """Tests for TillSession state machine transitions."""

    # -------------------------------------------------------------------------
    # Valid Transitions
    # -------------------------------------------------------------------------

    def test_open_to_closed_when_count_matches(self, db):
        session = _close(TillSessionFactory())

        assert session.status == TillSessionStatus.CLOSED
        assert session.variance == Decimal("0.00")
        assert session.has_variance is False
        assert session.closed_at is not None

    def test_open_to_closed_with_variance(self, db):
        session = _close(TillSessionFactory(), thb="4900.00")

        assert session.status == TillSessionStatus.CLOSED_WITH_VARIANCE
        assert session.variance == Decimal("-100.00")
        assert session.closing_variances["THB"] == "-100.00"

    def test_variance_within_tolerance_closes_clean(self, db):
        session = _close(TillSessionFactory(), thb="4999.50", tolerance=Decimal("1.00"))

        assert session.status == TillSessionStatus.CLOSED
        assert session.variance == Decimal("-0.50")

    def test_closed_to_verified_hands_custody_to_shop(self, db):
        session = _close(TillSessionFactory())

        session.verify(verified_by="manager", notes="ok")
        session.save()

        assert session.status == TillSessionStatus.VERIFIED
        assert session.custody == SessionCustody.SHOP
        assert session.verified_by_username == "manager"

    def test_closed_to_reconciling_and_back(self, db):
        session = _close(TillSessionFactory(), thb="4900.00")

        session.begin_reconciliation()
        session.save()
        assert session.status == TillSessionStatus.RECONCILING

        _close(session)
        assert session.status == TillSessionStatus.CLOSED

    def test_late_close_is_flagged(self, db):
        session = TillSessionFactory(opened_at=timezone.now() - timezone.timedelta(days=2))

        _close(session)

        assert session.is_late_close is True

    def test_status_persists(self, db):
        session = _close(TillSessionFactory())

        reloaded = TillSession.objects.get(pk=session.pk)

        assert reloaded.status == TillSessionStatus.CLOSED

    # -------------------------------------------------------------------------
    # Invalid Transitions
    # -------------------------------------------------------------------------

    def test_cannot_verify_open_session(self, db):
        session = TillSessionFactory()

        with pytest.raises(TransitionNotAllowed):
            session.verify(verified_by="manager")

    def test_cannot_close_verified_session(self, db):
        session = _close(TillSessionFactory())
        session.verify(verified_by="manager")
        session.save()

        with pytest.raises(TransitionNotAllowed):
            _close(session)

    def test_cannot_reconcile_open_session(self, db):
        session = TillSessionFactory()

        with pytest.raises(TransitionNotAllowed):
            session.begin_reconciliation()

    def test_status_is_protected(self, db):
        session = TillSessionFactory()

        with pytest.raises(AttributeError):
            session.status = TillSessionStatus.VERIFIED


# =============================================================================
# DailyClose State Transition Tests
# =============================================================================


class TestDailyCloseTransitions:
    """Tests for DailyClose state machine transitions."""

    def test_open_to_closed(self, db):
        daily_close = DailyCloseFactory()

        daily_close.close(closed_by="manager")
        daily_close.save()

        assert daily_close.status == DailyCloseStatus.CLOSED
        assert daily_close.closed_by_username == "manager"
        assert daily_close.is_closed

    def test_closed_to_reconciled(self, db):
        daily_close = DailyCloseFactory()
        daily_close.close(closed_by="manager")

        daily_close.mark_reconciled(reconciled_by="manager")
        daily_close.save()

        assert daily_close.status == DailyCloseStatus.RECONCILED
        assert daily_close.reconciled_at is not None

    def test_reopen_appends_history(self, db):
        daily_close = DailyCloseFactory()
        daily_close.close(closed_by="manager")
        daily_close.reopen(reason="Late drop", reopened_by="manager")
        daily_close.close(closed_by="manager")
        daily_close.reopen(reason="Miscount", reopened_by="owner")
        daily_close.save()

        assert daily_close.status == DailyCloseStatus.OPEN
        assert daily_close.was_reopened is True
        assert daily_close.reopen_reason == "Miscount"
        assert daily_close.reopened_by_username == "owner"
        assert [entry["reason"] for entry in daily_close.reopen_history] == [
            "Late drop",
            "Miscount",
        ]

    def test_reconciled_day_can_be_reopened(self, db):
        daily_close = DailyCloseFactory()
        daily_close.close(closed_by="manager")
        daily_close.mark_reconciled(reconciled_by="manager")

        daily_close.reopen(reason="Audit", reopened_by="owner")

        assert daily_close.status == DailyCloseStatus.OPEN

    def test_cannot_reopen_open_day(self, db):
        daily_close = DailyCloseFactory()

        with pytest.raises(TransitionNotAllowed):
            daily_close.reopen(reason="x", reopened_by="manager")

    def test_cannot_reconcile_open_day(self, db):
        daily_close = DailyCloseFactory()

        with pytest.raises(TransitionNotAllowed):
            daily_close.mark_reconciled(reconciled_by="manager")
