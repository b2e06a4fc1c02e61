"""
Pytest fixtures for till tests.

Sessions are opened through TillSessionService so that every fixture
starts from the same balances production code would produce.

Usage:
    def test_cash_payment(open_session):
        result = TillTransactionService.record_in(
            open_session.id, TransactionType.RENTAL_PAYMENT, Decimal("100"), "alice"
        )
        assert result.success
"""

from decimal import Decimal

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from tills.services import TillServiceBase, TillSessionService
from tills.tests.factories import ExchangeRateFactory, UserFactory
from tills.types import ConversionResult, to_money, to_rate


class StubExchangeRateProvider:
    """
    In-memory ExchangeRateProvider.

    rates maps currency code to buy rate; anything missing has no rate.
    """

    def __init__(self, rates: dict[str, Decimal] | None = None):
        self.rates = dict(rates or {})
        self.calls: list[tuple[str, Decimal, int | None]] = []

    def get_current_rate(self, currency, shop_id=None):
        return self.rates.get(currency.upper())

    def convert_to_base(self, currency, amount, shop_id=None):
        self.calls.append((currency, amount, shop_id))
        rate = self.rates.get(currency.upper())
        if rate is None:
            return None
        return ConversionResult(
            converted_amount=to_money(Decimal(amount) * rate),
            rate_used=to_rate(rate),
            rate_source="Stub",
        )


# =============================================================================
# Exchange Rate Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_exchange_rate_provider():
    """Restore the database-backed provider after every test."""
    yield
    TillServiceBase.set_exchange_rate_provider(None)


@pytest.fixture
def stub_rates():
    """Install a stub provider with USD at 33 and EUR at 38.50."""
    provider = StubExchangeRateProvider({"USD": Decimal("33"), "EUR": Decimal("38.50")})
    TillServiceBase.set_exchange_rate_provider(provider)
    return provider


@pytest.fixture
def usd_rate(db):
    """Organization-default USD buy rate of 33.00."""
    return ExchangeRateFactory(currency="USD", buy_rate=Decimal("33.00"))


@pytest.fixture
def no_rate_fallback(settings):
    settings.TILL_EXCHANGE_RATE_FALLBACK = False


# =============================================================================
# Session Fixtures
# =============================================================================


@pytest.fixture
def open_session(db):
    """alice's open session at shop 1 with a 5000.00 THB float."""
    result = TillSessionService.open_session(
        shop_id=1,
        staff_username="alice",
        opening_float=Decimal("5000.00"),
        staff_display_name="Alice",
    )
    assert result.success, result.error
    return result.data


@pytest.fixture
def closed_session(open_session):
    """alice's session closed with exactly the float counted."""
    result = TillSessionService.close_session(
        open_session.id,
        closed_by="alice",
        actual_balances={"THB": Decimal("5000.00")},
    )
    assert result.success, result.error
    return result.data


# =============================================================================
# API Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    return UserFactory(username="alice")


@pytest.fixture
def manager(db):
    return UserFactory(username="manager")


def _client_for(user) -> APIClient:
    client = APIClient()
    token = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token.access_token}")
    return client


@pytest.fixture
def alice_client(alice):
    return _client_for(alice)


@pytest.fixture
def manager_client(manager):
    return _client_for(manager)
