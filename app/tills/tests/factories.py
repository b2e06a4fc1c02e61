"""
Factory Boy factories for till test data.

Usage:
    from tills.tests.factories import TillSessionFactory, ExchangeRateFactory

    # An open session with 5000.00 THB in the drawer
    session = TillSessionFactory()

    # A session of another staff member at another shop
    session = TillSessionFactory(staff_username="bob", shop_id=2)

    # The organization default USD rate
    ExchangeRateFactory(currency="USD", buy_rate=Decimal("33.00"))
"""

from decimal import Decimal

import factory
from django.utils import timezone

from tills.models import DailyClose, ExchangeRate, ShortageLog, TillSession, TillTransaction
from tills.state_machines import ExchangeRateSource, TransactionDirection, TransactionType


class UserFactory(factory.django.DjangoModelFactory):
    """Factory for the API users (staff members and managers)."""

    class Meta:
        model = "auth.User"
        django_get_or_create = ("username",)
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"staff{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    password = factory.PostGenerationMethodCall("set_password", "testpass123")
    is_active = True


class TillSessionFactory(factory.django.DjangoModelFactory):
    """
    Factory for open TillSession instances.

    The drawer holds the opening float in base currency and zero of
    every other supported currency, as open_session() would set it up.
    """

    class Meta:
        model = TillSession
        skip_postgeneration_save = True

    shop_id = 1
    staff_username = factory.Sequence(lambda n: f"cashier{n}")
    staff_display_name = factory.LazyAttribute(lambda o: o.staff_username.title())
    opening_float = Decimal("5000.00")
    opened_at = factory.LazyFunction(timezone.now)
    currency_balances = factory.LazyAttribute(
        lambda o: {"THB": str(o.opening_float), "USD": "0.00", "EUR": "0.00", "CNY": "0.00"}
    )


class TillTransactionFactory(factory.django.DjangoModelFactory):
    """
    Factory for raw ledger rows.

    Creates the row only; session balances are not touched. Use the
    services when balances matter.
    """

    class Meta:
        model = TillTransaction

    session = factory.SubFactory(TillSessionFactory)
    transaction_type = TransactionType.RENTAL_PAYMENT
    direction = TransactionDirection.IN
    amount = Decimal("100.00")
    currency = "THB"
    exchange_rate = Decimal("1")
    amount_in_base_currency = factory.LazyAttribute(lambda o: o.amount * o.exchange_rate)
    recorded_by_username = factory.LazyAttribute(lambda o: o.session.staff_username)


class ExchangeRateFactory(factory.django.DjangoModelFactory):
    """Factory for organization-default rates (shop_id=None)."""

    class Meta:
        model = ExchangeRate

    currency = "USD"
    buy_rate = Decimal("33.000000")
    source = ExchangeRateSource.MANUAL
    shop_id = None
    effective_date = factory.LazyFunction(lambda: timezone.now() - timezone.timedelta(minutes=1))
    is_active = True
    created_by_username = "manager"


class DailyCloseFactory(factory.django.DjangoModelFactory):
    """Factory for an OPEN DailyClose of today."""

    class Meta:
        model = DailyClose

    shop_id = 1
    date = factory.LazyFunction(timezone.localdate)


class ShortageLogFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ShortageLog

    session = factory.SubFactory(TillSessionFactory)
    shop_id = factory.LazyAttribute(lambda o: o.session.shop_id)
    staff_username = factory.LazyAttribute(lambda o: o.session.staff_username)
    currency = "THB"
    amount = Decimal("200.00")
    amount_in_base = Decimal("200.00")
    reason = "Drawer short at close"
    logged_by_username = "manager"
