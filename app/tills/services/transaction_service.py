"""
Transaction ledger: record money movements against an open till session.

Every entry is written in the same database transaction that applies its
ledger effect to the session (tills.ledger.apply_effect), so the drawer
balances and rollups always agree with the rows.

Foreign currency entries are converted at the current buy rate; with no
rate configured the entry is refused (NO_EXCHANGE_RATE). Ledger entries
never fall back to an assumed rate.

Usage:
    from tills.services import TillTransactionService

    TillTransactionService.record_in(
        session.id,
        TransactionType.RENTAL_PAYMENT,
        Decimal("1500.00"),
        recorded_by="alice",
        rental_id=42,
    )

    TillTransactionService.record_multi_currency_drop(
        session.id,
        [CurrencyAmount("USD", Decimal("50")), CurrencyAmount("THB", Decimal("1000"))],
        recorded_by="alice",
    )
"""

from __future__ import annotations

import datetime
import uuid
from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal

from django.db.models import QuerySet

from core.exceptions import ValidationError
from core.services import ServiceResult
from tills.ledger import (
    ELECTRONIC_BUCKETS,
    LEDGER_EFFECTS,
    apply_effect,
    effect_for,
    types_for_direction,
)
from tills.models import TillSession, TillTransaction
from tills.services.base import TillServiceBase
from tills.state_machines import TillSessionStatus, TransactionDirection, TransactionType
from tills.types import ZERO, CurrencyAmount, to_money

PAYMENT_METHOD_TYPES = {
    "cash": TransactionType.RENTAL_PAYMENT,
    "card": TransactionType.CARD_PAYMENT,
    "banktransfer": TransactionType.BANK_TRANSFER,
    "promptpay": TransactionType.MOBILE_WALLET_PAYMENT,
    "qrcode": TransactionType.MOBILE_WALLET_PAYMENT,
    "mobilewallet": TransactionType.MOBILE_WALLET_PAYMENT,
}

ELECTRONIC_TYPES = [
    transaction_type
    for transaction_type, effect in LEDGER_EFFECTS.items()
    if effect.bucket in ELECTRONIC_BUCKETS
]


def payment_method_type(payment_method: str) -> str:
    """Transaction type for a payment method name; unknown methods count as cash."""
    key = (payment_method or "").replace("_", "").replace(" ", "").lower()
    return PAYMENT_METHOD_TYPES.get(key, TransactionType.RENTAL_PAYMENT)


class TillTransactionService(TillServiceBase):
    """
    Service for recording ledger entries.

    All methods are class methods - no instance state is maintained.
    """

    # ==========================================================================
    # Core recording
    # ==========================================================================

    @classmethod
    def _record(
        cls,
        session_id: uuid.UUID,
        transaction_type: str,
        amount: Decimal,
        recorded_by: str,
        currency: str | None = None,
        expected_version: int | None = None,
        **details,
    ) -> ServiceResult[TillTransaction]:
        """
        Write one ledger entry and apply its effect to the session.

        Cash outflows are refused when the drawer does not hold enough of
        the currency.
        """
        validation = cls.validate_required(recorded_by=recorded_by)
        if validation is not None:
            return validation

        try:
            amount = to_money(amount)
        except ValidationError as exc:
            return ServiceResult.from_exception(exc)
        if amount <= 0:
            return ServiceResult.failure(
                "Amount must be greater than zero",
                error_code="INVALID_AMOUNT",
            )

        currency = (currency or cls.get_base_currency()).upper()
        effect = effect_for(transaction_type)

        with cls.atomic():
            session, failure = cls._load_session_for_update(session_id, expected_version)
            if failure is not None:
                return failure
            if not session.is_open:
                return cls._session_not_open(session)

            conversion = cls._convert(currency, amount, session.shop_id)
            if conversion is None:
                cls.get_logger().warning(
                    "Entry refused, no exchange rate",
                    extra={"session_id": str(session.id), "currency": currency},
                )
                return cls._no_rate_failure(currency)

            if effect.affects_drawer and not effect.is_inflow:
                available = session.get_currency_balance(currency)
                if amount > available:
                    return ServiceResult.failure(
                        f"Insufficient {currency} balance. "
                        f"Available: {available}, requested: {amount}",
                        error_code="INSUFFICIENT_BALANCE",
                    )

            entry = TillTransaction.objects.create(
                session=session,
                transaction_type=transaction_type,
                direction=effect.direction,
                amount=amount,
                currency=currency,
                exchange_rate=conversion.rate_used,
                amount_in_base_currency=conversion.converted_amount,
                exchange_rate_source=conversion.rate_source,
                exchange_rate_id=conversion.rate_id,
                recorded_by_username=recorded_by,
                **{key: value for key, value in details.items() if value is not None},
            )
            apply_effect(session, entry)
            session.save()

        cls.get_logger().info(
            "Till transaction recorded",
            extra={
                "session_id": str(session.id),
                "transaction_id": str(entry.id),
                "transaction_type": transaction_type,
                "amount": str(amount),
                "currency": currency,
                "amount_in_base": str(entry.amount_in_base_currency),
            },
        )
        return ServiceResult.success(entry)

    @classmethod
    def record_in(
        cls,
        session_id: uuid.UUID,
        transaction_type: str,
        amount: Decimal,
        recorded_by: str,
        currency: str | None = None,
        description: str = "",
        payment_id: int | None = None,
        deposit_id: int | None = None,
        rental_id: int | None = None,
        notes: str = "",
        category: str = "",
        expected_version: int | None = None,
    ) -> ServiceResult[TillTransaction]:
        """
        Record money received.

        Args:
            session_id: Open till session
            transaction_type: Any inflow type (rental payment, card payment, top up...)
            amount: Positive amount in `currency`
            recorded_by: Username of the staff member
            currency: Currency code (default: base currency)
            description / notes / category: Free text
            payment_id / deposit_id / rental_id: Links to the calling subsystem
            expected_version: Session version the caller read

        Returns:
            ServiceResult containing the new TillTransaction
        """
        if transaction_type not in types_for_direction(TransactionDirection.IN):
            return ServiceResult.failure(
                f"{transaction_type} cannot be recorded as money in",
                error_code="INVALID_TRANSACTION_TYPE",
            )
        return cls._record(
            session_id,
            transaction_type,
            amount,
            recorded_by,
            currency=currency,
            expected_version=expected_version,
            description=description,
            payment_id=payment_id,
            deposit_id=deposit_id,
            rental_id=rental_id,
            notes=notes,
            category=category,
        )

    @classmethod
    def record_out(
        cls,
        session_id: uuid.UUID,
        transaction_type: str,
        amount: Decimal,
        recorded_by: str,
        currency: str | None = None,
        description: str = "",
        category: str = "",
        recipient_name: str = "",
        receipt_number: str = "",
        deposit_id: int | None = None,
        rental_id: int | None = None,
        notes: str = "",
        expected_version: int | None = None,
    ) -> ServiceResult[TillTransaction]:
        """
        Record money paid out of the drawer (refunds, payouts, drops).

        Returns:
            ServiceResult containing the new TillTransaction, or an
            INSUFFICIENT_BALANCE failure when the drawer would go negative
        """
        if transaction_type not in types_for_direction(TransactionDirection.OUT):
            return ServiceResult.failure(
                f"{transaction_type} cannot be recorded as money out",
                error_code="INVALID_TRANSACTION_TYPE",
            )
        return cls._record(
            session_id,
            transaction_type,
            amount,
            recorded_by,
            currency=currency,
            expected_version=expected_version,
            description=description,
            category=category,
            recipient_name=recipient_name,
            receipt_number=receipt_number,
            deposit_id=deposit_id,
            rental_id=rental_id,
            notes=notes,
        )

    @classmethod
    def record_foreign_currency_payment(
        cls,
        session_id: uuid.UUID,
        currency: str,
        amount: Decimal,
        recorded_by: str,
        transaction_type: str = TransactionType.RENTAL_PAYMENT,
        description: str = "",
        payment_id: int | None = None,
        deposit_id: int | None = None,
        rental_id: int | None = None,
        notes: str = "",
    ) -> ServiceResult[TillTransaction]:
        """Record a payment taken in a given currency, converted at the current rate."""
        return cls.record_in(
            session_id,
            transaction_type,
            amount,
            recorded_by,
            currency=currency,
            description=description,
            payment_id=payment_id,
            deposit_id=deposit_id,
            rental_id=rental_id,
            notes=notes,
        )

    # ==========================================================================
    # Safe movements
    # ==========================================================================

    @classmethod
    def record_drop(
        cls,
        session_id: uuid.UUID,
        amount: Decimal,
        recorded_by: str,
        currency: str | None = None,
        notes: str = "",
    ) -> ServiceResult[TillTransaction]:
        """Move cash from the drawer to the safe."""
        return cls.record_out(
            session_id,
            TransactionType.DROP,
            amount,
            recorded_by,
            currency=currency,
            description="Cash drop to safe",
            notes=notes,
        )

    @classmethod
    def record_top_up(
        cls,
        session_id: uuid.UUID,
        amount: Decimal,
        recorded_by: str,
        currency: str | None = None,
        notes: str = "",
    ) -> ServiceResult[TillTransaction]:
        """Move cash from the safe into the drawer."""
        return cls.record_in(
            session_id,
            TransactionType.TOP_UP,
            amount,
            recorded_by,
            currency=currency,
            description="Top-up from safe",
            notes=notes,
        )

    @classmethod
    def record_multi_currency_drop(
        cls,
        session_id: uuid.UUID,
        drops: Iterable[CurrencyAmount],
        recorded_by: str,
        notes: str = "",
    ) -> ServiceResult[list[TillTransaction]]:
        """
        Drop several currencies to the safe in one all-or-nothing operation.

        Lines with a non-positive amount are ignored. Every remaining
        line is checked for balance and exchange rate before anything is
        written; one DROP entry is created per currency.

        Returns:
            ServiceResult containing the created entries
        """
        validation = cls.validate_required(recorded_by=recorded_by)
        if validation is not None:
            return validation

        totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for drop in drops:
            if drop.amount > 0:
                totals[drop.currency] += drop.amount

        if not totals:
            return ServiceResult.failure(
                "Nothing to drop",
                error_code="INVALID_AMOUNT",
            )

        with cls.atomic():
            session, failure = cls._load_session_for_update(session_id)
            if failure is not None:
                return failure
            if not session.is_open:
                return cls._session_not_open(session)

            conversions = {}
            for currency, amount in totals.items():
                available = session.get_currency_balance(currency)
                if amount > available:
                    return ServiceResult.failure(
                        f"Insufficient {currency} balance. "
                        f"Available: {available}, requested: {amount}",
                        error_code="INSUFFICIENT_BALANCE",
                    )
                conversion = cls._convert(currency, amount, session.shop_id)
                if conversion is None:
                    return cls._no_rate_failure(currency)
                conversions[currency] = conversion

            entries = []
            for currency, amount in totals.items():
                conversion = conversions[currency]
                entry = TillTransaction.objects.create(
                    session=session,
                    transaction_type=TransactionType.DROP,
                    direction=TransactionDirection.OUT,
                    amount=amount,
                    currency=currency,
                    exchange_rate=conversion.rate_used,
                    amount_in_base_currency=conversion.converted_amount,
                    exchange_rate_source=conversion.rate_source,
                    exchange_rate_id=conversion.rate_id,
                    description=f"Cash drop to safe ({currency})",
                    notes=notes or "",
                    recorded_by_username=recorded_by,
                )
                apply_effect(session, entry)
                entries.append(entry)
            session.save()

        cls.get_logger().info(
            "Multi-currency drop recorded",
            extra={
                "session_id": str(session.id),
                "currencies": sorted(totals),
                "total_in_base": str(sum((e.amount_in_base_currency for e in entries), ZERO)),
            },
        )
        return ServiceResult.success(entries)

    @classmethod
    def record_overpayment_refund(
        cls,
        session_id: uuid.UUID,
        amount: Decimal,
        reason: str,
        recorded_by: str,
        original_payment_ids: list[str] | None = None,
        rental_id: int | None = None,
    ) -> ServiceResult[TillTransaction]:
        """Give back cash a customer overpaid, in base currency."""
        validation = cls.validate_required(reason=reason)
        if validation is not None:
            return validation

        notes = ""
        if original_payment_ids:
            notes = f"Original payments: {', '.join(str(p) for p in original_payment_ids)}"

        return cls.record_out(
            session_id,
            TransactionType.OVERPAYMENT_REFUND,
            amount,
            recorded_by,
            description=f"Overpayment refund: {reason}",
            rental_id=rental_id,
            notes=notes,
        )

    # ==========================================================================
    # Integration helpers (rental / deposit workflows)
    # ==========================================================================

    @classmethod
    def record_rental_payment(
        cls,
        session_id: uuid.UUID,
        payment_method: str,
        amount: Decimal,
        recorded_by: str,
        payment_id: int | None = None,
        rental_id: int | None = None,
        description: str = "",
    ) -> ServiceResult[TillTransaction]:
        """
        Record a rental payment by payment method.

        Cash lands in the drawer; card, bank transfer and wallet payments
        are recorded for reporting only.
        """
        return cls.record_in(
            session_id,
            payment_method_type(payment_method),
            amount,
            recorded_by,
            description=description,
            payment_id=payment_id,
            rental_id=rental_id,
        )

    @classmethod
    def record_deposit(
        cls,
        session_id: uuid.UUID,
        amount: Decimal,
        recorded_by: str,
        deposit_id: int | None = None,
        rental_id: int | None = None,
        description: str = "",
    ) -> ServiceResult[TillTransaction]:
        return cls.record_in(
            session_id,
            TransactionType.SECURITY_DEPOSIT,
            amount,
            recorded_by,
            description=description,
            deposit_id=deposit_id,
            rental_id=rental_id,
        )

    @classmethod
    def record_deposit_refund(
        cls,
        session_id: uuid.UUID,
        amount: Decimal,
        recorded_by: str,
        deposit_id: int | None = None,
        rental_id: int | None = None,
        description: str = "",
    ) -> ServiceResult[TillTransaction]:
        return cls.record_out(
            session_id,
            TransactionType.DEPOSIT_REFUND,
            amount,
            recorded_by,
            description=description,
            deposit_id=deposit_id,
            rental_id=rental_id,
        )

    @classmethod
    def _active_session_id(cls, shop_id: int, staff_username: str) -> uuid.UUID | None:
        return (
            TillSession.objects.filter(
                shop_id=shop_id,
                staff_username__iexact=staff_username,
                status=TillSessionStatus.OPEN,
            )
            .values_list("id", flat=True)
            .first()
        )

    @classmethod
    def _no_active_session(cls) -> ServiceResult:
        return ServiceResult.failure(
            "No active till session. Please open a session first.",
            error_code="NO_ACTIVE_SESSION",
        )

    @classmethod
    def record_rental_payment_for_staff(
        cls,
        shop_id: int,
        staff_username: str,
        payment_method: str,
        amount: Decimal,
        payment_id: int | None = None,
        rental_id: int | None = None,
        description: str = "",
    ) -> ServiceResult[TillTransaction]:
        """record_rental_payment against the staff member's open session."""
        session_id = cls._active_session_id(shop_id, staff_username)
        if session_id is None:
            return cls._no_active_session()
        return cls.record_rental_payment(
            session_id,
            payment_method,
            amount,
            staff_username,
            payment_id=payment_id,
            rental_id=rental_id,
            description=description,
        )

    @classmethod
    def record_deposit_refund_for_staff(
        cls,
        shop_id: int,
        staff_username: str,
        amount: Decimal,
        deposit_id: int | None = None,
        rental_id: int | None = None,
        description: str = "",
    ) -> ServiceResult[TillTransaction]:
        """record_deposit_refund against the staff member's open session."""
        session_id = cls._active_session_id(shop_id, staff_username)
        if session_id is None:
            return cls._no_active_session()
        return cls.record_deposit_refund(
            session_id,
            amount,
            staff_username,
            deposit_id=deposit_id,
            rental_id=rental_id,
            description=description,
        )

    # ==========================================================================
    # Line verification
    # ==========================================================================

    @classmethod
    def verify_transaction(
        cls,
        transaction_id: uuid.UUID,
        verified_by: str,
    ) -> ServiceResult[TillTransaction]:
        """Manager sign-off of a single entry (typically a drop)."""
        validation = cls.validate_required(verified_by=verified_by)
        if validation is not None:
            return validation

        with cls.atomic():
            entry = TillTransaction.objects.select_for_update().filter(pk=transaction_id).first()
            if entry is None:
                return ServiceResult.failure(
                    f"Transaction {transaction_id} not found",
                    error_code="TRANSACTION_NOT_FOUND",
                )
            entry.mark_verified(verified_by)
            entry.save(update_fields=["is_verified", "verified_by_username", "verified_at", "updated_at"])

        cls.get_logger().info(
            "Till transaction verified",
            extra={"transaction_id": str(entry.id), "verified_by": verified_by},
        )
        return ServiceResult.success(entry)

    # ==========================================================================
    # Queries
    # ==========================================================================

    @classmethod
    def get_transaction(cls, transaction_id: uuid.UUID) -> TillTransaction | None:
        return TillTransaction.objects.filter(pk=transaction_id).first()

    @classmethod
    def get_transactions(cls, session_id: uuid.UUID) -> QuerySet[TillTransaction]:
        """Every entry of a session, newest first, voided ones included."""
        return TillTransaction.objects.filter(session_id=session_id).order_by("-transaction_time")

    @classmethod
    def get_recent_transactions(cls, session_id: uuid.UUID, count: int = 10) -> list[TillTransaction]:
        return list(cls.get_transactions(session_id)[:count])

    @classmethod
    def get_drop_transactions(cls, session_id: uuid.UUID) -> list[TillTransaction]:
        return list(
            TillTransaction.objects.filter(
                session_id=session_id,
                transaction_type=TransactionType.DROP,
                is_voided=False,
            ).order_by("transaction_time")
        )

    @classmethod
    def get_drop_totals_by_currency(cls, session_id: uuid.UUID) -> dict[str, Decimal]:
        """Amount dropped per currency (voided drops excluded)."""
        totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for drop in cls.get_drop_transactions(session_id):
            totals[drop.currency] += to_money(drop.amount)
        return dict(totals)

    @classmethod
    def get_unverified_drops(cls, shop_id: int, date: datetime.date) -> list[TillTransaction]:
        """Drops of every session opened at a shop on a date awaiting sign-off."""
        return list(
            TillTransaction.objects.filter(
                session__shop_id=shop_id,
                session__opened_at__date=date,
                transaction_type=TransactionType.DROP,
                is_voided=False,
                is_verified=False,
            ).order_by("transaction_time")
        )

    @classmethod
    def get_electronic_payments(cls, shop_id: int, date: datetime.date) -> list[TillTransaction]:
        """Card, bank transfer and wallet payments of a shop-day."""
        return list(
            TillTransaction.objects.filter(
                session__shop_id=shop_id,
                session__opened_at__date=date,
                transaction_type__in=ELECTRONIC_TYPES,
                is_voided=False,
            ).order_by("transaction_time")
        )

