import decimal
import uuid

import django.core.serializers.json
import django.db.models.deletion
import django.utils.timezone
import django_fsm
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="TillSession",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                (
                    "shop_id",
                    models.PositiveIntegerField(
                        db_index=True, help_text="Shop the drawer belongs to"
                    ),
                ),
                (
                    "staff_username",
                    models.CharField(
                        db_index=True,
                        help_text="Username of the staff member who opened the drawer",
                        max_length=150,
                    ),
                ),
                (
                    "staff_display_name",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Staff name as shown on receipts and reports",
                        max_length=200,
                    ),
                ),
                (
                    "opened_at",
                    models.DateTimeField(
                        db_index=True,
                        default=django.utils.timezone.now,
                        help_text="When the shift started",
                    ),
                ),
                (
                    "closed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the shift was closed (latest close if recounted)",
                        null=True,
                    ),
                ),
                (
                    "closed_by_username",
                    models.CharField(blank=True, default="", max_length=150),
                ),
                (
                    "opening_float",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Starting cash in base currency",
                        max_digits=14,
                    ),
                ),
                ("opening_notes", models.TextField(blank=True, default="")),
                (
                    "currency_balances",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        help_text="Physical cash per currency code, as decimal strings",
                    ),
                ),
                (
                    "total_cash_in",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Cash received (base currency)",
                        max_digits=14,
                    ),
                ),
                (
                    "total_cash_out",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Cash paid out (base currency)",
                        max_digits=14,
                    ),
                ),
                (
                    "total_card_payments",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Card payments (base currency)",
                        max_digits=14,
                    ),
                ),
                (
                    "total_bank_transfers",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Bank transfers (base currency)",
                        max_digits=14,
                    ),
                ),
                (
                    "total_mobile_wallet_payments",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Mobile wallet payments (base currency)",
                        max_digits=14,
                    ),
                ),
                (
                    "total_dropped",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Cash dropped to the safe (base currency)",
                        max_digits=14,
                    ),
                ),
                (
                    "total_topped_up",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Cash topped up from the safe (base currency)",
                        max_digits=14,
                    ),
                ),
                (
                    "actual_cash",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Counted cash converted to base currency",
                        max_digits=14,
                        null=True,
                    ),
                ),
                (
                    "variance",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="actual_cash - expected_cash at close",
                        max_digits=14,
                        null=True,
                    ),
                ),
                (
                    "actual_balances",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        help_text="Counted cash per currency at close",
                    ),
                ),
                (
                    "closing_variances",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        help_text="Counted minus ledger balance per currency at close",
                    ),
                ),
                (
                    "has_variance",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Whether any currency variance exceeded the tolerance at close",
                    ),
                ),
                ("closing_notes", models.TextField(blank=True, default="")),
                ("is_force_close", models.BooleanField(default=False)),
                (
                    "force_close_approved_by",
                    models.CharField(blank=True, default="", max_length=150),
                ),
                (
                    "is_late_close",
                    models.BooleanField(
                        default=False,
                        help_text="Closed on a later calendar day than it was opened",
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("open", "Open"),
                            ("closed", "Closed"),
                            ("closed_with_variance", "Closed With Variance"),
                            ("verified", "Verified"),
                            ("reconciling", "Reconciling"),
                        ],
                        db_index=True,
                        default="open",
                        help_text="Current state of the session (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "custody",
                    models.CharField(
                        choices=[("staff", "Staff"), ("shop", "Shop")],
                        default="staff",
                        help_text="Owner of the drawer contents",
                        max_length=10,
                    ),
                ),
                (
                    "verified_by_username",
                    models.CharField(blank=True, default="", max_length=150),
                ),
                ("verified_at", models.DateTimeField(blank=True, null=True)),
                ("verification_notes", models.TextField(blank=True, default="")),
            ],
            options={
                "verbose_name": "Till Session",
                "verbose_name_plural": "Till Sessions",
                "ordering": ["-opened_at"],
                "indexes": [
                    models.Index(
                        fields=["shop_id", "opened_at"],
                        name="till_session_shop_opened_idx",
                    ),
                    models.Index(
                        fields=["staff_username", "status"],
                        name="till_session_staff_status_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("opening_float__gte", 0)),
                        name="till_session_opening_float_non_negative",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="DailyClose",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                ("shop_id", models.PositiveIntegerField(db_index=True)),
                ("date", models.DateField(db_index=True)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("open", "Open"),
                            ("closed", "Closed"),
                            ("reconciled", "Reconciled"),
                        ],
                        db_index=True,
                        default="open",
                        help_text="Current state of the day (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "total_cash_in",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14
                    ),
                ),
                (
                    "total_cash_out",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14
                    ),
                ),
                (
                    "total_dropped",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14
                    ),
                ),
                (
                    "total_variance",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14
                    ),
                ),
                (
                    "total_electronic_payments",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14
                    ),
                ),
                ("session_count", models.PositiveIntegerField(default=0)),
                ("sessions_with_variance", models.PositiveIntegerField(default=0)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "closed_by_username",
                    models.CharField(blank=True, default="", max_length=150),
                ),
                ("reconciled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "reconciled_by_username",
                    models.CharField(blank=True, default="", max_length=150),
                ),
                ("was_reopened", models.BooleanField(default=False)),
                ("reopen_reason", models.TextField(blank=True, default="")),
                ("reopened_at", models.DateTimeField(blank=True, null=True)),
                (
                    "reopened_by_username",
                    models.CharField(blank=True, default="", max_length=150),
                ),
                (
                    "reopen_history",
                    models.JSONField(
                        blank=True,
                        default=list,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        help_text="Append-only list of {reason, by, at} for every reopen",
                    ),
                ),
            ],
            options={
                "verbose_name": "Daily Close",
                "verbose_name_plural": "Daily Closes",
                "ordering": ["-date"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("shop_id", "date"),
                        name="unique_daily_close_per_shop_date",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="ExchangeRate",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("currency", models.CharField(db_index=True, max_length=3)),
                ("buy_rate", models.DecimalField(decimal_places=6, max_digits=14)),
                (
                    "source",
                    models.CharField(
                        choices=[
                            ("manual", "Manual"),
                            ("api", "API"),
                            ("adjusted", "Adjusted"),
                        ],
                        default="manual",
                        max_length=10,
                    ),
                ),
                (
                    "shop_id",
                    models.PositiveIntegerField(blank=True, db_index=True, null=True),
                ),
                (
                    "effective_date",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                ("expires_on", models.DateTimeField(blank=True, null=True)),
                (
                    "api_rate",
                    models.DecimalField(
                        blank=True, decimal_places=6, max_digits=14, null=True
                    ),
                ),
                ("notes", models.TextField(blank=True, default="")),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                (
                    "created_by_username",
                    models.CharField(blank=True, default="", max_length=150),
                ),
            ],
            options={
                "verbose_name": "Exchange Rate",
                "verbose_name_plural": "Exchange Rates",
                "ordering": ["-effective_date"],
                "indexes": [
                    models.Index(
                        fields=["currency", "shop_id", "is_active"],
                        name="exchange_rate_lookup_idx",
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("buy_rate__gt", 0)),
                        name="exchange_rate_buy_rate_positive",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="TillTransaction",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[
                            ("rental_payment", "Rental Payment"),
                            ("booking_deposit", "Booking Deposit"),
                            ("security_deposit", "Security Deposit"),
                            ("damage_charge", "Damage Charge"),
                            ("late_fee", "Late Fee"),
                            ("surcharge", "Surcharge"),
                            ("miscellaneous_income", "Miscellaneous Income"),
                            ("top_up", "Top Up"),
                            ("card_payment", "Card Payment"),
                            ("bank_transfer", "Bank Transfer"),
                            ("mobile_wallet_payment", "Mobile Wallet Payment"),
                            ("deposit_refund", "Deposit Refund"),
                            ("overpayment_refund", "Overpayment Refund"),
                            ("fuel_reimbursement", "Fuel Reimbursement"),
                            ("agent_commission", "Agent Commission"),
                            ("petty_cash", "Petty Cash"),
                            ("drop", "Drop"),
                            ("cash_shortage", "Cash Shortage"),
                            ("void_reversal", "Void Reversal"),
                        ],
                        db_index=True,
                        max_length=30,
                    ),
                ),
                (
                    "direction",
                    models.CharField(
                        choices=[("in", "In"), ("out", "Out")], max_length=3
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Amount in the entered currency (always positive)",
                        max_digits=14,
                    ),
                ),
                ("currency", models.CharField(default="THB", max_length=3)),
                (
                    "exchange_rate",
                    models.DecimalField(
                        decimal_places=6,
                        default=decimal.Decimal("1"),
                        help_text="Base-currency units per one unit of `currency`",
                        max_digits=14,
                    ),
                ),
                (
                    "amount_in_base_currency",
                    models.DecimalField(decimal_places=2, max_digits=14),
                ),
                (
                    "exchange_rate_source",
                    models.CharField(default="Base", max_length=20),
                ),
                (
                    "exchange_rate_id",
                    models.UUIDField(
                        blank=True,
                        help_text="ExchangeRate used for conversion (audit link)",
                        null=True,
                    ),
                ),
                (
                    "description",
                    models.CharField(blank=True, default="", max_length=500),
                ),
                ("category", models.CharField(blank=True, default="", max_length=50)),
                (
                    "recipient_name",
                    models.CharField(blank=True, default="", max_length=200),
                ),
                (
                    "receipt_number",
                    models.CharField(blank=True, default="", max_length=100),
                ),
                ("notes", models.TextField(blank=True, default="")),
                (
                    "transaction_time",
                    models.DateTimeField(
                        db_index=True, default=django.utils.timezone.now
                    ),
                ),
                ("recorded_by_username", models.CharField(max_length=150)),
                (
                    "payment_id",
                    models.PositiveBigIntegerField(blank=True, db_index=True, null=True),
                ),
                (
                    "deposit_id",
                    models.PositiveBigIntegerField(blank=True, db_index=True, null=True),
                ),
                (
                    "rental_id",
                    models.PositiveBigIntegerField(blank=True, db_index=True, null=True),
                ),
                ("is_voided", models.BooleanField(db_index=True, default=False)),
                ("voided_at", models.DateTimeField(blank=True, null=True)),
                (
                    "voided_by_username",
                    models.CharField(blank=True, default="", max_length=150),
                ),
                ("void_reason", models.TextField(blank=True, default="")),
                (
                    "void_approved_by_username",
                    models.CharField(blank=True, default="", max_length=150),
                ),
                ("is_verified", models.BooleanField(default=False)),
                (
                    "verified_by_username",
                    models.CharField(blank=True, default="", max_length=150),
                ),
                ("verified_at", models.DateTimeField(blank=True, null=True)),
                (
                    "original_transaction",
                    models.ForeignKey(
                        blank=True,
                        help_text="On a reversal: the entry it cancels",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reversals",
                        to="tills.tilltransaction",
                    ),
                ),
                (
                    "related_transaction",
                    models.ForeignKey(
                        blank=True,
                        help_text="On a voided entry: its compensating reversal",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="tills.tilltransaction",
                    ),
                ),
                (
                    "session",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="tills.tillsession",
                    ),
                ),
            ],
            options={
                "verbose_name": "Till Transaction",
                "verbose_name_plural": "Till Transactions",
                "ordering": ["-transaction_time"],
                "indexes": [
                    models.Index(
                        fields=["session", "transaction_type"],
                        name="till_txn_session_type_idx",
                    ),
                    models.Index(
                        fields=["session", "is_voided"],
                        name="till_txn_session_voided_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="till_transaction_amount_positive",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="TillDenominationCount",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "count_type",
                    models.CharField(
                        choices=[("opening", "Opening"), ("closing", "Closing")],
                        max_length=10,
                    ),
                ),
                (
                    "currency_breakdowns",
                    models.JSONField(
                        blank=True,
                        default=list,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                    ),
                ),
                (
                    "total_in_base",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Counted total across currencies in base currency",
                        max_digits=14,
                    ),
                ),
                (
                    "rate_fallback_currencies",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Currencies counted at rate 1 because no exchange rate was configured",
                    ),
                ),
                ("is_final", models.BooleanField(default=False)),
                ("counted_by_username", models.CharField(max_length=150)),
                (
                    "counted_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                ("notes", models.TextField(blank=True, default="")),
                (
                    "session",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="denomination_counts",
                        to="tills.tillsession",
                    ),
                ),
            ],
            options={
                "verbose_name": "Denomination Count",
                "verbose_name_plural": "Denomination Counts",
                "ordering": ["-counted_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("session", "count_type"),
                        name="unique_denomination_count_per_session_type",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="ShortageLog",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("shop_id", models.PositiveIntegerField(db_index=True)),
                ("staff_username", models.CharField(db_index=True, max_length=150)),
                (
                    "staff_display_name",
                    models.CharField(blank=True, default="", max_length=200),
                ),
                ("currency", models.CharField(max_length=3)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                (
                    "amount_in_base",
                    models.DecimalField(decimal_places=2, max_digits=14),
                ),
                (
                    "exchange_rate_used",
                    models.DecimalField(
                        decimal_places=6, default=decimal.Decimal("1"), max_digits=14
                    ),
                ),
                (
                    "exchange_rate_source",
                    models.CharField(blank=True, default="", max_length=20),
                ),
                ("reason", models.TextField()),
                ("logged_by_username", models.CharField(max_length=150)),
                (
                    "logged_at",
                    models.DateTimeField(
                        db_index=True, default=django.utils.timezone.now
                    ),
                ),
                (
                    "daily_close",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="shortages",
                        to="tills.dailyclose",
                    ),
                ),
                (
                    "session",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="shortages",
                        to="tills.tillsession",
                    ),
                ),
            ],
            options={
                "verbose_name": "Shortage Log",
                "verbose_name_plural": "Shortage Logs",
                "ordering": ["-logged_at"],
                "indexes": [
                    models.Index(
                        fields=["shop_id", "logged_at"],
                        name="shortage_shop_logged_idx",
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gte", 0)),
                        name="shortage_log_amount_non_negative",
                    )
                ],
            },
        ),
    ]
