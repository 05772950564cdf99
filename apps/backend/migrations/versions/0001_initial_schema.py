"""Initial schema: organizations, PCG chart, journal, bank, documents."""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

ENUMS = {
    "account_type_enum": ("asset", "liability", "equity", "income", "expense"),
    "journal_reference_type_enum": (
        "invoice",
        "bill",
        "payment",
        "bill_payment",
        "expense",
        "bank_transaction",
        "manual",
    ),
    "journal_type_enum": ("sales", "purchases", "bank", "general"),
    "journal_entry_status_enum": ("draft", "posted", "cancelled"),
    "bank_transaction_type_enum": ("credit", "debit"),
    "invoice_status_enum": ("draft", "sent", "viewed", "partially_paid", "paid", "overdue", "cancelled"),
    "bill_status_enum": ("draft", "received", "partially_paid", "paid", "overdue", "cancelled"),
    "payment_method_enum": ("bank_transfer", "card", "cash", "check", "other"),
    "bill_payment_method_enum": ("bank_transfer", "card", "cash", "check", "other"),
    "expense_payment_method_enum": ("bank_transfer", "card", "cash", "check", "other"),
    "expense_category_enum": (
        "restauration",
        "transport",
        "fournitures",
        "telecom",
        "abonnements",
        "frais_bancaires",
        "hebergement",
        "marketing",
        "formation",
        "autre",
    ),
}


def _enum(name: str) -> sa.Enum:
    return sa.Enum(*ENUMS[name], name=name)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _org_fk() -> sa.Column:
    return sa.Column(
        "organization_id",
        sa.Uuid(),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


def _money(name: str, nullable: bool = False, default: str | None = "0") -> sa.Column:
    return sa.Column(name, sa.Numeric(15, 2), nullable=nullable, server_default=default)


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="EUR"),
        sa.Column("invoice_prefix", sa.String(length=20), nullable=False, server_default="FAC"),
        sa.Column("invoice_next_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("journal_entry_next_number", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
    )

    op.create_table(
        "chart_of_accounts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column("account_number", sa.String(length=20), nullable=False, index=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("account_class", sa.Integer(), nullable=False),
        sa.Column("account_type", _enum("account_type_enum"), nullable=False),
        sa.Column("parent_account_number", sa.String(length=20), nullable=True),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("description", sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "account_number", name="uq_chart_of_accounts_org_number"),
    )

    op.create_table(
        "journal_entries",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column("entry_number", sa.String(length=32), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False, index=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("reference_type", _enum("journal_reference_type_enum"), nullable=True),
        sa.Column("reference_id", sa.Uuid(), nullable=True),
        sa.Column("journal_type", _enum("journal_type_enum"), nullable=False),
        sa.Column("status", _enum("journal_entry_status_enum"), nullable=False, index=True),
        sa.Column("is_balanced", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "entry_number", name="uq_journal_entries_org_number"),
    )
    op.create_index("ix_journal_entries_reference", "journal_entries", ["reference_type", "reference_id"])

    op.create_table(
        "journal_entry_lines",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "journal_entry_id",
            sa.Uuid(),
            sa.ForeignKey("journal_entries.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("account_id", sa.Uuid(), sa.ForeignKey("chart_of_accounts.id"), nullable=False, index=True),
        sa.Column("description", sa.Text(), nullable=True),
        _money("debit"),
        _money("credit"),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("debit >= 0", name="non_negative_debit"),
        sa.CheckConstraint("credit >= 0", name="non_negative_credit"),
    )

    op.create_table(
        "invoices",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column("number", sa.String(length=50), nullable=False, index=True),
        sa.Column("client_name", sa.String(length=255), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("status", _enum("invoice_status_enum"), nullable=False, index=True),
        _money("subtotal"),
        _money("tax_amount"),
        _money("total"),
        _money("amount_paid"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "bills",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column("number", sa.String(length=100), nullable=True),
        sa.Column("vendor_name", sa.String(length=255), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("status", _enum("bill_status_enum"), nullable=False, index=True),
        _money("subtotal"),
        _money("tax_amount"),
        _money("total"),
        _money("amount_paid"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column(
            "invoice_id", sa.Uuid(), sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        sa.Column("date", sa.Date(), nullable=False),
        _money("amount", default=None),
        sa.Column("method", _enum("payment_method_enum"), nullable=False),
        sa.Column("reference", sa.String(length=255), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "bill_payments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column("bill_id", sa.Uuid(), sa.ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("date", sa.Date(), nullable=False),
        _money("amount", default=None),
        sa.Column("method", _enum("bill_payment_method_enum"), nullable=False),
        sa.Column("reference", sa.String(length=255), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "expenses",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column("date", sa.Date(), nullable=False),
        _money("amount", default=None),
        sa.Column("category", _enum("expense_category_enum"), nullable=False),
        sa.Column("payment_method", _enum("expense_payment_method_enum"), nullable=False),
        sa.Column("vendor_name", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "bank_accounts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("bank_name", sa.String(length=255), nullable=True),
        sa.Column("iban", sa.String(length=34), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="EUR"),
        _money("initial_balance"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("chart_account_id", sa.Uuid(), sa.ForeignKey("chart_of_accounts.id"), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "bank_transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column(
            "bank_account_id",
            sa.Uuid(),
            sa.ForeignKey("bank_accounts.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("date", sa.Date(), nullable=False, index=True),
        sa.Column("description", sa.Text(), nullable=False),
        _money("amount", default=None),
        sa.Column("type", _enum("bank_transaction_type_enum"), nullable=False),
        sa.Column("reference", sa.String(length=255), nullable=True),
        sa.Column("import_hash", sa.String(length=128), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_reconciled", sa.Boolean(), nullable=False, server_default=sa.false(), index=True),
        sa.Column("matched_invoice_id", sa.Uuid(), sa.ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True),
        sa.Column("matched_bill_id", sa.Uuid(), sa.ForeignKey("bills.id", ondelete="SET NULL"), nullable=True),
        sa.Column("matched_payment_id", sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "import_hash", name="uq_bank_transactions_org_import_hash"),
        sa.CheckConstraint("amount >= 0", name="non_negative_bank_amount"),
    )


def downgrade() -> None:
    op.drop_table("bank_transactions")
    op.drop_table("bank_accounts")
    op.drop_table("expenses")
    op.drop_table("bill_payments")
    op.drop_table("payments")
    op.drop_table("bills")
    op.drop_table("invoices")
    op.drop_index("ix_journal_entries_reference", table_name="journal_entries")
    op.drop_table("journal_entry_lines")
    op.drop_table("journal_entries")
    op.drop_table("chart_of_accounts")
    op.drop_table("organizations")

    bind = op.get_bind()
    for name in ENUMS:
        sa.Enum(name=name).drop(bind, checkfirst=True)
