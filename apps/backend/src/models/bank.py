"""Bank account and imported bank transaction models."""

import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database import Base
from src.models.base import OrganizationOwnedMixin, TimestampMixin, UUIDMixin


class BankTransactionType(str, Enum):
    """Direction of a bank statement line."""

    CREDIT = "credit"  # inflow
    DEBIT = "debit"  # outflow


class BankAccount(Base, UUIDMixin, OrganizationOwnedMixin, TimestampMixin):
    """Bank account transactions are imported into."""

    __tablename__ = "bank_accounts"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    iban: Mapped[str | None] = mapped_column(String(34), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    initial_balance: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    chart_account_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("chart_of_accounts.id"), nullable=True
    )

    transactions: Mapped[list["BankTransaction"]] = relationship(
        "BankTransaction",
        back_populates="bank_account",
        cascade="all, delete-orphan",
    )


class BankTransaction(Base, UUIDMixin, OrganizationOwnedMixin, TimestampMixin):
    """
    One imported bank statement line.

    A transaction is reconciled when it links to at most one invoice or bill
    (optionally with the payment recorded alongside), or when it has been
    explicitly marked reconciled without a link.
    """

    __tablename__ = "bank_transactions"
    __table_args__ = (
        UniqueConstraint("organization_id", "import_hash", name="uq_bank_transactions_org_import_hash"),
        CheckConstraint("amount >= 0", name="non_negative_bank_amount"),
    )

    bank_account_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bank_accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # Magnitude only; the direction lives in `type`.
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    type: Mapped[BankTransactionType] = mapped_column(
        SQLEnum(
            BankTransactionType,
            name="bank_transaction_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
    )
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    import_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_reconciled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    matched_invoice_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True
    )
    matched_bill_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("bills.id", ondelete="SET NULL"), nullable=True
    )
    # Either a payments.id or a bill_payments.id, depending on which document is linked.
    matched_payment_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)

    bank_account: Mapped[BankAccount] = relationship("BankAccount", back_populates="transactions")
