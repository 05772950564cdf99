"""Business documents the ledger posts from: invoices, bills, payments, expenses."""

import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database import Base
from src.models.base import OrganizationOwnedMixin, TimestampMixin, UUIDMixin


class InvoiceStatus(str, Enum):
    """Customer invoice lifecycle."""

    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class BillStatus(str, Enum):
    """Supplier bill lifecycle."""

    DRAFT = "draft"
    RECEIVED = "received"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    CARD = "card"
    CASH = "cash"
    CHECK = "check"
    OTHER = "other"


class ExpenseCategory(str, Enum):
    RESTAURATION = "restauration"
    TRANSPORT = "transport"
    FOURNITURES = "fournitures"
    TELECOM = "telecom"
    ABONNEMENTS = "abonnements"
    FRAIS_BANCAIRES = "frais_bancaires"
    HEBERGEMENT = "hebergement"
    MARKETING = "marketing"
    FORMATION = "formation"
    AUTRE = "autre"


def _enum_values(obj):
    return [e.value for e in obj]


class Invoice(Base, UUIDMixin, OrganizationOwnedMixin, TimestampMixin):
    """Customer invoice. `total` = `subtotal` + `tax_amount`."""

    __tablename__ = "invoices"

    number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    due_date: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    status: Mapped[InvoiceStatus] = mapped_column(
        SQLEnum(InvoiceStatus, name="invoice_status_enum", values_callable=_enum_values),
        nullable=False,
        default=InvoiceStatus.DRAFT,
        index=True,
    )
    subtotal: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0")
    )
    total: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=Decimal("0"))
    amount_paid: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0")
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    payments: Mapped[list["Payment"]] = relationship(
        "Payment", back_populates="invoice", cascade="all, delete-orphan"
    )

    @property
    def remaining(self) -> Decimal:
        return self.total - self.amount_paid


class Bill(Base, UUIDMixin, OrganizationOwnedMixin, TimestampMixin):
    """Supplier bill. `number` is the supplier's reference and may be missing."""

    __tablename__ = "bills"

    number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    vendor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    due_date: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    status: Mapped[BillStatus] = mapped_column(
        SQLEnum(BillStatus, name="bill_status_enum", values_callable=_enum_values),
        nullable=False,
        default=BillStatus.RECEIVED,
        index=True,
    )
    subtotal: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0")
    )
    total: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=Decimal("0"))
    amount_paid: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0")
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    payments: Mapped[list["BillPayment"]] = relationship(
        "BillPayment", back_populates="bill", cascade="all, delete-orphan"
    )

    @property
    def remaining(self) -> Decimal:
        return self.total - self.amount_paid


class Payment(Base, UUIDMixin, OrganizationOwnedMixin, TimestampMixin):
    """Payment received against an invoice."""

    __tablename__ = "payments"

    invoice_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod, name="payment_method_enum", values_callable=_enum_values),
        nullable=False,
        default=PaymentMethod.BANK_TRANSFER,
    )
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    invoice: Mapped[Invoice] = relationship("Invoice", back_populates="payments")


class BillPayment(Base, UUIDMixin, OrganizationOwnedMixin, TimestampMixin):
    """Payment made against a supplier bill."""

    __tablename__ = "bill_payments"

    bill_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod, name="bill_payment_method_enum", values_callable=_enum_values),
        nullable=False,
        default=PaymentMethod.BANK_TRANSFER,
    )
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    bill: Mapped[Bill] = relationship("Bill", back_populates="payments")


class Expense(Base, UUIDMixin, OrganizationOwnedMixin, TimestampMixin):
    """Out-of-pocket or card expense posted straight to an expense account."""

    __tablename__ = "expenses"

    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    category: Mapped[ExpenseCategory] = mapped_column(
        SQLEnum(ExpenseCategory, name="expense_category_enum", values_callable=_enum_values),
        nullable=False,
        default=ExpenseCategory.AUTRE,
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod, name="expense_payment_method_enum", values_callable=_enum_values),
        nullable=False,
        default=PaymentMethod.CARD,
    )
    vendor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
