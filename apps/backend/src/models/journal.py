"""Journal entry models for double-entry bookkeeping."""

from __future__ import annotations

import enum
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    DECIMAL,
    Boolean,
    CheckConstraint,
    Date,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database import Base
from src.models.base import OrganizationOwnedMixin, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from src.models.account import ChartAccount


class JournalEntryStatus(str, enum.Enum):
    """Status of a journal entry."""

    DRAFT = "draft"
    POSTED = "posted"
    CANCELLED = "cancelled"


class JournalType(str, enum.Enum):
    """Journal (book) an entry is recorded in."""

    SALES = "sales"
    PURCHASES = "purchases"
    BANK = "bank"
    GENERAL = "general"


class ReferenceType(str, enum.Enum):
    """Kind of business object an entry was generated from."""

    INVOICE = "invoice"
    BILL = "bill"
    PAYMENT = "payment"
    BILL_PAYMENT = "bill_payment"
    EXPENSE = "expense"
    BANK_TRANSACTION = "bank_transaction"
    MANUAL = "manual"


class JournalEntry(Base, UUIDMixin, OrganizationOwnedMixin, TimestampMixin):
    """
    Journal entry header containing metadata for a bookkeeping transaction.

    Each entry must have at least 2 lines with balanced debits and credits.
    """

    __tablename__ = "journal_entries"
    __table_args__ = (
        UniqueConstraint("organization_id", "entry_number", name="uq_journal_entries_org_number"),
        Index("ix_journal_entries_reference", "reference_type", "reference_id"),
    )

    entry_number: Mapped[str] = mapped_column(String(32), nullable=False)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    reference_type: Mapped[ReferenceType | None] = mapped_column(
        Enum(
            ReferenceType,
            name="journal_reference_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=True,
    )
    reference_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    journal_type: Mapped[JournalType] = mapped_column(
        Enum(
            JournalType,
            name="journal_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
    )
    status: Mapped[JournalEntryStatus] = mapped_column(
        Enum(
            JournalEntryStatus,
            name="journal_entry_status_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=JournalEntryStatus.POSTED,
        index=True,
    )
    is_balanced: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    lines: Mapped[list[JournalEntryLine]] = relationship(
        "JournalEntryLine",
        back_populates="journal_entry",
        cascade="all, delete-orphan",
        order_by="JournalEntryLine.position",
    )


class JournalEntryLine(Base, UUIDMixin, TimestampMixin):
    """
    Individual debit or credit line in a journal entry.

    Generated postings fill one side per line; the other side stays at zero.
    """

    __tablename__ = "journal_entry_lines"
    __table_args__ = (
        CheckConstraint("debit >= 0", name="non_negative_debit"),
        CheckConstraint("credit >= 0", name="non_negative_credit"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("journal_entries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    account_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("chart_of_accounts.id"), nullable=False, index=True
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    debit: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False, default=Decimal("0"))
    credit: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False, default=Decimal("0"))
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    journal_entry: Mapped[JournalEntry] = relationship("JournalEntry", back_populates="lines")
    account: Mapped[ChartAccount] = relationship("ChartAccount", back_populates="journal_lines")
