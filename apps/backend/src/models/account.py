"""Chart of accounts model (French PCG numbering)."""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Enum, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database import Base
from src.models.base import OrganizationOwnedMixin, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from src.models.journal import JournalEntryLine


class AccountType(str, enum.Enum):
    """Account type classification."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"


class ChartAccount(Base, UUIDMixin, OrganizationOwnedMixin, TimestampMixin):
    """
    A numbered ledger account in an organization's chart of accounts.

    Account numbers follow the Plan Comptable Général: the first digit is the
    class (4 = third parties, 5 = financial, 6 = expenses, 7 = income).
    """

    __tablename__ = "chart_of_accounts"
    __table_args__ = (
        UniqueConstraint("organization_id", "account_number", name="uq_chart_of_accounts_org_number"),
    )

    account_number: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_class: Mapped[int] = mapped_column(Integer, nullable=False)
    account_type: Mapped[AccountType] = mapped_column(
        Enum(
            AccountType,
            name="account_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
    )
    parent_account_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    journal_lines: Mapped[list[JournalEntryLine]] = relationship(
        "JournalEntryLine", back_populates="account"
    )

    def __repr__(self) -> str:
        return f"<ChartAccount {self.account_number} {self.name}>"
