"""Organization (tenant) model."""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.database import Base
from src.models.base import TimestampMixin, UUIDMixin


class Organization(Base, UUIDMixin, TimestampMixin):
    """
    Tenant owning every business row.

    Also holds the per-organization sequence counters consumed by
    src.services.sequences (invoice numbers, journal entry numbers).
    """

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    invoice_prefix: Mapped[str] = mapped_column(String(20), nullable=False, default="FAC")
    invoice_next_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    journal_entry_next_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def __repr__(self) -> str:
        return f"<Organization {self.name}>"
