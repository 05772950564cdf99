"""Per-organization document and journal entry numbering."""

from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from src.models import Organization

ENTRY_NUMBER_PREFIX = "EC"


class SequenceError(Exception):
    """Raised when a counter cannot be advanced."""


async def next_entry_number(db: AsyncSession, organization_id: UUID) -> str:
    """
    Consume the next journal entry number, e.g. ``EC-000042``.

    The counter is read and incremented in a single UPDATE ... RETURNING
    statement, so concurrent callers never receive the same number. A number
    consumed by a posting that later fails is not reused.
    """
    result = await db.execute(
        update(Organization)
        .where(Organization.id == organization_id)
        .values(journal_entry_next_number=Organization.journal_entry_next_number + 1)
        .returning(Organization.journal_entry_next_number)
    )
    incremented = result.scalar_one_or_none()
    if incremented is None:
        raise SequenceError(f"Organization {organization_id} not found")
    return f"{ENTRY_NUMBER_PREFIX}-{incremented - 1:06d}"


async def next_invoice_number(db: AsyncSession, organization_id: UUID) -> str:
    """Consume the next invoice number using the organization's prefix, e.g. ``FAC-00007``."""
    result = await db.execute(
        update(Organization)
        .where(Organization.id == organization_id)
        .values(invoice_next_number=Organization.invoice_next_number + 1)
        .returning(Organization.invoice_prefix, Organization.invoice_next_number)
    )
    row = result.one_or_none()
    if row is None:
        raise SequenceError(f"Organization {organization_id} not found")
    prefix, incremented = row
    return f"{prefix}-{incremented - 1:05d}"
