"""Bulk import of decoded bank statement lines with duplicate filtering."""

import hashlib
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.logger import async_log_timing, get_logger
from src.models import BankAccount, BankTransaction, BankTransactionType

logger = get_logger(__name__)


class BankImportError(Exception):
    """Base exception for bank import errors."""


class BankAccountNotFoundError(BankImportError):
    """Bank account not found for the organization."""


@dataclass
class ParsedTransaction:
    """One statement line as produced by the CSV/OFX decoder."""

    date: date
    description: str
    amount: Decimal
    type: BankTransactionType
    reference: str | None = None
    import_hash: str | None = None


@dataclass
class ImportResult:
    inserted: int
    skipped: int


def generate_import_hash(
    reference: str | None,
    txn_date: date,
    description: str,
    amount: Decimal,
    txn_type: BankTransactionType | str,
) -> str:
    """
    Stable identity of a statement line.

    The bank's own transaction id (OFX FITID) wins when present; otherwise
    the line content is hashed, using the amount as a magnitude.
    """
    if reference:
        return f"fitid_{reference}"
    type_value = txn_type.value if isinstance(txn_type, BankTransactionType) else str(txn_type)
    payload = f"{txn_date.isoformat()}|{description.strip()}|{abs(Decimal(amount)):.2f}|{type_value}"
    return f"sha256_{hashlib.sha256(payload.encode('utf-8')).hexdigest()}"


async def _existing_hashes(db: AsyncSession, organization_id: UUID, hashes: Sequence[str]) -> set[str]:
    if not hashes:
        return set()
    result = await db.execute(
        select(BankTransaction.import_hash).where(
            BankTransaction.organization_id == organization_id,
            BankTransaction.import_hash.in_(list(hashes)),
        )
    )
    return {value for value in result.scalars().all() if value}


async def import_transactions(
    db: AsyncSession,
    organization_id: UUID,
    bank_account_id: UUID,
    records: Sequence[ParsedTransaction],
) -> ImportResult:
    """
    Insert statement lines, skipping those already imported.

    A line is a duplicate when its import hash already exists for the
    organization or appeared earlier in the same batch.

    Raises:
        BankAccountNotFoundError: If the bank account does not belong to the organization
    """
    account = (
        await db.execute(
            select(BankAccount).where(
                BankAccount.id == bank_account_id,
                BankAccount.organization_id == organization_id,
            )
        )
    ).scalar_one_or_none()
    if not account:
        raise BankAccountNotFoundError(f"Bank account {bank_account_id} not found")

    async with async_log_timing(
        "bank_import",
        logger=logger,
        organization_id=str(organization_id),
        bank_account_id=str(bank_account_id),
    ) as ctx:
        hashed = [
            (
                record,
                record.import_hash
                or generate_import_hash(
                    record.reference, record.date, record.description, record.amount, record.type
                ),
            )
            for record in records
        ]
        existing = await _existing_hashes(db, organization_id, [import_hash for _, import_hash in hashed])

        seen: set[str] = set()
        inserted = 0
        for record, import_hash in hashed:
            if import_hash in existing or import_hash in seen:
                continue
            seen.add(import_hash)
            db.add(
                BankTransaction(
                    organization_id=organization_id,
                    bank_account_id=bank_account_id,
                    date=record.date,
                    description=record.description,
                    amount=abs(record.amount),
                    type=BankTransactionType(record.type),
                    reference=record.reference,
                    import_hash=import_hash,
                    is_reconciled=False,
                )
            )
            inserted += 1

        if inserted:
            await db.flush()

        ctx["inserted"] = inserted
        ctx["skipped"] = len(records) - inserted

    return ImportResult(inserted=inserted, skipped=len(records) - inserted)
