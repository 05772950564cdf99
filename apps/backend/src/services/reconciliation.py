"""Reconciliation matching engine.

Suggests open invoices and bills for a bank transaction, ranked by a score
combining amount closeness and due-date proximity, and links a transaction
to a document only when the amounts match exactly.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from uuid import UUID

import yaml
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.logger import get_logger
from src.models import (
    BankTransaction,
    Bill,
    BillPayment,
    BillStatus,
    Invoice,
    InvoiceStatus,
    Payment,
    ReferenceType,
)
from src.services.accounting import delete_entries_by_reference

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "reconciliation.yaml"


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""


class ReconciliationNotFoundError(ReconciliationError):
    """Transaction or document not found for the organization."""


class DocumentKind(str, Enum):
    INVOICE = "invoice"
    BILL = "bill"


@dataclass(frozen=True)
class ReconciliationConfig:
    """Runtime configuration for reconciliation scoring.

    Tiers are (threshold, score) pairs checked in order; the first threshold
    the difference falls under wins.
    """

    exact_tolerance: Decimal
    exact_score: int
    amount_tiers: tuple[tuple[Decimal, int], ...]
    date_tiers: tuple[tuple[int, int], ...]

    @property
    def max_score(self) -> int:
        date_max = max((score for _, score in self.date_tiers), default=0)
        return self.exact_score + date_max


DEFAULT_CONFIG = ReconciliationConfig(
    exact_tolerance=Decimal("0.01"),
    exact_score=50,
    amount_tiers=(
        (Decimal("0.01"), 40),
        (Decimal("0.05"), 20),
        (Decimal("0.10"), 10),
    ),
    date_tiers=(
        (1, 30),
        (7, 20),
        (30, 10),
    ),
)

_config_cache: ReconciliationConfig | None = None


def _parse_config(raw: dict, base: ReconciliationConfig) -> ReconciliationConfig:
    scoring = raw.get("scoring", {}) or {}
    amount = scoring.get("amount", {}) or {}
    date_section = scoring.get("date", {}) or {}

    amount_tiers = base.amount_tiers
    if "tiers" in amount:
        amount_tiers = tuple(
            sorted(
                ((Decimal(str(tier["max_relative_diff"])), int(tier["score"])) for tier in amount["tiers"]),
                key=lambda tier: tier[0],
            )
        )

    date_tiers = base.date_tiers
    if "tiers" in date_section:
        date_tiers = tuple(
            sorted(
                ((int(tier["max_days"]), int(tier["score"])) for tier in date_section["tiers"]),
                key=lambda tier: tier[0],
            )
        )

    return ReconciliationConfig(
        exact_tolerance=Decimal(str(amount.get("exact_tolerance", base.exact_tolerance))),
        exact_score=int(amount.get("exact_score", base.exact_score)),
        amount_tiers=amount_tiers,
        date_tiers=date_tiers,
    )


def load_reconciliation_config(force_reload: bool = False) -> ReconciliationConfig:
    """Load reconciliation configuration from YAML if available.

    Caches the result to avoid repeated disk I/O.
    """
    global _config_cache
    if _config_cache is not None and not force_reload:
        return _config_cache

    config = DEFAULT_CONFIG
    config_path = (
        Path(settings.reconciliation_config_path) if settings.reconciliation_config_path else DEFAULT_CONFIG_PATH
    )

    if config_path.exists():
        try:
            raw = yaml.safe_load(config_path.read_text()) or {}
            config = _parse_config(raw, config)
        except (OSError, yaml.YAMLError, KeyError, TypeError, ValueError, InvalidOperation) as e:
            logger.warning(
                "Failed to load reconciliation config - using defaults",
                config_path=str(config_path),
                error=str(e),
                error_type=type(e).__name__,
            )
            config = DEFAULT_CONFIG

    tolerance_env = os.getenv("RECONCILIATION_EXACT_TOLERANCE")
    if tolerance_env:
        try:
            config = replace(config, exact_tolerance=Decimal(tolerance_env))
        except InvalidOperation as e:
            logger.warning(
                "Invalid RECONCILIATION_EXACT_TOLERANCE - ignoring override",
                value=tolerance_env,
                error_type=type(e).__name__,
            )

    _config_cache = config
    return config


# =============================================================================
# Scoring (pure)
# =============================================================================


def score_amount(
    txn_amount: Decimal,
    candidate_amount: Decimal,
    config: ReconciliationConfig | None = None,
) -> int:
    """Score amount closeness: exact match, then relative difference tiers."""
    config = config or load_reconciliation_config()
    diff = abs(txn_amount - candidate_amount)
    if diff < config.exact_tolerance:
        return config.exact_score

    base = abs(txn_amount)
    if base == 0:
        return 0
    relative = diff / base
    for threshold, score in config.amount_tiers:
        if relative < threshold:
            return score
    return 0


def score_date(
    txn_date: date,
    due_date: date | None,
    config: ReconciliationConfig | None = None,
) -> int:
    """Score due-date proximity. A missing due date contributes nothing."""
    if due_date is None:
        return 0
    config = config or load_reconciliation_config()
    days = abs((txn_date - due_date).days)
    for max_days, score in config.date_tiers:
        if days <= max_days:
            return score
    return 0


def score_match(
    txn_amount: Decimal,
    txn_date: date,
    candidate_amount: Decimal,
    due_date: date | None,
    config: ReconciliationConfig | None = None,
) -> int:
    """Total match score, 0-80 with the default configuration."""
    config = config or load_reconciliation_config()
    return score_amount(txn_amount, candidate_amount, config) + score_date(txn_date, due_date, config)


def amounts_match(
    txn_amount: Decimal,
    candidate_amount: Decimal,
    config: ReconciliationConfig | None = None,
) -> bool:
    """Exact-match gate used when confirming a link."""
    config = config or load_reconciliation_config()
    return abs(txn_amount - candidate_amount) <= config.exact_tolerance


# =============================================================================
# Candidates
# =============================================================================


@dataclass
class MatchCandidate:
    """Candidate document for a bank transaction."""

    kind: DocumentKind
    document_id: UUID
    number: str | None
    party_name: str | None
    due_date: date | None
    status: str
    total: Decimal
    remaining_amount: Decimal
    score: int
    amount_matches: bool
    is_paid_without_link: bool = False


@dataclass
class CandidateSet:
    invoices: list[MatchCandidate] = field(default_factory=list)
    bills: list[MatchCandidate] = field(default_factory=list)


@dataclass
class ReconcileResult:
    """Outcome of a confirmation. Rejections carry a message and change nothing."""

    reconciled: bool
    message: str
    transaction: BankTransaction | None = None


def _status_value(status) -> str:
    return status.value if isinstance(status, Enum) else str(status)


def _party_name(document: Invoice | Bill) -> str | None:
    if isinstance(document, Invoice):
        return document.client_name
    return document.vendor_name


def _matches_search(document: Invoice | Bill, search: str | None) -> bool:
    if not search:
        return True
    needle = search.strip().lower()
    if not needle:
        return True
    haystacks = [document.number or "", _party_name(document) or ""]
    return any(needle in value.lower() for value in haystacks)


def remaining_amount(document: Invoice | Bill, linked: bool) -> Decimal | None:
    """
    Amount still open on a document, or None if it is not a candidate.

    Paid documents without a bank link are offered at their full total so a
    manually settled document can still be attached to its bank line.
    """
    status = _status_value(document.status)
    if status == "cancelled":
        return None
    if status == "paid":
        return None if linked else document.total
    remaining = document.total - document.amount_paid
    return remaining if remaining > 0 else None


def build_candidates(
    transaction: BankTransaction,
    documents: Iterable[Invoice | Bill],
    kind: DocumentKind,
    linked_elsewhere: set[UUID],
    linked_anywhere: set[UUID],
    search: str | None = None,
    config: ReconciliationConfig | None = None,
) -> list[MatchCandidate]:
    """
    Score documents against a transaction.

    Args:
        transaction: Bank transaction being reconciled
        documents: All invoices (or bills) of the organization, in display order
        kind: Which document type `documents` holds
        linked_elsewhere: Document ids linked to a different bank transaction
        linked_anywhere: Document ids linked to any bank transaction
        search: Optional case-insensitive filter on number or party name

    Returns:
        Candidates sorted by descending score; equal scores keep input order
    """
    config = config or load_reconciliation_config()
    candidates: list[MatchCandidate] = []

    for document in documents:
        if document.id in linked_elsewhere:
            continue
        remaining = remaining_amount(document, linked=document.id in linked_anywhere)
        if remaining is None:
            continue
        if not _matches_search(document, search):
            continue

        candidates.append(
            MatchCandidate(
                kind=kind,
                document_id=document.id,
                number=document.number,
                party_name=_party_name(document),
                due_date=document.due_date,
                status=_status_value(document.status),
                total=document.total,
                remaining_amount=remaining,
                score=score_match(transaction.amount, transaction.date, remaining, document.due_date, config),
                amount_matches=amounts_match(transaction.amount, remaining, config),
                is_paid_without_link=_status_value(document.status) == "paid",
            )
        )

    return sorted(candidates, key=lambda candidate: candidate.score, reverse=True)


async def get_transaction(db: AsyncSession, organization_id: UUID, transaction_id: UUID) -> BankTransaction:
    result = await db.execute(
        select(BankTransaction).where(
            BankTransaction.id == transaction_id,
            BankTransaction.organization_id == organization_id,
        )
    )
    transaction = result.scalar_one_or_none()
    if not transaction:
        raise ReconciliationNotFoundError(f"Bank transaction {transaction_id} not found")
    return transaction


async def _links(db: AsyncSession, organization_id: UUID, column) -> list[tuple[UUID, UUID]]:
    """(transaction_id, document_id) pairs for every linked transaction."""
    result = await db.execute(
        select(BankTransaction.id, column).where(
            BankTransaction.organization_id == organization_id,
            column.is_not(None),
        )
    )
    return [(row[0], row[1]) for row in result.all()]


def _split_links(links: Sequence[tuple[UUID, UUID]], transaction_id: UUID) -> tuple[set[UUID], set[UUID]]:
    elsewhere = {doc_id for txn_id, doc_id in links if txn_id != transaction_id}
    anywhere = {doc_id for _, doc_id in links}
    return elsewhere, anywhere


async def get_match_candidates(
    db: AsyncSession,
    organization_id: UUID,
    transaction_id: UUID,
    search: str | None = None,
) -> CandidateSet:
    """Rank open invoices and bills for a bank transaction."""
    transaction = await get_transaction(db, organization_id, transaction_id)

    invoices = (
        await db.execute(
            select(Invoice)
            .where(Invoice.organization_id == organization_id)
            .order_by(Invoice.date, Invoice.number)
        )
    ).scalars().all()
    bills = (
        await db.execute(
            select(Bill).where(Bill.organization_id == organization_id).order_by(Bill.date, Bill.created_at)
        )
    ).scalars().all()

    invoice_links = await _links(db, organization_id, BankTransaction.matched_invoice_id)
    bill_links = await _links(db, organization_id, BankTransaction.matched_bill_id)

    config = load_reconciliation_config()
    invoice_elsewhere, invoice_anywhere = _split_links(invoice_links, transaction.id)
    bill_elsewhere, bill_anywhere = _split_links(bill_links, transaction.id)

    candidate_set = CandidateSet(
        invoices=build_candidates(
            transaction, invoices, DocumentKind.INVOICE, invoice_elsewhere, invoice_anywhere, search, config
        ),
        bills=build_candidates(transaction, bills, DocumentKind.BILL, bill_elsewhere, bill_anywhere, search, config),
    )
    logger.debug(
        "Match candidates computed",
        transaction_id=str(transaction_id),
        invoice_candidates=len(candidate_set.invoices),
        bill_candidates=len(candidate_set.bills),
    )
    return candidate_set


# =============================================================================
# Confirm / undo
# =============================================================================


async def _get_document(db: AsyncSession, model, organization_id: UUID, document_id: UUID):
    result = await db.execute(select(model).where(model.id == document_id, model.organization_id == organization_id))
    document = result.scalar_one_or_none()
    if not document:
        raise ReconciliationNotFoundError(f"{model.__name__} {document_id} not found")
    return document


async def _check_payment(
    db: AsyncSession,
    organization_id: UUID,
    payment_id: UUID,
    invoice_id: UUID | None,
    bill_id: UUID | None,
) -> None:
    if invoice_id is not None:
        query = select(Payment.id).where(Payment.id == payment_id, Payment.invoice_id == invoice_id)
        query = query.where(Payment.organization_id == organization_id)
    elif bill_id is not None:
        query = select(BillPayment.id).where(BillPayment.id == payment_id, BillPayment.bill_id == bill_id)
        query = query.where(BillPayment.organization_id == organization_id)
    else:
        raise ReconciliationError("payment_id requires an invoice_id or bill_id")

    if (await db.execute(query)).scalar_one_or_none() is None:
        raise ReconciliationNotFoundError(f"Payment {payment_id} not found for document")


async def reconcile_transaction(
    db: AsyncSession,
    organization_id: UUID,
    transaction_id: UUID,
    invoice_id: UUID | None = None,
    bill_id: UUID | None = None,
    payment_id: UUID | None = None,
) -> ReconcileResult:
    """
    Confirm a reconciliation.

    With no document id the transaction is marked reconciled without a link.
    Linking only records the association; the document's amount_paid is left
    to the payment recording flow.

    Raises:
        ReconciliationError: If both an invoice and a bill are given
        ReconciliationNotFoundError: If the transaction, document or payment does not exist
    """
    if invoice_id is not None and bill_id is not None:
        raise ReconciliationError("A transaction can be linked to an invoice or a bill, not both")

    transaction = await get_transaction(db, organization_id, transaction_id)

    if transaction.is_reconciled:
        return ReconcileResult(
            reconciled=False,
            message="Transaction is already reconciled; unreconcile it first",
            transaction=transaction,
        )

    if invoice_id is None and bill_id is None:
        transaction.is_reconciled = True
        transaction.matched_invoice_id = None
        transaction.matched_bill_id = None
        transaction.matched_payment_id = None
        await db.flush()
        logger.info("Transaction reconciled without link", transaction_id=str(transaction_id))
        return ReconcileResult(reconciled=True, message="Transaction reconciled", transaction=transaction)

    if payment_id is not None:
        await _check_payment(db, organization_id, payment_id, invoice_id, bill_id)

    if invoice_id is not None:
        document = await _get_document(db, Invoice, organization_id, invoice_id)
        links = await _links(db, organization_id, BankTransaction.matched_invoice_id)
        cancelled = document.status == InvoiceStatus.CANCELLED
    else:
        document = await _get_document(db, Bill, organization_id, bill_id)
        links = await _links(db, organization_id, BankTransaction.matched_bill_id)
        cancelled = document.status == BillStatus.CANCELLED

    elsewhere, anywhere = _split_links(links, transaction.id)
    if cancelled:
        return ReconcileResult(reconciled=False, message="Cancelled documents cannot be reconciled")
    if document.id in elsewhere:
        return ReconcileResult(
            reconciled=False,
            message="Document is already linked to another bank transaction",
        )

    remaining = remaining_amount(document, linked=document.id in anywhere)
    if remaining is None:
        return ReconcileResult(reconciled=False, message="Document has no remaining amount to reconcile")

    if not amounts_match(transaction.amount, remaining):
        logger.info(
            "Reconciliation rejected - amount mismatch",
            transaction_id=str(transaction_id),
            document_id=str(document.id),
            transaction_amount=str(transaction.amount),
            remaining_amount=str(remaining),
        )
        return ReconcileResult(
            reconciled=False,
            message=(
                f"Amount mismatch: transaction {transaction.amount} does not match "
                f"remaining amount {remaining}"
            ),
        )

    transaction.is_reconciled = True
    transaction.matched_invoice_id = invoice_id
    transaction.matched_bill_id = bill_id
    transaction.matched_payment_id = payment_id
    await db.flush()

    logger.info(
        "Transaction reconciled",
        transaction_id=str(transaction_id),
        invoice_id=str(invoice_id) if invoice_id else None,
        bill_id=str(bill_id) if bill_id else None,
        payment_id=str(payment_id) if payment_id else None,
    )
    return ReconcileResult(reconciled=True, message="Transaction reconciled", transaction=transaction)


async def unreconcile_transaction(
    db: AsyncSession,
    organization_id: UUID,
    transaction_id: UUID,
    reverse_payment_postings: bool = False,
) -> BankTransaction:
    """
    Clear the link and reconciled flag of a transaction.

    Ledger postings are left untouched unless `reverse_payment_postings` is
    set, in which case the postings of the recorded payment are deleted.
    """
    transaction = await get_transaction(db, organization_id, transaction_id)

    if reverse_payment_postings and transaction.matched_payment_id is not None:
        reference_type = (
            ReferenceType.PAYMENT if transaction.matched_invoice_id is not None else ReferenceType.BILL_PAYMENT
        )
        await delete_entries_by_reference(
            db, reference_type, transaction.matched_payment_id, organization_id=organization_id
        )

    transaction.is_reconciled = False
    transaction.matched_invoice_id = None
    transaction.matched_bill_id = None
    transaction.matched_payment_id = None
    await db.flush()

    logger.info(
        "Transaction unreconciled",
        transaction_id=str(transaction_id),
        reverse_payment_postings=reverse_payment_postings,
    )
    return transaction
