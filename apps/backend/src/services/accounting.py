"""Accounting service - automatic double-entry postings for business events.

Each business event (invoice sent, payment received, bill received, bill
paid, expense) maps to a fixed template of PCG account lines. Postings are
validated for balance, resolved against the organization's chart of
accounts, numbered, and written header-then-lines.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.config import settings
from src.logger import get_logger, log_exception
from src.models import (
    ExpenseCategory,
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
    JournalType,
    PaymentMethod,
    ReferenceType,
)
from src.services.chart_of_accounts import count_accounts, get_accounts_by_numbers
from src.services.sequences import next_entry_number

logger = get_logger(__name__)

BALANCE_TOLERANCE = Decimal("0.01")
ZERO = Decimal("0")

# PCG accounts used by the posting templates
ACCOUNT_CLIENTS = "411000"
ACCOUNT_SUPPLIERS = "401000"
ACCOUNT_SALES = "707000"
ACCOUNT_PURCHASES = "607000"
ACCOUNT_VAT_COLLECTED = "445710"
ACCOUNT_VAT_DEDUCTIBLE = "445660"
ACCOUNT_BANK = "512000"
ACCOUNT_CASH = "531000"
ACCOUNT_MISC_EXPENSES = "618000"

EXPENSE_CATEGORY_ACCOUNTS: dict[str, str] = {
    ExpenseCategory.RESTAURATION.value: "625000",
    ExpenseCategory.TRANSPORT.value: "625000",
    ExpenseCategory.HEBERGEMENT.value: "625000",
    ExpenseCategory.FOURNITURES.value: "606000",
    ExpenseCategory.TELECOM.value: "626000",
    ExpenseCategory.ABONNEMENTS.value: "613000",
    ExpenseCategory.FRAIS_BANCAIRES.value: "627000",
    ExpenseCategory.MARKETING.value: "623000",
    ExpenseCategory.FORMATION.value: ACCOUNT_MISC_EXPENSES,
    ExpenseCategory.AUTRE.value: ACCOUNT_MISC_EXPENSES,
}


class AccountingError(Exception):
    """Base exception for accounting errors."""

    pass


class ValidationError(AccountingError):
    """Validation error for accounting operations."""

    pass


class UnbalancedEntryError(ValidationError):
    """Debits and credits of an entry do not balance. Indicates a caller bug."""

    pass


class PostingError(AccountingError):
    """Entry could not be written; nothing was persisted for it."""

    pass


class EventType(str, Enum):
    """Business events that produce a journal entry."""

    INVOICE_SENT = "invoice_sent"
    PAYMENT_RECEIVED = "payment_received"
    BILL_RECEIVED = "bill_received"
    BILL_PAYMENT = "bill_payment"
    EXPENSE = "expense"


class PostingStatus(str, Enum):
    POSTED = "posted"
    NOT_POSTED = "not_posted"
    SKIPPED_DUPLICATE = "skipped_duplicate"


@dataclass(frozen=True)
class PostingLine:
    """One templated line. Exactly one side is expected to be non-zero."""

    account_number: str
    description: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO


@dataclass(frozen=True)
class PostingTemplate:
    """Header metadata plus ordered lines for one event."""

    description: str
    reference_type: ReferenceType
    journal_type: JournalType
    lines: list[PostingLine]


@dataclass
class PostingRequest:
    """Everything needed to post one business event."""

    event_type: EventType
    organization_id: UUID
    reference_id: UUID
    entry_date: date
    document_number: str | None = None
    party_name: str | None = None
    subtotal: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total: Decimal = ZERO
    amount: Decimal = ZERO
    expense_category: str | None = None
    payment_method: str | None = None
    description: str | None = None


@dataclass
class PostingResult:
    status: PostingStatus
    entry_id: UUID | None = None
    entry_number: str | None = None
    reason: str | None = None
    missing_accounts: list[str] = field(default_factory=list)

    @property
    def posted(self) -> bool:
        return self.status == PostingStatus.POSTED


def _with_party(text: str, party_name: str | None) -> str:
    return f"{text} - {party_name}" if party_name else text


def validate_journal_balance(lines: Sequence[PostingLine]) -> None:
    """
    Validate that journal entry lines are balanced (debit = credit).

    Args:
        lines: Lines to validate

    Raises:
        ValidationError: If there are fewer than 2 lines or a negative amount
        UnbalancedEntryError: If debits and credits don't balance
    """
    if len(lines) < 2:
        raise ValidationError("Journal entry must have at least 2 lines")

    for line in lines:
        if line.debit < 0 or line.credit < 0:
            raise ValidationError(f"Negative amount on account {line.account_number}")

    total_debit = sum((line.debit for line in lines), ZERO)
    total_credit = sum((line.credit for line in lines), ZERO)

    if abs(total_debit - total_credit) > BALANCE_TOLERANCE:
        raise UnbalancedEntryError(f"Journal entry not balanced: debit={total_debit}, credit={total_credit}")


# =============================================================================
# Posting templates
# =============================================================================


def invoice_template(
    invoice_number: str,
    subtotal: Decimal,
    tax_amount: Decimal,
    total: Decimal,
    client_name: str | None = None,
) -> PostingTemplate:
    """
    Invoice sent to a client.

    Débit  411000 Clients        : TTC
    Crédit 707000 Ventes         : HT
    Crédit 445710 TVA collectée  : TVA
    """
    lines = [
        PostingLine(ACCOUNT_CLIENTS, f"Client - {invoice_number}", debit=total),
        PostingLine(ACCOUNT_SALES, f"Ventes - {invoice_number}", credit=subtotal),
    ]
    if tax_amount > 0:
        lines.append(PostingLine(ACCOUNT_VAT_COLLECTED, f"TVA collectée - {invoice_number}", credit=tax_amount))

    return PostingTemplate(
        description=_with_party(f"Facture {invoice_number}", client_name),
        reference_type=ReferenceType.INVOICE,
        journal_type=JournalType.SALES,
        lines=lines,
    )


def payment_received_template(
    invoice_number: str,
    amount: Decimal,
    client_name: str | None = None,
) -> PostingTemplate:
    """
    Client payment received.

    Débit  512000 Banque   : Montant
    Crédit 411000 Clients  : Montant
    """
    return PostingTemplate(
        description=_with_party(f"Paiement reçu - Facture {invoice_number}", client_name),
        reference_type=ReferenceType.PAYMENT,
        journal_type=JournalType.BANK,
        lines=[
            PostingLine(ACCOUNT_BANK, f"Encaissement - {invoice_number}", debit=amount),
            PostingLine(ACCOUNT_CLIENTS, f"Règlement client - {invoice_number}", credit=amount),
        ],
    )


def bill_template(
    bill_id: UUID,
    bill_number: str | None,
    subtotal: Decimal,
    tax_amount: Decimal,
    total: Decimal,
    vendor_name: str | None = None,
) -> PostingTemplate:
    """
    Supplier bill received.

    Débit  607000 Achats           : HT
    Débit  445660 TVA déductible   : TVA
    Crédit 401000 Fournisseurs     : TTC
    """
    ref = bill_number or str(bill_id)[:8]
    lines = [PostingLine(ACCOUNT_PURCHASES, f"Achats - {ref}", debit=subtotal)]
    if tax_amount > 0:
        lines.append(PostingLine(ACCOUNT_VAT_DEDUCTIBLE, f"TVA déductible - {ref}", debit=tax_amount))
    lines.append(PostingLine(ACCOUNT_SUPPLIERS, f"Fournisseur - {ref}", credit=total))

    return PostingTemplate(
        description=_with_party(f"Achat {ref}", vendor_name),
        reference_type=ReferenceType.BILL,
        journal_type=JournalType.PURCHASES,
        lines=lines,
    )


def bill_payment_template(
    bill_number: str | None,
    amount: Decimal,
    vendor_name: str | None = None,
) -> PostingTemplate:
    """
    Supplier bill paid.

    Débit  401000 Fournisseurs : Montant
    Crédit 512000 Banque       : Montant
    """
    ref = bill_number or "Fournisseur"
    return PostingTemplate(
        description=_with_party(f"Paiement fournisseur - {ref}", vendor_name),
        reference_type=ReferenceType.BILL_PAYMENT,
        journal_type=JournalType.BANK,
        lines=[
            PostingLine(ACCOUNT_SUPPLIERS, f"Règlement - {ref}", debit=amount),
            PostingLine(ACCOUNT_BANK, f"Décaissement - {ref}", credit=amount),
        ],
    )


def expense_account_for(category: str | None) -> str:
    if category is None:
        return ACCOUNT_MISC_EXPENSES
    return EXPENSE_CATEGORY_ACCOUNTS.get(str(category), ACCOUNT_MISC_EXPENSES)


def expense_template(
    amount: Decimal,
    category: str | None,
    payment_method: str | None,
    vendor_name: str | None = None,
    description: str | None = None,
) -> PostingTemplate:
    """
    Expense paid directly.

    Débit  6XXXXX (selon catégorie) : Montant
    Crédit 531000 Caisse (espèces) ou 512000 Banque : Montant
    """
    credit_account = ACCOUNT_CASH if payment_method == PaymentMethod.CASH.value else ACCOUNT_BANK
    ref = vendor_name or description or "Dépense"
    return PostingTemplate(
        description=f"Dépense - {ref}",
        reference_type=ReferenceType.EXPENSE,
        journal_type=JournalType.BANK,
        lines=[
            PostingLine(expense_account_for(category), f"Charge - {ref}", debit=amount),
            PostingLine(credit_account, f"Règlement - {ref}", credit=amount),
        ],
    )


def build_template(request: PostingRequest) -> PostingTemplate:
    """Select and fill the template for a posting request."""
    number = request.document_number or ""
    if request.event_type == EventType.INVOICE_SENT:
        return invoice_template(number, request.subtotal, request.tax_amount, request.total, request.party_name)
    if request.event_type == EventType.PAYMENT_RECEIVED:
        return payment_received_template(number, request.amount, request.party_name)
    if request.event_type == EventType.BILL_RECEIVED:
        return bill_template(
            request.reference_id,
            request.document_number,
            request.subtotal,
            request.tax_amount,
            request.total,
            request.party_name,
        )
    if request.event_type == EventType.BILL_PAYMENT:
        return bill_payment_template(request.document_number, request.amount, request.party_name)
    if request.event_type == EventType.EXPENSE:
        method = request.payment_method.value if isinstance(request.payment_method, Enum) else request.payment_method
        category = (
            request.expense_category.value
            if isinstance(request.expense_category, Enum)
            else request.expense_category
        )
        return expense_template(request.amount, category, method, request.party_name, request.description)
    raise ValidationError(f"Unsupported event type: {request.event_type}")


# =============================================================================
# Persistence
# =============================================================================


async def _find_posted_entry(
    db: AsyncSession,
    organization_id: UUID,
    reference_type: ReferenceType,
    reference_id: UUID,
    journal_type: JournalType,
) -> JournalEntry | None:
    result = await db.execute(
        select(JournalEntry)
        .where(
            JournalEntry.organization_id == organization_id,
            JournalEntry.reference_type == reference_type,
            JournalEntry.reference_id == reference_id,
            JournalEntry.journal_type == journal_type,
            JournalEntry.status == JournalEntryStatus.POSTED,
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _insert_entry_lines(
    db: AsyncSession,
    entry: JournalEntry,
    lines: Sequence[PostingLine],
    account_map: dict[str, UUID],
) -> None:
    for index, line in enumerate(lines):
        db.add(
            JournalEntryLine(
                journal_entry_id=entry.id,
                account_id=account_map[line.account_number],
                description=line.description,
                debit=line.debit,
                credit=line.credit,
                position=index + 1,
            )
        )
    await db.flush()


async def post_template(
    db: AsyncSession,
    organization_id: UUID,
    reference_id: UUID,
    entry_date: date,
    template: PostingTemplate,
    skip_duplicates: bool | None = None,
) -> PostingResult:
    """
    Write a balanced journal entry for a filled template.

    Returns a NOT_POSTED result (logged, not raised) when the chart of
    accounts is not initialized or lacks one of the template's accounts.

    Raises:
        UnbalancedEntryError: If the lines do not balance; nothing is written
        PostingError: If the lines could not be inserted; the header is rolled back
    """
    validate_journal_balance(template.lines)

    numbers = [line.account_number for line in template.lines]
    account_map = await get_accounts_by_numbers(db, organization_id, numbers)
    if not account_map and await count_accounts(db, organization_id) == 0:
        logger.info(
            "Chart of accounts not initialized, entry skipped",
            organization_id=str(organization_id),
            reference_type=template.reference_type.value,
            reference_id=str(reference_id),
        )
        return PostingResult(status=PostingStatus.NOT_POSTED, reason="chart_not_initialized")

    missing = [number for number in dict.fromkeys(numbers) if number not in account_map]
    if missing:
        logger.warning(
            "Accounts missing from chart, entry skipped",
            organization_id=str(organization_id),
            missing_accounts=missing,
            reference_type=template.reference_type.value,
            reference_id=str(reference_id),
        )
        return PostingResult(status=PostingStatus.NOT_POSTED, reason="missing_accounts", missing_accounts=missing)

    if skip_duplicates is None:
        skip_duplicates = settings.ledger_skip_duplicate_postings
    if skip_duplicates:
        existing = await _find_posted_entry(
            db, organization_id, template.reference_type, reference_id, template.journal_type
        )
        if existing is not None:
            logger.info(
                "Entry already posted for reference, skipped",
                entry_number=existing.entry_number,
                reference_type=template.reference_type.value,
                reference_id=str(reference_id),
            )
            return PostingResult(
                status=PostingStatus.SKIPPED_DUPLICATE,
                entry_id=existing.id,
                entry_number=existing.entry_number,
                reason="already_posted",
            )

    entry_number = await next_entry_number(db, organization_id)

    entry = JournalEntry(
        organization_id=organization_id,
        entry_number=entry_number,
        entry_date=entry_date,
        description=template.description,
        reference_type=template.reference_type,
        reference_id=reference_id,
        journal_type=template.journal_type,
        status=JournalEntryStatus.POSTED,
        is_balanced=True,
    )
    try:
        async with db.begin_nested():
            db.add(entry)
            await db.flush()
            await _insert_entry_lines(db, entry, template.lines, account_map)
    except SQLAlchemyError as exc:
        log_exception(
            logger,
            exc,
            "Journal entry lines insert failed, header rolled back",
            entry_number=entry_number,
            reference_type=template.reference_type.value,
            reference_id=str(reference_id),
        )
        raise PostingError(f"Failed to write journal entry {entry_number}") from exc

    await db.refresh(entry, ["lines"])
    logger.info(
        "Journal entry posted",
        entry_number=entry_number,
        journal_type=template.journal_type.value,
        reference_type=template.reference_type.value,
        reference_id=str(reference_id),
        line_count=len(template.lines),
    )
    return PostingResult(status=PostingStatus.POSTED, entry_id=entry.id, entry_number=entry_number)


async def post_event(
    db: AsyncSession,
    request: PostingRequest,
    skip_duplicates: bool | None = None,
) -> PostingResult:
    """Post the journal entry for one business event."""
    template = build_template(request)
    return await post_template(
        db,
        request.organization_id,
        request.reference_id,
        request.entry_date,
        template,
        skip_duplicates=skip_duplicates,
    )


async def generate_invoice_entry(
    db: AsyncSession,
    organization_id: UUID,
    invoice_id: UUID,
    invoice_number: str,
    entry_date: date,
    subtotal: Decimal,
    tax_amount: Decimal,
    total: Decimal,
    client_name: str | None = None,
) -> PostingResult:
    return await post_event(
        db,
        PostingRequest(
            event_type=EventType.INVOICE_SENT,
            organization_id=organization_id,
            reference_id=invoice_id,
            entry_date=entry_date,
            document_number=invoice_number,
            party_name=client_name,
            subtotal=subtotal,
            tax_amount=tax_amount,
            total=total,
        ),
    )


async def generate_payment_received_entry(
    db: AsyncSession,
    organization_id: UUID,
    payment_id: UUID,
    invoice_number: str,
    entry_date: date,
    amount: Decimal,
    client_name: str | None = None,
) -> PostingResult:
    return await post_event(
        db,
        PostingRequest(
            event_type=EventType.PAYMENT_RECEIVED,
            organization_id=organization_id,
            reference_id=payment_id,
            entry_date=entry_date,
            document_number=invoice_number,
            party_name=client_name,
            amount=amount,
        ),
    )


async def generate_bill_entry(
    db: AsyncSession,
    organization_id: UUID,
    bill_id: UUID,
    bill_number: str | None,
    entry_date: date,
    subtotal: Decimal,
    tax_amount: Decimal,
    total: Decimal,
    vendor_name: str | None = None,
) -> PostingResult:
    return await post_event(
        db,
        PostingRequest(
            event_type=EventType.BILL_RECEIVED,
            organization_id=organization_id,
            reference_id=bill_id,
            entry_date=entry_date,
            document_number=bill_number,
            party_name=vendor_name,
            subtotal=subtotal,
            tax_amount=tax_amount,
            total=total,
        ),
    )


async def generate_bill_payment_entry(
    db: AsyncSession,
    organization_id: UUID,
    bill_payment_id: UUID,
    bill_number: str | None,
    entry_date: date,
    amount: Decimal,
    vendor_name: str | None = None,
) -> PostingResult:
    return await post_event(
        db,
        PostingRequest(
            event_type=EventType.BILL_PAYMENT,
            organization_id=organization_id,
            reference_id=bill_payment_id,
            entry_date=entry_date,
            document_number=bill_number,
            party_name=vendor_name,
            amount=amount,
        ),
    )


async def generate_expense_entry(
    db: AsyncSession,
    organization_id: UUID,
    expense_id: UUID,
    entry_date: date,
    amount: Decimal,
    category: str | None,
    payment_method: str | None,
    vendor_name: str | None = None,
    description: str | None = None,
) -> PostingResult:
    return await post_event(
        db,
        PostingRequest(
            event_type=EventType.EXPENSE,
            organization_id=organization_id,
            reference_id=expense_id,
            entry_date=entry_date,
            party_name=vendor_name,
            amount=amount,
            expense_category=category,
            payment_method=payment_method,
            description=description,
        ),
    )


async def delete_entries_by_reference(
    db: AsyncSession,
    reference_type: ReferenceType | str,
    reference_id: UUID,
    organization_id: UUID | None = None,
) -> int:
    """
    Reverse the postings of a business object by deleting its entries.

    Lines are removed before headers. Having nothing to delete is success.

    Returns:
        Number of journal entries deleted
    """
    reference_type = ReferenceType(reference_type)
    query = select(JournalEntry.id).where(
        JournalEntry.reference_type == reference_type,
        JournalEntry.reference_id == reference_id,
    )
    if organization_id is not None:
        query = query.where(JournalEntry.organization_id == organization_id)

    result = await db.execute(query)
    entry_ids = list(result.scalars().all())
    if not entry_ids:
        return 0

    await db.execute(delete(JournalEntryLine).where(JournalEntryLine.journal_entry_id.in_(entry_ids)))
    await db.execute(delete(JournalEntry).where(JournalEntry.id.in_(entry_ids)))
    await db.flush()

    logger.info(
        "Journal entries deleted for reference",
        reference_type=reference_type.value,
        reference_id=str(reference_id),
        deleted=len(entry_ids),
    )
    return len(entry_ids)


async def list_journal_entries(
    db: AsyncSession,
    organization_id: UUID,
    reference_type: ReferenceType | None = None,
    reference_id: UUID | None = None,
) -> list[JournalEntry]:
    query = (
        select(JournalEntry)
        .where(JournalEntry.organization_id == organization_id)
        .options(selectinload(JournalEntry.lines).selectinload(JournalEntryLine.account))
    )
    if reference_type is not None:
        query = query.where(JournalEntry.reference_type == reference_type)
    if reference_id is not None:
        query = query.where(JournalEntry.reference_id == reference_id)

    result = await db.execute(query.order_by(JournalEntry.entry_number).execution_options(populate_existing=True))
    return list(result.scalars().all())


def entry_totals(entry: JournalEntry) -> tuple[Decimal, Decimal]:
    """Return (total debit, total credit) for a loaded entry."""
    total_debit = sum((line.debit for line in entry.lines), ZERO)
    total_credit = sum((line.credit for line in entry.lines), ZERO)
    return total_debit, total_credit
