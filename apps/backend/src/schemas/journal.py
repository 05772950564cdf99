"""Pydantic schemas for ledger postings and journal entries."""

from datetime import date
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field

from src.models.documents import ExpenseCategory, PaymentMethod
from src.models.journal import JournalEntryStatus, JournalType, ReferenceType
from src.schemas.base import BaseResponse, ListResponse
from src.services.accounting import EventType, PostingStatus

Money = Annotated[Decimal, Field(ge=0, decimal_places=2)]


class PostingRequestIn(BaseModel):
    """Business event to post to the ledger."""

    event_type: EventType
    reference_id: UUID
    entry_date: date
    document_number: str | None = None
    party_name: str | None = None
    subtotal: Money = Decimal("0")
    tax_amount: Money = Decimal("0")
    total: Money = Decimal("0")
    amount: Money = Decimal("0")
    expense_category: ExpenseCategory | None = None
    payment_method: PaymentMethod | None = None
    description: str | None = None


class PostingResultResponse(BaseModel):
    status: PostingStatus
    entry_id: UUID | None = None
    entry_number: str | None = None
    reason: str | None = None
    missing_accounts: list[str] = Field(default_factory=list)


class JournalEntryLineResponse(BaseResponse):
    id: UUID
    account_id: UUID
    account_number: str | None = None
    description: str | None = None
    debit: Decimal
    credit: Decimal
    position: int


class JournalEntryResponse(BaseResponse):
    """Schema for journal entry response."""

    id: UUID
    entry_number: str
    entry_date: date
    description: str
    reference_type: ReferenceType | None = None
    reference_id: UUID | None = None
    journal_type: JournalType
    status: JournalEntryStatus
    is_balanced: bool
    lines: list[JournalEntryLineResponse]
    total_debit: Decimal
    total_credit: Decimal


JournalEntryListResponse = ListResponse[JournalEntryResponse]


class DeleteEntriesResponse(BaseModel):
    deleted: int
