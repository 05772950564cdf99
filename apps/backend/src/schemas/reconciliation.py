"""Pydantic schemas for reconciliation API."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, model_validator

from src.schemas.bank import BankTransactionResponse
from src.services.reconciliation import DocumentKind


class MatchCandidateResponse(BaseModel):
    """A scored invoice or bill suggested for a transaction."""

    model_config = ConfigDict(from_attributes=True)

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
    is_paid_without_link: bool


class MatchCandidatesResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    invoices: list[MatchCandidateResponse]
    bills: list[MatchCandidateResponse]


class ReconcileRequest(BaseModel):
    """Confirm a match. Omit both ids to mark reconciled without a link."""

    invoice_id: UUID | None = None
    bill_id: UUID | None = None
    payment_id: UUID | None = None

    @model_validator(mode="after")
    def validate_single_document(self) -> "ReconcileRequest":
        if self.invoice_id is not None and self.bill_id is not None:
            raise ValueError("Provide invoice_id or bill_id, not both")
        return self


class UnreconcileRequest(BaseModel):
    reverse_payment_postings: bool = False


class ReconcileResponse(BaseModel):
    reconciled: bool
    message: str
    transaction: BankTransactionResponse | None = None
