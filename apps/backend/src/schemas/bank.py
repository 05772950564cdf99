"""Pydantic schemas for bank transactions and statement import."""

from datetime import date
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field

from src.models.bank import BankTransactionType
from src.schemas.base import BaseResponse


class BankTransactionResponse(BaseResponse):
    """Schema for a bank transaction."""

    id: UUID
    bank_account_id: UUID
    date: date
    description: str
    amount: Decimal
    type: BankTransactionType
    reference: str | None = None
    import_hash: str | None = None
    is_reconciled: bool
    matched_invoice_id: UUID | None = None
    matched_bill_id: UUID | None = None
    matched_payment_id: UUID | None = None


class ParsedTransactionIn(BaseModel):
    """One decoded statement line."""

    date: date
    description: Annotated[str, Field(min_length=1)]
    amount: Annotated[Decimal, Field(ge=0, decimal_places=2)]
    type: BankTransactionType
    reference: str | None = None
    import_hash: str | None = None


class BankImportRequest(BaseModel):
    transactions: list[ParsedTransactionIn]


class BankImportResponse(BaseModel):
    inserted: int
    skipped: int
