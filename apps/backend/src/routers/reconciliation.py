"""Reconciliation API router."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from src.deps import CurrentOrganizationId, DbSession
from src.schemas import (
    BankTransactionResponse,
    MatchCandidateResponse,
    MatchCandidatesResponse,
    ReconcileRequest,
    ReconcileResponse,
    UnreconcileRequest,
)
from src.services import (
    ReconciliationError,
    ReconciliationNotFoundError,
    get_match_candidates,
    reconcile_transaction,
    unreconcile_transaction,
)
from src.utils import raise_bad_request, raise_not_found

router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])


@router.get("/transactions/{transaction_id}/candidates", response_model=MatchCandidatesResponse)
async def list_candidates(
    transaction_id: UUID,
    db: DbSession,
    organization_id: CurrentOrganizationId,
    search: str | None = Query(default=None, max_length=200),
) -> MatchCandidatesResponse:
    """Rank open invoices and bills for a bank transaction."""
    try:
        candidates = await get_match_candidates(db, organization_id, transaction_id, search=search)
    except ReconciliationNotFoundError as e:
        raise_not_found("Bank transaction", cause=e)

    return MatchCandidatesResponse(
        invoices=[MatchCandidateResponse.model_validate(c) for c in candidates.invoices],
        bills=[MatchCandidateResponse.model_validate(c) for c in candidates.bills],
    )


@router.post("/transactions/{transaction_id}/reconcile", response_model=ReconcileResponse)
async def reconcile(
    transaction_id: UUID,
    payload: ReconcileRequest,
    db: DbSession,
    organization_id: CurrentOrganizationId,
) -> ReconcileResponse:
    """Link a transaction to an invoice or bill, or mark it reconciled without link."""
    try:
        result = await reconcile_transaction(
            db,
            organization_id,
            transaction_id,
            invoice_id=payload.invoice_id,
            bill_id=payload.bill_id,
            payment_id=payload.payment_id,
        )
    except ReconciliationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ReconciliationError as e:
        raise_bad_request(str(e), cause=e)

    if not result.reconciled:
        raise_bad_request(result.message)

    await db.commit()
    return ReconcileResponse(
        reconciled=True,
        message=result.message,
        transaction=BankTransactionResponse.model_validate(result.transaction),
    )


@router.post("/transactions/{transaction_id}/unreconcile", response_model=BankTransactionResponse)
async def unreconcile(
    transaction_id: UUID,
    db: DbSession,
    organization_id: CurrentOrganizationId,
    payload: UnreconcileRequest | None = None,
) -> BankTransactionResponse:
    """Clear a transaction's link and reconciled flag."""
    reverse = payload.reverse_payment_postings if payload else False
    try:
        transaction = await unreconcile_transaction(
            db, organization_id, transaction_id, reverse_payment_postings=reverse
        )
    except ReconciliationNotFoundError as e:
        raise_not_found("Bank transaction", cause=e)

    await db.commit()
    return BankTransactionResponse.model_validate(transaction)
