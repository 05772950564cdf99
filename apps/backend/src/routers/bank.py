"""Bank statement import API router."""

from uuid import UUID

from fastapi import APIRouter

from src.deps import CurrentOrganizationId, DbSession
from src.schemas import BankImportRequest, BankImportResponse
from src.services import BankAccountNotFoundError, ParsedTransaction, import_transactions
from src.utils import raise_not_found

router = APIRouter(prefix="/bank", tags=["bank"])


@router.post("/accounts/{bank_account_id}/import", response_model=BankImportResponse)
async def import_bank_transactions(
    bank_account_id: UUID,
    payload: BankImportRequest,
    db: DbSession,
    organization_id: CurrentOrganizationId,
) -> BankImportResponse:
    """Import decoded statement lines, skipping already imported ones."""
    records = [ParsedTransaction(**item.model_dump()) for item in payload.transactions]
    try:
        result = await import_transactions(db, organization_id, bank_account_id, records)
    except BankAccountNotFoundError as e:
        raise_not_found("Bank account", cause=e)

    await db.commit()
    return BankImportResponse(inserted=result.inserted, skipped=result.skipped)
