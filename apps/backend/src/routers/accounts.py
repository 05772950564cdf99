"""Chart of accounts API router."""

from fastapi import APIRouter, Query, status

from src.deps import CurrentOrganizationId, DbSession
from src.logger import get_logger
from src.schemas import ChartAccountListResponse, ChartAccountResponse, ChartInitResponse
from src.services import init_chart_of_accounts, list_accounts

router = APIRouter(prefix="/accounts", tags=["accounts"])
logger = get_logger(__name__)


@router.post("/init", response_model=ChartInitResponse, status_code=status.HTTP_200_OK)
async def init_accounts(db: DbSession, organization_id: CurrentOrganizationId) -> ChartInitResponse:
    """Seed the default PCG chart of accounts. No-op if a chart already exists."""
    created = await init_chart_of_accounts(db, organization_id)
    await db.commit()
    return ChartInitResponse(created=created, already_initialized=created == 0)


@router.get("", response_model=ChartAccountListResponse)
async def get_accounts(
    db: DbSession,
    organization_id: CurrentOrganizationId,
    include_inactive: bool = Query(False),
) -> ChartAccountListResponse:
    """List the organization's accounts ordered by account number."""
    accounts = await list_accounts(db, organization_id, include_inactive=include_inactive)
    items = [ChartAccountResponse.model_validate(account) for account in accounts]
    return ChartAccountListResponse(items=items, total=len(items))
