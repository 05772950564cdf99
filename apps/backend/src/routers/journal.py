"""Ledger posting and journal entry API router."""

from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from src.deps import CurrentOrganizationId, DbSession
from src.logger import get_logger
from src.models import JournalEntry, ReferenceType
from src.schemas import (
    DeleteEntriesResponse,
    JournalEntryLineResponse,
    JournalEntryListResponse,
    JournalEntryResponse,
    PostingRequestIn,
    PostingResultResponse,
)
from src.services import (
    PostingError,
    PostingRequest,
    ValidationError,
    delete_entries_by_reference,
    list_journal_entries,
    post_event,
)
from src.services.accounting import entry_totals
from src.utils import raise_bad_request, raise_internal_error

router = APIRouter(prefix="/journal", tags=["journal"])
logger = get_logger(__name__)


def _build_entry_response(entry: JournalEntry) -> JournalEntryResponse:
    total_debit, total_credit = entry_totals(entry)
    return JournalEntryResponse(
        id=entry.id,
        entry_number=entry.entry_number,
        entry_date=entry.entry_date,
        description=entry.description,
        reference_type=entry.reference_type,
        reference_id=entry.reference_id,
        journal_type=entry.journal_type,
        status=entry.status,
        is_balanced=entry.is_balanced,
        lines=[
            JournalEntryLineResponse(
                id=line.id,
                account_id=line.account_id,
                account_number=line.account.account_number if line.account else None,
                description=line.description,
                debit=line.debit,
                credit=line.credit,
                position=line.position,
            )
            for line in entry.lines
        ],
        total_debit=total_debit,
        total_credit=total_credit,
    )


@router.post("/postings", response_model=PostingResultResponse)
async def create_posting(
    payload: PostingRequestIn,
    response: Response,
    db: DbSession,
    organization_id: CurrentOrganizationId,
) -> PostingResultResponse:
    """Post the journal entry for a business event.

    201 when an entry was written; 200 when the chart is not ready or the
    event was already posted.
    """
    request = PostingRequest(organization_id=organization_id, **payload.model_dump())
    try:
        result = await post_event(db, request)
    except ValidationError as e:
        raise_bad_request(str(e), cause=e)
    except PostingError as e:
        raise_internal_error(str(e), cause=e)

    if result.posted:
        await db.commit()
        response.status_code = status.HTTP_201_CREATED
    else:
        response.status_code = status.HTTP_200_OK

    return PostingResultResponse(
        status=result.status,
        entry_id=result.entry_id,
        entry_number=result.entry_number,
        reason=result.reason,
        missing_accounts=result.missing_accounts,
    )


@router.delete("/references/{reference_type}/{reference_id}", response_model=DeleteEntriesResponse)
async def delete_reference_entries(
    reference_type: ReferenceType,
    reference_id: UUID,
    db: DbSession,
    organization_id: CurrentOrganizationId,
) -> DeleteEntriesResponse:
    """Reverse the postings of a business object."""
    deleted = await delete_entries_by_reference(db, reference_type, reference_id, organization_id=organization_id)
    await db.commit()
    return DeleteEntriesResponse(deleted=deleted)


@router.get("/entries", response_model=JournalEntryListResponse)
async def get_entries(
    db: DbSession,
    organization_id: CurrentOrganizationId,
    reference_type: ReferenceType | None = Query(default=None),
    reference_id: UUID | None = Query(default=None),
) -> JournalEntryListResponse:
    """List journal entries, optionally filtered by originating reference."""
    entries = await list_journal_entries(
        db, organization_id, reference_type=reference_type, reference_id=reference_id
    )
    items = [_build_entry_response(entry) for entry in entries]
    return JournalEntryListResponse(items=items, total=len(items))
