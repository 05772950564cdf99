from src.schemas.account import ChartAccountListResponse, ChartAccountResponse, ChartInitResponse
from src.schemas.bank import (
    BankImportRequest,
    BankImportResponse,
    BankTransactionResponse,
    ParsedTransactionIn,
)
from src.schemas.base import BaseResponse, ListResponse
from src.schemas.journal import (
    DeleteEntriesResponse,
    JournalEntryLineResponse,
    JournalEntryListResponse,
    JournalEntryResponse,
    PostingRequestIn,
    PostingResultResponse,
)
from src.schemas.reconciliation import (
    MatchCandidateResponse,
    MatchCandidatesResponse,
    ReconcileRequest,
    ReconcileResponse,
    UnreconcileRequest,
)

__all__ = [
    "BankImportRequest",
    "BankImportResponse",
    "BankTransactionResponse",
    "BaseResponse",
    "ChartAccountListResponse",
    "ChartAccountResponse",
    "ChartInitResponse",
    "DeleteEntriesResponse",
    "JournalEntryLineResponse",
    "JournalEntryListResponse",
    "JournalEntryResponse",
    "ListResponse",
    "MatchCandidateResponse",
    "MatchCandidatesResponse",
    "ParsedTransactionIn",
    "PostingRequestIn",
    "PostingResultResponse",
    "ReconcileRequest",
    "ReconcileResponse",
    "UnreconcileRequest",
]
