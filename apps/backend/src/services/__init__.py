"""Services package."""

from src.services.accounting import (
    AccountingError,
    EventType,
    PostingError,
    PostingLine,
    PostingRequest,
    PostingResult,
    PostingStatus,
    UnbalancedEntryError,
    ValidationError,
    delete_entries_by_reference,
    generate_bill_entry,
    generate_bill_payment_entry,
    generate_expense_entry,
    generate_invoice_entry,
    generate_payment_received_entry,
    list_journal_entries,
    post_event,
    validate_journal_balance,
)
from src.services.bank_import import (
    BankAccountNotFoundError,
    BankImportError,
    ImportResult,
    ParsedTransaction,
    generate_import_hash,
    import_transactions,
)
from src.services.chart_of_accounts import (
    PCG_DEFAULT_ACCOUNTS,
    get_accounts_by_numbers,
    init_chart_of_accounts,
    list_accounts,
)
from src.services.reconciliation import (
    CandidateSet,
    MatchCandidate,
    ReconcileResult,
    ReconciliationError,
    ReconciliationNotFoundError,
    get_match_candidates,
    load_reconciliation_config,
    reconcile_transaction,
    score_match,
    unreconcile_transaction,
)
from src.services.sequences import SequenceError, next_entry_number, next_invoice_number

__all__ = [
    "AccountingError",
    "BankAccountNotFoundError",
    "BankImportError",
    "CandidateSet",
    "EventType",
    "ImportResult",
    "MatchCandidate",
    "PCG_DEFAULT_ACCOUNTS",
    "ParsedTransaction",
    "PostingError",
    "PostingLine",
    "PostingRequest",
    "PostingResult",
    "PostingStatus",
    "ReconcileResult",
    "ReconciliationError",
    "ReconciliationNotFoundError",
    "SequenceError",
    "UnbalancedEntryError",
    "ValidationError",
    "delete_entries_by_reference",
    "generate_bill_entry",
    "generate_bill_payment_entry",
    "generate_expense_entry",
    "generate_import_hash",
    "generate_invoice_entry",
    "generate_payment_received_entry",
    "get_accounts_by_numbers",
    "get_match_candidates",
    "import_transactions",
    "init_chart_of_accounts",
    "list_accounts",
    "list_journal_entries",
    "load_reconciliation_config",
    "next_entry_number",
    "next_invoice_number",
    "post_event",
    "reconcile_transaction",
    "score_match",
    "unreconcile_transaction",
    "validate_journal_balance",
]
