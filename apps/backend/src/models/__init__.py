"""SQLAlchemy models package."""

from src.models.account import AccountType, ChartAccount
from src.models.bank import BankAccount, BankTransaction, BankTransactionType
from src.models.documents import (
    Bill,
    BillPayment,
    BillStatus,
    Expense,
    ExpenseCategory,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentMethod,
)
from src.models.journal import (
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
    JournalType,
    ReferenceType,
)
from src.models.organization import Organization

__all__ = [
    "AccountType",
    "BankAccount",
    "BankTransaction",
    "BankTransactionType",
    "Bill",
    "BillPayment",
    "BillStatus",
    "ChartAccount",
    "Expense",
    "ExpenseCategory",
    "Invoice",
    "InvoiceStatus",
    "JournalEntry",
    "JournalEntryLine",
    "JournalEntryStatus",
    "JournalType",
    "Organization",
    "Payment",
    "PaymentMethod",
    "ReferenceType",
]
