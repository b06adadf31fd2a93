"""
Data Models Package

This package contains all Pydantic models used in Ledgerbook.
Every record entering the ledger must conform to these schemas.
"""

from ledgerbook.models.ledger import (
    CURRENCY_INFO,
    DEFAULT_CATEGORIES,
    Backup,
    BuyEntry,
    BuyTransaction,
    Category,
    Currency,
    CurrencyInfo,
    DeliveryEntry,
    DeliveryTransaction,
    OrderStatus,
    PayEntry,
    PayTransaction,
    ReceiveEntry,
    ReceiveTransaction,
    Transaction,
    TransactionAdapter,
    TransactionBase,
    TransactionEntry,
    TransactionType,
    TransferEntry,
    TransferTransaction,
    category_label,
    parse_entry,
    parse_transaction,
)
from ledgerbook.models.reports import (
    Balances,
    DeliverySummary,
    OrderSummary,
    ReportFilter,
    TypeSummary,
    ValidationIssue,
    ValidationResult,
    zero_totals,
)
from ledgerbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "CURRENCY_INFO",
    "DEFAULT_CATEGORIES",
    "Backup",
    "BuyEntry",
    "BuyTransaction",
    "Category",
    "Currency",
    "CurrencyInfo",
    "DeliveryEntry",
    "DeliveryTransaction",
    "OrderStatus",
    "PayEntry",
    "PayTransaction",
    "ReceiveEntry",
    "ReceiveTransaction",
    "Transaction",
    "TransactionAdapter",
    "TransactionBase",
    "TransactionEntry",
    "TransactionType",
    "TransferEntry",
    "TransferTransaction",
    "category_label",
    "parse_entry",
    "parse_transaction",
    # Report models
    "Balances",
    "DeliverySummary",
    "OrderSummary",
    "ReportFilter",
    "TypeSummary",
    "ValidationIssue",
    "ValidationResult",
    "zero_totals",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
