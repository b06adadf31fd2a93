"""
Main Orchestrator for Ledgerbook

This module ties together all the components and defines the
end-to-end flows for:
1. Recording (form input -> validate -> reduce -> schedule save)
2. Editing and deleting by transaction id
3. Reporting (filter -> summarize -> export)
4. Backup export and import

DESIGN DECISION: The orchestrator enforces the boundaries:
- No record enters the ledger without passing validation
- A rejected action leaves the state exactly as it was
- Storage only ever sees snapshots, written by the debounced saver
- Every state change is audited

This is the "glue"; the engine underneath stays pure.
"""

import io
import json
import threading
from collections.abc import Callable, Sequence
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from ledgerbook.audit import AuditLogger, configure_logging
from ledgerbook.auth import Account, authenticate
from ledgerbook.config import get_settings
from ledgerbook.engine import (
    average_rate,
    build_conversion,
    calculate_balances,
    currency_totals,
    filter_transactions,
    report_persons,
    summarize_by_type,
    summarize_deliveries,
    summarize_order,
    summarize_orders,
)
from ledgerbook.models.audit import AuditEventType
from ledgerbook.models.ledger import Currency, Transaction, TransactionBase
from ledgerbook.models.reports import (
    Balances,
    DeliverySummary,
    OrderSummary,
    ReportFilter,
    TypeSummary,
    ValidationResult,
)
from ledgerbook.services.export import (
    export_order_xlsx,
    export_report_xlsx,
    render_report_html,
)
from ledgerbook.services.persistence import (
    BackupImportError,
    DebouncedSaver,
    build_backup,
    dirty_keys_for,
    load_state,
    parse_backup,
)
from ledgerbook.services.storage import (
    InMemoryStorage,
    KeyValueStorageInterface,
    LocalJsonStorage,
    StorageKey,
)
from ledgerbook.state import (
    AddCategory,
    AddPerson,
    AddTransactions,
    AppState,
    ImportBackup,
    RemoveCategory,
    RemovePerson,
    RemoveTransaction,
    RenameCategory,
    ReplaceTransaction,
    TransactionValidationError,
    reduce,
)
from ledgerbook.validation import TransactionValidator


class LedgerBook:
    """
    The application service behind the dashboard.

    Holds the current AppState, applies actions through the reducer and
    hands persistence to a DebouncedSaver.
    """

    def __init__(
        self,
        storage: KeyValueStorageInterface,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        save_delay: Optional[float] = None,
        on_save_error: Optional[Callable[[StorageKey, Exception], None]] = None,
    ):
        self._settings = get_settings().ledger
        self._storage = storage
        self._validator = validator or TransactionValidator()
        self._audit = audit_logger or AuditLogger()
        self._lock = threading.RLock()
        self._account: Optional[Account] = None

        loaded = load_state(storage, self._audit)
        self._state = loaded.state
        self.skipped_on_load = loaded.skipped

        self._saver = DebouncedSaver(
            storage,
            snapshot=lambda: self._state,
            delay=save_delay,
            audit=self._audit,
            on_error=on_save_error,
        )
        if loaded.needs_save:
            self._saver.mark_dirty(StorageKey.TRANSACTIONS)

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def audit(self) -> AuditLogger:
        return self._audit

    @property
    def validator(self) -> TransactionValidator:
        return self._validator

    @property
    def account(self) -> Optional[Account]:
        return self._account

    @property
    def user(self) -> Optional[str]:
        return self._account.username if self._account else None

    def login(self, username: str, password: str) -> Optional[Account]:
        account = authenticate(username, password)
        self._audit.log_login(username, account is not None)
        self._account = account
        return account

    def logout(self) -> None:
        self._account = None

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def _dispatch(self, action, touched: Sequence[StorageKey]) -> AppState:
        with self._lock:
            try:
                new_state = reduce(self._state, action, self._validator)
            except TransactionValidationError as e:
                self._audit.log_transaction_rejected(
                    [issue.model_dump() for issue in e.result.issues],
                    actor=self.user,
                )
                raise
            self._state = new_state
        if touched:
            self._saver.mark_dirty(*touched)
        return new_state

    def _stamp(self, record: Any) -> Any:
        """Fill in the creator on raw form input."""
        if isinstance(record, TransactionBase) or not isinstance(record, dict):
            return record
        if record.get("user") is None and self.user:
            return {**record, "user": self.user}
        return record

    def preview(self, record: Any, replacing: Optional[UUID] = None) -> ValidationResult:
        """Validate without committing, for inline form feedback."""
        return self._validator.validate(
            self._stamp(record),
            persons=self._state.persons,
            transactions=self._state.transactions,
            replacing=replacing,
        )

    def record(self, record: Any, confirmed: bool = False) -> Transaction:
        """
        Add one transaction.

        Raises:
            TransactionValidationError: if the record is invalid
            ConfirmationRequiredError: if a balance would go negative
                under the ``confirm`` policy and ``confirmed`` is False
            NegativeBalanceError: same, under the ``reject`` policy
        """
        return self.record_many([record], confirmed)[0]

    def record_many(self, records: Sequence[Any], confirmed: bool = False) -> list[Transaction]:
        """Add several transactions, all or nothing."""
        before = len(self._state.transactions)
        state = self._dispatch(
            AddTransactions(records=[self._stamp(r) for r in records], confirmed=confirmed),
            AddTransactions.touches,
        )
        added = list(state.transactions[before:])
        for transaction in added:
            self._audit.log_transaction_added(
                transaction.id, transaction.type, transaction.to_record(), actor=self.user
            )
        return added

    def record_conversion(
        self,
        sender: str,
        receiver: str,
        amount: Decimal,
        rate: Decimal,
        from_currency: Currency = Currency.USD,
        to_currency: Currency = Currency.CNY,
        description: str = "",
        confirmed: bool = False,
    ) -> list[Transaction]:
        """
        Record a currency conversion as a pay/receive pair.

        Raises:
            ConversionError: if the request itself is malformed
        """
        pay, receive = build_conversion(
            sender,
            receiver,
            amount,
            rate,
            self.user,
            from_currency=from_currency,
            to_currency=to_currency,
            description=description,
        )
        return self.record_many([pay, receive], confirmed)

    def edit_transaction(
        self,
        transaction_id: UUID,
        record: Any,
        confirmed: bool = False,
    ) -> Transaction:
        """Replace a transaction, keeping its id and position."""
        state = self._dispatch(
            ReplaceTransaction(
                transaction_id=transaction_id,
                record=self._stamp(record),
                confirmed=confirmed,
            ),
            ReplaceTransaction.touches,
        )
        updated = state.find_transaction(transaction_id)
        self._audit.log_transaction_updated(
            updated.id, updated.type, updated.to_record(), actor=self.user
        )
        return updated

    def delete_transaction(self, transaction_id: UUID) -> None:
        removed = self._state.find_transaction(transaction_id)
        self._dispatch(RemoveTransaction(transaction_id=transaction_id), RemoveTransaction.touches)
        self._audit.log_transaction_deleted(removed.id, removed.type, actor=self.user)

    def add_person(self, name: str) -> None:
        self._dispatch(AddPerson(name=name), AddPerson.touches)
        self._audit.log_reference_changed(
            AuditEventType.PERSON_ADDED, "person", name.strip(), actor=self.user
        )

    def delete_person(self, name: str) -> None:
        self._dispatch(RemovePerson(name=name), RemovePerson.touches)
        self._audit.log_reference_changed(
            AuditEventType.PERSON_DELETED, "person", name, actor=self.user
        )

    def add_category(self, key: str, label: Optional[str] = None) -> None:
        self._dispatch(AddCategory(key=key, label=label), AddCategory.touches)
        self._audit.log_reference_changed(
            AuditEventType.CATEGORY_ADDED, "category", key.strip(),
            details={"label": label or key.strip()}, actor=self.user,
        )

    def rename_category(self, key: str, label: str) -> None:
        self._dispatch(RenameCategory(key=key, label=label), RenameCategory.touches)
        self._audit.log_reference_changed(
            AuditEventType.CATEGORY_UPDATED, "category", key,
            details={"label": label.strip()}, actor=self.user,
        )

    def delete_category(self, key: str) -> None:
        self._dispatch(RemoveCategory(key=key), RemoveCategory.touches)
        self._audit.log_reference_changed(
            AuditEventType.CATEGORY_DELETED, "category", key, actor=self.user
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def balances(self) -> Balances:
        return calculate_balances(self._state.persons, self._state.transactions)

    def currency_totals(self) -> dict[Currency, Decimal]:
        return currency_totals(self.balances())

    def average_rate(self, currency: Currency = Currency.USD) -> Decimal:
        return average_rate(self._state.transactions, currency)

    def orders(self, owner: Optional[str] = None) -> list[OrderSummary]:
        return summarize_orders(self._state.transactions, owner or self._settings.order_owner)

    def order(self, order_number: str, owner: Optional[str] = None) -> OrderSummary:
        return summarize_order(
            self._state.transactions, order_number, owner or self._settings.order_owner
        )

    def deliveries(self) -> list[DeliverySummary]:
        return summarize_deliveries(self._state.transactions)

    def report(self, criteria: Optional[ReportFilter] = None) -> list[Transaction]:
        return filter_transactions(self._state.transactions, criteria)

    def report_summary(self, criteria: Optional[ReportFilter] = None) -> TypeSummary:
        return summarize_by_type(self.report(criteria))

    def report_persons(self) -> list[str]:
        """Known persons plus anyone named only in records, sorted."""
        return sorted(set(self._state.persons) | set(report_persons(self._state.transactions)))

    # -------------------------------------------------------------------------
    # Import / export
    # -------------------------------------------------------------------------

    def export_backup(self) -> dict[str, Any]:
        backup = build_backup(self._state)
        self._audit.log_backup_exported(
            {k: len(backup[k]) for k in ("transactions", "persons", "products")},
            actor=self.user,
        )
        return backup

    def export_backup_json(self) -> str:
        return json.dumps(self.export_backup(), ensure_ascii=False, indent=2)

    def import_backup(self, raw: Any) -> list[StorageKey]:
        """
        Import a backup file.

        Present collections overwrite the current ones, absent ones are
        left alone.

        Raises:
            BackupImportError: if the file is malformed; nothing is applied
        """
        try:
            backup = parse_backup(raw)
        except BackupImportError as e:
            self._audit.log_import_failed(str(e), actor=self.user)
            raise

        keys = list(dirty_keys_for(backup))
        self._dispatch(ImportBackup(backup=backup), keys)
        self._audit.log_backup_imported([k.value for k in keys], actor=self.user)
        return keys

    def export_report_xlsx(self, criteria: Optional[ReportFilter] = None) -> io.BytesIO:
        rows = self.report(criteria)
        buffer = export_report_xlsx(rows)
        self._audit.log_report_exported("xlsx", len(rows), actor=self.user)
        return buffer

    def export_report_html(self, criteria: Optional[ReportFilter] = None) -> str:
        rows = self.report(criteria)
        html = render_report_html(rows)
        self._audit.log_report_exported("html", len(rows), actor=self.user)
        return html

    def export_order_xlsx(self, order_number: str) -> io.BytesIO:
        order = self.order(order_number)
        buffer = export_order_xlsx(order, self._state.categories)
        self._audit.log_report_exported("order_xlsx", order.line_count, actor=self.user)
        return buffer

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def flush(self) -> None:
        """Write pending changes now."""
        self._saver.flush()

    @property
    def pending_saves(self) -> set[StorageKey]:
        return self._saver.pending


def create_app_components(
    use_storage: bool = True,
    on_save_error: Optional[Callable[[StorageKey, Exception], None]] = None,
) -> LedgerBook:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to persist to local JSON files.
                    Set to False for a throwaway in-memory session.
        on_save_error: Called when a background save fails

    Returns:
        A ready LedgerBook with state loaded from storage
    """
    settings = get_settings()
    configure_logging(settings.app.log_level, settings.app.json_logs)

    storage: KeyValueStorageInterface
    if use_storage:
        storage = LocalJsonStorage(settings.storage.data_dir)
    else:
        storage = InMemoryStorage()

    return LedgerBook(
        storage,
        validator=TransactionValidator(settings.ledger.negative_balance_policy),
        audit_logger=AuditLogger(),
        on_save_error=on_save_error,
    )
