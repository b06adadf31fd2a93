"""
Application State and Reducer

DESIGN DECISION: The whole application state is one immutable value.
Every change is a pure function ``old state + action -> new state``.
Views never mutate collections in place, and persistence only ever sees
complete snapshots.

Failed actions raise and leave the previous state untouched - there is
no partial apply. Identity for edits and deletes is the transaction id,
never a position, because reports filter and re-sort the list.
"""

from collections.abc import Sequence
from typing import Any, ClassVar, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ledgerbook.config import get_settings
from ledgerbook.models.ledger import (
    DEFAULT_CATEGORIES,
    Backup,
    Category,
    Transaction,
    TransactionBase,
)
from ledgerbook.models.reports import ValidationResult
from ledgerbook.validation import TransactionValidator


# =============================================================================
# ERRORS
# =============================================================================

class LedgerError(Exception):
    """Base error for rejected ledger actions."""
    pass


class TransactionValidationError(LedgerError):
    """A transaction failed validation."""

    def __init__(self, result: ValidationResult, message: Optional[str] = None):
        self.result = result
        if message is None:
            errors = [i.message for i in result.issues if i.severity == "error"]
            message = "; ".join(errors) or "Transaction is invalid"
        super().__init__(message)


class NegativeBalanceError(TransactionValidationError):
    """A debit would leave a balance below zero and the policy rejects it."""
    pass


class ConfirmationRequiredError(TransactionValidationError):
    """A debit would leave a balance below zero and needs user confirmation."""

    def __init__(self, result: ValidationResult):
        super().__init__(result, "; ".join(result.warnings) or "Confirmation required")


class TransactionNotFoundError(LedgerError):
    """No transaction has the given id."""
    pass


class PersonError(LedgerError):
    """A person cannot be added or removed."""
    pass


class CategoryError(LedgerError):
    """A category cannot be added, renamed or removed."""
    pass


# =============================================================================
# STATE
# =============================================================================

class AppState(BaseModel):
    """Everything the dashboard holds in memory."""
    model_config = ConfigDict(frozen=True)

    persons: tuple[str, ...] = ()
    transactions: tuple[Transaction, ...] = ()
    categories: tuple[Category, ...] = DEFAULT_CATEGORIES
    products: tuple[dict[str, Any], ...] = ()
    settings: dict[str, Any] = Field(default_factory=dict)
    # Stored transaction records that could not be read; written back as-is
    unreadable: tuple[Any, ...] = ()

    def find_transaction(self, transaction_id: UUID) -> Transaction:
        for transaction in self.transactions:
            if transaction.id == transaction_id:
                return transaction
        raise TransactionNotFoundError(f"No transaction with id {transaction_id}")

    def is_referenced(self, person: str) -> bool:
        """Whether any transaction names ``person`` as party."""
        return any(person in t.parties for t in self.transactions)


def initial_state(persons: Optional[Sequence[str]] = None) -> AppState:
    """A fresh state with the configured default persons."""
    if persons is None:
        persons = get_settings().ledger.default_persons
    return AppState(persons=tuple(persons))


# =============================================================================
# TRANSACTIONS
# =============================================================================

def _checked(
    state: AppState,
    record: Any,
    validator: TransactionValidator,
    confirmed: bool,
    pending: Sequence[Transaction] = (),
    replacing: Optional[UUID] = None,
) -> Transaction:
    result = validator.validate(
        record,
        persons=state.persons,
        transactions=[*state.transactions, *pending],
        confirmed=confirmed,
        replacing=replacing,
    )
    if result.has_errors:
        if any(i.issue_type == "negative_balance" and i.severity == "error" for i in result.issues):
            raise NegativeBalanceError(result)
        raise TransactionValidationError(result)
    if result.requires_confirmation:
        raise ConfirmationRequiredError(result)
    return result.transaction


def add_transactions(
    state: AppState,
    records: Sequence[Any],
    validator: TransactionValidator,
    confirmed: bool = False,
) -> AppState:
    """
    Append records, all or nothing.

    Each record is checked against the ledger including the records
    before it in the same batch, so a conversion's pay and receive are
    validated together.
    """
    accepted: list[Transaction] = []
    for record in records:
        accepted.append(_checked(state, record, validator, confirmed, pending=accepted))
    return state.model_copy(update={"transactions": state.transactions + tuple(accepted)})


def add_transaction(
    state: AppState,
    record: Any,
    validator: TransactionValidator,
    confirmed: bool = False,
) -> AppState:
    return add_transactions(state, [record], validator, confirmed)


def replace_transaction(
    state: AppState,
    transaction_id: UUID,
    record: Any,
    validator: TransactionValidator,
    confirmed: bool = False,
) -> AppState:
    """
    Replace a transaction in place, keeping its id and position.

    Raises:
        TransactionNotFoundError: if no transaction has the id
        TransactionValidationError: if the replacement is invalid
    """
    state.find_transaction(transaction_id)

    if isinstance(record, TransactionBase):
        record = record.model_copy(update={"id": transaction_id})
    else:
        record = {**dict(record), "id": transaction_id}

    replacement = _checked(state, record, validator, confirmed, replacing=transaction_id)
    transactions = tuple(
        replacement if t.id == transaction_id else t
        for t in state.transactions
    )
    return state.model_copy(update={"transactions": transactions})


def remove_transaction(state: AppState, transaction_id: UUID) -> AppState:
    state.find_transaction(transaction_id)
    return state.model_copy(update={
        "transactions": tuple(t for t in state.transactions if t.id != transaction_id)
    })


# =============================================================================
# PERSONS AND CATEGORIES
# =============================================================================

def add_person(state: AppState, name: str) -> AppState:
    name = name.strip()
    if not name:
        raise PersonError("Person name cannot be empty")
    if name in state.persons:
        raise PersonError(f"Person '{name}' already exists")
    return state.model_copy(update={"persons": state.persons + (name,)})


def remove_person(state: AppState, name: str) -> AppState:
    """
    Remove a person.

    Raises:
        PersonError: if the person is unknown or any transaction refers to them
    """
    if name not in state.persons:
        raise PersonError(f"Person '{name}' does not exist")
    if state.is_referenced(name):
        raise PersonError(f"Person '{name}' has transactions and cannot be deleted")
    return state.model_copy(update={
        "persons": tuple(p for p in state.persons if p != name)
    })


def add_category(state: AppState, key: str, label: Optional[str] = None) -> AppState:
    key = key.strip()
    if not key:
        raise CategoryError("Category key cannot be empty")
    if any(c.key == key for c in state.categories):
        raise CategoryError(f"Category '{key}' already exists")
    category = Category(key=key, label=(label or key).strip() or key)
    return state.model_copy(update={"categories": state.categories + (category,)})


def rename_category(state: AppState, key: str, label: str) -> AppState:
    label = label.strip()
    if not label:
        raise CategoryError("Category label cannot be empty")
    if not any(c.key == key for c in state.categories):
        raise CategoryError(f"Category '{key}' does not exist")
    return state.model_copy(update={
        "categories": tuple(
            Category(key=c.key, label=label) if c.key == key else c
            for c in state.categories
        )
    })


def remove_category(state: AppState, key: str) -> AppState:
    """Remove a category. Purchases keep referring to its key."""
    if not any(c.key == key for c in state.categories):
        raise CategoryError(f"Category '{key}' does not exist")
    return state.model_copy(update={
        "categories": tuple(c for c in state.categories if c.key != key)
    })


def categories_from_settings(
    settings: dict[str, Any],
    fallback: tuple[Category, ...] = DEFAULT_CATEGORIES,
) -> tuple[Category, ...]:
    """Categories stored inside the settings collection, if any."""
    stored = settings.get("categories")
    if not stored:
        return fallback
    return tuple(Category.model_validate(c) for c in stored)


def apply_backup(state: AppState, backup: Backup) -> AppState:
    """
    Overwrite the collections present in ``backup``.

    Absent collections keep their current value.
    """
    present = backup.model_fields_set
    update: dict[str, Any] = {}

    if "transactions" in present and backup.transactions is not None:
        update["transactions"] = tuple(backup.transactions)
        update["unreadable"] = ()
    if "persons" in present and backup.persons is not None:
        update["persons"] = tuple(backup.persons)
    if "products" in present and backup.products is not None:
        update["products"] = tuple(backup.products)
    if "settings" in present and backup.settings is not None:
        update["settings"] = dict(backup.settings)
        update["categories"] = categories_from_settings(backup.settings, state.categories)

    return state.model_copy(update=update)


# =============================================================================
# ACTIONS AND REDUCER
# =============================================================================

class _Action(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    # Storage collections the action changes
    touches: ClassVar[tuple[str, ...]] = ()


class AddTransactions(_Action):
    touches: ClassVar[tuple[str, ...]] = ("transactions",)
    records: list[Any]
    confirmed: bool = False


class ReplaceTransaction(_Action):
    touches: ClassVar[tuple[str, ...]] = ("transactions",)
    transaction_id: UUID
    record: Any
    confirmed: bool = False


class RemoveTransaction(_Action):
    touches: ClassVar[tuple[str, ...]] = ("transactions",)
    transaction_id: UUID


class AddPerson(_Action):
    touches: ClassVar[tuple[str, ...]] = ("persons",)
    name: str


class RemovePerson(_Action):
    touches: ClassVar[tuple[str, ...]] = ("persons",)
    name: str


class AddCategory(_Action):
    touches: ClassVar[tuple[str, ...]] = ("settings",)
    key: str
    label: Optional[str] = None


class RenameCategory(_Action):
    touches: ClassVar[tuple[str, ...]] = ("settings",)
    key: str
    label: str


class RemoveCategory(_Action):
    touches: ClassVar[tuple[str, ...]] = ("settings",)
    key: str


class ImportBackup(_Action):
    touches: ClassVar[tuple[str, ...]] = ("transactions", "persons", "products", "settings")
    backup: Backup


Action = Union[
    AddTransactions,
    ReplaceTransaction,
    RemoveTransaction,
    AddPerson,
    RemovePerson,
    AddCategory,
    RenameCategory,
    RemoveCategory,
    ImportBackup,
]


def reduce(state: AppState, action: Action, validator: TransactionValidator) -> AppState:
    """
    Apply an action to the state.

    Raises:
        LedgerError: if the action is rejected; ``state`` is unchanged
    """
    if isinstance(action, AddTransactions):
        return add_transactions(state, action.records, validator, action.confirmed)
    if isinstance(action, ReplaceTransaction):
        return replace_transaction(
            state, action.transaction_id, action.record, validator, action.confirmed
        )
    if isinstance(action, RemoveTransaction):
        return remove_transaction(state, action.transaction_id)
    if isinstance(action, AddPerson):
        return add_person(state, action.name)
    if isinstance(action, RemovePerson):
        return remove_person(state, action.name)
    if isinstance(action, AddCategory):
        return add_category(state, action.key, action.label)
    if isinstance(action, RenameCategory):
        return rename_category(state, action.key, action.label)
    if isinstance(action, RemoveCategory):
        return remove_category(state, action.key)
    if isinstance(action, ImportBackup):
        return apply_backup(state, action.backup)
    raise TypeError(f"Unknown action: {type(action).__name__}")
