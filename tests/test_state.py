"""Tests for the application state and reducer."""

import pytest
from uuid import uuid4

from ledgerbook.models.ledger import Backup, Category, OrderStatus, PayTransaction
from ledgerbook.state import (
    AddCategory,
    AddPerson,
    AddTransactions,
    AppState,
    CategoryError,
    ConfirmationRequiredError,
    ImportBackup,
    NegativeBalanceError,
    PersonError,
    RemoveTransaction,
    ReplaceTransaction,
    TransactionNotFoundError,
    TransactionValidationError,
    add_category,
    add_person,
    add_transaction,
    add_transactions,
    apply_backup,
    initial_state,
    reduce,
    remove_category,
    remove_person,
    remove_transaction,
    rename_category,
    replace_transaction,
)
from ledgerbook.validation import TransactionValidator


@pytest.fixture
def validator():
    return TransactionValidator("confirm")


@pytest.fixture
def funded(validator):
    state = AppState(persons=("A", "B", "JACK"))
    return add_transaction(
        state,
        {"type": "receive", "person": "A", "amount": 100, "currency": "usd"},
        validator,
    )


def pay(person, amount):
    return {"type": "pay", "person": person, "amount": amount, "currency": "usd"}


class TestInitialState:
    """Tests for the starting state."""

    def test_default_persons(self):
        """Test the configured default persons."""
        assert initial_state().persons == ("JACK", "AMiR", "JD", "Khalil")

    def test_default_categories(self):
        """Test that categories start with the defaults."""
        assert len(initial_state().categories) == 4


class TestTransactionActions:
    """Tests for adding, editing and deleting transactions."""

    def test_add_returns_new_state(self, funded, validator):
        """Test that adding leaves the old state untouched."""
        new = add_transaction(funded, pay("A", 10), validator)
        assert len(new.transactions) == 2
        assert len(funded.transactions) == 1

    def test_invalid_record_rejected(self, funded, validator):
        """Test that an incomplete record raises and changes nothing."""
        with pytest.raises(TransactionValidationError) as exc:
            add_transaction(funded, {"type": "pay", "person": "A", "currency": "usd"}, validator)
        assert exc.value.result.issues[0].field == "amount"
        assert len(funded.transactions) == 1

    def test_overdraft_needs_confirmation(self, funded, validator):
        """Test the confirm policy."""
        with pytest.raises(ConfirmationRequiredError):
            add_transaction(funded, pay("A", 500), validator)
        new = add_transaction(funded, pay("A", 500), validator, confirmed=True)
        assert len(new.transactions) == 2

    def test_overdraft_rejected_by_policy(self, funded):
        """Test the reject policy."""
        with pytest.raises(NegativeBalanceError):
            add_transaction(funded, pay("A", 500), TransactionValidator("reject"))

    def test_batch_is_all_or_nothing(self, funded, validator):
        """Test that one bad record rejects the whole batch."""
        with pytest.raises(TransactionValidationError):
            add_transactions(funded, [pay("A", 1), {"type": "pay"}], validator)
        assert len(funded.transactions) == 1

    def test_batch_sees_earlier_records(self, funded):
        """Test that later records are checked against earlier ones in the batch."""
        validator = TransactionValidator("reject")
        with pytest.raises(NegativeBalanceError):
            add_transactions(funded, [pay("A", 60), pay("A", 60)], validator)

    def test_replace_keeps_id_and_position(self, funded, validator):
        """Test replace-in-place by identity."""
        state = add_transaction(funded, pay("A", 10), validator)
        target = state.transactions[0]
        new = replace_transaction(
            state, target.id,
            {"type": "receive", "person": "A", "amount": 80, "currency": "usd"},
            validator,
        )
        assert new.transactions[0].id == target.id
        assert new.transactions[0].amount == 80
        assert new.transactions[1] == state.transactions[1]

    def test_invalid_edit_keeps_original(self, funded, validator):
        """Test that a bad edit leaves the original retrievable."""
        original = funded.transactions[0]
        with pytest.raises(TransactionValidationError):
            replace_transaction(
                funded, original.id, {"type": "receive", "person": "A", "currency": "usd"}, validator
            )
        assert funded.find_transaction(original.id) == original

    def test_edit_buy_status_freely(self, validator):
        """Test that order status moves in any direction."""
        state = AppState(persons=("JACK",))
        line = {
            "type": "buy", "person": "JACK", "amount": 5, "currency": "cny",
            "orderNumber": "O-1", "category": "other", "status": "completed",
        }
        state = add_transaction(state, line, validator, confirmed=True)
        tx_id = state.transactions[0].id
        state = replace_transaction(state, tx_id, {**line, "status": "active"}, validator, confirmed=True)
        assert state.transactions[0].status == OrderStatus.ACTIVE

    def test_replace_with_model(self, funded, validator):
        """Test that a model replacement takes over the existing id."""
        target = funded.transactions[0]
        new = replace_transaction(
            funded, target.id, PayTransaction(person="B", amount=1, currency="usd"), validator,
            confirmed=True,
        )
        assert new.transactions[0].id == target.id
        assert new.transactions[0].person == "B"

    def test_remove_by_id(self, funded):
        """Test removal by identity."""
        target = funded.transactions[0]
        assert remove_transaction(funded, target.id).transactions == ()

    def test_unknown_id(self, funded, validator):
        """Test that an unknown id raises."""
        with pytest.raises(TransactionNotFoundError):
            remove_transaction(funded, uuid4())
        with pytest.raises(TransactionNotFoundError):
            replace_transaction(funded, uuid4(), pay("A", 1), validator)


class TestPersonActions:
    """Tests for person management."""

    def test_add_person_strips(self, funded):
        """Test that names are stripped and appended."""
        assert add_person(funded, "  Khalil ").persons[-1] == "Khalil"

    def test_add_person_rejects_empty_and_duplicate(self, funded):
        """Test the name rules."""
        with pytest.raises(PersonError):
            add_person(funded, "   ")
        with pytest.raises(PersonError):
            add_person(funded, "A")

    def test_remove_unreferenced_person(self, funded):
        """Test deleting a person without transactions."""
        assert "B" not in remove_person(funded, "B").persons

    def test_remove_referenced_person_rejected(self, funded, validator):
        """Test that a person used as transfer receiver cannot be deleted."""
        state = add_transaction(
            funded,
            {"type": "transfer", "from": "A", "to": "B", "amount": 1, "currency": "usd"},
            validator,
        )
        with pytest.raises(PersonError):
            remove_person(state, "B")
        with pytest.raises(PersonError):
            remove_person(state, "Nobody")


class TestCategoryActions:
    """Tests for category management."""

    def test_add_rename_remove(self, funded):
        """Test the category lifecycle."""
        state = add_category(funded, "tools", "Tools")
        state = rename_category(state, "tools", "Hand tools")
        assert state.categories[-1] == Category(key="tools", label="Hand tools")
        state = remove_category(state, "tools")
        assert all(c.key != "tools" for c in state.categories)

    def test_category_errors(self, funded):
        """Test duplicate and unknown categories."""
        with pytest.raises(CategoryError):
            add_category(funded, "material")
        with pytest.raises(CategoryError):
            rename_category(funded, "missing", "x")
        with pytest.raises(CategoryError):
            remove_category(funded, "missing")


class TestApplyBackup:
    """Tests for importing a backup into the state."""

    def test_present_keys_overwrite(self, funded):
        """Test that persons are replaced and transactions kept."""
        backup = Backup.model_validate({"persons": ["X", "Y"]})
        state = apply_backup(funded, backup)
        assert state.persons == ("X", "Y")
        assert state.transactions == funded.transactions

    def test_settings_carry_categories(self, funded):
        """Test that categories come from the settings collection."""
        backup = Backup.model_validate({
            "settings": {"categories": [{"key": "k", "label": "K"}]},
            "transactions": [],
        })
        state = apply_backup(funded, backup)
        assert state.categories == (Category(key="k", label="K"),)
        assert state.transactions == ()


class TestReducer:
    """Tests for dispatching actions."""

    def test_reduce_dispatches(self, funded, validator):
        """Test a sequence of actions."""
        state = reduce(funded, AddPerson(name="C"), validator)
        state = reduce(state, AddCategory(key="tools"), validator)
        state = reduce(state, AddTransactions(records=[pay("A", 5)]), validator)
        tx_id = state.transactions[-1].id
        state = reduce(
            state, ReplaceTransaction(transaction_id=tx_id, record=pay("A", 6)), validator
        )
        assert state.transactions[-1].amount == 6
        state = reduce(state, RemoveTransaction(transaction_id=tx_id), validator)
        assert len(state.transactions) == 1
        assert "C" in state.persons

    def test_action_touches(self):
        """Test the collections each action marks for saving."""
        assert AddTransactions.touches == ("transactions",)
        assert AddPerson.touches == ("persons",)
        assert AddCategory.touches == ("settings",)
        assert "products" in ImportBackup.touches
