"""Tests for the two-stage transaction validator."""

import pytest

from ledgerbook.models.ledger import PayTransaction
from ledgerbook.validation import TransactionValidator


PERSONS = ["A", "B"]
FUNDED = [{"type": "receive", "person": "A", "amount": 100, "currency": "usd"}]


def pay(person, amount, currency="usd"):
    return {"type": "pay", "person": person, "amount": amount, "currency": currency}


class TestSchemaStage:
    """Tests for field-completeness checks."""

    def test_valid_record_passes(self):
        """Test a complete record."""
        result = TransactionValidator("allow").validate(pay("A", 10), PERSONS, FUNDED)
        assert result.is_valid
        assert result.transaction is not None
        assert result.transaction.person == "A"

    def test_missing_field_is_reported(self):
        """Test that a missing amount is an error on that field."""
        result = TransactionValidator("allow").validate(
            {"type": "pay", "person": "A", "currency": "usd"}, PERSONS
        )
        assert not result.schema_valid
        assert not result.ledger_valid
        assert result.transaction is None
        assert [i.field for i in result.issues] == ["amount"]
        assert result.issues[0].severity == "error"

    def test_field_names_use_wire_names(self):
        """Test that errors name the stored field, with a hint."""
        result = TransactionValidator("allow").validate(
            {
                "type": "buy", "person": "A", "amount": 1, "currency": "cny",
                "orderNumber": "bad number!", "category": "other",
            },
            PERSONS,
        )
        issue = result.issues[0]
        assert issue.field == "orderNumber"
        assert issue.suggested_fix is not None

    def test_ledger_stage_skipped_on_schema_failure(self):
        """Test that no balance issue is raised for a broken record."""
        result = TransactionValidator("reject").validate(pay("A", -1), PERSONS)
        assert all(i.issue_type != "negative_balance" for i in result.issues)


class TestLedgerStage:
    """Tests for persons and the negative balance policy."""

    def test_unknown_person_is_a_warning(self):
        """Test that an unknown person does not block the record."""
        result = TransactionValidator("allow").validate(
            {"type": "receive", "person": "Z", "amount": 1, "currency": "usd"}, PERSONS
        )
        assert result.is_valid
        assert result.warnings

    @pytest.mark.parametrize("policy,valid,confirm,severity", [
        ("allow", True, False, "info"),
        ("confirm", True, True, "warning"),
        ("reject", False, False, "error"),
    ])
    def test_negative_balance_policy(self, policy, valid, confirm, severity):
        """Test each policy on an overdraft."""
        result = TransactionValidator(policy).validate(pay("A", 150), PERSONS, FUNDED)
        assert result.ledger_valid is valid
        assert result.requires_confirmation is confirm
        issue = next(i for i in result.issues if i.issue_type == "negative_balance")
        assert issue.severity == severity

    def test_confirmed_overdraft_passes(self):
        """Test that a confirmed overdraft needs no further confirmation."""
        result = TransactionValidator("confirm").validate(
            pay("A", 150), PERSONS, FUNDED, confirmed=True
        )
        assert result.is_valid
        assert not result.requires_confirmation

    def test_within_balance_has_no_issue(self):
        """Test that a covered debit raises nothing."""
        result = TransactionValidator("reject").validate(pay("A", 100), PERSONS, FUNDED)
        assert result.issues == []

    def test_transfer_checks_sender_only(self):
        """Test that only the debited party is checked."""
        validator = TransactionValidator("reject")
        transfer = {"type": "transfer", "from": "B", "to": "A", "amount": 5, "currency": "usd"}
        result = validator.validate(transfer, PERSONS, FUNDED)
        assert not result.ledger_valid
        assert "B's usd balance" in result.issues[0].message

    def test_replaced_record_is_excluded(self):
        """Test that an edit is checked without the record it replaces."""
        existing = PayTransaction(person="A", amount=90, currency="usd")
        ledger = FUNDED + [existing]
        validator = TransactionValidator("reject")
        assert not validator.validate(pay("A", 50), PERSONS, ledger).ledger_valid
        assert validator.validate(pay("A", 50), PERSONS, ledger, replacing=existing.id).ledger_valid

    def test_default_policy_from_settings(self):
        """Test that the configured default policy is confirm."""
        assert TransactionValidator().policy == "confirm"


class TestUserFriendlySummary:
    """Tests for the form summary text."""

    def test_all_passed(self):
        """Test the success message."""
        validator = TransactionValidator("allow")
        result = validator.validate(pay("A", 1), PERSONS, FUNDED)
        assert validator.get_user_friendly_summary(result).startswith("✅")

    def test_errors_listed(self):
        """Test that error messages are listed."""
        validator = TransactionValidator("allow")
        result = validator.validate({"type": "pay", "person": "A", "currency": "usd"}, PERSONS)
        summary = validator.get_user_friendly_summary(result)
        assert "cannot be recorded" in summary
        assert "amount" in summary

    def test_confirmation_prompt(self):
        """Test the confirmation hint."""
        validator = TransactionValidator("confirm")
        result = validator.validate(pay("A", 500), PERSONS, FUNDED)
        assert "Confirm" in validator.get_user_friendly_summary(result)


class TestFormRules:
    """Tests for the rules new and edited records must meet."""

    def test_irr_rate_rejected(self):
        """Test that a new irr receipt cannot carry a rate."""
        record = {"type": "receive", "person": "A", "amount": 5, "currency": "irr", "rate": 2}
        result = TransactionValidator("allow").validate(record, PERSONS)
        assert not result.schema_valid

    def test_long_description_rejected(self):
        """Test that a new record keeps its description within 500 characters."""
        record = {**pay("A", 1), "description": "x" * 501}
        result = TransactionValidator("allow").validate(record, PERSONS, FUNDED)
        assert not result.schema_valid
        assert result.issues[0].field == "description"

    def test_buy_without_category_rejected(self):
        """Test that a new purchase line needs a category."""
        record = {
            "type": "buy", "person": "A", "amount": 1, "currency": "cny", "orderNumber": "O-1",
        }
        result = TransactionValidator("allow").validate(record, PERSONS)
        assert [i.field for i in result.issues] == ["category"]

    def test_undated_record_gets_a_date(self):
        """Test that an accepted record without a date is dated now."""
        result = TransactionValidator("allow").validate(pay("A", 1), PERSONS, FUNDED)
        assert result.transaction.date is not None

    def test_older_records_count_toward_balance(self):
        """Test that a stored free-form purchase still debits in the check."""
        ledger = FUNDED + [{
            "type": "buy", "person": "A", "amount": 95, "currency": "usd",
            "orderNumber": "PO 12/A",
        }]
        result = TransactionValidator("reject").validate(pay("A", 10), PERSONS, ledger)
        assert not result.is_valid
        assert result.issues[0].issue_type == "negative_balance"
