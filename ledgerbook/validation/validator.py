"""
Two-Stage Transaction Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Known transaction type
- Required field presence for that type
- Positive amounts, known currency, distinct transfer parties
- Form rules: order number pattern, description length, rate currency
- This catches incomplete or malformed form input

STAGE 2 - LEDGER VALIDATION:
- Persons referenced are known
- Negative balance policy for every debit
- This needs the current persons and transactions

Stage 2 only runs when stage 1 passes.

IMPORTANT: Validation NEVER fixes records and never raises.
It reports issues; the caller decides whether to commit.
"""

from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import ValidationError

from ledgerbook.config import NegativeBalancePolicy, get_settings
from ledgerbook.engine.balances import person_balance
from ledgerbook.engine.records import iter_transactions
from ledgerbook.models.ledger import Currency, Transaction, TransactionType, parse_entry
from ledgerbook.models.reports import ValidationIssue, ValidationResult


_TYPE_TAGS = {t.value for t in TransactionType}

_FIELD_HINTS = {
    "amount": "Enter a number greater than zero",
    "currency": "Choose one of usd, cny or irr",
    "orderNumber": "Use letters, digits and '-' only",
    "boxCount": "Enter a whole number of boxes greater than zero",
    "weight": "Enter a weight greater than zero",
    "description": "Keep the description under 500 characters",
    "rate": "Only usd and cny receipts take a rate greater than zero",
    "category": "Pick a category",
    "receiptNumber": "Enter the receipt number",
}


class TransactionValidator:
    """
    Validates a transaction record before it enters the ledger.

    Stage 1: Schema validation (needs nothing but the record)
    Stage 2: Ledger validation (needs persons and existing transactions)
    """

    def __init__(self, policy: Optional[NegativeBalancePolicy] = None):
        """
        Initialize validator.

        Args:
            policy: Negative balance policy. Defaults to the configured one.
        """
        self._policy = policy or get_settings().ledger.negative_balance_policy

    @property
    def policy(self) -> NegativeBalancePolicy:
        return self._policy

    def _validate_schema(
        self,
        record: Any,
    ) -> tuple[Optional[Transaction], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (parsed_transaction_or_None, list_of_issues)
        """
        try:
            return parse_entry(record), []
        except ValidationError as e:
            issues = []
            for err in e.errors():
                loc = [str(part) for part in err["loc"]]
                if loc and loc[0] in _TYPE_TAGS:
                    loc = loc[1:]
                field = ".".join(loc) or "transaction"
                issues.append(ValidationIssue(
                    field=field,
                    issue_type=err["type"],
                    message=f"{field}: {err['msg']}" if loc else err["msg"],
                    severity="error",
                    suggested_fix=_FIELD_HINTS.get(loc[0]) if loc else None,
                ))
            return None, issues

    def _validate_ledger(
        self,
        transaction: Transaction,
        persons: Sequence[str],
        transactions: Sequence[Any],
        confirmed: bool,
        replacing: Optional[UUID],
    ) -> tuple[bool, bool, list[ValidationIssue]]:
        """
        Stage 2: Ledger validation.

        Returns: (is_valid, requires_confirmation, list_of_issues)
        """
        issues = []
        known = set(persons)

        for name in transaction.parties:
            if name not in known:
                issues.append(ValidationIssue(
                    field="person",
                    issue_type="unknown_person",
                    message=f"'{name}' is not in the persons list",
                    severity="warning",
                    suggested_fix="Add the person first or pick an existing one",
                ))

        context = [
            t for t in iter_transactions(transactions)
            if replacing is None or t.id != replacing
        ]

        requires_confirmation = False
        for person, currency, resulting in self._debited_balances(transaction, context):
            if resulting >= 0:
                continue

            message = (
                f"{person}'s {currency.value} balance would become {resulting}"
            )
            if self._policy == "reject":
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="negative_balance",
                    message=message,
                    severity="error",
                    suggested_fix="Reduce the amount or record a receipt first",
                ))
            elif self._policy == "confirm" and not confirmed:
                requires_confirmation = True
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="negative_balance",
                    message=message,
                    severity="warning",
                    suggested_fix="Confirm to record it anyway",
                ))
            else:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="negative_balance",
                    message=message,
                    severity="info",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, requires_confirmation, issues

    @staticmethod
    def _debited_balances(
        transaction: Transaction,
        context: Iterable[Transaction],
    ) -> list[tuple[str, Currency, Decimal]]:
        """Balances after the transaction, for each person it debits."""
        context = list(context)
        effects: dict[tuple[str, Currency], Decimal] = {}
        debited = []
        for person, currency, delta in transaction.ledger_entries():
            effects[(person, currency)] = effects.get((person, currency), Decimal("0")) + delta
            if delta < 0 and (person, currency) not in debited:
                debited.append((person, currency))

        return [
            (
                person,
                currency,
                person_balance(context, person, currency) + effects[(person, currency)],
            )
            for person, currency in debited
        ]

    def validate(
        self,
        record: Any,
        persons: Sequence[str] = (),
        transactions: Sequence[Any] = (),
        confirmed: bool = False,
        replacing: Optional[UUID] = None,
    ) -> ValidationResult:
        """
        Run the full two-stage validation pipeline.

        Args:
            record: A transaction model or a raw mapping
            persons: Known persons
            transactions: Current ledger
            confirmed: The user already confirmed a negative balance
            replacing: Id of the record an edit replaces; it is left out
                of the balance check

        Returns:
            ValidationResult with the parsed transaction and all issues
        """
        transaction, all_issues = self._validate_schema(record)
        schema_valid = transaction is not None

        ledger_valid = False
        requires_confirmation = False
        if schema_valid:
            ledger_valid, requires_confirmation, ledger_issues = self._validate_ledger(
                transaction, persons, transactions, confirmed, replacing
            )
            all_issues.extend(ledger_issues)

        return ValidationResult(
            schema_valid=schema_valid,
            ledger_valid=ledger_valid,
            transaction=transaction,
            requires_confirmation=requires_confirmation,
            issues=all_issues,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what the form shows next to the submit button.
        """
        if result.is_valid and not result.warnings and not result.requires_confirmation:
            return "✅ All checks passed."

        lines = []

        if result.has_errors:
            lines.append("❌ This transaction cannot be recorded:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        if result.requires_confirmation:
            lines.append("")
            lines.append("Confirm to record it with a negative balance.")

        return "\n".join(lines).strip()
