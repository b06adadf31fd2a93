"""
Audit Models for Ledgerbook

Every state-changing action in the ledger produces an audit event.
This provides:
1. Traceability of who recorded, edited or deleted what
2. Debugging information when a save or import goes wrong
3. A history that survives even when local storage does not

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger records
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTION_REJECTED = "transaction_rejected"
    RECORD_SKIPPED = "record_skipped"

    # Reference data
    PERSON_ADDED = "person_added"
    PERSON_DELETED = "person_deleted"
    CATEGORY_ADDED = "category_added"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"

    # Persistence
    STATE_LOADED = "state_loaded"
    STATE_SAVED = "state_saved"
    SAVE_FAILED = "save_failed"
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_IMPORTED = "backup_imported"
    IMPORT_FAILED = "import_failed"
    REPORT_EXPORTED = "report_exported"

    # Access
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'person', 'category')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Identity of the entity - a UUID, a person name or a category key"
    )
    actor: Optional[str] = Field(
        default=None,
        description="Username that triggered the event"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor": self.actor,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(transaction, actor="Amir")
    """

    @staticmethod
    def transaction_added(
        transaction_id: UUID,
        transaction_type: str,
        summary: dict[str, Any],
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            actor=actor,
            description=f"Transaction recorded: {transaction_type}",
            details=summary,
        )

    @staticmethod
    def transaction_updated(
        transaction_id: UUID,
        transaction_type: str,
        summary: dict[str, Any],
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            actor=actor,
            description=f"Transaction edited: {transaction_type}",
            details=summary,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: UUID,
        transaction_type: str,
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            actor=actor,
            description=f"Transaction deleted: {transaction_type}",
        )

    @staticmethod
    def transaction_rejected(
        issues: list[dict],
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            actor=actor,
            description=f"Transaction rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def record_skipped(
        reason: str,
        record: Any,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_SKIPPED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            description="Malformed stored record skipped",
            details={"record": repr(record)[:200]},
            error_message=reason,
        )

    @staticmethod
    def reference_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        details: Optional[dict[str, Any]] = None,
        actor: Optional[str] = None,
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            actor=actor,
            description=f"{entity_type.capitalize()} {verb}: {entity_id}",
            details=details or {},
        )

    @staticmethod
    def state_saved(key: str, item_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_SAVED,
            severity=AuditSeverity.DEBUG,
            entity_type="collection",
            entity_id=key,
            description=f"Collection saved: {key}",
            details={"items": item_count},
        )

    @staticmethod
    def save_failed(key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="collection",
            entity_id=key,
            description=f"Failed to save collection: {key}",
            error_message=error_message,
        )

    @staticmethod
    def state_loaded(counts: dict[str, int], skipped: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_LOADED,
            severity=AuditSeverity.WARNING if skipped else AuditSeverity.INFO,
            description=f"State loaded ({skipped} records skipped)",
            details={"counts": counts, "skipped": skipped},
        )

    @staticmethod
    def backup_exported(counts: dict[str, int], actor: Optional[str] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            actor=actor,
            description="Backup exported",
            details={"counts": counts},
        )

    @staticmethod
    def backup_imported(collections: list[str], actor: Optional[str] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_IMPORTED,
            actor=actor,
            description=f"Backup imported: {', '.join(collections) or 'nothing'}",
            details={"collections": collections},
        )

    @staticmethod
    def import_failed(error_message: str, actor: Optional[str] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_FAILED,
            severity=AuditSeverity.WARNING,
            actor=actor,
            description="Backup import rejected",
            error_message=error_message,
        )

    @staticmethod
    def report_exported(fmt: str, row_count: int, actor: Optional[str] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_EXPORTED,
            actor=actor,
            description=f"Report exported as {fmt}",
            details={"format": fmt, "rows": row_count},
        )

    @staticmethod
    def login(username: str, succeeded: bool) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.LOGIN_SUCCEEDED
                if succeeded
                else AuditEventType.LOGIN_FAILED
            ),
            severity=AuditSeverity.INFO if succeeded else AuditSeverity.WARNING,
            entity_type="user",
            entity_id=username,
            actor=username,
            description=f"Login {'succeeded' if succeeded else 'failed'} for {username}",
        )
