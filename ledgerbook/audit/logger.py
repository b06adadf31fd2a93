"""
Audit Logger

DESIGN DECISION: Every state-changing action in the ledger is logged.
This provides:
1. Complete traceability of edits and deletions
2. Debugging capability when a save or an import fails
3. A recent-activity view the dashboard can show

The audit logger:
- Writes structured events through structlog
- Is synchronous; events are logged as the change happens
- Keeps the most recent events in memory for display
"""

import logging
import sys
from collections import deque
from typing import Any, Optional
from uuid import UUID

import structlog

from ledgerbook.models.audit import AuditEvent, AuditEventBuilder, AuditEventType, AuditSeverity


_LEVELS = {
    AuditSeverity.DEBUG: logging.DEBUG,
    AuditSeverity.INFO: logging.INFO,
    AuditSeverity.WARNING: logging.WARNING,
    AuditSeverity.ERROR: logging.ERROR,
    AuditSeverity.CRITICAL: logging.CRITICAL,
}


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configure structlog on top of the standard library logger.

    Called once at startup with values from AppSettings.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer(ensure_ascii=False)
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Events go to the structured log and to a bounded in-memory history.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("ledgerbook.audit")
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    @property
    def recent_events(self) -> list[AuditEvent]:
        """Most recent events, newest first."""
        return list(reversed(self._history))

    def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        self._history.append(event)
        self._logger.log(_LEVELS[event.severity], "audit_event", **event.to_log_dict())

    def log_transaction_added(
        self,
        transaction_id: UUID,
        transaction_type: str,
        summary: dict[str, Any],
        actor: Optional[str] = None,
    ) -> None:
        self.log(AuditEventBuilder.transaction_added(
            transaction_id, transaction_type, summary, actor=actor
        ))

    def log_transaction_updated(
        self,
        transaction_id: UUID,
        transaction_type: str,
        summary: dict[str, Any],
        actor: Optional[str] = None,
    ) -> None:
        self.log(AuditEventBuilder.transaction_updated(
            transaction_id, transaction_type, summary, actor=actor
        ))

    def log_transaction_deleted(
        self,
        transaction_id: UUID,
        transaction_type: str,
        actor: Optional[str] = None,
    ) -> None:
        self.log(AuditEventBuilder.transaction_deleted(
            transaction_id, transaction_type, actor=actor
        ))

    def log_transaction_rejected(
        self,
        issues: list[dict],
        actor: Optional[str] = None,
    ) -> None:
        self.log(AuditEventBuilder.transaction_rejected(issues, actor=actor))

    def log_record_skipped(self, reason: str, record: Any) -> None:
        """Log a stored record that could not be read and was left out."""
        self.log(AuditEventBuilder.record_skipped(reason, record))

    def log_reference_changed(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        details: Optional[dict[str, Any]] = None,
        actor: Optional[str] = None,
    ) -> None:
        """Log a person or category change."""
        self.log(AuditEventBuilder.reference_changed(
            event_type, entity_type, entity_id, details=details, actor=actor
        ))

    def log_state_saved(self, key: str, item_count: int) -> None:
        self.log(AuditEventBuilder.state_saved(key, item_count))

    def log_save_failed(self, key: str, error_message: str) -> None:
        self.log(AuditEventBuilder.save_failed(key, error_message))

    def log_state_loaded(self, counts: dict[str, int], skipped: int) -> None:
        self.log(AuditEventBuilder.state_loaded(counts, skipped))

    def log_backup_exported(self, counts: dict[str, int], actor: Optional[str] = None) -> None:
        self.log(AuditEventBuilder.backup_exported(counts, actor=actor))

    def log_backup_imported(self, collections: list[str], actor: Optional[str] = None) -> None:
        self.log(AuditEventBuilder.backup_imported(collections, actor=actor))

    def log_import_failed(self, error_message: str, actor: Optional[str] = None) -> None:
        self.log(AuditEventBuilder.import_failed(error_message, actor=actor))

    def log_report_exported(self, fmt: str, row_count: int, actor: Optional[str] = None) -> None:
        self.log(AuditEventBuilder.report_exported(fmt, row_count, actor=actor))

    def log_login(self, username: str, succeeded: bool) -> None:
        self.log(AuditEventBuilder.login(username, succeeded))
