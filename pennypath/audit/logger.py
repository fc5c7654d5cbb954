"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged.
This provides:
1. Complete traceability of what a cascade removed, and from which accounts
2. Visibility of heuristic transfer matches that found fewer than two legs
3. A record of storage conflicts and failures

The audit logger:
- Is synchronous, like the ledger operations it records
- Gracefully handles failures (a broken audit store never breaks a write)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from pennypath.config import AppSettings, get_settings
from pennypath.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from pennypath.models.impact import CascadeResult
from pennypath.services.storage import AuditStorageInterface


def configure_logging(settings: Optional[AppSettings] = None) -> None:
    """Configure structlog (and the stdlib root logger it writes through)."""
    settings = settings or get_settings().app

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, settings.log_level),
    )

    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.log_format == "console"
        else structlog.processors.JSONRenderer()
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


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("pennypath.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()
        severity = event.severity.value

        if severity in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif severity == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif severity == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_account_added(self, account_id: str, name: str) -> None:
        self.log(AuditEventBuilder.account_added(account_id, name))

    def log_account_updated(self, account_id: str, name: str) -> None:
        self.log(AuditEventBuilder.account_updated(account_id, name))

    def log_account_update_ignored(self, account_id: str) -> None:
        self.log(AuditEventBuilder.account_update_ignored(account_id))

    def log_account_deleted(
        self,
        result: CascadeResult,
        correlation_id: UUID,
    ) -> None:
        """Log a committed cascade."""
        event = AuditEventBuilder.account_deleted(
            account_id=result.account_id,
            removed={
                "linked_transaction_ids": result.linked_transaction_ids,
                "transfer_ids": result.transfer_ids,
                "transaction_ids": result.transaction_ids,
                "bnpl_plan_ids": result.bnpl_plan_ids,
                "flexible_arrangement_ids": result.flexible_arrangement_ids,
            },
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_transfer_legs_unmatched(
        self,
        transfer_id: str,
        source_leg_id: Optional[str],
        destination_leg_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.transfer_legs_unmatched(
            transfer_id=transfer_id,
            source_leg_id=source_leg_id,
            destination_leg_id=destination_leg_id,
            correlation_id=correlation_id,
        ))

    def log_record_changed(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
    ) -> None:
        self.log(AuditEventBuilder.record_changed(event_type, entity_type, entity_id))

    def log_storage_conflict(
        self,
        operation: str,
        attempt: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.storage_conflict_retried(
            operation=operation,
            attempt=attempt,
            correlation_id=correlation_id,
        ))

    def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., deleting an account).
    """
    return uuid4()
