"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger in memory for tests and the default build
2. Swap in a durable backend without touching cascade logic
3. Make atomicity an explicit part of the contract

The interface is intentionally tiny: load everything, then apply
whole batches. A cascade is ONE batch, so a durable backend that
honours apply_batch can never leave dangling references behind.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from pennypath.models.audit import AuditEvent
from pennypath.models.state import LedgerBatch, LedgerState


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    def load_state(self) -> LedgerState:
        """
        Load the full ledger.

        Returns:
            The stored state, with its current version

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def apply_batch(self, batch: LedgerBatch, expected_version: int) -> int:
        """
        Apply a batch atomically.

        Args:
            batch: The change set to apply
            expected_version: Version the caller computed the batch against

        Returns:
            The new version

        Raises:
            ConflictError: If the stored version is not expected_version.
                          Nothing is applied; the caller must reload and
                          rebuild the batch from scratch.
            StorageError: If the write fails. Nothing is applied.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one account deletion).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific record.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""

    def __init__(self, message: str, entity_type: Optional[str] = None,
                 entity_id: Optional[str] = None):
        super().__init__(message)
        self.entity_type = entity_type
        self.entity_id = entity_id


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConflictError(StorageError):
    """
    Concurrent modification detected.

    The whole operation must be retried from scratch, not resumed.
    """

    def __init__(self, message: str, expected_version: int, actual_version: int):
        super().__init__(message)
        self.expected_version = expected_version
        self.actual_version = actual_version

