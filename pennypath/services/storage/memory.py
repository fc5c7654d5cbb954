"""
In-Memory Storage Implementation

The default backend and the one the test suite runs against.
Batches are applied to a private copy so a failed apply never leaks.
"""

from typing import Optional
from uuid import UUID

from pennypath.models.audit import AuditEvent
from pennypath.models.state import LedgerBatch, LedgerState
from pennypath.services.storage.interface import (
    AuditStorageInterface,
    ConflictError,
    LedgerStorageInterface,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Ledger storage living in process memory."""

    def __init__(self, initial: Optional[LedgerState] = None):
        self._state = initial.model_copy(deep=True) if initial else LedgerState()

    @property
    def version(self) -> int:
        return self._state.version

    def load_state(self) -> LedgerState:
        return self._state.model_copy(deep=True)

    def apply_batch(self, batch: LedgerBatch, expected_version: int) -> int:
        if expected_version != self._state.version:
            raise ConflictError(
                f"Ledger changed since version {expected_version} "
                f"(now {self._state.version})",
                expected_version=expected_version,
                actual_version=self._state.version,
            )

        updated = self._state.copy_for_update()
        updated.apply_batch(batch.model_copy(deep=True))
        updated.version = self._state.version + 1
        self._state = updated
        return updated.version


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
