"""
Tests for ledger storage backends and conflict handling.
"""

from decimal import Decimal

import pytest

from pennypath.models import AuditEventType, LedgerBatch, LedgerState
from pennypath.services.storage import (
    ConflictError,
    DuplicateError,
    InMemoryLedgerStorage,
    JsonFileLedgerStorage,
    NotFoundError,
    StorageError,
)
from pennypath.services import storage as storage_package

from tests.conftest import make_account, make_transaction


class ConcurrentWriterStorage(InMemoryLedgerStorage):
    """
    Simulates another writer committing first.

    Before each of the first `interruptions` commits, a foreign batch
    lands, so the caller's expected version is stale.
    """

    def __init__(self, initial: LedgerState, foreign_batches: list[LedgerBatch]):
        super().__init__(initial)
        self._foreign_batches = list(foreign_batches)
        self.attempts = 0

    def apply_batch(self, batch: LedgerBatch, expected_version: int) -> int:
        self.attempts += 1
        if self._foreign_batches:
            super().apply_batch(self._foreign_batches.pop(0), self.version)
        return super().apply_batch(batch, expected_version)


class BrokenStorage(InMemoryLedgerStorage):
    """Fails every commit with an I/O style error."""

    def apply_batch(self, batch: LedgerBatch, expected_version: int) -> int:
        raise StorageError("disk full")


class TestStorageErrors:
    """Tests for the storage exception hierarchy."""

    def test_every_error_is_a_storage_error(self):
        assert set(StorageError.__subclasses__()) == {
            NotFoundError,
            DuplicateError,
            ConflictError,
        }

    def test_builtin_connection_error_not_shadowed(self):
        assert "ConnectionError" not in storage_package.__all__


class TestInMemoryLedgerStorage:
    """Tests for the in-memory backend."""

    def test_apply_bumps_version(self):
        storage = InMemoryLedgerStorage()
        version = storage.apply_batch(LedgerBatch(accounts=[make_account("a1", "A")]), 0)

        assert version == 1
        assert [a.id for a in storage.load_state().accounts] == ["a1"]

    def test_stale_version_conflicts(self):
        storage = InMemoryLedgerStorage()
        storage.apply_batch(LedgerBatch(accounts=[make_account("a1", "A")]), 0)

        with pytest.raises(ConflictError) as exc_info:
            storage.apply_batch(LedgerBatch(accounts=[make_account("a2", "B")]), 0)

        assert exc_info.value.expected_version == 0
        assert exc_info.value.actual_version == 1
        assert [a.id for a in storage.load_state().accounts] == ["a1"]

    def test_loaded_state_is_a_copy(self, golf_state):
        storage = InMemoryLedgerStorage(golf_state)
        loaded = storage.load_state()
        loaded.accounts.clear()

        assert len(storage.load_state().accounts) == 2


class TestJsonFileLedgerStorage:
    """Tests for the JSON file backend."""

    def test_missing_file_is_empty_ledger(self, tmp_path):
        storage = JsonFileLedgerStorage(tmp_path / "ledger.json")
        state = storage.load_state()

        assert state.version == 0
        assert state.accounts == []

    def test_batches_survive_reload(self, tmp_path, golf_state):
        path = tmp_path / "nested" / "ledger.json"
        storage = JsonFileLedgerStorage(path)
        seed = LedgerBatch(
            accounts=golf_state.accounts,
            transactions=golf_state.transactions,
            transfers=golf_state.transfers,
        )
        storage.apply_batch(seed, 0)
        storage.apply_batch(LedgerBatch().delete("transactions", "t3"), 1)

        reloaded = JsonFileLedgerStorage(path).load_state()

        assert reloaded.version == 2
        assert [t.id for t in reloaded.transactions] == ["t1", "t2"]
        assert reloaded.transactions[0].amount == Decimal("-100.00")
        assert reloaded.transfers == golf_state.transfers
        assert reloaded.accounts[1].balance == Decimal("47.50")

    def test_stale_version_conflicts(self, tmp_path):
        storage = JsonFileLedgerStorage(tmp_path / "ledger.json")
        storage.apply_batch(LedgerBatch(accounts=[make_account("a1", "A")]), 0)

        with pytest.raises(ConflictError):
            storage.apply_batch(LedgerBatch().delete("accounts", "a1"), 0)
        assert len(storage.load_state().accounts) == 1

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageError, match="corrupt"):
            JsonFileLedgerStorage(path).load_state()

    def test_no_temporary_files_left(self, tmp_path):
        storage = JsonFileLedgerStorage(tmp_path / "ledger.json")
        storage.apply_batch(LedgerBatch(accounts=[make_account("a1", "A")]), 0)

        assert [p.name for p in tmp_path.iterdir()] == ["ledger.json"]


class TestConflictRetry:
    """Tests for the store's retry-from-scratch behaviour."""

    def test_retry_rebuilds_against_fresh_state(self, make_store, golf_state, audit_storage):
        """A row added concurrently in the doomed account is also removed."""
        foreign = LedgerBatch(transactions=[
            make_transaction("late", "acc-current", "-3.00", "Coffee", category_id="food")
        ])
        storage = ConcurrentWriterStorage(golf_state, [foreign])
        store = make_store(storage=storage)

        result = store.delete_account(store.get_account("acc-current"))

        assert storage.attempts == 2
        assert result.transaction_ids == ["late"]
        assert [t.id for t in store.transactions] == ["t3"]
        assert store.version == storage.version == 2
        assert AuditEventType.STORAGE_CONFLICT_RETRIED in [
            e.event_type for e in audit_storage.get_recent_events()
        ]

    def test_exhausted_retries_leave_state_untouched(self, make_store, golf_state, audit_storage):
        foreign = [LedgerBatch(), LedgerBatch(), LedgerBatch()]
        storage = ConcurrentWriterStorage(golf_state, foreign)
        store = make_store(storage=storage)
        current = store.get_account("acc-current")

        with pytest.raises(ConflictError):
            store.delete_account(current)

        assert storage.attempts == 3
        assert store.get_account("acc-current") is not None
        assert len(store.transactions) == 3
        assert len(storage.load_state().transactions) == 3

        event_types = [e.event_type for e in audit_storage.get_recent_events()]
        assert event_types.count(AuditEventType.STORAGE_CONFLICT_RETRIED) == 2
        assert AuditEventType.STORAGE_ERROR in event_types

    def test_other_errors_are_not_retried(self, make_store, golf_state, audit_storage):
        store = make_store(storage=BrokenStorage(golf_state))

        with pytest.raises(StorageError, match="disk full"):
            store.delete_account(store.get_account("acc-current"))

        assert len(store.accounts) == 2
        assert len(store.transactions) == 3
        event_types = [e.event_type for e in audit_storage.get_recent_events()]
        assert AuditEventType.STORAGE_CONFLICT_RETRIED not in event_types
        assert AuditEventType.STORAGE_ERROR in event_types
