"""
Ledger Store for PennyPath

The single source of truth for one user's ledger. It owns every
collection (accounts, transactions, categories, budgets, BNPL plans,
flexible arrangements, transfers, events) and is the only way to
change them.

DESIGN DECISION: The store is an explicit object handed to whoever
needs it, not a global. Every mutation:
1. Builds a LedgerBatch against a scratch copy of the current state
2. Commits the batch to storage (atomically, when storage is durable)
3. Swaps in the new state only after the commit succeeded

So a failed commit never leaves the in-memory ledger half-changed, and
an account deletion is one batch: steps 1-7 of the cascade land
together or not at all.

Concurrent writers are detected, not prevented: storage compares
versions and raises ConflictError. The store then reloads and rebuilds
the batch from scratch, a bounded number of times.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional, TypeVar
from uuid import UUID

import structlog
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pennypath.audit import AuditLogger, create_correlation_id
from pennypath.cascade import CascadeExecutor, CascadePlanner
from pennypath.config import AppSettings, Settings, StorageSettings, get_settings
from pennypath.matching import TransferMatchResolver
from pennypath.models.audit import AuditEventType
from pennypath.models.impact import AccountDeletionImpact, CascadeResult
from pennypath.models.ledger import (
    Account,
    BNPLPlan,
    Budget,
    Category,
    Event,
    FlexibleArrangement,
    Transaction,
    Transfer,
    User,
)
from pennypath.models.state import LedgerBatch, LedgerState
from pennypath.services.storage import (
    ConflictError,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    JsonFileLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)

T = TypeVar("T")

# A builder inspects a scratch copy of the state and returns the batch
# to commit plus the value the caller gets back.
BatchBuilder = Callable[[LedgerState], tuple[LedgerBatch, T]]


def _exists(records: list, record_id: str) -> bool:
    return any(r.id == record_id for r in records)


def _require_accounts(state: LedgerState, account_ids) -> None:
    """Raise NotFoundError for the first id with no account in state."""
    for account_id in account_ids:
        if not _exists(state.accounts, account_id):
            raise NotFoundError(
                f"Account not found: {account_id}",
                entity_type="account",
                entity_id=account_id,
            )


class LedgerStore:
    """
    Central state container for the ledger.

    Without storage the ledger lives only in memory; with storage every
    mutation is persisted before it becomes visible.
    """

    def __init__(
        self,
        storage: Optional[LedgerStorageInterface] = None,
        resolver: Optional[TransferMatchResolver] = None,
        audit_logger: Optional[AuditLogger] = None,
        app_settings: Optional[AppSettings] = None,
        storage_settings: Optional[StorageSettings] = None,
        initial_state: Optional[LedgerState] = None,
    ):
        """
        Initialize the store.

        Args:
            storage: Backend to load from and commit to. If None,
                    the ledger is memory-only.
            resolver: Transfer-leg matcher. Defaults to the configured one.
            audit_logger: Audit trail. Defaults to local-only logging.
            initial_state: Seed state for a memory-only store
                          (ignored when storage is given).
        """
        if app_settings is None or storage_settings is None or resolver is None:
            settings = get_settings()
            app_settings = app_settings or settings.app
            storage_settings = storage_settings or settings.storage
            resolver = resolver or TransferMatchResolver.from_settings(settings.matching)

        self._storage = storage
        self._app_settings = app_settings
        self._storage_settings = storage_settings
        self._resolver = resolver
        self._planner = CascadePlanner(resolver)
        self._executor = CascadeExecutor(resolver)
        self._audit_logger = audit_logger or AuditLogger()

        if storage is not None:
            self._state = storage.load_state()
        else:
            self._state = initial_state.copy_for_update() if initial_state else LedgerState()

    # =========================================================================
    # READ ACCESS
    # =========================================================================

    @property
    def version(self) -> int:
        return self._state.version

    @property
    def resolver(self) -> TransferMatchResolver:
        return self._resolver

    @property
    def user(self) -> Optional[User]:
        return self._state.user

    @property
    def accounts(self) -> list[Account]:
        return list(self._state.accounts)

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._state.transactions)

    @property
    def categories(self) -> list[Category]:
        return list(self._state.categories)

    @property
    def budgets(self) -> list[Budget]:
        return list(self._state.budgets)

    @property
    def bnpl_plans(self) -> list[BNPLPlan]:
        return list(self._state.bnpl_plans)

    @property
    def flexible_arrangements(self) -> list[FlexibleArrangement]:
        return list(self._state.flexible_arrangements)

    @property
    def transfers(self) -> list[Transfer]:
        return list(self._state.transfers)

    @property
    def events(self) -> list[Event]:
        return list(self._state.events)

    def get_account(self, account_id: str) -> Optional[Account]:
        for account in self._state.accounts:
            if account.id == account_id:
                return account
        return None

    def transactions_for_account(self, account_id: str) -> list[Transaction]:
        return [t for t in self._state.transactions if t.account_id == account_id]

    def refresh(self) -> None:
        """Reload the ledger from storage, dropping the in-memory copy."""
        if self._storage is not None:
            self._state = self._storage.load_state()

    # =========================================================================
    # DERIVED SUMMARIES
    # =========================================================================

    @property
    def net_worth(self) -> Decimal:
        """Sum of all account balances (debts are negative)."""
        return sum((a.balance for a in self._state.accounts), Decimal("0.00"))

    def upcoming_transactions(
        self,
        today: Optional[datetime] = None,
        days: int = 30,
    ) -> list[Transaction]:
        """Scheduled transactions due within the next `days` days, soonest first."""
        horizon = (today or datetime.now()) + timedelta(days=days)
        upcoming = [
            t for t in self._state.transactions
            if t.is_scheduled and t.date <= horizon
        ]
        return sorted(upcoming, key=lambda t: t.date)

    def current_month_spending(self, today: Optional[datetime] = None) -> Decimal:
        """Total settled outflows since the start of today's month."""
        today = today or datetime.now()
        start_of_month = today.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return sum(
            (
                abs(t.amount) for t in self._state.transactions
                if not t.is_scheduled and t.amount < 0 and t.date >= start_of_month
            ),
            Decimal("0.00"),
        )

    # =========================================================================
    # COMMIT
    # =========================================================================

    def _commit(
        self,
        build: BatchBuilder,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> T:
        """
        Build a batch, commit it, then publish the new state.

        ConflictError is retried from scratch (reload, rebuild) up to
        the configured number of attempts. Anything else propagates
        with the in-memory state untouched.
        """
        retrying = Retrying(
            retry=retry_if_exception_type(ConflictError),
            stop=stop_after_attempt(self._storage_settings.conflict_retry_attempts),
            wait=wait_exponential(
                min=self._storage_settings.retry_wait_min_seconds,
                max=self._storage_settings.retry_wait_max_seconds,
            ),
            reraise=True,
        )

        try:
            for attempt in retrying:
                with attempt:
                    number = attempt.retry_state.attempt_number
                    if number > 1:
                        self._audit_logger.log_storage_conflict(
                            operation, number, correlation_id
                        )
                        self.refresh()
                    value = self._commit_once(build)
        except (NotFoundError, DuplicateError):
            raise
        except StorageError as e:
            self._audit_logger.log_storage_error(operation, str(e), correlation_id)
            raise

        return value

    def _commit_once(self, build: BatchBuilder) -> T:
        batch, value = build(self._state.copy_for_update())
        if batch.is_empty:
            return value

        if self._storage is not None:
            new_version = self._storage.apply_batch(batch, self._state.version)
        else:
            new_version = self._state.version + 1

        new_state = self._state.copy_for_update()
        new_state.apply_batch(batch)
        new_state.version = new_version
        self._state = new_state
        return value

    def _missing(self, entity_type: str, entity_id: str) -> None:
        """Apply the missing-record policy to an update of an unknown id."""
        if self._app_settings.missing_account_policy == "raise":
            raise NotFoundError(
                f"{entity_type.capitalize()} not found: {entity_id}",
                entity_type=entity_type,
                entity_id=entity_id,
            )
        if entity_type == "account":
            self._audit_logger.log_account_update_ignored(entity_id)

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    def add_account(self, account: Account) -> Account:
        def build(state: LedgerState) -> tuple[LedgerBatch, Account]:
            if _exists(state.accounts, account.id):
                raise DuplicateError(f"Account already exists: {account.id}")
            return LedgerBatch(accounts=[account]), account

        self._commit(build, "add_account")
        self._audit_logger.log_account_added(account.id, account.name)
        return account

    def update_account(self, account: Account) -> bool:
        """
        Replace the stored account with the same id.

        An unknown id is ignored (logged) by default, or raises
        NotFoundError when missing_account_policy is "raise".

        Returns:
            True if an account was replaced
        """
        def build(state: LedgerState) -> tuple[LedgerBatch, bool]:
            if not _exists(state.accounts, account.id):
                return LedgerBatch(), False
            return LedgerBatch(accounts=[account]), True

        updated = self._commit(build, "update_account")
        if updated:
            self._audit_logger.log_account_updated(account.id, account.name)
        else:
            self._missing("account", account.id)
        return updated

    def get_deletion_impact(self, account: Account) -> AccountDeletionImpact:
        """
        Report what delete_account would remove.

        No side effects: nothing is committed or written to the audit trail.
        """
        impact = self._planner.plan(self._state, account)
        logger.debug(
            "deletion_impact_computed",
            account_id=account.id,
            total_impacted_items=impact.total_impacted_items,
            affected_account_ids=[a.id for a in impact.affected_accounts],
        )
        return impact

    def delete_account(self, account: Account) -> CascadeResult:
        """
        Delete an account and every record that depends on it.

        Removes the legs of its transfers in BOTH accounts, the transfers,
        its remaining transactions, BNPL plans and flexible arrangements,
        then the account. All of it is committed as one batch.

        Calling it again for a deleted account is a no-op.
        """
        correlation_id = create_correlation_id()

        def build(state: LedgerState) -> tuple[LedgerBatch, CascadeResult]:
            result = self._executor.execute(state, account.id)
            return result.to_batch(), result

        result = self._commit(build, "delete_account", correlation_id)

        for legs in result.incomplete_pairs:
            self._audit_logger.log_transfer_legs_unmatched(
                transfer_id=legs.transfer_id,
                source_leg_id=legs.source_leg_id,
                destination_leg_id=legs.destination_leg_id,
                correlation_id=correlation_id,
            )
        if result.total_removed:
            self._audit_logger.log_account_deleted(result, correlation_id)
        return result

    # =========================================================================
    # TRANSACTIONS AND TRANSFERS
    # =========================================================================

    def _add_record(
        self,
        collection: str,
        entity_type: str,
        record,
        account_ids: tuple[str, ...] = (),
    ):
        def build(state: LedgerState):
            if _exists(getattr(state, collection), record.id):
                raise DuplicateError(f"{entity_type.capitalize()} already exists: {record.id}")
            _require_accounts(state, account_ids)
            return LedgerBatch(**{collection: [record]}), record

        self._commit(build, f"add_{entity_type}")
        self._audit_logger.log_record_changed(
            AuditEventType.RECORD_ADDED, entity_type, record.id
        )
        return record

    def add_transaction(self, transaction: Transaction) -> Transaction:
        return self._add_record(
            "transactions", "transaction", transaction, (transaction.account_id,)
        )

    def update_transaction(self, transaction: Transaction) -> bool:
        """
        Replace the stored transaction with the same id.

        The new account_id must exist (NotFoundError otherwise). An
        unknown transaction id follows missing_account_policy.
        """
        def build(state: LedgerState) -> tuple[LedgerBatch, bool]:
            if not _exists(state.transactions, transaction.id):
                return LedgerBatch(), False
            _require_accounts(state, (transaction.account_id,))
            return LedgerBatch(transactions=[transaction]), True

        updated = self._commit(build, "update_transaction")
        if updated:
            self._audit_logger.log_record_changed(
                AuditEventType.RECORD_UPDATED, "transaction", transaction.id
            )
        else:
            self._missing("transaction", transaction.id)
        return updated

    def delete_transaction(self, transaction_id: str) -> bool:
        """Delete a single transaction. Returns False if it did not exist."""
        def build(state: LedgerState) -> tuple[LedgerBatch, bool]:
            if not _exists(state.transactions, transaction_id):
                return LedgerBatch(), False
            return LedgerBatch().delete("transactions", transaction_id), True

        deleted = self._commit(build, "delete_transaction")
        if deleted:
            self._audit_logger.log_record_changed(
                AuditEventType.RECORD_DELETED, "transaction", transaction_id
            )
        return deleted

    def add_transfer(self, transfer: Transfer, record_legs: bool = False) -> Transfer:
        """
        Record a transfer between two existing accounts.

        With record_legs=True the two ledger rows are generated (linked
        through transfer_id) and committed in the same batch.
        """
        if not record_legs:
            return self._add_record(
                "transfers",
                "transfer",
                transfer,
                (transfer.source_account_id, transfer.destination_account_id),
            )

        legs = list(transfer.generate_transactions())

        def build(state: LedgerState) -> tuple[LedgerBatch, Transfer]:
            if _exists(state.transfers, transfer.id):
                raise DuplicateError(f"Transfer already exists: {transfer.id}")
            for leg in legs:
                if _exists(state.transactions, leg.id):
                    raise DuplicateError(f"Transaction already exists: {leg.id}")
            _require_accounts(state, (leg.account_id for leg in legs))
            return LedgerBatch(transfers=[transfer], transactions=legs), transfer

        self._commit(build, "add_transfer")
        self._audit_logger.log_record_changed(
            AuditEventType.RECORD_ADDED, "transfer", transfer.id
        )
        return transfer

    # =========================================================================
    # PLANS, ARRANGEMENTS, REFERENCE DATA
    # =========================================================================

    def add_bnpl_plan(self, plan: BNPLPlan) -> BNPLPlan:
        return self._add_record("bnpl_plans", "bnpl_plan", plan, (plan.account_id,))

    def add_flexible_arrangement(
        self, arrangement: FlexibleArrangement
    ) -> FlexibleArrangement:
        return self._add_record(
            "flexible_arrangements",
            "flexible_arrangement",
            arrangement,
            (arrangement.account_id,),
        )

    def add_category(self, category: Category) -> Category:
        return self._add_record("categories", "category", category)

    def add_budget(self, budget: Budget) -> Budget:
        return self._add_record("budgets", "budget", budget)

    def add_event(self, event: Event) -> Event:
        return self._add_record("events", "event", event)

    def set_user(self, user: User) -> User:
        self._commit(lambda state: (LedgerBatch(user=user), user), "set_user")
        return user


def create_ledger_store(
    settings: Optional[Settings] = None,
    with_audit_storage: bool = False,
) -> LedgerStore:
    """
    Factory function to create a fully wired ledger store.

    Args:
        settings: Settings to build from. Defaults to get_settings().
        with_audit_storage: Keep audit events in an in-memory audit log
                           (in addition to local logging).

    Returns:
        A LedgerStore backed by the configured storage backend
    """
    settings = settings or get_settings()
    storage_settings = settings.storage

    if storage_settings.backend == "json":
        storage = JsonFileLedgerStorage(storage_settings.json_path)
    else:
        storage = InMemoryLedgerStorage()

    audit_logger = AuditLogger(InMemoryAuditStorage() if with_audit_storage else None)

    return LedgerStore(
        storage=storage,
        resolver=TransferMatchResolver.from_settings(settings.matching),
        audit_logger=audit_logger,
        app_settings=settings.app,
        storage_settings=storage_settings,
    )
