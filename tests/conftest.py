"""
Shared fixtures.

The golf-club ledger: a current account that topped up a golf club bar
card. Each side of the transfer was written as its own transaction.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from pennypath.audit import AuditLogger
from pennypath.config import AppSettings, StorageSettings
from pennypath.matching import TransferMatchResolver
from pennypath.models import (
    Account,
    AccountType,
    LedgerState,
    Transaction,
    Transfer,
)
from pennypath.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage
from pennypath.store import LedgerStore


USER_ID = "user-1"
TRANSFER_DATE = datetime(2024, 3, 14, 9, 30)


def make_account(account_id: str, name: str, balance: str = "0.00", **kwargs) -> Account:
    return Account(
        id=account_id,
        user_id=USER_ID,
        name=name,
        type=kwargs.pop("type", AccountType.CURRENT),
        balance=Decimal(balance),
        **kwargs,
    )


def make_transaction(
    transaction_id: str,
    account_id: str,
    amount: str,
    description: str = "",
    date: datetime = TRANSFER_DATE,
    **kwargs,
) -> Transaction:
    return Transaction(
        id=transaction_id,
        user_id=USER_ID,
        account_id=account_id,
        amount=Decimal(amount),
        description=description,
        date=date,
        **kwargs,
    )


def make_transfer(
    transfer_id: str,
    source: str,
    destination: str,
    amount: str,
    date: datetime = TRANSFER_DATE,
    **kwargs,
) -> Transfer:
    return Transfer(
        id=transfer_id,
        user_id=USER_ID,
        source_account_id=source,
        destination_account_id=destination,
        amount=Decimal(amount),
        date=date,
        **kwargs,
    )


@pytest.fixture
def golf_state() -> LedgerState:
    """acc-current topped up acc-golf by 100.00 on TRANSFER_DATE."""
    return LedgerState(
        accounts=[
            make_account("acc-current", "Current Account", "100.00"),
            make_account("acc-golf", "Golf Club Bar Card", "47.50", type=AccountType.PREPAID),
        ],
        transfers=[make_transfer("tr1", "acc-current", "acc-golf", "100.00")],
        transactions=[
            make_transaction("t1", "acc-current", "-100.00", "Transfer to Golf Club Bar Card"),
            make_transaction("t2", "acc-golf", "100.00", "Top up from Current Account"),
            make_transaction("t3", "acc-golf", "-15.50", "Drinks", category_id="cat-leisure"),
        ],
    )


@pytest.fixture
def resolver() -> TransferMatchResolver:
    return TransferMatchResolver()


@pytest.fixture
def storage_settings() -> StorageSettings:
    """Retry settings with no waiting between attempts."""
    return StorageSettings(
        conflict_retry_attempts=3,
        retry_wait_min_seconds=0.0,
        retry_wait_max_seconds=0.0,
    )


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def make_store(resolver, storage_settings, audit_storage):
    """Build a LedgerStore over the given state or storage."""

    def _make(state=None, storage=None, **app_overrides) -> LedgerStore:
        if storage is None:
            storage = InMemoryLedgerStorage(state)
        return LedgerStore(
            storage=storage,
            resolver=resolver,
            audit_logger=AuditLogger(audit_storage),
            app_settings=AppSettings(**app_overrides),
            storage_settings=storage_settings,
        )

    return _make


@pytest.fixture
def golf_store(make_store, golf_state) -> LedgerStore:
    return make_store(golf_state)
