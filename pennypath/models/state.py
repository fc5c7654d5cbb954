"""
Ledger State and Change Batches

LedgerState is the full in-memory picture of one user's ledger.
LedgerBatch is one atomic unit of change against it.

DESIGN DECISION: Every mutation is expressed as a batch.
The same batch is handed to durable storage (which must apply it
all-or-nothing) and then applied to the in-memory state. A crash or a
conflict between the two leaves the in-memory state untouched.
"""

from typing import Optional

from pydantic import BaseModel, Field

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


# Collections that hold id-keyed records, in the order batches touch them
COLLECTIONS = (
    "accounts",
    "transactions",
    "categories",
    "budgets",
    "bnpl_plans",
    "flexible_arrangements",
    "transfers",
    "events",
)


class LedgerBatch(BaseModel):
    """
    One atomic change set.

    Deletes are applied before upserts. An upsert replaces the record
    with the same id, or appends it when the id is new.
    """

    # Upserts
    accounts: list[Account] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)
    bnpl_plans: list[BNPLPlan] = Field(default_factory=list)
    flexible_arrangements: list[FlexibleArrangement] = Field(default_factory=list)
    transfers: list[Transfer] = Field(default_factory=list)
    events: list[Event] = Field(default_factory=list)
    user: Optional[User] = None

    # Deletes, by collection name
    deletes: dict[str, list[str]] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        if self.user is not None:
            return False
        if any(ids for ids in self.deletes.values()):
            return False
        return not any(getattr(self, name) for name in COLLECTIONS)

    def delete(self, collection: str, *ids: str) -> "LedgerBatch":
        """Queue ids for deletion from a collection."""
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection}")
        self.deletes.setdefault(collection, []).extend(ids)
        return self


class LedgerState(BaseModel):
    """
    All collections of a ledger plus its version.

    version is bumped by storage on every committed batch and is used
    as the optimistic-concurrency token.
    """

    version: int = Field(default=0, ge=0)
    user: Optional[User] = None
    accounts: list[Account] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)
    bnpl_plans: list[BNPLPlan] = Field(default_factory=list)
    flexible_arrangements: list[FlexibleArrangement] = Field(default_factory=list)
    transfers: list[Transfer] = Field(default_factory=list)
    events: list[Event] = Field(default_factory=list)

    def apply_batch(self, batch: LedgerBatch) -> None:
        """Apply a batch in place. Does not touch version."""
        for name, ids in batch.deletes.items():
            if not ids:
                continue
            doomed = set(ids)
            records = getattr(self, name)
            records[:] = [r for r in records if r.id not in doomed]

        for name in COLLECTIONS:
            upserts = getattr(batch, name)
            if not upserts:
                continue
            records = getattr(self, name)
            positions = {r.id: i for i, r in enumerate(records)}
            for record in upserts:
                if record.id in positions:
                    records[positions[record.id]] = record
                else:
                    positions[record.id] = len(records)
                    records.append(record)

        if batch.user is not None:
            self.user = batch.user

    def copy_for_update(self) -> "LedgerState":
        """
        Copy the collection lists so a batch can be applied without
        touching this state. Records themselves are shared; they are
        replaced, never mutated, by batches.
        """
        return self.model_copy(
            update={name: list(getattr(self, name)) for name in COLLECTIONS}
        )
