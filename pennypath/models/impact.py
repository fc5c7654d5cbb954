"""
Deletion Impact and Cascade Result Models

These are the read-only reports produced around an account deletion:
- TransferLegs: which rows realise a transfer
- AccountDeletionImpact: what a deletion WOULD remove (for confirmation)
- CascadeResult: what a deletion DID remove
"""

from typing import Optional

from pydantic import BaseModel, Field

from pennypath.models.ledger import Account
from pennypath.models.state import LedgerBatch


class TransferLegs(BaseModel):
    """
    The ledger rows matched to one transfer.

    Either leg may be missing. That is normal (e.g. the counterparty
    row was deleted by hand), not an error.
    """

    transfer_id: str
    source_leg_id: Optional[str] = None
    destination_leg_id: Optional[str] = None

    @property
    def matched_ids(self) -> list[str]:
        return [
            leg_id
            for leg_id in (self.source_leg_id, self.destination_leg_id)
            if leg_id is not None
        ]

    @property
    def is_complete(self) -> bool:
        return self.source_leg_id is not None and self.destination_leg_id is not None


def _pluralise(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def _join_names(names: list[str]) -> str:
    if len(names) == 1:
        return names[0]
    if len(names) == 2:
        return " and ".join(names)
    return ", ".join(names[:-1]) + ", and " + names[-1]


class AccountDeletionImpact(BaseModel):
    """
    Impact analysis for deleting an account.

    IMPORTANT: total_impacted_items counts only the account's own rows
    plus the transfer records. Legs deleted in OTHER accounts are
    surfaced through affected_accounts and linked_transaction_count.
    """

    account: Account
    transaction_count: int = Field(ge=0)
    transfer_count: int = Field(ge=0)
    bnpl_plan_count: int = Field(ge=0)
    flexible_arrangement_count: int = Field(ge=0)
    affected_accounts: list[Account] = Field(default_factory=list)
    total_impacted_items: int = Field(ge=0)
    linked_transaction_count: int = Field(
        default=0,
        ge=0,
        description="Transfer legs that will be removed from other accounts"
    )

    @property
    def has_impact(self) -> bool:
        return self.total_impacted_items > 0 or bool(self.affected_accounts)

    @property
    def impact_description(self) -> str:
        """Human-readable summary for the confirmation prompt."""
        items = []
        if self.transaction_count:
            items.append(_pluralise(self.transaction_count, "transaction"))
        if self.transfer_count:
            items.append(_pluralise(self.transfer_count, "transfer"))
        if self.bnpl_plan_count:
            items.append(_pluralise(self.bnpl_plan_count, "BNPL plan"))
        if self.flexible_arrangement_count:
            items.append(
                _pluralise(self.flexible_arrangement_count, "payment arrangement")
            )

        if items:
            result = _join_names(items) + " will be permanently deleted."
        else:
            result = "No transaction data will be deleted."

        if self.affected_accounts:
            names = [a.name for a in self.affected_accounts]
            if len(names) == 1:
                result += (
                    f"\n\nThis will also affect 1 other account: {names[0]}. "
                    "Transfer transactions in this account will be removed."
                )
            else:
                result += (
                    f"\n\nThis will also affect {len(names)} other accounts: "
                    f"{_join_names(names)}. "
                    "Transfer transactions in these accounts will be removed."
                )

        return result


class CascadeResult(BaseModel):
    """
    Ids removed by one account deletion, grouped by cascade step.

    linked_transaction_ids are the transfer legs removed in step 2
    (in any account); transaction_ids are the remaining direct rows
    removed in step 4.
    """

    account_id: str
    account_deleted: bool = False
    linked_transaction_ids: list[str] = Field(default_factory=list)
    transfer_ids: list[str] = Field(default_factory=list)
    transaction_ids: list[str] = Field(default_factory=list)
    bnpl_plan_ids: list[str] = Field(default_factory=list)
    flexible_arrangement_ids: list[str] = Field(default_factory=list)
    incomplete_pairs: list[TransferLegs] = Field(
        default_factory=list,
        description="Transfers where fewer than two legs were found"
    )

    @property
    def total_removed(self) -> int:
        return (
            len(self.linked_transaction_ids)
            + len(self.transfer_ids)
            + len(self.transaction_ids)
            + len(self.bnpl_plan_ids)
            + len(self.flexible_arrangement_ids)
            + (1 if self.account_deleted else 0)
        )

    def to_batch(self) -> LedgerBatch:
        """Express the removals as one atomic batch."""
        batch = LedgerBatch()
        batch.delete(
            "transactions", *self.linked_transaction_ids, *self.transaction_ids
        )
        batch.delete("transfers", *self.transfer_ids)
        batch.delete("bnpl_plans", *self.bnpl_plan_ids)
        batch.delete("flexible_arrangements", *self.flexible_arrangement_ids)
        if self.account_deleted:
            batch.delete("accounts", self.account_id)
        return batch
