"""
Cascade Planner

Computes what deleting an account would remove, without removing it.

The planner reads the CURRENT state and never mutates it, so it is
safe to call repeatedly (e.g. every time a confirmation prompt opens).
"""

from pennypath.matching import TransferMatchResolver
from pennypath.models.impact import AccountDeletionImpact
from pennypath.models.ledger import Account, Transfer
from pennypath.models.state import LedgerState


def related_transfers(state: LedgerState, account_id: str) -> list[Transfer]:
    """Transfers with the account as source or destination."""
    return [t for t in state.transfers if t.involves(account_id)]


class CascadePlanner:
    """Builds AccountDeletionImpact reports."""

    def __init__(self, resolver: TransferMatchResolver):
        self._resolver = resolver

    def plan(self, state: LedgerState, account: Account) -> AccountDeletionImpact:
        """
        Summarise the impact of deleting an account.

        Counts cover the account's own transactions, plans and
        arrangements, plus every transfer touching it. Transfer legs
        sitting in OTHER accounts are reported separately through
        affected_accounts and linked_transaction_count.
        """
        account_id = account.id
        transfers = related_transfers(state, account_id)

        affected_ids = {t.counterparty_of(account_id) for t in transfers}
        affected_accounts = [a for a in state.accounts if a.id in affected_ids]

        transaction_count = sum(1 for t in state.transactions if t.account_id == account_id)
        bnpl_plan_count = sum(1 for p in state.bnpl_plans if p.account_id == account_id)
        arrangement_count = sum(
            1 for a in state.flexible_arrangements if a.account_id == account_id
        )

        legs = self._resolver.resolve_all(transfers, state.transactions)
        own_rows = {t.id for t in state.transactions if t.account_id == account_id}
        linked_elsewhere = {
            leg_id
            for pair in legs
            for leg_id in pair.matched_ids
            if leg_id not in own_rows
        }

        return AccountDeletionImpact(
            account=account,
            transaction_count=transaction_count,
            transfer_count=len(transfers),
            bnpl_plan_count=bnpl_plan_count,
            flexible_arrangement_count=arrangement_count,
            affected_accounts=affected_accounts,
            total_impacted_items=(
                transaction_count
                + len(transfers)
                + bnpl_plan_count
                + arrangement_count
            ),
            linked_transaction_count=len(linked_elsewhere),
        )
