"""
Cascade Executor

Deletes an account together with everything that would dangle without it.

CRITICAL: Order matters for data integrity.
1. Snapshot the transfers touching the account (before any deletion)
2. Pair every snapshotted transfer with its legs against the unmodified
   transaction set, and delete those legs in ANY account. This is what
   stops a lone "Top up from Current Account" row surviving in the
   counterparty account.
3. Delete the transfers
4. Delete the account's remaining transactions
5. Delete the account's BNPL plans
6. Delete the account's flexible arrangements
7. Delete the account

The executor mutates the LedgerState it is given. Callers that need
all-or-nothing behaviour hand it a working copy and commit the
resulting batch (see LedgerStore.delete_account).
"""

import structlog

from pennypath.cascade.planner import related_transfers
from pennypath.matching import TransferMatchResolver
from pennypath.models.impact import CascadeResult
from pennypath.models.state import LedgerState


logger = structlog.get_logger(__name__)


class CascadeExecutor:
    """Applies the seven cascade steps, in order, to a ledger state."""

    def __init__(self, resolver: TransferMatchResolver):
        self._resolver = resolver

    def execute(self, state: LedgerState, account_id: str) -> CascadeResult:
        """
        Delete an account and its dependents from state.

        Running it for an account that no longer exists removes
        nothing and returns an empty result.
        """
        result = CascadeResult(account_id=account_id)

        # 1. Snapshot before anything is removed
        transfers = related_transfers(state, account_id)

        # 2. Transfer legs, wherever they live
        pairs = self._resolver.resolve_all(transfers, state.transactions)
        leg_ids = set()
        for legs in pairs:
            leg_ids.update(legs.matched_ids)
            if not legs.is_complete:
                result.incomplete_pairs.append(legs)
        result.linked_transaction_ids = [
            t.id for t in state.transactions if t.id in leg_ids
        ]
        state.transactions = [t for t in state.transactions if t.id not in leg_ids]

        # 3. Transfers
        result.transfer_ids = [t.id for t in transfers]
        state.transfers = [t for t in state.transfers if not t.involves(account_id)]

        # 4. Remaining direct transactions
        result.transaction_ids = [
            t.id for t in state.transactions if t.account_id == account_id
        ]
        state.transactions = [
            t for t in state.transactions if t.account_id != account_id
        ]

        # 5. BNPL plans
        result.bnpl_plan_ids = [
            p.id for p in state.bnpl_plans if p.account_id == account_id
        ]
        state.bnpl_plans = [p for p in state.bnpl_plans if p.account_id != account_id]

        # 6. Flexible arrangements
        result.flexible_arrangement_ids = [
            a.id for a in state.flexible_arrangements if a.account_id == account_id
        ]
        state.flexible_arrangements = [
            a for a in state.flexible_arrangements if a.account_id != account_id
        ]

        # 7. The account itself
        result.account_deleted = any(a.id == account_id for a in state.accounts)
        state.accounts = [a for a in state.accounts if a.id != account_id]

        logger.debug(
            "cascade_executed",
            account_id=account_id,
            removed=result.total_removed,
            incomplete_pairs=len(result.incomplete_pairs),
        )
        return result
