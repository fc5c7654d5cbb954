"""
Transfer-Match Resolver

A Transfer is one logical event realised as two ledger rows that were
written independently: a debit on the source account and a credit on
the destination account. Older rows carry no link back to their
transfer, so the pairing has to be reconstructed.

HEURISTIC MODE (default):
A row is the SOURCE leg of transfer tr when all of:
- row.account_id == tr.source_account_id
- row.amount == -tr.amount (exact decimal equality)
- row.date is on the same calendar day as tr.date
- the description contains a source keyword ("transfer"),
  case-insensitive, OR the row has no category

A row is the DESTINATION leg when all of:
- row.account_id == tr.destination_account_id
- row.amount == tr.amount
- same calendar day
- the description contains a destination keyword ("transfer", "top up"),
  OR the row has no category

Rows carrying an explicit transfer_id short-circuit the heuristic:
they are legs of that transfer only.

When several rows qualify for one leg, the strongest evidence wins:
a transfer_id link, then a keyword, then a missing category. Ties go
to the first row in collection order.

KNOWN RISK: an uncategorised row of exactly the right amount on the
same day is indistinguishable from a real leg when no better candidate
exists, and will be matched. This is accepted. LINKED mode removes the
risk by only trusting transfer_id.

Finding zero or one leg is normal and never raises.
"""

from enum import Enum, IntEnum
from typing import Iterable, Optional, Sequence

import structlog

from pennypath.config import MatchingSettings
from pennypath.models.impact import TransferLegs
from pennypath.models.ledger import Transaction, Transfer


logger = structlog.get_logger(__name__)


class MatchStrictness(str, Enum):
    """How much evidence a row needs before it counts as a transfer leg."""
    HEURISTIC = "heuristic"  # transfer_id, else account/amount/day/text
    LINKED = "linked"        # transfer_id only


class LegSide(str, Enum):
    SOURCE = "source"
    DESTINATION = "destination"


class MatchEvidence(IntEnum):
    """Why a row counts as a leg. Lower is stronger."""
    LINKED = 0         # transfer_id names the transfer
    KEYWORD = 1        # description carries a transfer keyword
    UNCATEGORISED = 2  # only the absence of a category


DEFAULT_SOURCE_KEYWORDS = ("transfer",)
DEFAULT_DESTINATION_KEYWORDS = ("transfer", "top up")


class TransferMatchResolver:
    """
    Pairs transfers with the transaction rows that realise them.

    Per leg, the best-evidenced row wins; ties go to collection order.
    """

    def __init__(
        self,
        strictness: MatchStrictness = MatchStrictness.HEURISTIC,
        source_keywords: Sequence[str] = DEFAULT_SOURCE_KEYWORDS,
        destination_keywords: Sequence[str] = DEFAULT_DESTINATION_KEYWORDS,
    ):
        self.strictness = MatchStrictness(strictness)
        self._source_keywords = tuple(kw.lower() for kw in source_keywords)
        self._destination_keywords = tuple(kw.lower() for kw in destination_keywords)

    @classmethod
    def from_settings(cls, settings: MatchingSettings) -> "TransferMatchResolver":
        return cls(
            strictness=MatchStrictness(settings.strictness),
            source_keywords=settings.source_keywords_list,
            destination_keywords=settings.destination_keywords_list,
        )

    # -------------------------------------------------------------------------
    # Predicates
    # -------------------------------------------------------------------------

    def is_source_leg(self, transaction: Transaction, transfer: Transfer) -> bool:
        return self.match_evidence(transaction, transfer, LegSide.SOURCE) is not None

    def is_destination_leg(self, transaction: Transaction, transfer: Transfer) -> bool:
        return self.match_evidence(transaction, transfer, LegSide.DESTINATION) is not None

    def match_evidence(
        self,
        transaction: Transaction,
        transfer: Transfer,
        side: LegSide,
    ) -> Optional[MatchEvidence]:
        """
        How strongly a row looks like one leg of a transfer.

        Returns None when the row is not a leg at all.
        """
        if side is LegSide.SOURCE:
            account_id = transfer.source_account_id
            amount = -transfer.amount
            keywords = self._source_keywords
        else:
            account_id = transfer.destination_account_id
            amount = transfer.amount
            keywords = self._destination_keywords

        if transaction.account_id != account_id:
            return None

        # Explicit link wins over every heuristic
        if transaction.transfer_id is not None:
            return MatchEvidence.LINKED if transaction.transfer_id == transfer.id else None
        if self.strictness is MatchStrictness.LINKED:
            return None

        if transaction.amount != amount:
            return None
        if transaction.date.date() != transfer.date.date():
            return None

        description = transaction.description.lower()
        if any(kw in description for kw in keywords):
            return MatchEvidence.KEYWORD
        if transaction.category_id is None:
            return MatchEvidence.UNCATEGORISED
        return None

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def _best_match(
        self,
        transfer: Transfer,
        transactions: Iterable[Transaction],
        side: LegSide,
        claimed: set[str],
    ) -> Optional[str]:
        best_id, best_evidence = None, None
        for transaction in transactions:
            if transaction.id in claimed:
                continue
            evidence = self.match_evidence(transaction, transfer, side)
            if evidence is None:
                continue
            if best_evidence is None or evidence < best_evidence:
                best_id, best_evidence = transaction.id, evidence
                if evidence is MatchEvidence.LINKED:
                    break
        return best_id

    def resolve(
        self,
        transfer: Transfer,
        transactions: Sequence[Transaction],
        claimed: Optional[set[str]] = None,
    ) -> TransferLegs:
        """
        Find the source and destination legs of one transfer.

        Args:
            transfer: The transfer to pair
            transactions: Every transaction in the ledger
            claimed: Row ids already paired with another transfer;
                     they are skipped. Not modified.

        Returns:
            TransferLegs with zero, one or two leg ids
        """
        claimed = claimed or set()
        source_leg_id = self._best_match(transfer, transactions, LegSide.SOURCE, claimed)
        destination_leg_id = self._best_match(
            transfer, transactions, LegSide.DESTINATION, claimed
        )
        legs = TransferLegs(
            transfer_id=transfer.id,
            source_leg_id=source_leg_id,
            destination_leg_id=destination_leg_id,
        )
        if not legs.is_complete:
            logger.debug(
                "transfer_legs_incomplete",
                transfer_id=transfer.id,
                source_leg_id=source_leg_id,
                destination_leg_id=destination_leg_id,
                strictness=self.strictness.value,
            )
        return legs

    def resolve_all(
        self,
        transfers: Sequence[Transfer],
        transactions: Sequence[Transaction],
    ) -> list[TransferLegs]:
        """
        Resolve several transfers against the same transaction set.

        Transfers are resolved in order and a row is never given to two
        transfers, so identical same-day transfers pair with distinct rows.
        """
        claimed: set[str] = set()
        results = []
        for transfer in transfers:
            legs = self.resolve(transfer, transactions, claimed)
            claimed.update(legs.matched_ids)
            results.append(legs)
        return results
