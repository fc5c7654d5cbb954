"""Transfer-leg matching package."""

from pennypath.matching.resolver import (
    LegSide,
    MatchEvidence,
    MatchStrictness,
    TransferMatchResolver,
)

__all__ = ["LegSide", "MatchEvidence", "MatchStrictness", "TransferMatchResolver"]
