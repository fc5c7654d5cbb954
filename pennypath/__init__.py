"""
PennyPath - Source Package

The ledger core of a personal finance tracker: accounts, transactions,
transfers between the user's own accounts, BNPL plans and informal
repayment arrangements, with a cascade that deletes an account without
leaving half of a transfer behind.

DESIGN PRINCIPLES:
1. One explicit store owns the ledger; nothing mutates it behind its back
2. Every change is one atomic batch
3. Missing transfer legs are normal, not errors
4. Every deletion is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "PennyPath Team"
