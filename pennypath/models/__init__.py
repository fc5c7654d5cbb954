"""
Data Models Package

This package contains all Pydantic models used in PennyPath.
All data flowing through the ledger must conform to these schemas.
"""

from pennypath.models.ledger import (
    Account,
    AccountType,
    ArrangementType,
    BNPLPlan,
    Budget,
    Category,
    Event,
    FlexibleArrangement,
    PaymentFrequency,
    RecurrenceType,
    RelationshipType,
    Transaction,
    Transfer,
    TransferType,
    User,
)
from pennypath.models.state import LedgerBatch, LedgerState
from pennypath.models.impact import (
    AccountDeletionImpact,
    CascadeResult,
    TransferLegs,
)
from pennypath.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger records
    "Account",
    "AccountType",
    "ArrangementType",
    "BNPLPlan",
    "Budget",
    "Category",
    "Event",
    "FlexibleArrangement",
    "PaymentFrequency",
    "RecurrenceType",
    "RelationshipType",
    "Transaction",
    "Transfer",
    "TransferType",
    "User",
    # State
    "LedgerBatch",
    "LedgerState",
    # Deletion reports
    "AccountDeletionImpact",
    "CascadeResult",
    "TransferLegs",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
