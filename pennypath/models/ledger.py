"""
Core Ledger Models for PennyPath

These models define the records the ledger store owns:
accounts, transactions, transfers, BNPL plans, flexible arrangements,
and the reference data (categories, budgets, events) around them.

DESIGN DECISION: No record owns another. Relationships are by id only.
A Transfer does not hold its two Transaction rows; the rows are stored
independently and paired up again by the transfer-match resolver.
Rows generated by Transfer.generate_transactions() carry an explicit
transfer_id so newer data can be paired without guessing.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


PENNY = Decimal("0.01")


def new_id() -> str:
    """Create a new opaque record id."""
    return str(uuid4())


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """
    Supported account types.

    Informal loans (family_friend) and debt_collection accounts are
    tracked alongside bank products because they carry real repayments.
    """
    CURRENT = "current"
    SAVINGS = "savings"
    CREDIT = "credit"
    LOAN = "loan"
    BNPL = "bnpl"
    FAMILY_FRIEND = "family_friend"
    DEBT_COLLECTION = "debt_collection"
    PREPAID = "prepaid"
    INVESTMENT = "investment"

    @property
    def display_name(self) -> str:
        return _ACCOUNT_TYPE_NAMES[self]

    @property
    def supports_scheduled_payments(self) -> bool:
        return self in (AccountType.LOAN, AccountType.BNPL)

    @property
    def affects_credit_score(self) -> bool:
        return self in (
            AccountType.CREDIT,
            AccountType.LOAN,
            AccountType.BNPL,
            AccountType.DEBT_COLLECTION,
        )

    @property
    def supports_flexible_payments(self) -> bool:
        return self in (AccountType.FAMILY_FRIEND, AccountType.DEBT_COLLECTION)

    @property
    def can_have_positive_balance(self) -> bool:
        # Family & friends can lend TO others
        return self not in (
            AccountType.CREDIT,
            AccountType.LOAN,
            AccountType.BNPL,
            AccountType.DEBT_COLLECTION,
        )

    @property
    def is_prepaid_type(self) -> bool:
        return self is AccountType.PREPAID


_ACCOUNT_TYPE_NAMES = {
    AccountType.CURRENT: "Current Account",
    AccountType.SAVINGS: "Savings Account",
    AccountType.CREDIT: "Credit Card",
    AccountType.LOAN: "Loan",
    AccountType.BNPL: "Buy Now Pay Later",
    AccountType.FAMILY_FRIEND: "Family & Friends",
    AccountType.DEBT_COLLECTION: "Debt Collection",
    AccountType.PREPAID: "Prepaid/Cash Card",
    AccountType.INVESTMENT: "Investment Account",
}


class RecurrenceType(str, Enum):
    """Recurrence rule for scheduled transactions."""
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class TransferType(str, Enum):
    """Why money moved between two of the user's own accounts."""
    MANUAL = "manual"
    TOP_UP = "top_up"      # Top up prepaid card or similar
    PAYOFF = "payoff"      # Pay off credit card or loan
    SAVINGS = "savings"


class PaymentFrequency(str, Enum):
    """Payment frequency for BNPL plans."""
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class ArrangementType(str, Enum):
    """Type of flexible (informal) repayment arrangement."""
    FAMILY_FRIEND_LOAN = "family_friend_loan"
    DEBT_COLLECTION = "debt_collection"


class RelationshipType(str, Enum):
    """Relationship to the lender for family/friend loans."""
    PARENT = "parent"
    SIBLING = "sibling"
    CHILD = "child"
    PARTNER = "partner"
    FRIEND = "friend"
    OTHER = "other"


# =============================================================================
# ACCOUNTS
# =============================================================================

class User(BaseModel):
    """The signed-in user the ledger belongs to."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    first_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=200)


class Account(BaseModel):
    """
    A financial account.

    Balance is signed: debts (credit cards, loans, BNPL) are negative.
    The ledger never recomputes balances; they are whatever the
    caller last stored.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_id,
        description="Unique account ID"
    )
    user_id: str = Field(
        ...,
        description="Owning user ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name"
    )
    type: AccountType
    balance: Decimal = Field(
        default=Decimal("0.00"),
        decimal_places=2,
        description="Signed balance"
    )
    created_at: datetime = Field(default_factory=datetime.now)

    # Credit card specific
    credit_limit: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)

    # Loan specific
    original_loan_amount: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    loan_term_months: Optional[int] = Field(default=None, ge=1)
    loan_start_date: Optional[date] = None
    interest_rate: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Annual interest rate in percent"
    )
    monthly_payment: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)

    # BNPL specific
    bnpl_provider: Optional[str] = Field(default=None, max_length=100)

    @property
    def available_credit(self) -> Optional[Decimal]:
        """Credit limit left; balance is negative so this is limit + balance."""
        if self.credit_limit is None or self.type is not AccountType.CREDIT:
            return None
        return self.credit_limit + self.balance

    @property
    def credit_utilization(self) -> Optional[Decimal]:
        if not self.credit_limit or self.type is not AccountType.CREDIT:
            return None
        return abs(self.balance) / self.credit_limit

    @property
    def loan_progress(self) -> Optional[Decimal]:
        """Share of the original loan already repaid (0 to 1)."""
        if not self.original_loan_amount or self.type is not AccountType.LOAN:
            return None
        paid = self.original_loan_amount - abs(self.balance)
        return paid / self.original_loan_amount


# =============================================================================
# TRANSACTIONS AND TRANSFERS
# =============================================================================

class Transaction(BaseModel):
    """
    A single ledger row, past or scheduled.

    Every transaction belongs to exactly one account.
    Amount is signed: positive for income, negative for spending.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    user_id: str
    account_id: str = Field(
        ...,
        min_length=1,
        description="Owning account (required)"
    )
    category_id: Optional[str] = None
    bnpl_plan_id: Optional[str] = Field(
        default=None,
        description="BNPL plan this installment belongs to"
    )
    event_id: Optional[str] = None
    transfer_id: Optional[str] = Field(
        default=None,
        description="Transfer this row is a leg of, when known at write time"
    )
    amount: Decimal = Field(..., decimal_places=2)
    description: str = Field(default="", max_length=500)
    date: datetime = Field(default_factory=datetime.now)
    is_scheduled: bool = False
    is_paid: bool = False
    recurrence: Optional[RecurrenceType] = None
    created_at: datetime = Field(default_factory=datetime.now)


class Transfer(BaseModel):
    """
    Money moved between two of the user's own accounts.

    CRITICAL: A transfer is one logical event realised as two
    independent Transaction rows (a debit on the source account and a
    credit on the destination account). The transfer does not reference
    those rows.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    user_id: str
    source_account_id: str = Field(..., min_length=1)
    destination_account_id: str = Field(..., min_length=1)
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Always positive"
    )
    description: str = Field(default="", max_length=500)
    date: datetime = Field(default_factory=datetime.now)
    transfer_type: TransferType = TransferType.MANUAL
    created_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode='after')
    def validate_accounts(self) -> 'Transfer':
        if self.source_account_id == self.destination_account_id:
            raise ValueError("Transfer source and destination must differ")
        return self

    def involves(self, account_id: str) -> bool:
        return account_id in (self.source_account_id, self.destination_account_id)

    def counterparty_of(self, account_id: str) -> str:
        """Return the other account of this transfer."""
        if account_id == self.source_account_id:
            return self.destination_account_id
        return self.source_account_id

    def generate_transactions(self) -> tuple[Transaction, Transaction]:
        """
        Build the two ledger rows that realise this transfer.

        Returns (source_leg, destination_leg). Both rows are linked back
        through transfer_id.
        """
        source_leg = Transaction(
            id=f"{self.id}-from",
            user_id=self.user_id,
            account_id=self.source_account_id,
            transfer_id=self.id,
            amount=-self.amount,
            description=f"Transfer to {self.description}".strip(),
            date=self.date,
        )
        destination_leg = Transaction(
            id=f"{self.id}-to",
            user_id=self.user_id,
            account_id=self.destination_account_id,
            transfer_id=self.id,
            amount=self.amount,
            description="Transfer from account",
            date=self.date,
        )
        return source_leg, destination_leg


# =============================================================================
# PLANS AND ARRANGEMENTS
# =============================================================================

class BNPLPlan(BaseModel):
    """Buy-now-pay-later installment plan, held on a BNPL account."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    user_id: str
    account_id: str = Field(..., min_length=1)
    provider_name: str = Field(..., min_length=1, max_length=100)
    total_amount: Decimal = Field(..., gt=0, decimal_places=2)
    number_of_installments: int = Field(..., ge=1, le=60)
    frequency: PaymentFrequency = PaymentFrequency.BIWEEKLY
    start_date: date = Field(default_factory=date.today)
    description: str = Field(default="", max_length=500)
    late_fee: Decimal = Field(default=Decimal("0.00"), ge=0, decimal_places=2)
    interest_rate: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Annual percentage rate"
    )
    is_completed: bool = False
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def installment_amount(self) -> Decimal:
        return (self.total_amount / self.number_of_installments).quantize(
            PENNY, rounding=ROUND_HALF_UP
        )


class FlexibleArrangement(BaseModel):
    """
    Informal repayment arrangement (family/friend loan or debt collection).

    Payments are irregular, so progress is measured from the
    transactions posted to the arrangement's account.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    user_id: str
    account_id: str = Field(..., min_length=1)
    type: ArrangementType
    original_amount: Decimal = Field(..., decimal_places=2)
    description: str = Field(default="", max_length=500)
    start_date: date = Field(default_factory=date.today)
    target_completion_date: Optional[date] = None
    minimum_payment: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    suggested_payment: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    notes: str = Field(default="", max_length=1000)
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.now)

    # Family/friend specific
    relationship_type: Optional[RelationshipType] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None

    # Debt collection specific
    original_creditor: Optional[str] = None
    collection_agency: Optional[str] = None
    reference_number: Optional[str] = None
    settlement_amount: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)

    def total_paid(self, transactions: list[Transaction]) -> Decimal:
        """Sum of settled payments posted to this arrangement's account."""
        return sum(
            (abs(t.amount) for t in transactions
             if t.account_id == self.account_id and not t.is_scheduled),
            Decimal("0.00"),
        )

    def remaining_balance(self, transactions: list[Transaction]) -> Decimal:
        return abs(self.original_amount) - self.total_paid(transactions)


# =============================================================================
# REFERENCE DATA (never cascade targets)
# =============================================================================

class Category(BaseModel):
    """Spending/income category. Shared across accounts."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    user_id: str
    name: str = Field(..., min_length=1, max_length=100)
    parent_id: Optional[str] = None
    color: str = Field(default="#45B7D1", pattern=r"^#[0-9A-Fa-f]{6}$")
    icon: str = "tag"
    created_at: datetime = Field(default_factory=datetime.now)


class Budget(BaseModel):
    """Monthly spending limit for a category (keyed off category, not account)."""

    id: str = Field(default_factory=new_id)
    user_id: str
    category_id: str
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    month: int = Field(default_factory=lambda: date.today().month, ge=1, le=12)
    year: int = Field(default_factory=lambda: date.today().year, ge=2000)
    created_at: datetime = Field(default_factory=datetime.now)


class Event(BaseModel):
    """Groups transactions by occasion or project (e.g. a holiday)."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    user_id: str
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode='after')
    def validate_dates(self) -> 'Event':
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("Event end date cannot be before start date")
        return self
