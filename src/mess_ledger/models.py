"""Pydantic domain models for Mess Ledger.

All money fields are integer minor units (cents for a two-decimal currency).
Amount constraints are checked by the ledger core rather than by the models,
so a bad event surfaces as the matching ledger error instead of a pydantic
ValidationError.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field, field_validator

POOL_ACCOUNT_ID = "pool"

EXPENSE_CATEGORIES = (
    "Groceries",
    "Utilities",
    "Rent",
    "Gas",
    "Internet",
    "Cleaning",
    "Food",
    "Entertainment",
    "Other",
)

ExpenseCategory = Literal[
    "Groceries",
    "Utilities",
    "Rent",
    "Gas",
    "Internet",
    "Cleaning",
    "Food",
    "Entertainment",
    "Other",
]

BalanceStatus = Literal["owed", "owes", "settled"]


def new_event_id() -> str:
    """Generate an opaque event identifier."""
    return uuid4().hex


# ============================================================================
# Membership
# ============================================================================


class Member(BaseModel):
    """A member of a mess."""

    id: str
    name: str
    active: bool = True  # inactive members keep resolving in old events

    @field_validator("id")
    @classmethod
    def _not_reserved(cls, value: str) -> str:
        if value == POOL_ACCOUNT_ID:
            raise ValueError(f"Member id {POOL_ACCOUNT_ID!r} is reserved")
        if not value:
            raise ValueError("Member id must not be empty")
        return value


# ============================================================================
# Events
# ============================================================================


class SplitPolicy(str, Enum):
    """How an expense is divided between participants."""

    EQUAL = "equal"
    UNEQUAL = "unequal"
    PERCENTAGE = "percentage"
    EXCLUDE = "exclude"  # equal split over participants minus an exclusion list


class Share(BaseModel):
    """One member's portion of a single expense."""

    member_id: str
    amount: int
    percentage: Decimal | None = None  # only for the percentage policy


class Expense(BaseModel):
    """A shared cost paid by one member (or the pool) and split among participants."""

    id: str = Field(default_factory=new_event_id)
    amount: int
    payer_id: str
    policy: SplitPolicy
    shares: list[Share]
    description: str = ""
    category: ExpenseCategory = "Other"
    created_at: datetime = Field(default_factory=datetime.now)


class Collection(BaseModel):
    """A contribution paid by a member into the shared pool."""

    id: str = Field(default_factory=new_event_id)
    amount: int
    member_id: str  # contributor
    collected_by: str | None = None
    date: datetime = Field(default_factory=datetime.now)
    description: str = "Monthly contribution"


class Settlement(BaseModel):
    """A direct payment from one account to another."""

    id: str = Field(default_factory=new_event_id)
    payer_id: str
    payee_id: str
    amount: int
    note: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)


# ============================================================================
# Derived values
# ============================================================================


class Balance(BaseModel):
    """A member's net signed position across every event in a group.

    Positive means the member is owed money, negative means they owe.
    """

    member_id: str
    amount: int = 0
    paid_from_pocket: int = 0
    fair_share: int = 0
    contributed: int = 0
    settlements_paid: int = 0
    settlements_received: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> BalanceStatus:
        """Classification of the exact balance."""
        if self.amount > 0:
            return "owed"
        if self.amount < 0:
            return "owes"
        return "settled"


class SettlementSuggestion(BaseModel):
    """A payment instruction produced by debt simplification. Never persisted."""

    payer_id: str
    payee_id: str
    amount: int


class FundSummary(BaseModel):
    """State of the shared pool."""

    total_collected: int
    total_expenses: int
    pool_paid_expenses: int
    total_refunded: int
    cash_on_hand: int


class LedgerEntry(BaseModel):
    """One line of a member's balance history."""

    kind: Literal["expense", "collection", "settlement"]
    event_id: str
    description: str
    amount: int  # signed effect on the member's balance
    date: datetime
