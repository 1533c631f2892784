"""Mess Ledger - Track shared costs in a mess and settle up with the fewest payments."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .db import Database
from .ledger.balances import compute_balances, member_history, summarize_fund
from .ledger.service import LedgerService
from .ledger.settlements import suggest_settlements, verify_suggestions
from .ledger.splits import compute_split
from .models import (
    POOL_ACCOUNT_ID,
    Balance,
    Collection,
    Expense,
    Member,
    Settlement,
    SettlementSuggestion,
    Share,
    SplitPolicy,
)
from .money import from_minor_units, to_minor_units

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "compute_split",
    "compute_balances",
    "member_history",
    "summarize_fund",
    "suggest_settlements",
    "verify_suggestions",
    "LedgerService",
    "POOL_ACCOUNT_ID",
    "Balance",
    "Collection",
    "Expense",
    "Member",
    "Settlement",
    "SettlementSuggestion",
    "Share",
    "SplitPolicy",
    "from_minor_units",
    "to_minor_units",
]
