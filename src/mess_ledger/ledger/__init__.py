"""Ledger computation engine: splits -> balances -> settlement suggestions."""

from .balances import compute_balances, member_history, summarize_fund
from .settlements import apply_suggestions, suggest_settlements, verify_suggestions
from .splits import DEFAULT_PERCENTAGE_TOLERANCE, compute_split

__all__ = [
    "DEFAULT_PERCENTAGE_TOLERANCE",
    "compute_split",
    "compute_balances",
    "member_history",
    "summarize_fund",
    "suggest_settlements",
    "apply_suggestions",
    "verify_suggestions",
]
