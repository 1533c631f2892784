"""Settlement suggestions: reduce a balance vector to a few direct payments.

Debt simplification uses greedy largest-first matching. The creditor owed the
most is paired with the debtor owing the most, the smaller of the two amounts
changes hands, and whoever reaches zero drops out. This is the standard
practical heuristic. It never needs more than (non-zero accounts - 1)
payments, but it is not guaranteed to find the global minimum for every
input (that problem is NP-hard in general).
"""

import heapq
from collections.abc import Iterable, Mapping

from ..exceptions import SettlementError, UnbalancedLedgerError
from ..models import Balance, SettlementSuggestion

BalanceInput = Mapping[str, Balance] | Mapping[str, int] | Iterable[Balance]


def suggest_settlements(balances: BalanceInput) -> list[SettlementSuggestion]:
    """
    Compute payments that bring every balance to exactly zero.

    Ties between equal remaining amounts go to the lower member id, so the
    output is reproducible. The returned list is sorted by (payer_id,
    payee_id); a pair never appears twice.

    Args:
        balances: Output of compute_balances, or member id -> signed amount

    Returns:
        Suggested payments; empty when everyone is settled

    Raises:
        UnbalancedLedgerError: if the balances don't sum to zero
    """
    amounts = balance_amounts(balances)

    residual = sum(amounts.values())
    if residual != 0:
        raise UnbalancedLedgerError(residual)

    # Min-heaps keyed on (-remaining, member_id): largest amount first, then id
    creditors = [(-amount, member_id) for member_id, amount in amounts.items() if amount > 0]
    debtors = [(amount, member_id) for member_id, amount in amounts.items() if amount < 0]
    heapq.heapify(creditors)
    heapq.heapify(debtors)

    suggestions: list[SettlementSuggestion] = []
    while creditors and debtors:
        neg_credit, creditor = heapq.heappop(creditors)
        neg_debt, debtor = heapq.heappop(debtors)
        credit, debt = -neg_credit, -neg_debt

        amount = min(credit, debt)
        suggestions.append(
            SettlementSuggestion(payer_id=debtor, payee_id=creditor, amount=amount)
        )

        if credit > amount:
            heapq.heappush(creditors, (amount - credit, creditor))
        if debt > amount:
            heapq.heappush(debtors, (amount - debt, debtor))

    suggestions.sort(key=lambda s: (s.payer_id, s.payee_id))
    return suggestions


def apply_suggestions(
    balances: BalanceInput, suggestions: Iterable[SettlementSuggestion]
) -> dict[str, int]:
    """Return the balances that remain after every suggestion is paid."""
    remaining = balance_amounts(balances)
    for suggestion in suggestions:
        for member_id in (suggestion.payer_id, suggestion.payee_id):
            if member_id not in remaining:
                raise SettlementError(f"Suggestion references unknown account {member_id!r}")
        remaining[suggestion.payer_id] += suggestion.amount
        remaining[suggestion.payee_id] -= suggestion.amount
    return remaining


def verify_suggestions(
    balances: BalanceInput, suggestions: list[SettlementSuggestion]
) -> None:
    """
    Check a suggestion list against the balances it was computed from.

    Checks:
    1. Every amount is positive
    2. Amounts sum to the total of positive balances
    3. Applying the suggestions leaves every balance at exactly zero
    4. No more than (non-zero accounts - 1) payments are used

    Raises:
        SettlementError: describing the first violated check
    """
    amounts = balance_amounts(balances)

    for suggestion in suggestions:
        if suggestion.amount <= 0:
            raise SettlementError(
                f"Suggested payment {suggestion.payer_id} -> {suggestion.payee_id} "
                f"has non-positive amount {suggestion.amount}"
            )

    owed = sum(amount for amount in amounts.values() if amount > 0)
    paid = sum(suggestion.amount for suggestion in suggestions)
    if paid != owed:
        raise SettlementError(
            f"Suggested payments total {paid}, but positive balances total {owed}"
        )

    leftover = {k: v for k, v in apply_suggestions(amounts, suggestions).items() if v}
    if leftover:
        raise SettlementError(f"Balances not zeroed after settling: {leftover}")

    non_zero = sum(1 for amount in amounts.values() if amount)
    if non_zero and len(suggestions) > non_zero - 1:
        raise SettlementError(
            f"{len(suggestions)} payments used for {non_zero} unsettled accounts"
        )


def balance_amounts(balances: BalanceInput) -> dict[str, int]:
    """Normalize any supported balance input to member id -> signed amount."""
    if isinstance(balances, Mapping):
        items = balances.items()
    else:
        items = ((balance.member_id, balance) for balance in balances)

    amounts: dict[str, int] = {}
    for member_id, value in items:
        amount = value.amount if isinstance(value, Balance) else value
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise TypeError(f"Balance for {member_id!r} must be an integer, got {amount!r}")
        amounts[member_id] = amount
    return amounts
