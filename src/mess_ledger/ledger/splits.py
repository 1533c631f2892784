"""Split calculator: divide one expense into per-member shares.

Every function here works on integer minor units and guarantees that the
returned share amounts add up to the expense total exactly. Rounding residue
is handed out one unit at a time in participant list order, so the same
inputs always produce the same shares.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal

from ..exceptions import (
    DuplicateParticipantError,
    NegativeAmountError,
    NoParticipantsError,
    PercentageMismatchError,
    SplitMismatchError,
)
from ..models import Share, SplitPolicy
from ..money import round_half_up, to_decimal

DEFAULT_PERCENTAGE_TOLERANCE = Decimal("0.01")
HUNDRED = Decimal("100")


def compute_split(
    total: int,
    policy: SplitPolicy | str,
    participants: Iterable[str],
    policy_inputs: Mapping[str, int | Decimal | str | float] | None = None,
    *,
    excluded: Iterable[str] | None = None,
    tolerance: Decimal = DEFAULT_PERCENTAGE_TOLERANCE,
) -> list[Share]:
    """
    Split an expense total between participants.

    Args:
        total: Expense total in minor units, must be positive
        policy: One of equal, unequal, percentage, exclude
        participants: Ordered member ids; order decides who absorbs residue
        policy_inputs: Amount per member (unequal) or percentage per member
            (percentage); ignored for equal/exclude
        excluded: Member ids to drop from the participant list
        tolerance: Allowed deviation of the percentage sum from 100

    Returns:
        Shares in participant order, summing exactly to total

    Raises:
        NegativeAmountError: total is not positive or an input is negative
        DuplicateParticipantError: a member id is listed twice
        NoParticipantsError: no participants remain after exclusions
        SplitMismatchError: unequal amounts don't match total or participants
        PercentageMismatchError: percentages don't sum to 100 within tolerance
        InvalidAmountError: a percentage is not a finite number
    """
    policy = SplitPolicy(policy)
    _check_total(total)

    members = list(participants)
    seen: set[str] = set()
    for member_id in members:
        if member_id in seen:
            raise DuplicateParticipantError(member_id)
        seen.add(member_id)

    if excluded is not None:
        skip = set(excluded)
        members = [m for m in members if m not in skip]

    if not members:
        raise NoParticipantsError("At least one member must be included in the split")

    if policy in (SplitPolicy.EQUAL, SplitPolicy.EXCLUDE):
        return equal_split(total, members)
    if policy is SplitPolicy.UNEQUAL:
        return unequal_split(total, members, policy_inputs or {})
    return percentage_split(total, members, policy_inputs or {}, tolerance)


def equal_split(total: int, members: list[str]) -> list[Share]:
    """Floor share for everyone, remainder units to the first members in order."""
    base, remainder = divmod(total, len(members))
    amounts = [base] * len(members)
    distribute_residual(amounts, remainder)
    return [
        Share(member_id=member_id, amount=amount)
        for member_id, amount in zip(members, amounts, strict=True)
    ]


def unequal_split(
    total: int, members: list[str], amounts: Mapping[str, int | Decimal | str | float]
) -> list[Share]:
    """Explicit amount per member; must reconcile to the total exactly."""
    _check_inputs_cover(members, amounts, SplitMismatchError, "amount")

    shares = []
    for member_id in members:
        amount = amounts[member_id]
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise TypeError(
                f"Amount for {member_id!r} must be an integer number of minor units"
            )
        if amount < 0:
            raise NegativeAmountError(
                f"Split amount for {member_id!r} must be non-negative (got {amount})"
            )
        shares.append(Share(member_id=member_id, amount=amount))

    actual = sum(share.amount for share in shares)
    if actual != total:
        raise SplitMismatchError(expected=total, actual=actual)
    return shares


def percentage_split(
    total: int,
    members: list[str],
    percentages: Mapping[str, int | Decimal | str | float],
    tolerance: Decimal = DEFAULT_PERCENTAGE_TOLERANCE,
) -> list[Share]:
    """
    Percentage per member, converted with half-up rounding.

    The converted amounts are reconciled onto the total with the same
    list-order residue rule as the equal split.
    """
    _check_inputs_cover(members, percentages, PercentageMismatchError, "percentage")

    pcts = [to_decimal(percentages[member_id]) for member_id in members]
    for member_id, pct in zip(members, pcts, strict=True):
        if pct < 0:
            raise NegativeAmountError(
                f"Percentage for {member_id!r} must be non-negative (got {pct})"
            )

    pct_total = sum(pcts, Decimal("0"))
    if abs(pct_total - HUNDRED) > tolerance:
        raise PercentageMismatchError(
            f"Sum of percentages must equal 100% (current: {pct_total}%)"
        )

    amounts = [round_half_up(Decimal(total) * pct / HUNDRED) for pct in pcts]
    distribute_residual(amounts, total - sum(amounts))

    return [
        Share(member_id=member_id, amount=amount, percentage=pct)
        for member_id, amount, pct in zip(members, amounts, pcts, strict=True)
    ]


def distribute_residual(amounts: list[int], residual: int) -> None:
    """
    Spread a residual over amounts one unit at a time, in list order.

    Cycles through the list when the residual exceeds its length. A negative
    residual never takes an amount below zero; amounts that reach zero are
    skipped on later passes. Whole passes are applied in one step.
    """
    if residual > 0:
        per_member, remainder = divmod(residual, len(amounts))
        for position in range(len(amounts)):
            amounts[position] += per_member + (1 if position < remainder else 0)
        return

    needed = -residual
    while needed:
        positive = [position for position, amount in enumerate(amounts) if amount > 0]
        if not positive:
            raise ValueError(f"Cannot take {needed} more units from zero amounts")
        if needed < len(positive):
            for position in positive[:needed]:
                amounts[position] -= 1
            return
        # Full passes, stopping early when the smallest amount hits zero
        passes = min(needed // len(positive), min(amounts[p] for p in positive))
        for position in positive:
            amounts[position] -= passes
        needed -= passes * len(positive)


def _check_total(total: int) -> None:
    if isinstance(total, bool) or not isinstance(total, int):
        raise TypeError(f"Total must be an integer number of minor units, got {total!r}")
    if total <= 0:
        raise NegativeAmountError(f"Total amount must be positive (got {total})")


def _check_inputs_cover(
    members: list[str],
    inputs: Mapping[str, object],
    error: type[SplitMismatchError] | type[PercentageMismatchError],
    label: str,
) -> None:
    missing = [m for m in members if m not in inputs]
    if missing:
        raise error(f"No {label} supplied for: {', '.join(missing)}")
    extra = sorted(set(inputs) - set(members))
    if extra:
        raise error(f"{label.capitalize()} supplied for non-participants: {', '.join(extra)}")
