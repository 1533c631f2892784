"""Balance aggregation over a group's full event history.

Balances are never stored. They are folded from scratch out of the complete
set of expenses, collections and settlements every time they're needed.

Sign convention (positive = owed, negative = owes):
- expense: payer +amount, each participant -share
- collection: contributor +amount, pool -amount
- settlement: payer +amount, payee -amount

Every event moves the same amount in both directions, so the balances of all
accounts, pool included, always sum to zero.
"""

from collections.abc import Iterable

from ..exceptions import (
    DuplicateParticipantError,
    NegativeAmountError,
    NoParticipantsError,
    SettlementError,
    SplitMismatchError,
    UnknownMemberError,
)
from ..models import (
    POOL_ACCOUNT_ID,
    Balance,
    Collection,
    Expense,
    FundSummary,
    LedgerEntry,
    Member,
    Settlement,
)


def compute_balances(
    group_id: str,
    expenses: Iterable[Expense],
    collections: Iterable[Collection],
    settlements: Iterable[Settlement],
    members: Iterable[Member],
) -> dict[str, Balance]:
    """
    Compute the net balance of every member in a group.

    Every event is validated before anything is folded, so the result is
    either complete or an exception is raised.

    Args:
        group_id: Group the snapshot belongs to (used in error messages)
        expenses: Expenses with resolved shares
        collections: Contributions into the pool
        settlements: Direct payments between accounts
        members: Membership snapshot, including inactive members

    Returns:
        Balances keyed by member id, in membership order. The pool account is
        appended last, only if an event touches it.

    Raises:
        UnknownMemberError: an event references a member outside the snapshot
        NegativeAmountError: an event amount is not positive, or a share is negative
        SplitMismatchError: an expense's shares don't sum to its amount
        NoParticipantsError: an expense has no shares
        DuplicateParticipantError: an expense lists a member twice
        SettlementError: a settlement pays its own payer
    """
    expenses = list(expenses)
    collections = list(collections)
    settlements = list(settlements)
    members = list(members)

    known = {member.id for member in members}
    for expense in expenses:
        _validate_expense(group_id, expense, known)
    for collection in collections:
        _validate_collection(group_id, collection, known)
    for settlement in settlements:
        _validate_settlement(group_id, settlement, known)

    balances = {member.id: Balance(member_id=member.id) for member in members}

    def account(member_id: str) -> Balance:
        if member_id not in balances:
            # Only the pool can be missing after validation
            balances[member_id] = Balance(member_id=member_id)
        return balances[member_id]

    for expense in expenses:
        account(expense.payer_id).paid_from_pocket += expense.amount
        for share in expense.shares:
            account(share.member_id).fair_share += share.amount

    for collection in collections:
        account(collection.member_id).contributed += collection.amount
        account(POOL_ACCOUNT_ID).settlements_received += collection.amount

    for settlement in settlements:
        account(settlement.payer_id).settlements_paid += settlement.amount
        account(settlement.payee_id).settlements_received += settlement.amount

    for balance in balances.values():
        balance.amount = (
            balance.paid_from_pocket
            - balance.fair_share
            + balance.contributed
            + balance.settlements_paid
            - balance.settlements_received
        )

    return balances


def summarize_fund(
    expenses: Iterable[Expense],
    collections: Iterable[Collection],
    settlements: Iterable[Settlement],
) -> FundSummary:
    """
    Summarize the shared pool.

    cash_on_hand is what the pool physically holds: everything paid in
    (collections and settlements to the pool) minus everything paid out
    (expenses paid by the pool and refunds). It always equals the negated
    pool balance from compute_balances.
    """
    expenses = list(expenses)
    settlements = list(settlements)

    total_collected = sum(c.amount for c in collections) + sum(
        s.amount for s in settlements if s.payee_id == POOL_ACCOUNT_ID
    )
    pool_paid = sum(e.amount for e in expenses if e.payer_id == POOL_ACCOUNT_ID)
    refunded = sum(s.amount for s in settlements if s.payer_id == POOL_ACCOUNT_ID)

    return FundSummary(
        total_collected=total_collected,
        total_expenses=sum(e.amount for e in expenses),
        pool_paid_expenses=pool_paid,
        total_refunded=refunded,
        cash_on_hand=total_collected - pool_paid - refunded,
    )


def member_history(
    member_id: str,
    expenses: Iterable[Expense],
    collections: Iterable[Collection],
    settlements: Iterable[Settlement],
) -> list[LedgerEntry]:
    """
    List every event line affecting one account, newest first.

    The entry amounts sum to the account's balance.
    """
    entries: list[LedgerEntry] = []

    for expense in expenses:
        if expense.payer_id == member_id:
            entries.append(
                LedgerEntry(
                    kind="expense",
                    event_id=expense.id,
                    description=f"Paid from pocket: {expense.description}",
                    amount=expense.amount,
                    date=expense.created_at,
                )
            )
        for share in expense.shares:
            if share.member_id == member_id:
                entries.append(
                    LedgerEntry(
                        kind="expense",
                        event_id=expense.id,
                        description=f"Your share: {expense.description}",
                        amount=-share.amount,
                        date=expense.created_at,
                    )
                )

    for collection in collections:
        if collection.member_id == member_id:
            entries.append(
                LedgerEntry(
                    kind="collection",
                    event_id=collection.id,
                    description=collection.description,
                    amount=collection.amount,
                    date=collection.date,
                )
            )
        elif member_id == POOL_ACCOUNT_ID:
            entries.append(
                LedgerEntry(
                    kind="collection",
                    event_id=collection.id,
                    description=f"Collected from {collection.member_id}",
                    amount=-collection.amount,
                    date=collection.date,
                )
            )

    for settlement in settlements:
        if settlement.payer_id == member_id:
            entries.append(
                LedgerEntry(
                    kind="settlement",
                    event_id=settlement.id,
                    description=settlement.note or f"Paid {settlement.payee_id}",
                    amount=settlement.amount,
                    date=settlement.created_at,
                )
            )
        elif settlement.payee_id == member_id:
            entries.append(
                LedgerEntry(
                    kind="settlement",
                    event_id=settlement.id,
                    description=settlement.note
                    or f"Received from {settlement.payer_id}",
                    amount=-settlement.amount,
                    date=settlement.created_at,
                )
            )

    entries.sort(key=lambda entry: entry.date, reverse=True)
    return entries


# ============================================================================
# Validation
# ============================================================================


def _check_account(group_id: str, member_id: str, known: set[str], what: str) -> None:
    if member_id != POOL_ACCOUNT_ID and member_id not in known:
        raise UnknownMemberError(
            member_id, f"{what} references unknown member {member_id!r} in group {group_id!r}"
        )


def _check_amount(amount: int, what: str) -> None:
    if amount <= 0:
        raise NegativeAmountError(f"{what} amount must be positive (got {amount})")


def _validate_expense(group_id: str, expense: Expense, known: set[str]) -> None:
    what = f"Expense {expense.id}"
    _check_amount(expense.amount, what)
    _check_account(group_id, expense.payer_id, known, what)

    if not expense.shares:
        raise NoParticipantsError(f"{what} has no participants")

    seen: set[str] = set()
    for share in expense.shares:
        if share.member_id not in known:
            raise UnknownMemberError(
                share.member_id,
                f"{what} has a share for unknown member {share.member_id!r} "
                f"in group {group_id!r}",
            )
        if share.member_id in seen:
            raise DuplicateParticipantError(share.member_id)
        seen.add(share.member_id)
        if share.amount < 0:
            raise NegativeAmountError(
                f"{what} share for {share.member_id!r} is negative ({share.amount})"
            )

    actual = sum(share.amount for share in expense.shares)
    if actual != expense.amount:
        raise SplitMismatchError(
            f"{what}: sum of splits ({actual}) must equal total amount "
            f"({expense.amount})",
            expected=expense.amount,
            actual=actual,
        )


def _validate_collection(group_id: str, collection: Collection, known: set[str]) -> None:
    what = f"Collection {collection.id}"
    _check_amount(collection.amount, what)
    if collection.member_id not in known:
        raise UnknownMemberError(
            collection.member_id,
            f"{what} references unknown member {collection.member_id!r} "
            f"in group {group_id!r}",
        )
    if collection.collected_by is not None:
        _check_account(group_id, collection.collected_by, known, what)


def _validate_settlement(group_id: str, settlement: Settlement, known: set[str]) -> None:
    what = f"Settlement {settlement.id}"
    _check_amount(settlement.amount, what)
    _check_account(group_id, settlement.payer_id, known, what)
    _check_account(group_id, settlement.payee_id, known, what)
    if settlement.payer_id == settlement.payee_id:
        raise SettlementError(f"{what}: {settlement.payer_id!r} cannot pay themselves")
