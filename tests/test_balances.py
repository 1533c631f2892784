"""Tests for balance aggregation."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from mess_ledger.exceptions import (
    DuplicateParticipantError,
    NegativeAmountError,
    NoParticipantsError,
    SettlementError,
    SplitMismatchError,
    UnknownMemberError,
)
from mess_ledger.ledger.balances import compute_balances, member_history, summarize_fund
from mess_ledger.ledger.splits import compute_split
from mess_ledger.models import (
    POOL_ACCOUNT_ID,
    Balance,
    Collection,
    Expense,
    Member,
    Settlement,
    Share,
    SplitPolicy,
)

GROUP = "mess-1"


# Helper functions for tests
def make_expense(
    id: str, amount: int, payer: str, participants: list[str], day: int = 1
) -> Expense:
    """Create an equally split expense."""
    return Expense(
        id=id,
        amount=amount,
        payer_id=payer,
        policy=SplitPolicy.EQUAL,
        shares=compute_split(amount, "equal", participants),
        description=f"Expense {id}",
        created_at=datetime(2025, 1, day),
    )


def make_settlement(id: str, payer: str, payee: str, amount: int, day: int = 1) -> Settlement:
    """Create a settlement."""
    return Settlement(
        id=id, payer_id=payer, payee_id=payee, amount=amount, created_at=datetime(2025, 1, day)
    )


def make_collection(id: str, member: str, amount: int, day: int = 1) -> Collection:
    """Create a collection."""
    return Collection(id=id, member_id=member, amount=amount, date=datetime(2025, 1, day))


def amounts(balances: dict[str, Balance]) -> dict[str, int]:
    """Balance amounts keyed by member id."""
    return {member_id: balance.amount for member_id, balance in balances.items()}


@pytest.fixture
def members():
    """Three members of a mess."""
    return [
        Member(id="A", name="Alice"),
        Member(id="B", name="Bob"),
        Member(id="C", name="Carol"),
    ]


@pytest.fixture
def history():
    """A mixed event history touching the pool."""
    expenses = [
        make_expense("e1", 9000, "A", ["A", "B", "C"], day=1),
        make_expense("e2", 10001, "B", ["A", "B", "C"], day=3),
        make_expense("e3", 2500, POOL_ACCOUNT_ID, ["B", "C"], day=5),
    ]
    collections = [make_collection("c1", "C", 5000, day=2)]
    settlements = [
        make_settlement("s1", "C", "A", 1500, day=4),
        make_settlement("s2", POOL_ACCOUNT_ID, "C", 1000, day=6),
    ]
    return expenses, collections, settlements


class TestScenarios:
    """Worked examples."""

    def test_expense_then_settlement(self, members):
        """A pays 90 split three ways, B settles 30 with A."""
        balances = compute_balances(
            GROUP,
            [make_expense("e1", 9000, "A", ["A", "B", "C"])],
            [],
            [make_settlement("s1", "B", "A", 3000)],
            members,
        )

        assert amounts(balances) == {"A": 3000, "B": 0, "C": -3000}
        assert balances["A"].status == "owed"
        assert balances["B"].status == "settled"
        assert balances["C"].status == "owes"

    def test_breakdown_fields(self, members):
        """Breakdown components explain the balance."""
        balances = compute_balances(
            GROUP,
            [make_expense("e1", 9000, "A", ["A", "B", "C"])],
            [make_collection("c1", "B", 2000)],
            [make_settlement("s1", "B", "A", 3000)],
            members,
        )

        alice = balances["A"]
        assert alice.paid_from_pocket == 9000
        assert alice.fair_share == 3000
        assert alice.settlements_received == 3000
        assert alice.amount == 3000

        bob = balances["B"]
        assert bob.fair_share == 3000
        assert bob.contributed == 2000
        assert bob.settlements_paid == 3000
        assert bob.amount == 2000

    def test_members_without_events_are_settled(self, members):
        """Everyone in the snapshot is reported, even with no events."""
        balances = compute_balances(GROUP, [], [], [], members)

        assert amounts(balances) == {"A": 0, "B": 0, "C": 0}
        assert all(b.status == "settled" for b in balances.values())

    def test_membership_order_preserved(self, members):
        """Balances come back in membership order."""
        balances = compute_balances(GROUP, [], [], [], list(reversed(members)))

        assert list(balances) == ["C", "B", "A"]

    def test_inactive_member_still_resolves(self):
        """Removed members keep their history and balance."""
        snapshot = [Member(id="A", name="Alice"), Member(id="B", name="Bob", active=False)]

        balances = compute_balances(
            GROUP, [make_expense("e1", 1000, "A", ["A", "B"])], [], [], snapshot
        )

        assert amounts(balances) == {"A": 500, "B": -500}

    def test_status_serialized(self, members):
        """status is part of the dumped model."""
        balances = compute_balances(
            GROUP, [make_expense("e1", 1000, "A", ["A", "B"])], [], [], members
        )

        assert balances["B"].model_dump()["status"] == "owes"


class TestPoolAccount:
    """Collections and fund payments go through the pool account."""

    def test_pool_absent_without_pool_events(self, members):
        """Member-only histories report members only."""
        balances = compute_balances(
            GROUP, [make_expense("e1", 9000, "A", ["A", "B", "C"])], [], [], members
        )

        assert POOL_ACCOUNT_ID not in balances

    def test_collection_credits_contributor_and_debits_pool(self, members):
        """A contribution is a payment into the pool."""
        balances = compute_balances(
            GROUP, [], [make_collection("c1", "A", 5000)], [], members
        )

        assert balances["A"].amount == 5000
        assert balances[POOL_ACCOUNT_ID].amount == -5000
        assert list(balances)[-1] == POOL_ACCOUNT_ID

    def test_pool_paid_expense(self, members):
        """Expenses paid from the fund credit the pool."""
        balances = compute_balances(
            GROUP,
            [make_expense("e1", 6000, POOL_ACCOUNT_ID, ["A", "B", "C"])],
            [make_collection("c1", "A", 5000), make_collection("c2", "B", 5000)],
            [],
            members,
        )

        assert amounts(balances) == {"A": 3000, "B": 3000, "C": -2000, POOL_ACCOUNT_ID: -4000}

    def test_fund_summary_matches_pool_balance(self, members, history):
        """Cash on hand is the negated pool balance."""
        expenses, collections, settlements = history

        balances = compute_balances(GROUP, expenses, collections, settlements, members)
        summary = summarize_fund(expenses, collections, settlements)

        assert summary.total_collected == 5000
        assert summary.pool_paid_expenses == 2500
        assert summary.total_refunded == 1000
        assert summary.total_expenses == 9000 + 10001 + 2500
        assert summary.cash_on_hand == 1500
        assert summary.cash_on_hand == -balances[POOL_ACCOUNT_ID].amount


class TestInvariants:
    """Conservation, idempotence and deletion."""

    def test_conservation(self, members, history):
        """All accounts sum to zero."""
        balances = compute_balances(GROUP, *history, members)

        assert sum(b.amount for b in balances.values()) == 0

    def test_idempotent(self, members, history):
        """Same events, same result."""
        first = compute_balances(GROUP, *history, members)
        second = compute_balances(GROUP, *history, members)

        assert first == second

    def test_event_order_irrelevant(self, members, history):
        """Folding order doesn't matter."""
        expenses, collections, settlements = history

        forward = compute_balances(GROUP, expenses, collections, settlements, members)
        backward = compute_balances(
            GROUP, expenses[::-1], collections[::-1], settlements[::-1], members
        )

        assert amounts(forward) == amounts(backward)

    @pytest.mark.parametrize("kind,index", [("e", 0), ("e", 1), ("e", 2), ("c", 0), ("s", 0), ("s", 1)])
    def test_deletion_removes_exactly_one_contribution(self, members, history, kind, index):
        """Full minus without-E equals E on its own."""
        expenses, collections, settlements = (list(x) for x in history)
        source = {"e": expenses, "c": collections, "s": settlements}[kind]
        event = source.pop(index)

        full = amounts(compute_balances(GROUP, *history, members))
        without = amounts(compute_balances(GROUP, expenses, collections, settlements, members))
        alone = amounts(
            compute_balances(
                GROUP,
                [event] if kind == "e" else [],
                [event] if kind == "c" else [],
                [event] if kind == "s" else [],
                members,
            )
        )

        for account in full:
            assert full[account] - without.get(account, 0) == alone.get(account, 0)


class TestValidation:
    """Events are validated before anything is folded."""

    def test_unknown_share_member(self, members):
        """Shares for members outside the snapshot fail closed."""
        expense = make_expense("e1", 1000, "A", ["A", "Z"])

        with pytest.raises(UnknownMemberError) as exc_info:
            compute_balances(GROUP, [expense], [], [], members)

        assert exc_info.value.member_id == "Z"
        assert GROUP in str(exc_info.value)

    def test_unknown_payer(self, members):
        """Unknown payers fail closed."""
        with pytest.raises(UnknownMemberError):
            compute_balances(GROUP, [make_expense("e1", 1000, "Z", ["A"])], [], [], members)

    def test_unknown_collection_member(self, members):
        """Unknown contributors fail closed."""
        with pytest.raises(UnknownMemberError):
            compute_balances(GROUP, [], [make_collection("c1", "Z", 100)], [], members)

    def test_unknown_settlement_party(self, members):
        """Unknown settlement parties fail closed."""
        with pytest.raises(UnknownMemberError):
            compute_balances(GROUP, [], [], [make_settlement("s1", "A", "Z", 100)], members)

    def test_pool_cannot_hold_a_share(self, members):
        """The pool pays; it never consumes."""
        expense = Expense(
            id="e1",
            amount=100,
            payer_id="A",
            policy=SplitPolicy.UNEQUAL,
            shares=[Share(member_id=POOL_ACCOUNT_ID, amount=100)],
        )

        with pytest.raises(UnknownMemberError):
            compute_balances(GROUP, [expense], [], [], members)

    @pytest.mark.parametrize("amount", [0, -100])
    def test_non_positive_expense(self, members, amount):
        """Expense totals must be positive."""
        expense = Expense(
            id="e1", amount=amount, payer_id="A", policy=SplitPolicy.EQUAL, shares=[]
        )

        with pytest.raises(NegativeAmountError):
            compute_balances(GROUP, [expense], [], [], members)

    def test_negative_share(self, members):
        """Negative shares are rejected."""
        expense = Expense(
            id="e1",
            amount=100,
            payer_id="A",
            policy=SplitPolicy.UNEQUAL,
            shares=[Share(member_id="A", amount=150), Share(member_id="B", amount=-50)],
        )

        with pytest.raises(NegativeAmountError):
            compute_balances(GROUP, [expense], [], [], members)

    def test_shares_must_sum_to_amount(self, members):
        """Stored splits must reconcile exactly."""
        expense = Expense(
            id="e1",
            amount=100,
            payer_id="A",
            policy=SplitPolicy.UNEQUAL,
            shares=[Share(member_id="A", amount=50), Share(member_id="B", amount=49)],
        )

        with pytest.raises(SplitMismatchError):
            compute_balances(GROUP, [expense], [], [], members)

    def test_expense_without_shares(self, members):
        """An expense needs participants."""
        expense = Expense(id="e1", amount=100, payer_id="A", policy=SplitPolicy.EQUAL, shares=[])

        with pytest.raises(NoParticipantsError):
            compute_balances(GROUP, [expense], [], [], members)

    def test_duplicate_share_member(self, members):
        """A member can hold only one share per expense."""
        expense = Expense(
            id="e1",
            amount=100,
            payer_id="A",
            policy=SplitPolicy.UNEQUAL,
            shares=[Share(member_id="B", amount=50), Share(member_id="B", amount=50)],
        )

        with pytest.raises(DuplicateParticipantError):
            compute_balances(GROUP, [expense], [], [], members)

    @pytest.mark.parametrize("amount", [0, -500])
    def test_non_positive_settlement(self, members, amount):
        """Settlement amounts must be positive."""
        with pytest.raises(NegativeAmountError):
            compute_balances(GROUP, [], [], [make_settlement("s1", "A", "B", amount)], members)

    def test_non_positive_collection(self, members):
        """Collection amounts must be positive."""
        with pytest.raises(NegativeAmountError):
            compute_balances(GROUP, [], [make_collection("c1", "A", -1)], [], members)

    def test_self_payment(self, members):
        """Paying yourself is rejected."""
        with pytest.raises(SettlementError):
            compute_balances(GROUP, [], [], [make_settlement("s1", "A", "A", 100)], members)

    def test_one_bad_event_fails_everything(self, members, history):
        """No partial results when any event is invalid."""
        expenses, collections, settlements = history

        with pytest.raises(UnknownMemberError):
            compute_balances(
                GROUP,
                expenses,
                collections,
                settlements + [make_settlement("s9", "A", "ghost", 100)],
                members,
            )

    def test_pool_id_reserved_for_members(self):
        """Members can't take the pool's id."""
        with pytest.raises(ValidationError):
            Member(id=POOL_ACCOUNT_ID, name="Sneaky")


class TestMemberHistory:
    """Per-member event lines."""

    def test_history_sums_to_balance(self, members, history):
        """Every account's history adds up to its balance."""
        balances = compute_balances(GROUP, *history, members)

        for account, balance in balances.items():
            entries = member_history(account, *history)
            assert sum(entry.amount for entry in entries) == balance.amount

    def test_newest_first(self, history):
        """Entries are sorted newest first."""
        entries = member_history("C", *history)

        dates = [entry.date for entry in entries]
        assert dates == sorted(dates, reverse=True)

    def test_payer_and_participant_lines(self):
        """A paying participant gets two lines for one expense."""
        expense = make_expense("e1", 9000, "A", ["A", "B", "C"])

        entries = member_history("A", [expense], [], [])

        assert sorted(entry.amount for entry in entries) == [-3000, 9000]
        assert {entry.kind for entry in entries} == {"expense"}
