"""Service layer that composes the event store and the ledger engine.

The ledger functions are pure; this module is where snapshots are loaded,
new events are validated against the group and persisted, and results are
logged.
"""

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from decimal import Decimal

from ..config import Settings
from ..db import Database
from ..exceptions import EventNotFoundError, MemberNotFoundError, UnknownMemberError
from ..models import (
    POOL_ACCOUNT_ID,
    Balance,
    Collection,
    Expense,
    ExpenseCategory,
    FundSummary,
    LedgerEntry,
    Member,
    Settlement,
    SettlementSuggestion,
    SplitPolicy,
)
from .balances import compute_balances, member_history, summarize_fund
from .settlements import suggest_settlements, verify_suggestions
from .splits import compute_split

logger = logging.getLogger(__name__)


class LedgerService:
    """Records mess events and answers balance and settlement queries."""

    def __init__(self, settings: Settings, database: Database):
        """Initialize the ledger service."""
        self.settings = settings
        self.db = database

    # ========================================================================
    # Membership
    # ========================================================================

    def add_member(self, group_id: str, member_id: str, name: str) -> Member:
        """Add a member, or reactivate and rename an existing one."""
        member = Member(id=member_id, name=name)
        self.db.save_member(group_id, member)
        logger.info(f"Added member {member_id} ({name}) to group {group_id}")
        return member

    def remove_member(self, group_id: str, member_id: str) -> Member:
        """
        Mark a member inactive.

        The member stays in the membership snapshot so events that reference
        them keep resolving, and any outstanding balance stays visible.
        """
        member = self.db.get_member(group_id, member_id)
        if member is None:
            raise MemberNotFoundError(group_id, member_id)
        member.active = False
        self.db.save_member(group_id, member)
        logger.info(f"Deactivated member {member_id} in group {group_id}")
        return member

    def list_members(self, group_id: str, include_inactive: bool = True) -> list[Member]:
        """List the members of a group."""
        members = self.db.get_members(group_id)
        if include_inactive:
            return members
        return [member for member in members if member.active]

    # ========================================================================
    # Recording events
    # ========================================================================

    def record_expense(
        self,
        group_id: str,
        amount: int,
        payer_id: str,
        policy: SplitPolicy | str = SplitPolicy.EQUAL,
        participants: Iterable[str] | None = None,
        policy_inputs: Mapping[str, int | Decimal | str | float] | None = None,
        excluded: Iterable[str] | None = None,
        description: str = "",
        category: ExpenseCategory = "Other",
        created_at: datetime | None = None,
    ) -> Expense:
        """
        Split and record a shared expense.

        Args:
            group_id: Group the expense belongs to
            amount: Total in minor units
            payer_id: Member who paid, or the pool account
            policy: Split policy
            participants: Member ids to split between; defaults to all active
                members (or the keys of policy_inputs, when given)
            policy_inputs: Amounts or percentages per participant
            excluded: Members to leave out of the split
            description: Free-text description
            category: Expense category
            created_at: Timestamp, defaults to now

        Returns:
            The persisted expense with its computed shares
        """
        members = self.db.get_members(group_id)
        if participants is None:
            if policy_inputs:
                participants = list(policy_inputs)
            else:
                participants = [member.id for member in members if member.active]
        participants = list(participants)

        known = {member.id for member in members}
        for member_id in participants:
            if member_id not in known:
                raise UnknownMemberError(member_id)

        shares = compute_split(
            amount,
            policy,
            participants,
            policy_inputs,
            excluded=excluded,
            tolerance=self.settings.percentage_tolerance,
        )

        expense = Expense(
            amount=amount,
            payer_id=payer_id,
            policy=SplitPolicy(policy),
            shares=shares,
            description=description,
            category=category,
            created_at=created_at or datetime.now(),
        )

        # Fail closed: never persist an event the aggregator would reject
        compute_balances(group_id, [expense], [], [], members)
        self.db.save_expense(group_id, expense)

        logger.info(
            f"Recorded expense {expense.id} in group {group_id}: "
            f"{amount} paid by {payer_id}, {expense.policy.value} split "
            f"over {len(shares)} members"
        )
        return expense

    def record_collection(
        self,
        group_id: str,
        member_id: str,
        amount: int,
        collected_by: str | None = None,
        description: str | None = None,
        date: datetime | None = None,
    ) -> Collection:
        """Record a member's contribution into the shared pool."""
        collection = Collection(
            amount=amount,
            member_id=member_id,
            collected_by=collected_by,
            date=date or datetime.now(),
        )
        if description:
            collection.description = description

        compute_balances(group_id, [], [collection], [], self.db.get_members(group_id))
        self.db.save_collection(group_id, collection)

        logger.info(
            f"Recorded collection {collection.id} in group {group_id}: "
            f"{amount} from {member_id}"
        )
        return collection

    def record_settlement(
        self,
        group_id: str,
        payer_id: str,
        payee_id: str,
        amount: int,
        note: str | None = None,
        created_at: datetime | None = None,
    ) -> Settlement:
        """Record a direct payment between two members (or a member and the pool)."""
        settlement = Settlement(
            payer_id=payer_id,
            payee_id=payee_id,
            amount=amount,
            note=note,
            created_at=created_at or datetime.now(),
        )

        compute_balances(group_id, [], [], [settlement], self.db.get_members(group_id))
        self.db.save_settlement(group_id, settlement)

        logger.info(
            f"Recorded settlement {settlement.id} in group {group_id}: "
            f"{payer_id} paid {payee_id} {amount}"
        )
        return settlement

    # ========================================================================
    # Deleting events
    # ========================================================================

    def delete_expense(self, group_id: str, expense_id: str):
        """Delete an expense; its contribution disappears on next computation."""
        if not self.db.delete_expense(group_id, expense_id):
            raise EventNotFoundError("expense", expense_id)
        logger.info(f"Deleted expense {expense_id} from group {group_id}")

    def delete_collection(self, group_id: str, collection_id: str):
        """Delete a collection."""
        if not self.db.delete_collection(group_id, collection_id):
            raise EventNotFoundError("collection", collection_id)
        logger.info(f"Deleted collection {collection_id} from group {group_id}")

    def delete_settlement(self, group_id: str, settlement_id: str):
        """Delete a settlement."""
        if not self.db.delete_settlement(group_id, settlement_id):
            raise EventNotFoundError("settlement", settlement_id)
        logger.info(f"Deleted settlement {settlement_id} from group {group_id}")

    # ========================================================================
    # Queries
    # ========================================================================

    def get_balances(self, group_id: str) -> dict[str, Balance]:
        """Recompute every balance of a group from its full event history."""
        members = self.db.get_members(group_id)
        expenses = self.db.get_expenses(group_id)
        collections = self.db.get_collections(group_id)
        settlements = self.db.get_settlements(group_id)

        balances = compute_balances(group_id, expenses, collections, settlements, members)

        logger.debug(
            f"Computed {len(balances)} balances for group {group_id} from "
            f"{len(expenses)} expenses, {len(collections)} collections, "
            f"{len(settlements)} settlements"
        )
        return balances

    def get_member_history(self, group_id: str, member_id: str) -> list[LedgerEntry]:
        """List the events affecting one member, newest first."""
        if member_id != POOL_ACCOUNT_ID and self.db.get_member(group_id, member_id) is None:
            raise MemberNotFoundError(group_id, member_id)
        return member_history(
            member_id,
            self.db.get_expenses(group_id),
            self.db.get_collections(group_id),
            self.db.get_settlements(group_id),
        )

    def get_fund_summary(self, group_id: str) -> FundSummary:
        """Summarize money collected into and paid out of the shared pool."""
        return summarize_fund(
            self.db.get_expenses(group_id),
            self.db.get_collections(group_id),
            self.db.get_settlements(group_id),
        )

    def get_suggestions(self, group_id: str) -> list[SettlementSuggestion]:
        """
        Compute the payments that would settle the group.

        The suggestions are checked against the balances before they are
        returned; a failed check raises SettlementError.
        """
        balances = self.get_balances(group_id)
        suggestions = suggest_settlements(balances)
        verify_suggestions(balances, suggestions)

        logger.info(
            f"Suggested {len(suggestions)} payments for group {group_id}, "
            f"total {sum(s.amount for s in suggestions)}"
        )
        return suggestions

    def settle_up(self, group_id: str, note: str = "Settle up") -> list[Settlement]:
        """
        Record every current suggestion as a settlement.

        All settlements are validated first and written in one transaction,
        so either the whole settle-up is recorded or none of it is.
        """
        suggestions = self.get_suggestions(group_id)
        now = datetime.now()
        settlements = [
            Settlement(
                payer_id=suggestion.payer_id,
                payee_id=suggestion.payee_id,
                amount=suggestion.amount,
                note=note,
                created_at=now,
            )
            for suggestion in suggestions
        ]

        compute_balances(group_id, [], [], settlements, self.db.get_members(group_id))
        self.db.save_settlements(group_id, settlements)

        logger.info(f"Settled group {group_id} with {len(settlements)} payments")
        return settlements
