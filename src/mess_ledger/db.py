"""SQLite event store for Mess Ledger."""

import logging
import sqlite3
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from .models import Collection, Expense, Member, Settlement, Share, SplitPolicy

logger = logging.getLogger(__name__)


class Database:
    """SQLite database manager.

    Stores raw events only. Balances are derived and never written here.
    """

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS members (
                group_id TEXT NOT NULL,
                id TEXT NOT NULL,
                name TEXT NOT NULL,
                active INTEGER NOT NULL DEFAULT 1,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (group_id, id)
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expenses (
                id TEXT PRIMARY KEY,
                group_id TEXT NOT NULL,
                amount INTEGER NOT NULL,
                payer_id TEXT NOT NULL,
                policy TEXT NOT NULL,
                description TEXT NOT NULL,
                category TEXT NOT NULL,
                created_at TIMESTAMP NOT NULL
            )
        """
        )

        # Shares keep their split order; it decides residue assignment
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expense_shares (
                expense_id TEXT NOT NULL
                    REFERENCES expenses(id) ON DELETE CASCADE,
                position INTEGER NOT NULL,
                member_id TEXT NOT NULL,
                amount INTEGER NOT NULL,
                percentage TEXT,
                PRIMARY KEY (expense_id, position)
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS collections (
                id TEXT PRIMARY KEY,
                group_id TEXT NOT NULL,
                amount INTEGER NOT NULL,
                member_id TEXT NOT NULL,
                collected_by TEXT,
                date TIMESTAMP NOT NULL,
                description TEXT NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS settlements (
                id TEXT PRIMARY KEY,
                group_id TEXT NOT NULL,
                payer_id TEXT NOT NULL,
                payee_id TEXT NOT NULL,
                amount INTEGER NOT NULL,
                note TEXT,
                created_at TIMESTAMP NOT NULL
            )
        """
        )

        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_expenses_group ON expenses (group_id)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_collections_group ON collections (group_id)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_settlements_group ON settlements (group_id)"
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    # ========================================================================
    # Member operations
    # ========================================================================

    def save_member(self, group_id: str, member: Member):
        """Insert a member, or update name/active flag if it exists."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO members (group_id, id, name, active)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(group_id, id) DO UPDATE SET
                name = excluded.name,
                active = excluded.active
            """,
            (group_id, member.id, member.name, int(member.active)),
        )
        self.conn.commit()

    def get_member(self, group_id: str, member_id: str) -> Member | None:
        """Get a member by id."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT id, name, active FROM members WHERE group_id = ? AND id = ?",
            (group_id, member_id),
        )
        row = cursor.fetchone()
        if not row:
            return None
        return Member(id=row["id"], name=row["name"], active=bool(row["active"]))

    def get_members(self, group_id: str) -> list[Member]:
        """Get every member of a group, inactive ones included."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, name, active FROM members
            WHERE group_id = ?
            ORDER BY rowid
            """,
            (group_id,),
        )
        return [
            Member(id=row["id"], name=row["name"], active=bool(row["active"]))
            for row in cursor.fetchall()
        ]

    # ========================================================================
    # Expense operations
    # ========================================================================

    def save_expense(self, group_id: str, expense: Expense):
        """Save an expense together with its shares."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO expenses (
                id, group_id, amount, payer_id, policy,
                description, category, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                expense.id,
                group_id,
                expense.amount,
                expense.payer_id,
                expense.policy.value,
                expense.description,
                expense.category,
                expense.created_at.isoformat(),
            ),
        )
        cursor.executemany(
            """
            INSERT INTO expense_shares (
                expense_id, position, member_id, amount, percentage
            ) VALUES (?, ?, ?, ?, ?)
            """,
            [
                (
                    expense.id,
                    position,
                    share.member_id,
                    share.amount,
                    str(share.percentage) if share.percentage is not None else None,
                )
                for position, share in enumerate(expense.shares)
            ],
        )
        self.conn.commit()

    def get_expenses(self, group_id: str) -> list[Expense]:
        """Get all expenses of a group, oldest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT s.expense_id, s.member_id, s.amount, s.percentage
            FROM expense_shares s
            JOIN expenses e ON e.id = s.expense_id
            WHERE e.group_id = ?
            ORDER BY s.expense_id, s.position
            """,
            (group_id,),
        )
        shares: dict[str, list[Share]] = {}
        for row in cursor.fetchall():
            shares.setdefault(row["expense_id"], []).append(
                Share(
                    member_id=row["member_id"],
                    amount=row["amount"],
                    percentage=(
                        Decimal(row["percentage"])
                        if row["percentage"] is not None
                        else None
                    ),
                )
            )

        cursor.execute(
            """
            SELECT id, amount, payer_id, policy, description, category, created_at
            FROM expenses
            WHERE group_id = ?
            ORDER BY created_at, id
            """,
            (group_id,),
        )
        return [
            Expense(
                id=row["id"],
                amount=row["amount"],
                payer_id=row["payer_id"],
                policy=SplitPolicy(row["policy"]),
                shares=shares.get(row["id"], []),
                description=row["description"],
                category=row["category"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in cursor.fetchall()
        ]

    def delete_expense(self, group_id: str, expense_id: str) -> bool:
        """Delete an expense and its shares. Returns False if it didn't exist."""
        return self._delete("expenses", group_id, expense_id)

    # ========================================================================
    # Collection operations
    # ========================================================================

    def save_collection(self, group_id: str, collection: Collection):
        """Save a collection."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO collections (
                id, group_id, amount, member_id, collected_by, date, description
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                collection.id,
                group_id,
                collection.amount,
                collection.member_id,
                collection.collected_by,
                collection.date.isoformat(),
                collection.description,
            ),
        )
        self.conn.commit()

    def get_collections(self, group_id: str) -> list[Collection]:
        """Get all collections of a group, oldest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, amount, member_id, collected_by, date, description
            FROM collections
            WHERE group_id = ?
            ORDER BY date, id
            """,
            (group_id,),
        )
        return [
            Collection(
                id=row["id"],
                amount=row["amount"],
                member_id=row["member_id"],
                collected_by=row["collected_by"],
                date=datetime.fromisoformat(row["date"]),
                description=row["description"],
            )
            for row in cursor.fetchall()
        ]

    def delete_collection(self, group_id: str, collection_id: str) -> bool:
        """Delete a collection. Returns False if it didn't exist."""
        return self._delete("collections", group_id, collection_id)

    # ========================================================================
    # Settlement operations
    # ========================================================================

    def save_settlement(self, group_id: str, settlement: Settlement):
        """Save a settlement."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO settlements (
                id, group_id, payer_id, payee_id, amount, note, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                settlement.id,
                group_id,
                settlement.payer_id,
                settlement.payee_id,
                settlement.amount,
                settlement.note,
                settlement.created_at.isoformat(),
            ),
        )
        self.conn.commit()

    def save_settlements(self, group_id: str, settlements: list[Settlement]):
        """Save several settlements in one transaction; none are saved on failure."""
        with self.conn:
            self.conn.executemany(
                """
                INSERT INTO settlements (
                    id, group_id, payer_id, payee_id, amount, note, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        settlement.id,
                        group_id,
                        settlement.payer_id,
                        settlement.payee_id,
                        settlement.amount,
                        settlement.note,
                        settlement.created_at.isoformat(),
                    )
                    for settlement in settlements
                ],
            )

    def get_settlements(self, group_id: str) -> list[Settlement]:
        """Get all settlements of a group, oldest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, payer_id, payee_id, amount, note, created_at
            FROM settlements
            WHERE group_id = ?
            ORDER BY created_at, id
            """,
            (group_id,),
        )
        return [
            Settlement(
                id=row["id"],
                payer_id=row["payer_id"],
                payee_id=row["payee_id"],
                amount=row["amount"],
                note=row["note"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in cursor.fetchall()
        ]

    def delete_settlement(self, group_id: str, settlement_id: str) -> bool:
        """Delete a settlement. Returns False if it didn't exist."""
        return self._delete("settlements", group_id, settlement_id)

    def _delete(self, table: str, group_id: str, event_id: str) -> bool:
        cursor = self.conn.cursor()
        # table is one of our own constants, never user input
        cursor.execute(
            f"DELETE FROM {table} WHERE group_id = ? AND id = ?",
            (group_id, event_id),
        )
        self.conn.commit()
        deleted = cursor.rowcount > 0
        if deleted:
            logger.debug(f"Deleted {table} row {event_id} from group {group_id}")
        return deleted
