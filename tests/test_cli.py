"""Tests for the ledger CLI commands."""

import pytest
from typer.testing import CliRunner

from mess_ledger.cli import app
from mess_ledger.ledger import cli as ledger_cli

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_db(tmp_path, monkeypatch):
    """Point the CLI at a fresh database."""
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "cli.db"))
    monkeypatch.setenv("DEFAULT_GROUP_ID", "flat")
    monkeypatch.setattr(ledger_cli.console, "width", 200)


def invoke(*args: str):
    """Run a ledger subcommand."""
    return runner.invoke(app, ["ledger", *args])


class TestLedgerCommands:
    """End-to-end CLI runs against a temporary database."""

    def test_expense_and_balances(self):
        """Record members and an expense, then show balances."""
        assert invoke("member-add", "A", "Alice").exit_code == 0
        assert invoke("member-add", "B", "Bob").exit_code == 0

        result = invoke("expense", "90.00", "--paid-by", "A", "-d", "Dinner")
        assert result.exit_code == 0, result.output
        assert "Recorded expense" in result.output

        result = invoke("balances")
        assert result.exit_code == 0, result.output
        assert "45.00" in result.output
        assert "Balances sum to zero" in result.output

    def test_settle_up_with_yes(self):
        """settle-up records the suggested payments."""
        invoke("member-add", "A", "Alice")
        invoke("member-add", "B", "Bob")
        invoke("expense", "10.00", "--paid-by", "A")

        result = invoke("settle-up", "--yes")
        assert result.exit_code == 0, result.output
        assert "Recorded 1 settlements" in result.output

        result = invoke("suggest")
        assert "Everyone is settled up" in result.output

    def test_unknown_member_exits_with_error(self):
        """Ledger errors are reported and exit non-zero."""
        invoke("member-add", "A", "Alice")

        result = invoke("settle", "A", "Z", "5.00")

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_invalid_category(self):
        """Categories are checked before anything is recorded."""
        invoke("member-add", "A", "Alice")

        result = invoke("expense", "5.00", "--paid-by", "A", "--category", "Yachts")

        assert result.exit_code != 0

    def test_non_finite_amount_reported(self):
        """Infinite amounts get the usual error line, not a traceback."""
        invoke("member-add", "A", "Alice")

        result = invoke("expense", "inf", "--paid-by", "A")

        assert result.exit_code == 1
        assert "Error" in result.output


class TestSplitOptions:
    """Parsing of --share, --percent and --exclude."""

    @pytest.fixture(autouse=True)
    def members(self):
        """Three members in the default group."""
        for member_id, name in (("alice", "Alice"), ("bob", "Bob"), ("carol", "Carol")):
            invoke("member-add", member_id, name)

    def test_unequal_shares(self):
        """--share amounts are converted to minor units."""
        result = invoke(
            "expense", "30.00", "--paid-by", "alice", "--split", "unequal",
            "--share", "alice=10.00", "--share", "bob=20.00",
        )
        assert result.exit_code == 0, result.output

        result = invoke("balances")
        assert "(20.00)" in result.output

    def test_percent_shares(self):
        """--percent values are split by percentage."""
        result = invoke(
            "expense", "100.00", "--paid-by", "alice", "--split", "percentage",
            "--percent", "alice=33.33", "--percent", "bob=66.67",
        )

        assert result.exit_code == 0, result.output
        assert "66.67" in result.output

    def test_exclude(self):
        """Excluded members are left out of the split."""
        result = invoke(
            "expense", "10.00", "--paid-by", "alice", "--split", "exclude", "--exclude", "carol"
        )

        assert result.exit_code == 0, result.output
        assert "bob" in result.output
        assert "carol" not in result.output

    def test_duplicate_share_rejected(self):
        """The same member can't be given two shares."""
        result = invoke(
            "expense", "30.00", "--paid-by", "alice", "--split", "unequal",
            "--share", "bob=10.00", "--share", "bob=20.00",
        )

        assert result.exit_code == 2
        assert "Everyone is settled up" in invoke("suggest").output

    def test_malformed_pair_rejected(self):
        """Pairs need MEMBER=VALUE."""
        result = invoke(
            "expense", "30.00", "--paid-by", "alice", "--split", "percentage",
            "--percent", "bob",
        )

        assert result.exit_code == 2


class TestDeleteCommand:
    """Deleting events from the command line."""

    def test_delete_expense(self):
        """A recorded expense can be deleted by id, once."""
        invoke("member-add", "A", "Alice")
        invoke("member-add", "B", "Bob")
        result = invoke("expense", "10.00", "--paid-by", "A")
        expense_id = result.output.split("Recorded expense ")[1].split()[0]

        result = invoke("delete", "expense", expense_id)
        assert result.exit_code == 0, result.output
        assert "Deleted expense" in result.output
        assert "Everyone is settled up" in invoke("suggest").output

        result = invoke("delete", "expense", expense_id)
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_unknown_kind(self):
        """Only the three event kinds can be deleted."""
        result = invoke("delete", "widget", "x")

        assert result.exit_code == 2
