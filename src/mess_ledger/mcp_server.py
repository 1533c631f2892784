"""MCP server for Mess Ledger: exposes balances and settling as tools."""

import logging
from dataclasses import dataclass

from mcp.server.fastmcp import FastMCP

from .config import Settings, load_settings
from .db import Database
from .exceptions import MessLedgerError
from .ledger.service import LedgerService
from .models import POOL_ACCOUNT_ID
from .money import format_minor_units, to_minor_units

logger = logging.getLogger(__name__)

mcp_app = FastMCP("mess-ledger")

# ---------------------------------------------------------------------------
# Session state (one MCP server process = one conversation)
# ---------------------------------------------------------------------------

WORKFLOW_INSTRUCTIONS = """\
You are helping a mess (a group sharing recurring costs) settle up.

1. MEMBERS: Call list_members to learn member ids and names.
2. BALANCES: Call show_balances. Positive = the member is owed money,
   negative = the member owes. "Mess fund" is the shared pool.
3. SUGGEST: Call suggest_settlements to get the fewest payments that zero
   every balance. Show them to the user by name.
4. RECORD: Only after the user confirms a payment actually happened, call
   record_settlement for it. Never record payments speculatively.

Amounts are plain decimals in the group's currency.\
"""


@dataclass
class SessionState:
    """Holds state between MCP tool calls within a single conversation."""

    settings: Settings | None = None
    service: LedgerService | None = None
    db: Database | None = None


_state = SessionState()


def _ensure_service() -> tuple[Settings, LedgerService]:
    """Lazily initialize the LedgerService (loads .env config)."""
    if _state.service is None or _state.settings is None:
        _state.settings = load_settings()
        _state.db = Database(_state.settings.database_path)
        _state.service = LedgerService(_state.settings, _state.db)
    return _state.settings, _state.service


def _format_amount(units: int, decimals: int) -> str:
    """Format minor units as accounting-style string."""
    if units < 0:
        return f"({format_minor_units(-units, decimals)})"
    return format_minor_units(units, decimals)


# ---------------------------------------------------------------------------
# MCP Tools
# ---------------------------------------------------------------------------


@mcp_app.tool()
def list_members(group_id: str | None = None) -> str:
    """List members of a group.

    Args:
        group_id: Group id; defaults to the configured default group.
    """
    try:
        settings, service = _ensure_service()
        group = group_id or settings.default_group_id
        members = service.list_members(group)

        if not members:
            return f"Group {group} has no members."

        lines = [f"Members of {group}:"]
        for member in members:
            status = "" if member.active else " (inactive)"
            lines.append(f"  - {member.id}: {member.name}{status}")
        return "\n".join(lines)
    except MessLedgerError as e:
        return f"Error: {e}"


@mcp_app.tool()
def show_balances(group_id: str | None = None) -> str:
    """Show every member's net balance, recomputed from the full history.

    Args:
        group_id: Group id; defaults to the configured default group.
    """
    try:
        settings, service = _ensure_service()
        group = group_id or settings.default_group_id
        decimals = settings.currency_decimals
        names = {m.id: m.name for m in service.list_members(group)}
        names[POOL_ACCOUNT_ID] = "Mess fund"

        balances = service.get_balances(group)
        if not balances:
            return f"Group {group} has no balances."

        lines = [f"Balances for {group}:"]
        for balance in balances.values():
            lines.append(
                f"  - {names.get(balance.member_id, balance.member_id)}: "
                f"{_format_amount(balance.amount, decimals)} ({balance.status})"
            )
        return "\n".join(lines)
    except MessLedgerError as e:
        return f"Error: {e}"


@mcp_app.tool()
def suggest_settlements(group_id: str | None = None) -> str:
    """Suggest the fewest payments that settle every balance.

    Args:
        group_id: Group id; defaults to the configured default group.
    """
    try:
        settings, service = _ensure_service()
        group = group_id or settings.default_group_id
        decimals = settings.currency_decimals

        suggestions = service.get_suggestions(group)

        if not suggestions:
            return "Everyone is settled up."

        lines = ["Suggested payments:"]
        for i, s in enumerate(suggestions):
            lines.append(
                f"  [{i}] {s.payer_id} pays {s.payee_id} "
                f"{format_minor_units(s.amount, decimals)}"
            )
        total = sum(s.amount for s in suggestions)
        lines.append("")
        lines.append(f"{len(suggestions)} payments, total {format_minor_units(total, decimals)}")
        return "\n".join(lines)
    except MessLedgerError as e:
        return f"Error: {e}"


@mcp_app.tool()
def record_settlement(
    payer_id: str,
    payee_id: str,
    amount: str,
    note: str | None = None,
    group_id: str | None = None,
) -> str:
    """Record a payment that has actually been made.

    Args:
        payer_id: Member who paid (or "pool" for a refund from the fund).
        payee_id: Member who received (or "pool" for a payment into the fund).
        amount: Amount as a decimal string, e.g. "40.00".
        note: Optional note.
        group_id: Group id; defaults to the configured default group.
    """
    try:
        settings, service = _ensure_service()
        group = group_id or settings.default_group_id
        settlement = service.record_settlement(
            group,
            payer_id=payer_id,
            payee_id=payee_id,
            amount=to_minor_units(amount, settings.currency_decimals),
            note=note,
        )
        return (
            f"Recorded settlement {settlement.id}: {payer_id} paid {payee_id} "
            f"{format_minor_units(settlement.amount, settings.currency_decimals)}"
        )
    except (MessLedgerError, ValueError) as e:
        return f"Error: {e}"


@mcp_app.tool()
def fund_summary(group_id: str | None = None) -> str:
    """Show money collected into and paid out of the mess fund.

    Args:
        group_id: Group id; defaults to the configured default group.
    """
    try:
        settings, service = _ensure_service()
        group = group_id or settings.default_group_id
        decimals = settings.currency_decimals
        summary = service.get_fund_summary(group)

        return "\n".join(
            [
                f"Mess fund for {group}:",
                f"  Collected: {_format_amount(summary.total_collected, decimals)}",
                f"  Paid from fund: {_format_amount(summary.pool_paid_expenses, decimals)}",
                f"  Refunded: {_format_amount(summary.total_refunded, decimals)}",
                f"  Cash on hand: {_format_amount(summary.cash_on_hand, decimals)}",
                f"  All group expenses: {_format_amount(summary.total_expenses, decimals)}",
            ]
        )
    except MessLedgerError as e:
        return f"Error: {e}"


# ---------------------------------------------------------------------------
# MCP Prompt
# ---------------------------------------------------------------------------


@mcp_app.prompt()
def settle_workflow() -> str:
    """Orchestration instructions for settling a mess."""
    return WORKFLOW_INSTRUCTIONS


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def run_server():
    """Start the MCP server (stdio transport)."""
    logger.info("Starting mess-ledger MCP server")
    mcp_app.run(transport="stdio")
