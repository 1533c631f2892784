"""CLI commands for recording mess events and settling balances."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.console import Console
from rich.table import Table

from ..config import Settings, load_settings
from ..db import Database
from ..exceptions import MessLedgerError
from ..models import EXPENSE_CATEGORIES, POOL_ACCOUNT_ID, Balance, SplitPolicy
from ..money import format_minor_units, to_minor_units
from .service import LedgerService

app = typer.Typer(
    name="ledger",
    help="Record shared expenses, contributions and payments; settle balances",
)

console = Console()

GROUP_OPTION = typer.Option(None, "--group", "-g", help="Group id (default from settings)")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Verbose output")


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@contextmanager
def open_service(verbose: bool) -> Iterator[tuple[Settings, LedgerService]]:
    """Load settings, open the database and report ledger errors uniformly."""
    setup_logging(verbose)
    db = None
    try:
        settings = load_settings()
        db = Database(settings.database_path)
        yield settings, LedgerService(settings, db)
    except (MessLedgerError, ValueError) as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if db is not None:
            db.close()


def format_money(units: int, decimals: int = 2, use_color: bool = True) -> str:
    """
    Format minor units in accounting style with alignment.

    Negative amounts use parentheses: (85.02)
    Positive amounts have spaces:      85.02
    """
    text = format_minor_units(abs(units), decimals)
    if units < 0:
        return f"([red]{text}[/red])" if use_color else f"({text})"
    if use_color and units > 0:
        return f" [green]{text}[/green] "
    return f" {text} "


def _parse_pairs(values: list[str] | None, label: str) -> dict[str, str]:
    """Parse repeated MEMBER=VALUE options, preserving order."""
    pairs: dict[str, str] = {}
    for raw in values or []:
        member_id, sep, value = raw.partition("=")
        if not sep or not member_id or not value:
            raise typer.BadParameter(f"Expected MEMBER=VALUE, got {raw!r}", param_hint=label)
        member_id = member_id.strip()
        if member_id in pairs:
            raise typer.BadParameter(f"{member_id} given more than once", param_hint=label)
        pairs[member_id] = value.strip()
    return pairs


def _member_name(names: dict[str, str], member_id: str) -> str:
    if member_id == POOL_ACCOUNT_ID:
        return "Mess fund"
    return names.get(member_id, member_id)


# ============================================================================
# Membership commands
# ============================================================================


@app.command("member-add")
def member_add(
    member_id: str = typer.Argument(..., help="Unique member id within the group"),
    name: str = typer.Argument(..., help="Display name"),
    group: str | None = GROUP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Add a member to a group (or reactivate one)."""
    with open_service(verbose) as (settings, service):
        group_id = group or settings.default_group_id
        member = service.add_member(group_id, member_id, name)
        console.print(f"[green]✓ Added {member.name} ({member.id}) to {group_id}[/green]")


@app.command("member-remove")
def member_remove(
    member_id: str = typer.Argument(..., help="Member id"),
    group: str | None = GROUP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Deactivate a member. Their history and balance are kept."""
    with open_service(verbose) as (settings, service):
        group_id = group or settings.default_group_id
        member = service.remove_member(group_id, member_id)
        console.print(f"[yellow]Deactivated {member.name} ({member.id})[/yellow]")


@app.command()
def members(group: str | None = GROUP_OPTION, verbose: bool = VERBOSE_OPTION):
    """List the members of a group."""
    with open_service(verbose) as (settings, service):
        group_id = group or settings.default_group_id
        table = Table(title=f"Members of {group_id}", header_style="bold magenta")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Active", justify="center")
        for member in service.list_members(group_id):
            table.add_row(member.id, member.name, "✓" if member.active else "✗")
        console.print(table)


# ============================================================================
# Event commands
# ============================================================================


@app.command()
def expense(
    amount: str = typer.Argument(..., help="Total amount, e.g. 90.00"),
    paid_by: str = typer.Option(
        ..., "--paid-by", "-p", help=f"Payer member id, or '{POOL_ACCOUNT_ID}'"
    ),
    split: SplitPolicy = typer.Option(SplitPolicy.EQUAL, "--split", "-s", help="Split policy"),
    with_members: list[str] | None = typer.Option(
        None, "--with", "-w", help="Participant (repeatable); default all active members"
    ),
    share: list[str] | None = typer.Option(
        None, "--share", help="MEMBER=AMOUNT for unequal splits (repeatable)"
    ),
    percent: list[str] | None = typer.Option(
        None, "--percent", help="MEMBER=PERCENT for percentage splits (repeatable)"
    ),
    exclude: list[str] | None = typer.Option(
        None, "--exclude", "-x", help="Member to leave out (repeatable)"
    ),
    description: str = typer.Option("", "--description", "-d", help="Description"),
    category: str = typer.Option("Other", "--category", "-c", help="Expense category"),
    group: str | None = GROUP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Record a shared expense and show how it was split."""
    if category not in EXPENSE_CATEGORIES:
        raise typer.BadParameter(
            f"Must be one of: {', '.join(EXPENSE_CATEGORIES)}", param_hint="--category"
        )

    with open_service(verbose) as (settings, service):
        group_id = group or settings.default_group_id
        decimals = settings.currency_decimals

        policy_inputs: dict[str, int | str] | None = None
        if split is SplitPolicy.UNEQUAL:
            policy_inputs = {
                member_id: to_minor_units(value, decimals)
                for member_id, value in _parse_pairs(share, "--share").items()
            }
        elif split is SplitPolicy.PERCENTAGE:
            policy_inputs = dict(_parse_pairs(percent, "--percent"))

        recorded = service.record_expense(
            group_id,
            amount=to_minor_units(amount, decimals),
            payer_id=paid_by,
            policy=split,
            participants=with_members or None,
            policy_inputs=policy_inputs,
            excluded=exclude,
            description=description,
            category=category,  # type: ignore[arg-type]
        )

        table = Table(title="Split", header_style="bold magenta")
        table.add_column("Member", style="cyan")
        table.add_column("Share", justify="right")
        if split is SplitPolicy.PERCENTAGE:
            table.add_column("%", justify="right", style="dim")
        for line in recorded.shares:
            row = [line.member_id, format_money(line.amount, decimals, use_color=False)]
            if split is SplitPolicy.PERCENTAGE:
                row.append(str(line.percentage))
            table.add_row(*row)
        console.print(table)
        console.print(f"[green]✓ Recorded expense {recorded.id}[/green]")


@app.command()
def collect(
    member_id: str = typer.Argument(..., help="Contributing member"),
    amount: str = typer.Argument(..., help="Amount paid into the mess fund"),
    collected_by: str | None = typer.Option(None, "--collected-by", help="Receiving member"),
    description: str | None = typer.Option(None, "--description", "-d", help="Description"),
    group: str | None = GROUP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Record a contribution into the mess fund."""
    with open_service(verbose) as (settings, service):
        group_id = group or settings.default_group_id
        recorded = service.record_collection(
            group_id,
            member_id=member_id,
            amount=to_minor_units(amount, settings.currency_decimals),
            collected_by=collected_by,
            description=description,
        )
        console.print(f"[green]✓ Recorded collection {recorded.id}[/green]")


@app.command()
def settle(
    payer_id: str = typer.Argument(..., help=f"Paying member, or '{POOL_ACCOUNT_ID}'"),
    payee_id: str = typer.Argument(..., help=f"Receiving member, or '{POOL_ACCOUNT_ID}'"),
    amount: str = typer.Argument(..., help="Amount paid"),
    note: str | None = typer.Option(None, "--note", "-n", help="Optional note"),
    group: str | None = GROUP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Record a direct payment between two members."""
    with open_service(verbose) as (settings, service):
        group_id = group or settings.default_group_id
        recorded = service.record_settlement(
            group_id,
            payer_id=payer_id,
            payee_id=payee_id,
            amount=to_minor_units(amount, settings.currency_decimals),
            note=note,
        )
        console.print(f"[green]✓ Recorded settlement {recorded.id}[/green]")


@app.command()
def delete(
    kind: str = typer.Argument(..., help="expense, collection or settlement"),
    event_id: str = typer.Argument(..., help="Event id"),
    group: str | None = GROUP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Delete an event. Balances are recomputed without it."""
    deleters = {
        "expense": LedgerService.delete_expense,
        "collection": LedgerService.delete_collection,
        "settlement": LedgerService.delete_settlement,
    }
    if kind not in deleters:
        raise typer.BadParameter(f"Must be one of: {', '.join(deleters)}", param_hint="KIND")

    with open_service(verbose) as (settings, service):
        deleters[kind](service, group or settings.default_group_id, event_id)
        console.print(f"[yellow]Deleted {kind} {event_id}[/yellow]")


# ============================================================================
# Query commands
# ============================================================================


def display_balances(balances: dict[str, Balance], names: dict[str, str], decimals: int):
    """Display balances in a table format."""
    table = Table(title="Balances", show_header=True, header_style="bold magenta")
    table.add_column("Member", style="cyan")
    table.add_column("Paid", justify="right")
    table.add_column("Share", justify="right")
    table.add_column("Contributed", justify="right")
    table.add_column("Settled out", justify="right")
    table.add_column("Settled in", justify="right")
    table.add_column("Balance", justify="right")
    table.add_column("Status", justify="center")

    for balance in balances.values():
        table.add_row(
            _member_name(names, balance.member_id),
            format_money(balance.paid_from_pocket, decimals, use_color=False),
            format_money(balance.fair_share, decimals, use_color=False),
            format_money(balance.contributed, decimals, use_color=False),
            format_money(balance.settlements_paid, decimals, use_color=False),
            format_money(balance.settlements_received, decimals, use_color=False),
            format_money(balance.amount, decimals),
            balance.status,
        )

    console.print(table)

    total = sum(balance.amount for balance in balances.values())
    if total == 0:
        console.print("  [green]✓ Balances sum to zero[/green]")
    else:
        console.print(f"  [red]✗ Balances sum to {total}, expected 0[/red]")


@app.command()
def balances(group: str | None = GROUP_OPTION, verbose: bool = VERBOSE_OPTION):
    """Show every member's net balance."""
    with open_service(verbose) as (settings, service):
        group_id = group or settings.default_group_id
        names = {m.id: m.name for m in service.list_members(group_id)}
        display_balances(service.get_balances(group_id), names, settings.currency_decimals)


@app.command()
def history(
    member_id: str = typer.Argument(..., help=f"Member id, or '{POOL_ACCOUNT_ID}'"),
    group: str | None = GROUP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Show the events behind one member's balance, newest first."""
    with open_service(verbose) as (settings, service):
        group_id = group or settings.default_group_id
        decimals = settings.currency_decimals
        entries = service.get_member_history(group_id, member_id)

        table = Table(title=f"History of {member_id}", header_style="bold magenta")
        table.add_column("Date", style="dim")
        table.add_column("Type")
        table.add_column("Description", style="cyan", no_wrap=False)
        table.add_column("Amount", justify="right")
        for entry in entries:
            table.add_row(
                entry.date.strftime("%Y-%m-%d"),
                entry.kind,
                entry.description,
                format_money(entry.amount, decimals),
            )
        console.print(table)
        console.print(
            f"  Net: {format_money(sum(e.amount for e in entries), decimals)}"
        )


@app.command()
def fund(group: str | None = GROUP_OPTION, verbose: bool = VERBOSE_OPTION):
    """Show the state of the mess fund."""
    with open_service(verbose) as (settings, service):
        group_id = group or settings.default_group_id
        decimals = settings.currency_decimals
        summary = service.get_fund_summary(group_id)

        console.print("\n[bold]Mess fund:[/bold]")
        console.print(f"  Collected:          {format_money(summary.total_collected, decimals)}")
        console.print(f"  Paid from fund:     {format_money(summary.pool_paid_expenses, decimals)}")
        console.print(f"  Refunded:           {format_money(summary.total_refunded, decimals)}")
        console.print(f"  Cash on hand:       {format_money(summary.cash_on_hand, decimals)}")
        console.print(f"  All group expenses: {format_money(summary.total_expenses, decimals)}")


@app.command()
def suggest(group: str | None = GROUP_OPTION, verbose: bool = VERBOSE_OPTION):
    """Suggest the fewest payments that settle every balance."""
    with open_service(verbose) as (settings, service):
        group_id = group or settings.default_group_id
        decimals = settings.currency_decimals
        names = {m.id: m.name for m in service.list_members(group_id)}
        suggestions = service.get_suggestions(group_id)

        if not suggestions:
            console.print("[green]Everyone is settled up.[/green]")
            return

        table = Table(title="Suggested payments", header_style="bold magenta")
        table.add_column("From", style="cyan")
        table.add_column("To", style="cyan")
        table.add_column("Amount", justify="right")
        for suggestion in suggestions:
            table.add_row(
                _member_name(names, suggestion.payer_id),
                _member_name(names, suggestion.payee_id),
                format_money(suggestion.amount, decimals, use_color=False),
            )
        console.print(table)
        console.print(
            f"  {len(suggestions)} payments, total "
            f"{format_money(sum(s.amount for s in suggestions), decimals, use_color=False)}"
        )


@app.command("settle-up")
def settle_up(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    group: str | None = GROUP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Record every suggested payment as a settlement."""
    with open_service(verbose) as (settings, service):
        group_id = group or settings.default_group_id
        suggestions = service.get_suggestions(group_id)
        if not suggestions:
            console.print("[green]Everyone is settled up.[/green]")
            return

        for suggestion in suggestions:
            console.print(
                f"  {suggestion.payer_id} → {suggestion.payee_id}: "
                f"{format_money(suggestion.amount, settings.currency_decimals, use_color=False)}"
            )

        if not yes:
            confirm = input("Record these payments? [y/N] ").strip().lower()
            if confirm not in ("y", "yes"):
                console.print("[yellow]Cancelled.[/yellow]")
                return

        recorded = service.settle_up(group_id)
        console.print(f"\n[bold green]✓ Recorded {len(recorded)} settlements[/bold green]")
