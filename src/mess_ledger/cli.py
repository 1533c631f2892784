"""CLI for Mess Ledger."""

import typer

from .ledger.cli import app as ledger_app
from .mcp_server import run_server

app = typer.Typer(
    name="mess-ledger",
    help="Shared-cost ledger for a mess: splits, balances and settlements",
)

app.add_typer(ledger_app, name="ledger", help="Record events and settle balances")


@app.command()
def mcp():
    """Start the MCP server for assistant integration."""
    run_server()


if __name__ == "__main__":
    app()
