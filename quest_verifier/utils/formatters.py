"""Shared console and table helpers for the CLI."""

from typing import Mapping

from rich.console import Console
from rich.table import Table

from quest_verifier.config.models import ContractSummaryDict

# Shared console instance
console = Console()


def format_address(address: str, length: int = 10) -> str:
    """
    Format an Ethereum address to show first and last characters.

    Args:
        address: Ethereum address
        length: Total visible characters (default: 10)

    Returns:
        Formatted address like "0x1234...5678"
    """
    if not address:
        return "N/A"
    if len(address) <= length:
        return address
    return f"{address[:6]}...{address[-4:]}"


def format_verdict(result: bool) -> str:
    return "[green]INTERACTED[/green]" if result else "[red]NO INTERACTION[/red]"


def create_contracts_table() -> Table:
    """
    Create a Rich table with the configured contracts and their campaigns.

    Returns:
        Configured Rich Table for contract display
    """
    table = Table(
        show_header=True,
        header_style="bold cyan",
        show_lines=False,
        pad_edge=False,
        box=None,
    )
    table.add_column("Contract", width=16)
    table.add_column("Name", width=20)
    table.add_column("Address", width=14)
    table.add_column("Chain", width=6, justify="right")
    table.add_column("Campaign", width=16)
    table.add_column("Window", width=24)
    return table


def add_contract_to_table(
    table: Table, contract_id: str, summary: ContractSummaryDict
) -> None:
    """Add one row per campaign (or a single bare row) for a contract."""
    campaigns: Mapping = summary["campaigns"]
    base = [
        contract_id,
        summary["name"],
        format_address(summary["address"]),
        str(summary["chainId"]),
    ]
    if not campaigns:
        table.add_row(*base, "[dim]-[/dim]", "")
        return
    for index, (campaign_id, campaign) in enumerate(campaigns.items()):
        cells = base if index == 0 else ["", "", "", ""]
        table.add_row(
            *cells,
            campaign_id,
            f"{campaign['startDate']} -> {campaign['endDate']}",
        )
