"""
Spendguard State Audit Tool — inspect the stored proxy state.

Prints the owner record, every permissioned address with its limit and next
reset, the authorization rules and the pool registry. Each permissioned
address is re-validated; the exit status is 1 if any fails.

Usage:
    python -m spendguard.ledger.audit
    python -m spendguard.ledger.audit --database-url sqlite:///spendguard.db
    python -m spendguard.ledger.audit --slot state --verbose
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime, timezone

from rich.console import Console
from rich.table import Table

from spendguard.config import settings
from spendguard.core.errors import ProxyError
from spendguard.ledger.store import StateStore

console = Console()


def _fmt_time(epoch_seconds: int) -> str:
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def run_audit(database_url: str, slot: str, reference_denom: str, verbose: bool = False) -> bool:
    """
    Print the stored state and validate every permissioned address.

    Returns:
        True if a state record exists and every permissioned address is
        valid, False otherwise.
    """
    console.print("\n[bold blue]═══ Spendguard State Audit ═══[/bold blue]\n")

    store = StateStore(database_url)
    store.initialize()
    state = store.load(slot)
    if state is None:
        console.print(f"[yellow]⚠ No state stored in slot '{slot}'[/yellow]")
        return False

    console.print(f"  Owner: [bold]{state.owner}[/bold]")
    if state.pending_owner:
        console.print(f"  Pending owner: [yellow]{state.pending_owner}[/yellow]")
    console.print(f"  Home network: {state.home_network}")
    console.print(f"  Fee debt: {state.fee_debt} (repay to {state.fee_repay_address})")

    all_valid = True
    table = Table(title="Permissioned Addresses", show_lines=True)
    table.add_column("Address", style="cyan")
    table.add_column("Period", width=12)
    table.add_column("Limit", style="green")
    table.add_column("Remaining", style="yellow")
    table.add_column("Next reset", width=24)
    table.add_column("Valid", width=8)

    for wallet in state.permissioned_addresses:
        try:
            wallet.assert_is_valid(reference_denom)
            valid = "[green]✓[/green]"
        except ProxyError:
            valid = "[red]✗[/red]"
            all_valid = False
        limits = ", ".join(f"{lim.amount} {lim.denom}" for lim in wallet.spend_limits)
        remaining = ", ".join(str(lim.limit_remaining) for lim in wallet.spend_limits)
        table.add_row(
            wallet.address,
            f"{wallet.period_multiple} {wallet.period_type.value}",
            limits,
            remaining,
            _fmt_time(wallet.current_period_reset),
            valid,
        )
    console.print(table)

    rules = Table(title="Authorization Rules")
    rules.add_column("Actor", style="cyan")
    rules.add_column("Contract")
    rules.add_column("Message", style="green")
    rules.add_column("Fields")
    for rule in state.authorizations:
        fields = ", ".join(f"{k}={v}" for k, v in rule.fields) if rule.fields else "—"
        rules.add_row(rule.actor, rule.contract, rule.message_name, fields)
    console.print(rules)

    if verbose:
        pools = Table(title="Pool Registry")
        pools.add_column("Contract", style="dim")
        pools.add_column("Denom 1")
        pools.add_column("Denom 2")
        pools.add_column("Dialect", style="green")
        for pool in state.pair_contracts:
            pools.add_row(pool.contract_addr, pool.denom1, pool.denom2, pool.query_format.value)
        console.print(pools)

    status = "[bold green]✓ VALID[/bold green]" if all_valid else "[bold red]✗ INVALID[/bold red]"
    console.print(f"\n  Permissioned addresses: {status}")
    console.print("\n[bold blue]═══ Audit Complete ═══[/bold blue]\n")
    return all_valid


def main() -> None:
    parser = argparse.ArgumentParser(description="Spendguard stored state auditor")
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy connection string (defaults to .env settings)",
    )
    parser.add_argument("--slot", default=None, help="State slot (defaults to .env settings)")
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show the pool registry",
    )
    args = parser.parse_args()

    is_valid = run_audit(
        args.database_url or settings.database_url,
        args.slot or settings.state_slot,
        settings.reference_denom,
        verbose=args.verbose,
    )
    sys.exit(0 if is_valid else 1)


if __name__ == "__main__":
    main()
