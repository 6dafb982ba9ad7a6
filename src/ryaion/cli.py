"""Click CLI entrypoint with Rich terminal output."""

import asyncio
import sys
from collections.abc import Coroutine
from typing import Any

import click
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ryaion.domain.errors import RyaionError
from ryaion.domain.models import (
    AlertDirection,
    AlertNotification,
    LedgerSummary,
    PriceAlert,
    Transaction,
    TransactionKind,
    Valuation,
)
from ryaion.logging import console
from ryaion.portfolio.ledger import ordered


def _run(coro: Coroutine[Any, Any, None]) -> None:
    """Run a command coroutine, turning engine errors into a red message and exit 1."""
    try:
        asyncio.run(coro)
    except RyaionError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)


def _vault(**kwargs: Any):
    from ryaion.vault import Vault

    return Vault(**kwargs)


class RichNotificationSink:
    """Prints each alert firing as a panel on the console."""

    def notify(self, notification: AlertNotification) -> None:
        arrow = "▲" if notification.direction == AlertDirection.ABOVE else "▼"
        console.print(
            Panel(
                f"[bold]{notification.instrument_id}[/bold] {arrow} "
                f"{notification.direction.value} ₹{notification.target_price:,.2f}\n"
                f"Last price: ₹{notification.price:,.2f}",
                title="Price Alert",
                border_style="yellow",
            )
        )


@click.group()
@click.option("--log-level", default=None, help="Override log level (DEBUG, INFO, WARNING, ERROR)")
def cli(log_level: str | None) -> None:
    """Ryaion Vault - portfolio ledger and price alerts."""
    from ryaion.config import get_settings
    from ryaion.logging import setup_logging

    setup_logging(get_settings(), cli_log_level=log_level)


# ── Ledger ──────────────────────────────────────────────────────


def _record(kind: TransactionKind, symbol: str, quantity: int, price: float) -> None:
    async def _go() -> None:
        async with _vault() as vault:
            instrument = vault.registry.resolve(symbol)
            tx = await vault.add_transaction(instrument.id, kind, quantity, price)
            console.print(
                f"[green]Recorded[/green] {tx.kind.value.upper()} {tx.quantity} "
                f"{instrument.symbol} @ ₹{tx.price:,.2f} [dim]({tx.id})[/dim]"
            )

    _run(_go())


@cli.command()
@click.argument("symbol")
@click.argument("quantity", type=int)
@click.argument("price", type=float)
def buy(symbol: str, quantity: int, price: float) -> None:
    """Record a purchase."""
    _record(TransactionKind.BUY, symbol, quantity, price)


@cli.command()
@click.argument("symbol")
@click.argument("quantity", type=int)
@click.argument("price", type=float)
def sell(symbol: str, quantity: int, price: float) -> None:
    """Record a sale."""
    _record(TransactionKind.SELL, symbol, quantity, price)


@cli.command("remove-tx")
@click.argument("transaction_id")
def remove_tx(transaction_id: str) -> None:
    """Delete a transaction from the ledger."""

    async def _go() -> None:
        async with _vault() as vault:
            if await vault.remove_transaction(transaction_id):
                console.print(f"[green]Removed[/green] {transaction_id}")
            else:
                console.print(f"[dim]No transaction {transaction_id}; nothing to do.[/dim]")

    _run(_go())


@cli.command()
def transactions() -> None:
    """Show the transaction log."""

    async def _go() -> None:
        async with _vault() as vault:
            _print_transactions(vault.engine.transactions, vault.registry)

    _run(_go())


@cli.command()
def portfolio() -> None:
    """Show holdings valued at fresh feed prices. Alerts are left to ``watch``."""

    async def _go() -> None:
        async with _vault() as vault:
            await vault.refresh_prices()
            engine = vault.engine
            ledger = engine.ledger()
            _print_valuation(engine.valuation(), ledger)
            if ledger.oversells:
                console.print(
                    f"[yellow]{len(ledger.oversells)} sell(s) exceeded the held quantity "
                    "and were clamped.[/yellow]"
                )

    _run(_go())


# ── Alerts ──────────────────────────────────────────────────────


@cli.group()
def alerts() -> None:
    """Manage price alerts."""


@alerts.command("list")
def alerts_list() -> None:
    """Show all alerts."""

    async def _go() -> None:
        async with _vault() as vault:
            _print_alerts(vault.engine.alerts, vault.registry)

    _run(_go())


@alerts.command("add")
@click.argument("symbol")
@click.argument("target", type=float)
@click.option(
    "--direction",
    type=click.Choice([d.value for d in AlertDirection]),
    default=AlertDirection.ABOVE.value,
    show_default=True,
    help="Fire when the price rises above or falls below the target",
)
def alerts_add(symbol: str, target: float, direction: str) -> None:
    """Arm a new alert."""

    async def _go() -> None:
        async with _vault() as vault:
            instrument = vault.registry.resolve(symbol)
            alert = await vault.create_alert(instrument.id, target, AlertDirection(direction))
            console.print(
                f"[green]Armed[/green] {instrument.symbol} {direction} ₹{target:,.2f} "
                f"[dim]({alert.id})[/dim]"
            )

    _run(_go())


@alerts.command("toggle")
@click.argument("alert_id")
def alerts_toggle(alert_id: str) -> None:
    """Pause or resume an alert that has not fired yet."""

    async def _go() -> None:
        async with _vault() as vault:
            alert = await vault.toggle_alert(alert_id)
            if alert is None:
                console.print(f"[dim]No alert {alert_id}; nothing to do.[/dim]")
            else:
                console.print(f"Alert {alert_id} is [bold]{alert.state.value}[/bold]")

    _run(_go())


@alerts.command("rm")
@click.argument("alert_id")
def alerts_rm(alert_id: str) -> None:
    """Delete an alert."""

    async def _go() -> None:
        async with _vault() as vault:
            if await vault.remove_alert(alert_id):
                console.print(f"[green]Removed[/green] {alert_id}")
            else:
                console.print(f"[dim]No alert {alert_id}; nothing to do.[/dim]")

    _run(_go())


# ── Feed & reference data ───────────────────────────────────────


@cli.command()
def watch() -> None:
    """Run the live price feed and print alerts as they fire (Ctrl+C to stop)."""
    from ryaion.config import get_settings

    settings = get_settings()
    console.print(
        Panel(
            "[bold green]Ryaion Vault[/bold green]\n"
            f"Price feed every {settings.tick_interval_seconds:g}s\n"
            "[dim]Synthetic prices - not market data[/dim]",
            title="Watching",
            border_style="green",
        )
    )
    vault = _vault(sinks=[RichNotificationSink()])
    try:
        asyncio.run(vault.run())
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")


@cli.command()
def instruments() -> None:
    """List the tradable instruments."""
    from ryaion.instruments import InstrumentRegistry

    table = Table(title="Instruments", show_header=True, header_style="bold cyan")
    table.add_column("Symbol")
    table.add_column("Name")
    table.add_column("Sector", style="dim")
    for instrument in InstrumentRegistry():
        table.add_row(instrument.symbol, instrument.name, instrument.sector)
    console.print(table)


@cli.command()
def config() -> None:
    """Show current configuration."""
    from ryaion.config import get_settings

    settings = get_settings()

    table = Table(title="Configuration", show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="dim")
    table.add_column("Value")

    table.add_row("Tick Interval", f"{settings.tick_interval_seconds:g} s")
    table.add_row("Max Move / Tick", f"{settings.tick_max_move_pct:g}%")
    table.add_row("Feed Seed", str(settings.feed_seed))
    table.add_row("Price History", f"{settings.price_history_length} ticks")
    table.add_row("Over-sell Policy", settings.oversell_policy.value)
    table.add_row("Database", str(settings.db_path))
    table.add_row("Log Directory", str(settings.log_dir))

    console.print(table)


# ── Display helpers ─────────────────────────────────────────────


def _money(value: float, signed: bool = False) -> Text | str:
    if not signed:
        return f"₹{value:,.2f}"
    style = "green" if value >= 0 else "red"
    return Text(f"{'+' if value >= 0 else '-'}₹{abs(value):,.2f}", style=style)


def _print_transactions(txs: list[Transaction], registry) -> None:
    if not txs:
        console.print("[dim]No transactions recorded yet.[/dim]")
        return

    table = Table(title="Transactions", show_header=True, header_style="bold cyan")
    table.add_column("Time", style="dim")
    table.add_column("Symbol")
    table.add_column("Side")
    table.add_column("Qty", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("ID", style="dim")

    for t in reversed(ordered(txs)):
        side_style = "green" if t.kind == TransactionKind.BUY else "red"
        table.add_row(
            t.timestamp.isoformat(timespec="seconds"),
            registry.symbol_of(t.instrument_id),
            Text(t.kind.value.upper(), style=side_style),
            str(t.quantity),
            _money(t.price),
            t.id,
        )

    console.print(table)


def _print_valuation(valuation: Valuation, ledger: LedgerSummary) -> None:
    if not valuation.rows:
        console.print("[dim]No open holdings.[/dim]")
    else:
        table = Table(title="Holdings", show_header=True, header_style="bold cyan")
        table.add_column("Symbol")
        table.add_column("Qty", justify="right")
        table.add_column("Avg Cost", justify="right")
        table.add_column("Live", justify="right")
        table.add_column("Value", justify="right")
        table.add_column("P&L", justify="right")
        table.add_column("P&L %", justify="right")

        for row in valuation.rows:
            style = "green" if row.unrealized_pl >= 0 else "red"
            live = _money(row.live_price)
            table.add_row(
                row.symbol,
                str(row.quantity),
                _money(row.avg_cost),
                Text(f"{live} (stale)", style="yellow") if row.is_stale else live,
                _money(row.market_value),
                _money(row.unrealized_pl, signed=True),
                Text(f"{row.pct_change:+.2f}%", style=style),
            )
        console.print(table)

    totals = valuation.totals
    summary = Table(title="Summary", show_header=False)
    summary.add_column("Field", style="dim")
    summary.add_column("Value", justify="right")
    summary.add_row("Invested", _money(totals.invested_value))
    summary.add_row("Current Value", _money(totals.current_value))
    summary.add_row("Unrealized P&L", _money(totals.unrealized_pl, signed=True))
    summary.add_row("Realized P&L", _money(ledger.realized_pl, signed=True))
    console.print(summary)

    if valuation.sector_allocation:
        sectors = Table(title="Sector Allocation", show_header=True, header_style="bold cyan")
        sectors.add_column("Sector")
        sectors.add_column("Value", justify="right")
        sectors.add_column("Share", justify="right")
        for slice_ in sorted(valuation.sector_allocation, key=lambda s: -s.share):
            sectors.add_row(slice_.key, _money(slice_.market_value), f"{slice_.share:.1%}")
        console.print(sectors)


def _print_alerts(items: list[PriceAlert], registry) -> None:
    if not items:
        console.print("[dim]No alerts set.[/dim]")
        return

    state_styles = {"armed": "green", "standby": "yellow", "triggered": "dim"}
    table = Table(title="Price Alerts", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Symbol")
    table.add_column("Condition")
    table.add_column("State")
    table.add_column("Fired At", style="dim")

    for a in items:
        table.add_row(
            a.id,
            registry.symbol_of(a.instrument_id),
            f"{a.direction.value} ₹{a.target_price:,.2f}",
            Text(a.state.value, style=state_styles[a.state.value]),
            (
                f"₹{a.triggered_price:,.2f} @ {a.triggered_at.isoformat(timespec='seconds')}"
                if a.triggered_at and a.triggered_price is not None
                else ""
            ),
        )

    console.print(table)
