#!/usr/bin/env python3
"""
Reverse CLI - inspect REV vesting schedules and inner-sale tiers, and run
simulated deployments.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from reverse.core import config
from reverse.core.clock import ManualClock
from reverse.core.config import ConfigurationError
from reverse.core.contracts.erc20 import ERC20Token, create_mock_stablecoin
from reverse.core.contracts.inner_seller import InnerSeller
from reverse.core.contracts.vesting import VestingWallet
from reverse.core.logging_config import setup_logging
from reverse.core.vm.exceptions import VMExecutionError
from reverse.deployment import DeploymentPlan, VestingGrant, deploy

logger = logging.getLogger(__name__)
console = Console()

# Addresses used by the reference mainnet migration
DEFAULT_RECEIVER = "0x45b0dEB4E7f4B4A3B31321d44a7dE4d0406A45cf"
DEFAULT_BENEFICIARY = "0x31905Ee8D57C05EC7E413fa327a63490DCE0E4D6"
DEFAULT_DEPLOYER = "0x" + "1" * 40
CLI_OPERATOR = "0x" + "c" * 40


def _cli_fail(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _emit(ctx: click.Context, payload: Any, table: Table | None = None) -> None:
    """Print JSON when requested, otherwise the rich table."""
    if ctx.obj.get("json_output") or table is None:
        click.echo(json.dumps(payload, indent=2))
        return
    console.print(table)


def _format_units(amount: int, decimals: int) -> str:
    whole, frac = divmod(amount, 10**decimals)
    if not frac:
        return f"{whole:,}"
    return f"{whole:,}.{str(frac).rjust(decimals, '0').rstrip('0')}"


@click.group()
@click.option("--json", "json_output", is_flag=True, help="Emit machine-readable JSON.")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
@click.pass_context
def cli(ctx: click.Context, json_output: bool, log_level: str):
    """REV distribution toolkit."""
    ctx.ensure_object(dict)
    ctx.obj["json_output"] = json_output
    setup_logging(name="reverse", level=log_level)


# ==================== Deployment ====================


@cli.command("deploy")
@click.option(
    "--plan",
    "plan_path",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    help="YAML deployment plan.",
)
@click.option("--deployer", default=DEFAULT_DEPLOYER, show_default=True)
@click.option("--receiver", default=DEFAULT_RECEIVER, show_default=True, help="USDT receiver for the seller.")
@click.option(
    "--beneficiary",
    "beneficiaries",
    multiple=True,
    help="Vesting beneficiary as ADDRESS[:PROFILE]; repeatable.",
)
@click.option("--start", type=int, help="Deployment timestamp (defaults to now).")
@click.pass_context
def deploy_command(
    ctx: click.Context,
    plan_path: Path | None,
    deployer: str,
    receiver: str,
    beneficiaries: tuple[str, ...],
    start: int | None,
):
    """Run a simulated deployment and print what was created."""
    try:
        if plan_path:
            plan = DeploymentPlan.from_yaml(plan_path)
        else:
            grants = []
            for entry in beneficiaries or (DEFAULT_BENEFICIARY,):
                address, _, profile = entry.partition(":")
                grants.append(VestingGrant(beneficiary=address, profile=profile or "six_month"))
            plan = DeploymentPlan(deployer=deployer, usdt_receiver=receiver, vesting=grants)
        deployment = deploy(plan, ManualClock(start))
    except (ConfigurationError, VMExecutionError, OSError) as exc:
        _cli_fail(exc)
        return

    summary = deployment.summary()
    decimals = deployment.rev.decimals

    table = Table(title="Vesting wallets", box=box.SIMPLE)
    table.add_column("Address", style="cyan")
    table.add_column("Beneficiary")
    table.add_column("Start", justify="right")
    table.add_column("Duration (s)", justify="right")
    table.add_column(deployment.rev.symbol, justify="right", style="green")
    for wallet in summary["vesting"]:
        table.add_row(
            wallet["address"],
            wallet["beneficiary"],
            str(wallet["start"]),
            str(wallet["duration"]),
            _format_units(wallet["balance"], decimals),
        )

    if not ctx.obj.get("json_output"):
        console.print(
            Panel.fit(
                f"{summary['rev']['symbol']} token: {summary['rev']['address']}\n"
                f"Payment token: {summary['usdt']['address']}\n"
                f"Seller: {summary['seller']['address']} "
                f"({_format_units(summary['seller']['rev_balance'], decimals)} {summary['rev']['symbol']})",
                title="Deployment summary",
            )
        )
    _emit(ctx, summary, table)


# ==================== Vesting ====================


@cli.group("vesting")
def vesting_group():
    """Inspect linear vesting schedules."""


@vesting_group.command("curve")
@click.option("--amount", type=int, required=True, help="Pool size in base units.")
@click.option("--start", type=int, required=True, help="Vesting start timestamp.")
@click.option("--duration", type=int, required=True, help="Vesting duration in seconds.")
@click.option("--at", "timestamps", type=int, multiple=True, help="Timestamps to evaluate; repeatable.")
@click.pass_context
def vesting_curve(ctx: click.Context, amount: int, start: int, duration: int, timestamps: tuple[int, ...]):
    """Show the vested amount of a pool at several points in time."""
    try:
        token = ERC20Token(name="Reverse", symbol="REV", owner=CLI_OPERATOR)
        wallet = VestingWallet(
            beneficiary=CLI_OPERATOR,
            start=start,
            duration=duration,
            controller=CLI_OPERATOR,
            time_provider=ManualClock(start),
        )
        token.mint(CLI_OPERATOR, wallet.address, amount)
    except VMExecutionError as exc:
        _cli_fail(exc)
        return

    points = timestamps or tuple(start + duration * pct // 100 for pct in (0, 25, 50, 75, 100))
    rows = [
        {
            "timestamp": ts,
            "phase": wallet.phase(ts).value,
            "vested": wallet.vested_amount(token, ts),
        }
        for ts in points
    ]

    table = Table(title=f"Linear vesting of {amount:,}", box=box.SIMPLE)
    table.add_column("Timestamp", justify="right", style="cyan")
    table.add_column("Phase")
    table.add_column("Vested", justify="right", style="green")
    for row in rows:
        table.add_row(str(row["timestamp"]), row["phase"], f"{row['vested']:,}")
    _emit(ctx, rows, table)


# ==================== Inner Seller ====================


def _default_seller() -> InnerSeller:
    rev = ERC20Token(name=config.TOKEN_NAME, symbol=config.TOKEN_SYMBOL, decimals=config.TOKEN_DECIMALS, owner=CLI_OPERATOR)
    usdt = create_mock_stablecoin(CLI_OPERATOR, decimals=config.PAYMENT_DECIMALS)
    return InnerSeller(
        grant_token=rev,
        payment_token=usdt,
        receiver=DEFAULT_RECEIVER,
        owner=CLI_OPERATOR,
        initial_tiers={
            usdt.to_units(payment): rev.to_units(grant)
            for payment, grant in config.DEFAULT_PRICE_TIERS.items()
        },
    )


@cli.group("seller")
def seller_group():
    """Inspect the inner-sale price tiers."""


@seller_group.command("tiers")
@click.pass_context
def seller_tiers(ctx: click.Context):
    """List the default price tiers."""
    seller = _default_seller()
    pay, grant = seller.payment_token, seller.grant_token
    rows = [
        {"payment": payment, "grant": amount}
        for payment, amount in sorted(seller.get_price_tiers())
    ]

    table = Table(title="Price tiers", box=box.SIMPLE)
    table.add_column(f"{pay.symbol} paid", justify="right", style="cyan")
    table.add_column(f"{grant.symbol} granted", justify="right", style="green")
    for row in rows:
        table.add_row(_format_units(row["payment"], pay.decimals), _format_units(row["grant"], grant.decimals))
    _emit(ctx, rows, table)


@seller_group.command("quote")
@click.argument("payment", type=int)
@click.pass_context
def seller_quote(ctx: click.Context, payment: int):
    """Show how much REV a whole-USDT PAYMENT buys."""
    seller = _default_seller()
    try:
        grant = seller.get_rev_amount(seller.payment_token.to_units(payment))
    except VMExecutionError as exc:
        _cli_fail(exc)
        return

    payload = {"payment": payment, "grant": grant, "grant_display": _format_units(grant, seller.grant_token.decimals)}
    if ctx.obj.get("json_output"):
        _emit(ctx, payload)
        return
    console.print(
        f"{payment:,} {seller.payment_token.symbol} buys "
        f"[green]{payload['grant_display']}[/] {seller.grant_token.symbol}"
    )


def main():
    """Console script entry point."""
    return cli(obj={})


if __name__ == "__main__":
    sys.exit(main() or 0)
