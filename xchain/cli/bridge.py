#!/usr/bin/env python3
"""
XChain Bridge CLI

Command-line interface over the cross-chain engine, wired from
config.toml (see xchain.config).

Usage:
    xchain-bridge chains
    xchain-bridge quote <from_chain> <to_chain> <token> <amount>
    xchain-bridge swap-quote <from_chain> <to_chain> <from_token> <to_token> <amount>
    xchain-bridge bridge <from_chain> <to_chain> <token> <amount> <sender> <recipient> [--wait]
    xchain-bridge swap <from_chain> <to_chain> <from_token> <to_token> <amount> <wallet> [--recipient ADDR]
"""

import json
import time
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.table import Table

from xchain import __version__
from xchain.bridge.types import BridgeStatus
from xchain.config import load_config
from xchain.crosschain.service import CrossChainService, build_service
from xchain.exceptions import XChainException


def get_console() -> Console:
    return Console(highlight=False)


def emit_json(data: Dict[str, Any]) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def fail(exc: XChainException) -> None:
    raise click.ClickException(f"[{exc.code}] {exc}")


@click.group()
@click.version_option(version=__version__, prog_name="xchain-bridge")
@click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(),
    default=None,
    help="Path to config.toml (default: $XCHAIN_CONFIG or ./config.toml)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str]):
    """XChain Bridge Command Line Interface

    Quote and execute cross-chain bridge transfers and swaps.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def get_service(ctx: click.Context) -> CrossChainService:
    try:
        service = build_service(load_config(ctx.obj.get("config_path")))
    except XChainException as exc:
        fail(exc)
    ctx.call_on_close(service.close)
    return service


@cli.command("chains")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
@click.pass_context
def chains_cmd(ctx: click.Context, as_json: bool):
    """List supported networks and their bridge providers."""
    service = get_service(ctx)
    chains = service.list_supported_chains()
    if as_json:
        emit_json({"chains": [c.to_dict() for c in chains]})
        return

    table = Table(title="Supported chains")
    table.add_column("Network")
    table.add_column("Chain ID", justify="right")
    table.add_column("EVM")
    table.add_column("Native")
    table.add_column("Providers")
    for info in chains:
        table.add_row(
            info.network.value,
            str(info.chain_id) if info.chain_id is not None else "-",
            "yes" if info.is_evm else "no",
            info.native_currency,
            ", ".join(p.value for p in info.bridge_providers),
        )
    get_console().print(table)


@cli.command("quote")
@click.argument("from_chain")
@click.argument("to_chain")
@click.argument("token")
@click.argument("amount")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
@click.pass_context
def quote_cmd(ctx: click.Context, from_chain: str, to_chain: str, token: str, amount: str, as_json: bool):
    """Show ranked bridge quotes.

    Examples:

        xchain-bridge quote ethereum polygon USDC 1000.00
    """
    service = get_service(ctx)
    try:
        quotes = service.get_bridge_quotes(from_chain, to_chain, token, amount)
    except XChainException as exc:
        fail(exc)

    if as_json:
        emit_json(quotes.to_dict())
        return

    table = Table(title=f"{token} {from_chain} → {to_chain}")
    table.add_column("Provider")
    table.add_column("Output", justify="right")
    table.add_column("Fee", justify="right")
    table.add_column("ETA (s)", justify="right")
    table.add_column("Quote ID")
    for q in quotes:
        table.add_row(
            q.route.provider.value,
            str(q.output_amount),
            f"{q.fee} {q.fee_currency}",
            str(q.estimated_time_seconds),
            q.quote_id,
        )
    console = get_console()
    console.print(table)
    for provider, exc in quotes.errors.items():
        console.print(f"[yellow]{provider.value}: {exc}[/yellow]")


@cli.command("swap-quote")
@click.argument("from_chain")
@click.argument("to_chain")
@click.argument("from_token")
@click.argument("to_token")
@click.argument("amount")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of text")
@click.pass_context
def swap_quote_cmd(ctx: click.Context, from_chain: str, to_chain: str, from_token: str,
                   to_token: str, amount: str, as_json: bool):
    """Quote a cross-chain swap (bridge, then swap on the destination).

    Examples:

        xchain-bridge swap-quote ethereum polygon USDC WETH 1000
    """
    service = get_service(ctx)
    try:
        quote = service.get_cross_chain_swap_quote(from_chain, to_chain, from_token, to_token, amount)
    except XChainException as exc:
        fail(exc)

    if as_json:
        emit_json(quote.to_dict())
        return

    console = get_console()
    console.print(f"Quote:    {quote.quote_id}")
    for step in quote.route_steps():
        console.print(f"  • {step}")
    console.print(f"Input:    {quote.input_amount} {quote.input_token}")
    console.print(f"Output:   ~{quote.estimated_output_amount} {quote.output_token}")
    fees = ", ".join(f"{amount} {currency}" for currency, amount in quote.total_fee.amounts)
    console.print(f"Fees:     {fees}")
    console.print(f"ETA:      {quote.estimated_time_seconds}s")


@cli.command("bridge")
@click.argument("from_chain")
@click.argument("to_chain")
@click.argument("token")
@click.argument("amount")
@click.argument("sender")
@click.argument("recipient")
@click.option("--wait", is_flag=True, help="Poll until the transfer is final")
@click.option("--timeout", type=float, default=None, help="Seconds to wait with --wait")
@click.pass_context
def bridge_cmd(ctx: click.Context, from_chain: str, to_chain: str, token: str, amount: str,
               sender: str, recipient: str, wait: bool, timeout: Optional[float]):
    """Bridge TOKEN with the best available quote.

    Examples:

        xchain-bridge bridge ethereum polygon USDC 100 0xSender... 0xRecipient... --wait
    """
    service = get_service(ctx)
    try:
        quote = service.orchestrator.get_best_quote(from_chain, to_chain, token, amount)
        transaction_id = service.initiate_bridge(quote, sender, recipient)
    except XChainException as exc:
        fail(exc)

    click.echo(f"Transaction: {transaction_id}")
    click.echo(f"Provider:    {quote.route.provider.value}")
    if not wait:
        click.echo(f"Status:      {BridgeStatus.INITIATED.value}")
        return

    coordinator = service.coordinator
    outcome_timeout = coordinator.poll_policy.timeout if timeout is None else timeout
    intervals = coordinator.poll_policy.intervals()
    transaction = service.get_bridge_status(transaction_id)
    waited = 0.0
    with get_console().status("Waiting for bridge...") as status:
        while not transaction.is_terminal and waited < outcome_timeout:
            interval = min(next(intervals), outcome_timeout - waited)
            status.update(f"{transaction.status.value}...")
            time.sleep(interval)
            waited += interval
            transaction = service.get_bridge_status(transaction_id)

    click.echo(f"Status:      {transaction.status.value}")
    if transaction.destination_tx_hash:
        click.echo(f"Dest tx:     {transaction.destination_tx_hash}")
    if transaction.status in (BridgeStatus.FAILED, BridgeStatus.REFUNDED):
        raise click.ClickException(transaction.failure_reason or transaction.status.value)


@cli.command("swap")
@click.argument("from_chain")
@click.argument("to_chain")
@click.argument("from_token")
@click.argument("to_token")
@click.argument("amount")
@click.argument("wallet")
@click.option("--recipient", default=None, help="Destination address when it differs from WALLET")
@click.option("--timeout", type=float, default=None, help="Seconds to wait for the bridge step")
@click.option("--json", "as_json", is_flag=True, help="Print the saga outcome as JSON")
@click.pass_context
def swap_cmd(ctx: click.Context, from_chain: str, to_chain: str, from_token: str, to_token: str,
             amount: str, wallet: str, recipient: Optional[str], timeout: Optional[float], as_json: bool):
    """Execute a cross-chain swap and wait for the outcome.

    Examples:

        xchain-bridge swap ethereum polygon USDC WETH 1000 0xWallet...
    """
    service = get_service(ctx)
    try:
        quote = service.get_cross_chain_swap_quote(from_chain, to_chain, from_token, to_token, amount)
        outcome = service.execute_cross_chain_swap(
            quote, wallet, recipient_address=recipient, timeout=timeout,
        )
    except XChainException as exc:
        fail(exc)

    if as_json:
        emit_json(outcome.to_dict())
    else:
        click.echo(f"Saga:        {outcome.saga_id}")
        click.echo(f"State:       {outcome.state.value}")
        click.echo(f"Bridge tx:   {outcome.bridge_transaction_id}")
        if outcome.final_amount is not None:
            token = to_token if outcome.swap_result else from_token
            click.echo(f"Received:    {outcome.final_amount} {token}")
        if not outcome.is_terminal:
            click.echo(f"Still pending; resume saga {outcome.saga_id} later")

    if outcome.partial:
        click.echo(click.style(f"Swap failed, bridged funds left unswapped: {outcome.error}", fg="yellow"))
    elif outcome.is_terminal and not outcome.succeeded:
        raise click.ClickException(outcome.error or outcome.state.value)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
