#!/usr/bin/env python3
"""
Green Minting CLI

Usage:
    greenmint deploy --plan plan.json --deployer 0x...   # deploy, fund lock, save record
    greenmint schedule --plan plan.json                   # preview vesting unlocks
    greenmint typed-data --ledger 0x... --from 0x... ...  # EIP-712 payload for a wallet
"""

from __future__ import annotations

import json
import logging
import secrets
import sys
from datetime import datetime, timezone

import click
from rich import box
from rich.console import Console
from rich.table import Table

from greenmint.blockchain.vesting_schedule import VestingSchedule
from greenmint.core import config
from greenmint.core.config import ConfigurationError
from greenmint.core.ledger_exceptions import LedgerError
from greenmint.core.logging_config import setup_logging
from greenmint.core.typed_signing import (
    RECEIVE_WITH_AUTHORIZATION,
    TRANSFER_WITH_AUTHORIZATION,
    TypedDataDomain,
    create_typed_sign_request,
    transfer_message,
)
from greenmint.tools.deployment import DeploymentPlan, deploy, save_deployment

logger = logging.getLogger(__name__)
console = Console()


def _handle_cli_error(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _format_timestamp(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


@click.group()
@click.option("--log-level", default=config.LOG_LEVEL, show_default=True, help="Logging level")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Write JSON logs to this file")
def cli(log_level: str, log_file: str | None) -> None:
    """Green Minting token ledger tooling."""
    setup_logging(name="greenmint", log_file=log_file, level=log_level)


@cli.command("deploy")
@click.option("--plan", "plan_path", required=True, type=click.Path(exists=True, dir_okay=False), help="Deployment plan JSON")
@click.option("--deployer", required=True, help="Deployer address (receives the vesting reserve)")
@click.option("--network", default=None, help="hardhat, sepolia or ethereum_mainnet")
@click.option("--out", "out_dir", default=None, type=click.Path(file_okay=False), help="Deployment record directory")
def deploy_command(plan_path: str, deployer: str, network: str | None, out_dir: str | None) -> None:
    """
    Deploy the ledger and vesting lock, fund the lock and save the record.

    Example:
        greenmint deploy --plan plan.json --deployer 0x82a2... --network sepolia
    """
    try:
        plan = DeploymentPlan.load(plan_path)
        deployment = deploy(plan, deployer, network=network)
        path = save_deployment(deployment, out_dir)
    except (LedgerError, ConfigurationError, OSError, json.JSONDecodeError) as exc:
        _handle_cli_error(exc)
        return

    record = deployment.to_record()
    table = Table(show_header=False, box=box.ROUNDED)
    table.add_row("[bold cyan]Network", f"{record['network']} (chain {record['chainId']})")
    table.add_row("[bold cyan]Token", record["greenMintingToken"])
    table.add_row("[bold cyan]Vested lock", record["vestedLock"])
    table.add_row("[bold cyan]Deployer", record["deployer"])
    table.add_row("[bold cyan]Total supply", str(deployment.ledger.total_supply))
    table.add_row("[bold cyan]Record", str(path))
    console.print(table)


@cli.command("schedule")
@click.option("--plan", "plan_path", required=True, type=click.Path(exists=True, dir_okay=False), help="Deployment plan JSON")
def schedule_command(plan_path: str) -> None:
    """Show when each vesting stage unlocks and the cumulative releasable amount."""
    try:
        plan = DeploymentPlan.load(plan_path)
        schedule = VestingSchedule.create(plan.schedule, plan.stage_duration, plan.start_timestamp)
    except (LedgerError, OSError, json.JSONDecodeError) as exc:
        _handle_cli_error(exc)
        return

    table = Table(title="Vesting schedule", box=box.ROUNDED)
    table.add_column("Stage", justify="right")
    table.add_column("Unlocks at")
    table.add_column("Basis points", justify="right")
    table.add_column("Cumulative amount", justify="right")
    for entry in schedule.release_plan(plan.vested_amount):
        table.add_row(
            "remainder" if entry["remainder"] else str(entry["stage"]),
            _format_timestamp(entry["unlocks_at"]),
            str(entry["basis_points"]),
            str(entry["cumulative_amount"]),
        )
    console.print(table)


@cli.command("typed-data")
@click.option("--ledger", "ledger_address", required=True, help="Ledger (verifying contract) address")
@click.option("--chain-id", type=int, default=None, help="Chain id (defaults to the configured network)")
@click.option("--from", "from_addr", required=True, help="Signer / payer address")
@click.option("--to", "to_addr", required=True, help="Payee address")
@click.option("--value", required=True, type=int, help="Amount in base units")
@click.option("--valid-after", type=int, default=0, show_default=True)
@click.option("--valid-before", type=int, required=True)
@click.option("--nonce", default=None, help="32-byte hex nonce (random if omitted)")
@click.option("--receive", is_flag=True, help="Build a ReceiveWithAuthorization instead of a transfer")
def typed_data_command(
    ledger_address: str,
    chain_id: int | None,
    from_addr: str,
    to_addr: str,
    value: int,
    valid_after: int,
    valid_before: int,
    nonce: str | None,
    receive: bool,
) -> None:
    """Print the EIP-712 payload a holder signs to authorize a gasless transfer."""
    try:
        if nonce:
            nonce_bytes = bytes.fromhex(nonce[2:] if nonce.startswith("0x") else nonce)
        else:
            nonce_bytes = secrets.token_bytes(32)
        if len(nonce_bytes) != 32:
            raise click.BadParameter("nonce must be 32 bytes", param_hint="--nonce")
        domain = TypedDataDomain(
            name=config.TOKEN_NAME,
            version=config.TOKEN_VERSION,
            chain_id=chain_id if chain_id is not None else config.resolve_chain_id(),
            verifying_contract=ledger_address,
        )
        primary_type = RECEIVE_WITH_AUTHORIZATION if receive else TRANSFER_WITH_AUTHORIZATION
        request = create_typed_sign_request(
            domain,
            primary_type,
            transfer_message(from_addr, to_addr, value, valid_after, valid_before, nonce_bytes),
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    except (LedgerError, ConfigurationError) as exc:
        _handle_cli_error(exc)
        return

    click.echo(json.dumps(request, indent=2))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
