"""
Shared plumbing for hipc command modules.

ctx.obj carries the loaded HipcConfig, the IdentityStore, the default
signer name, the json_output flag and the chain connection factory. Each
command runs its chain work in one asyncio.run() with one connection.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from hipc.core.calls import Call
from hipc.core.chain_client import ChainConnection
from hipc.core.config import HipcConfig
from hipc.core.exceptions import get_error_context
from hipc.core.storage_query import StorageQueryEngine
from hipc.core.transactions import TransactionManager, TransactionOutcome
from hipc.wallet.keystore import Identity, IdentityStore

logger = logging.getLogger(__name__)

console = Console()

T = TypeVar("T")


def _cli_fail(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging."""
    logger.error("CLI error: %s", exc, extra={"event": "cli.error", **get_error_context(exc)})
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def signer_option(func):
    """--signer NAME: hotkey to sign with (falls back to the primary identity)."""
    return click.option(
        "--signer",
        "signer",
        default=None,
        help="Hotkey address to sign with; defaults to the global --signer or the primary identity",
    )(func)


def get_config(ctx: click.Context) -> HipcConfig:
    return ctx.obj["config"]


def get_store(ctx: click.Context) -> IdentityStore:
    return ctx.obj["store"]


def resolve_identity(ctx: click.Context, signer: Optional[str] = None) -> Identity:
    return get_store(ctx).resolve_signer(signer or ctx.obj.get("signer"))


async def _with_connection(ctx: click.Context, work: Callable[[ChainConnection], Awaitable[T]]) -> T:
    connect = ctx.obj["connect"]
    connection = await connect(get_config(ctx))
    async with connection:
        return await work(connection)


def run_query(ctx: click.Context, work: Callable[[StorageQueryEngine], Awaitable[T]], status: str) -> T:
    """Open a connection, run work against a query engine, close the connection."""
    async def _query(connection: ChainConnection) -> T:
        return await work(StorageQueryEngine(connection))

    with console.status(f"[bold cyan]{status}"):
        return asyncio.run(_with_connection(ctx, _query))


def submit_call(ctx: click.Context, call: Call, identity: Identity) -> TransactionOutcome:
    """Submit call signed by identity and wait for finalization; raises on failure."""
    async def _submit(connection: ChainConnection) -> TransactionOutcome:
        return await TransactionManager(connection).submit_and_watch(call, identity)

    if not ctx.obj.get("json_output"):
        console.print(f"[cyan]Submitting {call.name} as {identity.address}[/]")
    with console.status("[bold cyan]Waiting for finalization..."):
        outcome = asyncio.run(_with_connection(ctx, _submit))
    return outcome.raise_for_status()


def outcome_dict(outcome: TransactionOutcome) -> Dict[str, Any]:
    return {
        "success": outcome.success,
        "call": outcome.call.name,
        "signer": outcome.signer_address,
        "extrinsic_hash": outcome.extrinsic_hash,
        "block_hash": outcome.block_hash,
    }


def report_outcome(ctx: click.Context, outcome: TransactionOutcome, title: str, **fields: Any) -> None:
    """Print a finalized transaction, as JSON with --json-output."""
    if ctx.obj.get("json_output"):
        payload = outcome_dict(outcome)
        payload.update(fields)
        click.echo(json.dumps(payload, indent=2, default=str))
        return

    table = Table(show_header=False, box=box.ROUNDED)
    for label, value in fields.items():
        table.add_row(f"[bold cyan]{label.replace('_', ' ').title()}", str(value))
    table.add_row("[bold cyan]Signer", outcome.signer_address)
    table.add_row("[bold cyan]Extrinsic", str(outcome.extrinsic_hash))
    table.add_row("[bold cyan]Block", str(outcome.block_hash))
    console.print(Panel(table, title=f"[bold green]{title}", border_style="green"))


def echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))
