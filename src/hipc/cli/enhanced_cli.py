#!/usr/bin/env python3
"""
hipc - Hippius network command-line client
Wallet management, node registration, staking, storage and credits
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Optional

try:
    import click
    from rich import box
    from rich.panel import Panel
    from rich.table import Table
    from rich.tree import Tree
except ImportError:
    print("ERROR: Required packages not installed. Install with:")
    print("  pip install click rich")
    sys.exit(1)

from hipc.cli.common import (
    _cli_fail,
    console,
    echo_json,
    report_outcome,
    resolve_identity,
    get_config,
    get_store,
    submit_call,
)
from hipc.core import calls
from hipc.core.chain_client import connect
from hipc.core.config import load_config
from hipc.core.exceptions import HipcError
from hipc.core.logging_config import setup_logging
from hipc.core.node_rpc import LocalNodeRPC
from hipc.wallet.keystore import IdentityRole, IdentityStore, generate_raw_keypair

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


# ============================================================================
# CLI Groups
# ============================================================================

@click.group()
@click.option('--node-url', default=None, help='Node websocket URL (overrides SUBSTRATE_NODE_URL)')
@click.option(
    '--config',
    'config_file',
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help='YAML configuration file (default ~/.hipc/config.yaml)',
)
@click.option('--json-output', is_flag=True, help='Output raw JSON')
@click.option('--log-level', type=click.Choice(LOG_LEVELS, case_sensitive=False), default=None, help='Log level')
@click.option('--log-file', type=click.Path(dir_okay=False), default=None, help='Also write logs to this file')
@click.option('--signer', default=None, help='Default hotkey address to sign with')
@click.pass_context
def cli(
    ctx: click.Context,
    node_url: Optional[str],
    config_file: Optional[Path],
    json_output: bool,
    log_level: Optional[str],
    log_file: Optional[str],
    signer: Optional[str],
):
    """
    hipc - Hippius network CLI

    Manage signing identities, register and inspect nodes, move funds,
    pin files and query credits and rankings on a Hippius chain.
    """
    ctx.ensure_object(dict)
    if "config" not in ctx.obj:
        try:
            ctx.obj["config"] = load_config(
                config_file,
                cli_overrides={
                    "network.node_url": node_url,
                    "logging.level": log_level.upper() if log_level else None,
                    "logging.log_file": log_file,
                },
            )
        except HipcError as exc:
            _cli_fail(exc)
    config = ctx.obj["config"]

    setup_logging(level=config.logging.level, log_file=config.logging.log_file, json_format=config.logging.json)

    ctx.obj.setdefault("store", IdentityStore.from_config(config))
    ctx.obj.setdefault("connect", connect)
    ctx.obj["json_output"] = json_output
    ctx.obj["signer"] = signer
    logger.debug("CLI initialised", extra={"event": "cli.start", "command": ctx.invoked_subcommand})


# ============================================================================
# Wallet Commands
# ============================================================================

@cli.group()
def wallet():
    """Signing identity management"""
    pass


@wallet.command('create-hotkey')
@click.pass_context
def wallet_create_hotkey(ctx: click.Context):
    """Create a hotkey and add it as a NonTransfer proxy of the primary identity"""
    store = get_store(ctx)
    try:
        primary = store.primary()
        with console.status("[bold green]Generating hotkey..."):
            mnemonic, address = store.generate_identity()
            path = store.persist_identity(IdentityRole.SECONDARY, mnemonic)

        if not ctx.obj['json_output']:
            table = Table(show_header=False, box=box.ROUNDED)
            table.add_row("[bold cyan]Address", address)
            table.add_row("[bold cyan]Mnemonic", mnemonic)
            table.add_row("[bold cyan]File", str(path))
            console.print(Panel(table, title="[bold green]New Hotkey Created", border_style="green"))
            console.print("[yellow]⚠[/] Store this mnemonic safely. Anyone with it controls the hotkey.")

        outcome = submit_call(ctx, calls.add_proxy(address), primary)
        if ctx.obj['json_output']:
            echo_json({"address": address, "mnemonic": mnemonic, "path": str(path),
                       "extrinsic_hash": outcome.extrinsic_hash, "block_hash": outcome.block_hash})
            return
        console.print(f"[bold green]✓[/] Hotkey added as proxy in block [cyan]{outcome.block_hash}[/]")
    except HipcError as exc:
        _cli_fail(exc)


@wallet.command('list')
@click.pass_context
def wallet_list(ctx: click.Context):
    """List the primary identity and hotkeys"""
    store = get_store(ctx)
    try:
        primary, hotkeys = store.list_identities()
    except HipcError as exc:
        _cli_fail(exc)
        return

    if ctx.obj['json_output']:
        echo_json({
            "primary": primary,
            "hotkeys": [{"name": h.name, "address": h.address} for h in hotkeys],
        })
        return

    tree = Tree("[bold]Wallets")
    if primary:
        cold = tree.add(f"[bold cyan]Coldkey[/] hips-key  ss58_address [green]{primary}")
    else:
        cold = tree.add("[yellow]No HIPS key (coldkey) found in keystore")
    for hotkey in hotkeys:
        address = hotkey.address or "[red]unreadable"
        cold.add(f"[bold cyan]Hotkey[/] {hotkey.name}  ss58_address {address}")
    console.print(tree)


@wallet.command('hips-key')
@click.pass_context
def wallet_hips_key(ctx: click.Context):
    """Show keystore files carrying the HIPS key prefix"""
    store = get_store(ctx)
    try:
        files = store.find_primary_files()
    except HipcError as exc:
        _cli_fail(exc)
        return

    if ctx.obj['json_output']:
        echo_json({"keystore_dir": str(store.keystore_dir), "files": [str(f) for f in files]})
        return
    if not files:
        console.print(f"[yellow]No HIPS key file found in {store.keystore_dir}")
        return
    for path in files:
        console.print(f"File found: [cyan]{path}[/]")
    if len(files) > 1:
        console.print("[bold red]⚠ More than one HIPS key file; signing with the primary identity will fail.")


@wallet.command('generate-keys')
@click.option('--output-dir', type=click.Path(file_okay=False), default='.', show_default=True,
              help='Directory for public_key.ss58 and seed.bin')
@click.pass_context
def wallet_generate_keys(ctx: click.Context, output_dir: str):
    """Generate a raw sr25519 keypair on disk"""
    try:
        public_path, seed_path, address = generate_raw_keypair(
            output_dir, ss58_format=get_config(ctx).network.ss58_format
        )
    except HipcError as exc:
        _cli_fail(exc)
        return

    if ctx.obj['json_output']:
        echo_json({"address": address, "public_key_path": str(public_path), "seed_path": str(seed_path)})
        return
    table = Table(show_header=False, box=box.ROUNDED)
    table.add_row("[bold cyan]Address", address)
    table.add_row("[bold cyan]Public Key Path", str(public_path))
    table.add_row("[bold cyan]Seed Path", str(seed_path))
    console.print(Panel(table, title="[bold green]Keypair Generated", border_style="green"))


@wallet.command('insert-key')
@click.argument('seed_phrase')
@click.argument('public_key')
@click.pass_context
def wallet_insert_key(ctx: click.Context, seed_phrase: str, public_key: str):
    """Insert a hips session key into the node keystore"""
    config = get_config(ctx)
    rpc = LocalNodeRPC(config.network.rpc_url, timeout=config.network.timeout)
    try:
        with console.status("[bold cyan]Inserting key..."):
            result = rpc.insert_key(seed_phrase, public_key)
    except HipcError as exc:
        _cli_fail(exc)
        return

    if ctx.obj['json_output']:
        echo_json({"result": result})
        return
    console.print("[bold green]✓[/] Key inserted")


@wallet.command('whoami')
@click.option('--signer', 'signer', default=None, help='Hotkey address to resolve')
@click.pass_context
def wallet_whoami(ctx: click.Context, signer: Optional[str]):
    """Show which identity would sign"""
    try:
        identity = resolve_identity(ctx, signer)
    except HipcError as exc:
        _cli_fail(exc)
        return

    data = {"address": identity.address, "role": identity.role.value, "source": identity.source}
    if ctx.obj['json_output']:
        click.echo(json.dumps(data, indent=2))
        return
    table = Table(show_header=False, box=box.ROUNDED)
    for key, value in data.items():
        table.add_row(f"[bold cyan]{key.title()}", str(value))
    console.print(Panel(table, title="[bold green]Signer", border_style="green"))


# ============================================================================
# Command modules
# ============================================================================

from hipc.cli.account_commands import account  # noqa: E402
from hipc.cli.credits_commands import credits, plans  # noqa: E402
from hipc.cli.node_commands import miner, node, rankings  # noqa: E402
from hipc.cli.storage_commands import storage  # noqa: E402

cli.add_command(node)
cli.add_command(miner)
cli.add_command(rankings)
cli.add_command(account)
cli.add_command(storage)
cli.add_command(credits)
cli.add_command(plans)


def main():
    """Main CLI entry point"""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/]")
        sys.exit(130)


if __name__ == '__main__':
    main()
