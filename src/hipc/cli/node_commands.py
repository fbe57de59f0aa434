#!/usr/bin/env python3
"""
hipc Node Commands - Registration, node records and rankings

Provides CLI interface for node operations:
- Register a node with the primary identity or a hotkey
- Swap node ownership
- Show the node owned by the signer, local peer ids and tool versions
- Show a node's rank and estimated reward
"""

from __future__ import annotations

import logging
from typing import Optional

import click
from rich import box
from rich.panel import Panel
from rich.table import Table

from hipc.cli.common import (
    _cli_fail,
    console,
    echo_json,
    get_config,
    get_store,
    report_outcome,
    resolve_identity,
    run_query,
    signer_option,
    submit_call,
)
from hipc.core import calls
from hipc.core.chain_state import find_owned_node
from hipc.core.exceptions import HipcError
from hipc.core.models import NodeInfo, NodeType
from hipc.core.node_rpc import LocalNodeRPC, read_ipfs_node_id, tool_version
from hipc.core.rankings import rank_node

logger = logging.getLogger(__name__)

NODE_TYPE_CHOICE = click.Choice([t.value for t in NodeType], case_sensitive=False)

# Registration requirements per node type, shown by `miner requirements`.
NODE_REQUIREMENTS = {
    NodeType.COMPUTE_MINER: {
        "title": "Compute Miner Node Registration Requirements",
        "information": [
            "Node ID: a unique identifier for your compute node (e.g. 'compute-node-01' or a SHA256 hash)",
            "IPFS Node ID (optional): if you run an IPFS node alongside, from `ipfs id`",
        ],
        "hardware": ["CPU: 4+ cores", "RAM: 16+ GB", "Storage: 256+ GB SSD", "Network: 100+ Mbps bandwidth"],
        "example": "hipc node register --node-type ComputeMiner --node-id <your-unique-node-id>",
    },
    NodeType.STORAGE_MINER: {
        "title": "Storage Miner Node Registration Requirements",
        "information": [
            "Node ID: a unique identifier for your storage node (e.g. 'storage-node-01' or a SHA256 hash)",
            "IPFS Node ID (recommended): from `ipfs id` or `hipc node ipfs-id`",
        ],
        "hardware": ["Storage: 10+ TB HDD/SSD", "CPU: 4+ cores", "RAM: 16+ GB",
                     "Network: 100+ Mbps bandwidth, stable connection"],
        "example": "hipc node register --node-type StorageMiner --node-id <id> --ipfs-node-id <ipfs-id>",
    },
    NodeType.VALIDATOR: {
        "title": "Validator Node Registration Requirements",
        "information": [
            "Node ID: a unique identifier for your validator node (e.g. 'validator-node-01' or a SHA256 hash)",
            "Sufficient stake to be elected as a validator",
            "A full node synced to the latest chain state, with secure key management",
        ],
        "hardware": ["CPU: 8+ cores, high single-thread performance", "RAM: 32+ GB",
                     "Storage: 1+ TB SSD (NVMe preferred)", "Network: 1+ Gbps bandwidth, low latency"],
        "example": "hipc node register --node-type Validator --node-id <your-unique-node-id>",
    },
}


def _node_type(value: str) -> NodeType:
    for node_type in NodeType:
        if node_type.value.lower() == value.lower():
            return node_type
    raise click.BadParameter(f"Unknown node type {value}")


def _print_node(info: Optional[NodeInfo]) -> None:
    if info is None:
        console.print("[yellow]Your node is not registered yet.")
        return
    table = Table(show_header=False, box=box.ROUNDED)
    table.add_row("[bold cyan]Node ID", info.node_id)
    table.add_row("[bold cyan]Node Type", info.node_type.value)
    table.add_row("[bold cyan]IPFS Node ID", info.ipfs_node_id or "None")
    table.add_row("[bold cyan]Status", info.status)
    table.add_row("[bold cyan]Registered At", str(info.registered_at))
    table.add_row("[bold cyan]Owner", info.owner)
    console.print(Panel(table, title="[bold green]Your Node Information", border_style="green"))


def _owned_node(ctx: click.Context, signer: Optional[str], node_type: Optional[NodeType] = None) -> Optional[NodeInfo]:
    owner = resolve_identity(ctx, signer).address
    return run_query(
        ctx,
        lambda engine: find_owned_node(engine, owner, node_type),
        "Querying node registration...",
    )


# ============================================================================
# node
# ============================================================================

@click.group()
def node():
    """Node registration and information"""
    pass


@node.command('register')
@click.option('--node-type', required=True, type=NODE_TYPE_CHOICE, help='Type of node')
@click.option('--node-id', required=True, help='Unique node identifier')
@click.option('--pay-in-credits', is_flag=True, help='Pay the registration fee in credits')
@click.option('--ipfs-node-id', default=None, help='IPFS peer id of the node')
@click.pass_context
def node_register(ctx: click.Context, node_type: str, node_id: str, pay_in_credits: bool,
                  ipfs_node_id: Optional[str]):
    """Register a node signed by the primary identity (coldkey)"""
    try:
        call = calls.register_node_with_coldkey(_node_type(node_type), node_id, pay_in_credits, ipfs_node_id)
        identity = get_store(ctx).primary()
        outcome = submit_call(ctx, call, identity)
        report_outcome(ctx, outcome, "Node Registered", node_id=node_id, node_type=_node_type(node_type).value)
    except HipcError as exc:
        _cli_fail(exc)


@node.command('register-hotkey')
@click.argument('hips_key')
@click.argument('hotkey_address')
@click.option('--node-type', required=True, type=NODE_TYPE_CHOICE, help='Type of node')
@click.option('--node-id', required=True, help='Unique node identifier')
@click.option('--pay-in-credits', is_flag=True, help='Pay the registration fee in credits')
@click.option('--ipfs-node-id', default=None, help='IPFS peer id of the node')
@click.pass_context
def node_register_hotkey(ctx: click.Context, hips_key: str, hotkey_address: str, node_type: str,
                         node_id: str, pay_in_credits: bool, ipfs_node_id: Optional[str]):
    """Register a node for coldkey HIPS_KEY, signed by HOTKEY_ADDRESS"""
    try:
        call = calls.register_node_with_hotkey(hips_key, _node_type(node_type), node_id,
                                               pay_in_credits, ipfs_node_id)
        identity = get_store(ctx).secondary(hotkey_address)
        outcome = submit_call(ctx, call, identity)
        report_outcome(ctx, outcome, "Node Registered", node_id=node_id, coldkey=hips_key)
    except HipcError as exc:
        _cli_fail(exc)


@node.command('swap-owner')
@click.argument('node_id')
@click.argument('new_owner')
@click.argument('signer', required=False)
@click.pass_context
def node_swap_owner(ctx: click.Context, node_id: str, new_owner: str, signer: Optional[str]):
    """Transfer ownership of NODE_ID to NEW_OWNER, signed by SIGNER"""
    try:
        call = calls.swap_node_owner(node_id, new_owner)
        identity = resolve_identity(ctx, signer)
        outcome = submit_call(ctx, call, identity)
        report_outcome(ctx, outcome, "Node Owner Swapped", node_id=node_id, new_owner=new_owner)
    except HipcError as exc:
        _cli_fail(exc)


@node.command('info')
@signer_option
@click.pass_context
def node_info(ctx: click.Context, signer: Optional[str]):
    """Show the node registered to the signer"""
    try:
        info = _owned_node(ctx, signer)
    except HipcError as exc:
        _cli_fail(exc)
        return
    if ctx.obj['json_output']:
        echo_json(info.to_dict() if info else None)
        return
    _print_node(info)


@node.command('id')
@click.pass_context
def node_id(ctx: click.Context):
    """Show the local node's libp2p peer id"""
    config = get_config(ctx)
    try:
        peer_id = LocalNodeRPC(config.network.rpc_url, timeout=config.network.timeout).local_peer_id()
    except HipcError as exc:
        _cli_fail(exc)
        return
    if ctx.obj['json_output']:
        echo_json({"peer_id": peer_id})
        return
    console.print(f"[bold green]Local Peer ID:[/] {peer_id}")


@node.command('ipfs-id')
@click.pass_context
def node_ipfs_id(ctx: click.Context):
    """Show the local IPFS node id"""
    try:
        peer_id = read_ipfs_node_id(get_config(ctx).ipfs.config_path)
    except HipcError as exc:
        _cli_fail(exc)
        return
    if ctx.obj['json_output']:
        echo_json({"ipfs_node_id": peer_id})
        return
    console.print(f"[bold green]IPFS Node ID:[/] {peer_id}")


# ============================================================================
# miner
# ============================================================================

@click.group()
def miner():
    """Miner node information"""
    pass


def _miner_info(ctx: click.Context, signer: Optional[str], tool: str, label: str) -> None:
    try:
        info = _owned_node(ctx, signer)
    except HipcError as exc:
        _cli_fail(exc)
        return
    version = tool_version(tool)
    if ctx.obj['json_output']:
        echo_json({"node": info.to_dict() if info else None, f"{tool}_version": version})
        return
    _print_node(info)
    console.print(f"[bold cyan]{label} Version:[/] {version}")


@miner.command('compute')
@signer_option
@click.pass_context
def miner_compute(ctx: click.Context, signer: Optional[str]):
    """Show your node record and the local libvirt version"""
    _miner_info(ctx, signer, "libvirtd", "Libvirt")


@miner.command('storage')
@signer_option
@click.pass_context
def miner_storage(ctx: click.Context, signer: Optional[str]):
    """Show your node record and the local IPFS version"""
    _miner_info(ctx, signer, "ipfs", "IPFS")


@miner.command('requirements')
@click.option('--node-type', required=True, type=NODE_TYPE_CHOICE, help='Type of node')
@click.pass_context
def miner_requirements(ctx: click.Context, node_type: str):
    """Show registration requirements for a node type"""
    requirements = NODE_REQUIREMENTS[_node_type(node_type)]
    if ctx.obj['json_output']:
        echo_json(requirements)
        return
    table = Table(show_header=False, box=box.SIMPLE)
    for item in requirements["information"]:
        table.add_row("[bold cyan]Required", item)
    for item in requirements["hardware"]:
        table.add_row("[bold yellow]Hardware", item)
    table.add_row("[bold green]Example", requirements["example"])
    console.print(Panel(table, title=f"[bold green]{requirements['title']}", border_style="cyan"))


# ============================================================================
# rankings
# ============================================================================

@click.command('rankings')
@click.option('--node-type', required=True, type=NODE_TYPE_CHOICE, help='Type of node')
@click.option('--node-id', required=True, help='Node identifier to look up')
@click.pass_context
def rankings(ctx: click.Context, node_type: str, node_id: str):
    """Show a node's rank and estimated reward"""
    kind = _node_type(node_type)
    rewards = get_config(ctx).rewards
    try:
        ranked = run_query(ctx, lambda engine: rank_node(engine, kind, node_id, rewards),
                           f"Fetching {kind.value} rankings...")
    except HipcError as exc:
        _cli_fail(exc)
        return

    if ctx.obj['json_output']:
        if ranked is None:
            echo_json(None)
            return
        record = ranked.record
        echo_json({
            "node_id": record.node_id,
            "node_ss58_address": record.node_ss58_address,
            "node_type": record.node_type.value,
            "weight": record.weight,
            "rank": record.rank,
            "position": ranked.position,
            "last_updated": record.last_updated,
            "is_active": record.is_active,
            "estimated_reward": ranked.estimated_reward,
        })
        return

    if ranked is None:
        console.print(f"[yellow]No ranking found for node {node_id} ({kind.value}).")
        return
    record = ranked.record
    table = Table(show_header=False, box=box.ROUNDED)
    table.add_row("[bold cyan]Position", str(ranked.position))
    table.add_row("[bold cyan]Node ID", record.node_id)
    table.add_row("[bold cyan]Node Address", record.node_ss58_address)
    table.add_row("[bold cyan]Node Type", record.node_type.value)
    table.add_row("[bold cyan]Weight", str(record.weight))
    table.add_row("[bold cyan]Rank", str(record.rank))
    table.add_row("[bold cyan]Last Updated", str(record.last_updated))
    table.add_row("[bold cyan]Active", "Yes" if record.is_active else "No")
    table.add_row("[bold green]Estimated Reward", str(ranked.estimated_reward))
    console.print(Panel(table, title=f"[bold green]Rankings for {kind.value} Node", border_style="green"))
