#!/usr/bin/env python3
"""
hipc Credits Commands - Free and locked credits, lock periods and plans
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
    report_outcome,
    resolve_identity,
    run_query,
    signer_option,
    submit_call,
)
from hipc.core import calls
from hipc.core.chain_state import (
    current_lock_period,
    get_free_credits,
    get_locked_credits,
    list_plans,
    min_lock_amount,
)
from hipc.core.exceptions import HipcError

logger = logging.getLogger(__name__)


@click.group()
def credits():
    """Credit balances and locking"""
    pass


@credits.command('show')
@signer_option
@click.pass_context
def credits_show(ctx: click.Context, signer: Optional[str]):
    """Show free credits of the signer"""
    try:
        address = resolve_identity(ctx, signer).address
        amount = run_query(ctx, lambda engine: get_free_credits(engine, address), "Querying free credits...")
    except HipcError as exc:
        _cli_fail(exc)
        return

    if ctx.obj['json_output']:
        echo_json({"address": address, "free_credits": amount or 0})
        return
    if not amount:
        console.print(f"[yellow]No credits found for {address}.")
        return
    console.print(f"[bold green]Free Credits:[/] {amount}")


@credits.command('locked')
@signer_option
@click.pass_context
def credits_locked(ctx: click.Context, signer: Optional[str]):
    """List credits locked by the signer"""
    try:
        address = resolve_identity(ctx, signer).address
        locked = run_query(ctx, lambda engine: get_locked_credits(engine, address), "Fetching locked credits...")
    except HipcError as exc:
        _cli_fail(exc)
        return

    total = sum(item.amount_locked for item in locked)
    if ctx.obj['json_output']:
        echo_json({
            "address": address,
            "total_locked": total,
            "locked_credits": [
                {
                    "id": item.id,
                    "amount_locked": item.amount_locked,
                    "created_at": item.created_at,
                    "is_fulfilled": item.is_fulfilled,
                    "tx_hash": item.tx_hash,
                }
                for item in locked
            ],
        })
        return
    if not locked:
        console.print("[yellow]No locked credits found for this account.")
        return

    table = Table(title=f"Locked Credits - {address}", box=box.ROUNDED)
    table.add_column("ID", justify="right")
    table.add_column("Amount", justify="right", style="green")
    table.add_column("Created At", justify="right")
    table.add_column("Fulfilled")
    table.add_column("Tx Hash", style="dim")
    for item in locked:
        table.add_row(
            str(item.id),
            str(item.amount_locked),
            str(item.created_at),
            "Yes" if item.is_fulfilled else "No",
            item.tx_hash or "-",
        )
    console.print(table)
    console.print(f"[bold cyan]Total Locked:[/] {total}")


@credits.command('lock')
@click.argument('amount', type=click.IntRange(min=0, max=calls.U128_MAX))
@signer_option
@click.pass_context
def credits_lock(ctx: click.Context, amount: int, signer: Optional[str]):
    """Lock AMOUNT of credits"""
    try:
        identity = resolve_identity(ctx, signer)
        outcome = submit_call(ctx, calls.lock_credits(amount), identity)
        report_outcome(ctx, outcome, "Credits Locked", amount=amount)
    except HipcError as exc:
        _cli_fail(exc)


@credits.command('lock-period')
@click.pass_context
def credits_lock_period(ctx: click.Context):
    """Show the current credit lock period"""
    try:
        period = run_query(ctx, current_lock_period, "Fetching lock period...")
    except HipcError as exc:
        _cli_fail(exc)
        return

    if ctx.obj['json_output']:
        echo_json({"start_block": period.start_block, "end_block": period.end_block} if period else None)
        return
    if period is None:
        console.print("[yellow]No lock period is set.")
        return
    table = Table(show_header=False, box=box.ROUNDED)
    table.add_row("[bold cyan]Start Block", str(period.start_block))
    table.add_row("[bold cyan]End Block", str(period.end_block))
    console.print(Panel(table, title="[bold green]Current Lock Period", border_style="green"))


@credits.command('min-lock')
@click.pass_context
def credits_min_lock(ctx: click.Context):
    """Show the minimum lockable amount"""
    try:
        amount = run_query(ctx, min_lock_amount, "Fetching minimum lock amount...")
    except HipcError as exc:
        _cli_fail(exc)
        return

    if ctx.obj['json_output']:
        echo_json({"min_lock_amount": amount})
        return
    console.print(f"[bold green]Minimum Lock Amount:[/] {amount if amount is not None else 'not set'}")


@click.command('plans')
@click.pass_context
def plans(ctx: click.Context):
    """List marketplace plans"""
    try:
        available = run_query(ctx, list_plans, "Fetching plans...")
    except HipcError as exc:
        _cli_fail(exc)
        return

    if ctx.obj['json_output']:
        echo_json([
            {
                "id": plan.id,
                "name": plan.plan_name,
                "description": plan.plan_description,
                "technical_description": plan.plan_technical_description,
                "price": plan.price,
                "is_suspended": plan.is_suspended,
            }
            for plan in available
        ])
        return
    if not available:
        console.print("[yellow]No plans found.")
        return

    table = Table(title="Marketplace Plans", box=box.ROUNDED)
    table.add_column("ID", style="dim", overflow="fold")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Suspended")
    for plan in available:
        table.add_row(plan.id, plan.plan_name, plan.plan_description, str(plan.price),
                      "Yes" if plan.is_suspended else "No")
    console.print(table)
