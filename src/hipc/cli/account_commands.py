#!/usr/bin/env python3
"""
hipc Account Commands - Transfers and staking

Amounts are integers in base units.
"""

from __future__ import annotations

import logging
from typing import Optional

import click

from hipc.cli.common import _cli_fail, report_outcome, resolve_identity, signer_option, submit_call
from hipc.core import calls
from hipc.core.exceptions import HipcError

logger = logging.getLogger(__name__)

AMOUNT = click.IntRange(min=0, max=calls.U128_MAX)


def _submit(ctx: click.Context, call: calls.Call, signer: Optional[str], title: str, **fields) -> None:
    try:
        identity = resolve_identity(ctx, signer)
        outcome = submit_call(ctx, call, identity)
        report_outcome(ctx, outcome, title, **fields)
    except HipcError as exc:
        _cli_fail(exc)


@click.group()
def account():
    """Balance transfers and staking"""
    pass


@account.command('transfer')
@click.argument('dest')
@click.argument('amount', type=AMOUNT)
@signer_option
@click.pass_context
def account_transfer(ctx: click.Context, dest: str, amount: int, signer: Optional[str]):
    """Transfer AMOUNT to DEST, keeping the sender alive"""
    try:
        call = calls.transfer_keep_alive(dest, amount)
    except HipcError as exc:
        _cli_fail(exc)
        return
    _submit(ctx, call, signer, "Transfer Complete", destination=dest, amount=amount)


@account.command('stake')
@click.argument('amount', type=AMOUNT)
@signer_option
@click.pass_context
def account_stake(ctx: click.Context, amount: int, signer: Optional[str]):
    """Bond AMOUNT, with rewards paid to the stash as stake"""
    _submit(ctx, calls.bond(amount), signer, "Stake Bonded", amount=amount)


@account.command('unstake')
@click.argument('amount', type=AMOUNT)
@signer_option
@click.pass_context
def account_unstake(ctx: click.Context, amount: int, signer: Optional[str]):
    """Schedule AMOUNT for unbonding"""
    _submit(ctx, calls.unbond(amount), signer, "Stake Unbonding", amount=amount)


@account.command('withdraw')
@click.argument('num_slashing_spans', type=click.IntRange(min=0, max=calls.U32_MAX))
@signer_option
@click.pass_context
def account_withdraw(ctx: click.Context, num_slashing_spans: int, signer: Optional[str]):
    """Withdraw unbonded funds"""
    _submit(ctx, calls.withdraw_unbonded(num_slashing_spans), signer, "Unbonded Funds Withdrawn",
            slashing_spans=num_slashing_spans)
