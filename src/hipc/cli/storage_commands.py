#!/usr/bin/env python3
"""
hipc Storage Commands - Pin requests and marketplace listings

Provides CLI interface for storage operations:
- Pin or unpin a file
- Pin every file listed in a CSV manifest in one request
- List the signer's pinned files and the available OS images
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import click
from rich import box
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
from hipc.core.chain_state import list_images, list_user_files
from hipc.core.exceptions import HipcError
from hipc.core.file_manifest import parse_upload_csv
from hipc.core.models import FileInput

logger = logging.getLogger(__name__)


@click.group()
def storage():
    """File pinning and storage marketplace"""
    pass


@storage.command('pin')
@click.argument('file_hash')
@click.argument('file_name')
@click.option('--miner-id', 'miner_ids', multiple=True, help='Preferred miner (repeatable)')
@signer_option
@click.pass_context
def storage_pin(ctx: click.Context, file_hash: str, file_name: str, miner_ids: Tuple[str, ...],
                signer: Optional[str]):
    """Request storage of FILE_HASH under FILE_NAME"""
    try:
        call = calls.storage_request([FileInput(file_hash, file_name)], miner_ids)
        identity = resolve_identity(ctx, signer)
        outcome = submit_call(ctx, call, identity)
        report_outcome(ctx, outcome, "Storage Requested", file_hash=file_hash, file_name=file_name)
    except HipcError as exc:
        _cli_fail(exc)


@storage.command('unpin')
@click.argument('file_hash')
@signer_option
@click.pass_context
def storage_unpin(ctx: click.Context, file_hash: str, signer: Optional[str]):
    """Request removal of FILE_HASH"""
    try:
        call = calls.storage_unpin_request(file_hash)
        identity = resolve_identity(ctx, signer)
        outcome = submit_call(ctx, call, identity)
        report_outcome(ctx, outcome, "Unpin Requested", file_hash=file_hash)
    except HipcError as exc:
        _cli_fail(exc)


@storage.command('bulk-upload')
@click.option('--csv-path', required=True, type=click.Path(dir_okay=False), help='CSV of file CID,name rows')
@signer_option
@click.pass_context
def storage_bulk_upload(ctx: click.Context, csv_path: str, signer: Optional[str]):
    """Pin every file listed in a CSV manifest in one storage request"""
    try:
        files = parse_upload_csv(csv_path)
        if not files:
            console.print("[yellow]⚠ No files found in the CSV to upload.")
            return
        call = calls.storage_request(files)
        identity = resolve_identity(ctx, signer)
        outcome = submit_call(ctx, call, identity)
        report_outcome(ctx, outcome, "Bulk Upload Requested", files=len(files))
    except HipcError as exc:
        _cli_fail(exc)


@storage.command('files')
@signer_option
@click.pass_context
def storage_files(ctx: click.Context, signer: Optional[str]):
    """List file hashes pinned by the signer"""
    try:
        address = resolve_identity(ctx, signer).address
        hashes = run_query(ctx, lambda engine: list_user_files(engine, address), "Fetching your files...")
    except HipcError as exc:
        _cli_fail(exc)
        return

    if ctx.obj['json_output']:
        echo_json({"address": address, "files": hashes})
        return
    if not hashes:
        console.print("[yellow]No files found for this account.")
        return
    table = Table(title=f"Files - {address}", box=box.ROUNDED)
    table.add_column("#", justify="right")
    table.add_column("File Hash", style="cyan")
    for index, file_hash in enumerate(hashes, start=1):
        table.add_row(str(index), file_hash)
    console.print(table)


@storage.command('images')
@click.pass_context
def storage_images(ctx: click.Context):
    """List OS disk images offered by the marketplace"""
    try:
        images = run_query(ctx, list_images, "Fetching OS disk images...")
    except HipcError as exc:
        _cli_fail(exc)
        return

    if ctx.obj['json_output']:
        echo_json([{"os": name, "url": url} for name, url in images])
        return
    if not images:
        console.print("[yellow]No OS disk images found in the marketplace.")
        return
    table = Table(title="Available OS Disk Images", box=box.ROUNDED)
    table.add_column("OS", style="cyan")
    table.add_column("URL")
    for name, url in images:
        table.add_row(name, url)
    console.print(table)
