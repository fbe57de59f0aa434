"""
Call descriptors for every extrinsic the client submits.

A Call is a pallet/function pair plus ordered parameters. Builders validate
user-supplied addresses and amounts up front so malformed input fails with
ValidationError before a connection is opened.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from scalecodec.utils.ss58 import is_valid_ss58_address

from hipc.core.exceptions import ValidationError
from hipc.core.models import FileInput, NodeType

U32_MAX = 2 ** 32 - 1
U128_MAX = 2 ** 128 - 1


@dataclass(frozen=True)
class Call:
    """An unsigned call: pallet, function and its ordered parameters."""

    pallet: str
    function: str
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return f"{self.pallet}.{self.function}"


def require_address(value: str, label: str = "address") -> str:
    """Return value if it is a well-formed SS58 address, else raise ValidationError."""
    if not value or not is_valid_ss58_address(value):
        raise ValidationError(f"Invalid {label}: {value!r}", details={label: value})
    return value


def require_amount(value: int, label: str = "amount", maximum: int = U128_MAX) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{label} must be an integer")
    if value < 0 or value > maximum:
        raise ValidationError(f"{label} out of range: {value}", details={label: value})
    return value


def _require_text(value: str, label: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{label} cannot be empty")
    return value


def _optional_bytes(value: Optional[str]) -> Optional[bytes]:
    return value.encode("utf-8") if value else None


# ==================== Registration ====================


def register_node_with_coldkey(
    node_type: NodeType,
    node_id: str,
    pay_in_credits: bool = False,
    ipfs_node_id: Optional[str] = None,
) -> Call:
    return Call(
        "Registration",
        "register_node_with_coldkey",
        {
            "node_type": NodeType(node_type).value,
            "node_id": _require_text(node_id, "node_id").encode("utf-8"),
            "pay_in_credits": bool(pay_in_credits),
            "ipfs_node_id": _optional_bytes(ipfs_node_id),
        },
    )


def register_node_with_hotkey(
    coldkey: str,
    node_type: NodeType,
    node_id: str,
    pay_in_credits: bool = False,
    ipfs_node_id: Optional[str] = None,
) -> Call:
    return Call(
        "Registration",
        "register_node_with_hotkey",
        {
            "coldkey": require_address(coldkey, "coldkey"),
            "node_type": NodeType(node_type).value,
            "node_id": _require_text(node_id, "node_id").encode("utf-8"),
            "pay_in_credits": bool(pay_in_credits),
            "ipfs_node_id": _optional_bytes(ipfs_node_id),
        },
    )


def swap_node_owner(node_id: str, new_owner: str) -> Call:
    return Call(
        "Registration",
        "swap_node_owner",
        {
            "node_id": _require_text(node_id, "node_id").encode("utf-8"),
            "new_owner": require_address(new_owner, "new_owner"),
        },
    )


# ==================== Marketplace ====================


def storage_request(files: Sequence[FileInput], miner_ids: Optional[Iterable[str]] = None) -> Call:
    """Pin one or more files in a single request."""
    if not files:
        raise ValidationError("storage request needs at least one file")
    files_input = []
    for item in files:
        _require_text(item.file_hash, "file_hash")
        _require_text(item.file_name, "file_name")
        files_input.append(item.to_call_param())
    miners: Optional[List[bytes]] = None
    if miner_ids:
        miners = [_require_text(m, "miner_id").encode("utf-8") for m in miner_ids]
    return Call("Marketplace", "storage_request", {"files_input": files_input, "miner_ids": miners})


def storage_unpin_request(file_hash: str) -> Call:
    return Call(
        "Marketplace",
        "storage_unpin_request",
        {"file_hash": _require_text(file_hash, "file_hash").encode("utf-8")},
    )


# ==================== Balances / Staking ====================


def transfer_keep_alive(dest: str, value: int) -> Call:
    return Call(
        "Balances",
        "transfer_keep_alive",
        {"dest": require_address(dest, "destination"), "value": require_amount(value)},
    )


def bond(value: int, payee: str = "Staked") -> Call:
    return Call("Staking", "bond", {"value": require_amount(value), "payee": payee})


def unbond(value: int) -> Call:
    return Call("Staking", "unbond", {"value": require_amount(value)})


def withdraw_unbonded(num_slashing_spans: int) -> Call:
    return Call(
        "Staking",
        "withdraw_unbonded",
        {"num_slashing_spans": require_amount(num_slashing_spans, "num_slashing_spans", U32_MAX)},
    )


# ==================== Credits / Proxy ====================


def lock_credits(amount: int) -> Call:
    return Call("Credits", "lock_credits", {"amount": require_amount(amount)})


def add_proxy(delegate: str, proxy_type: str = "NonTransfer", delay: int = 0) -> Call:
    return Call(
        "Proxy",
        "add_proxy",
        {
            "delegate": require_address(delegate, "delegate"),
            "proxy_type": proxy_type,
            "delay": require_amount(delay, "delay", U32_MAX),
        },
    )
