"""
Typed chain records and decode schemas.

Storage values arrive from the chain client already split into Python
primitives (dicts, lists, ints, hex strings). Each schema here turns one of
those raw values into a typed, immutable record and raises DecodeError with
the offending map and field when the shape does not match.

A schema is anything with ``decode(value, map_name=None)``: the record
classes below, the scalar schemas (Balance, Text, ByteStrings)
and ``ListOf(schema)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from hipc.core.exceptions import DecodeError


# ============================================================================
# Primitive coercion
# ============================================================================

def to_bytes(value: Any) -> bytes:
    """Coerce a decoded Vec<u8> (bytes, 0x-hex string, text or int list) to bytes."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        if value.startswith("0x"):
            try:
                return bytes.fromhex(value[2:])
            except ValueError:
                return value.encode("utf-8")
        return value.encode("utf-8")
    if isinstance(value, (list, tuple)) and all(isinstance(b, int) and 0 <= b < 256 for b in value):
        return bytes(value)
    raise DecodeError(f"Expected byte string, got {type(value).__name__}")


def to_text(value: Any) -> str:
    """Decode a byte-string value as UTF-8, replacing invalid sequences."""
    return to_bytes(value).decode("utf-8", errors="replace")


def to_int(value: Any) -> int:
    """Coerce an unsigned integer value (int, decimal or 0x-hex string)."""
    if isinstance(value, bool):
        raise DecodeError("Expected integer, got bool")
    if isinstance(value, int):
        if value < 0:
            raise DecodeError(f"Expected unsigned integer, got {value}")
        return value
    if isinstance(value, str):
        try:
            parsed = int(value, 16) if value.startswith("0x") else int(value)
        except ValueError:
            raise DecodeError(f"Expected integer, got {value!r}") from None
        if parsed < 0:
            raise DecodeError(f"Expected unsigned integer, got {parsed}")
        return parsed
    raise DecodeError(f"Expected integer, got {type(value).__name__}")


def to_str(value: Any) -> str:
    """An SS58 address or hash the chain client already rendered as a string."""
    if isinstance(value, str):
        return value
    raise DecodeError(f"Expected string, got {type(value).__name__}")


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise DecodeError(f"Expected bool, got {type(value).__name__}")


def enum_variant(value: Any) -> str:
    """Name of a unit enum variant, rendered either as 'Name' or {'Name': None}."""
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and len(value) == 1:
        return next(iter(value))
    raise DecodeError(f"Expected enum variant, got {value!r}")


def _field(value: Dict[str, Any], name: str) -> Any:
    if not isinstance(value, dict):
        raise DecodeError(f"Expected struct, got {type(value).__name__}")
    try:
        return value[name]
    except KeyError:
        raise DecodeError("Missing field", field=name) from None


def _decode_field(value: Dict[str, Any], name: str, coerce) -> Any:
    raw = _field(value, name)
    try:
        return coerce(raw)
    except DecodeError as exc:
        raise DecodeError(exc.message, field=name) from exc


def _optional(coerce):
    def _inner(raw: Any) -> Any:
        return None if raw is None else coerce(raw)
    return _inner


# ============================================================================
# Schemas
# ============================================================================

class ChainRecord:
    """Base for records decoded from chain storage."""

    @classmethod
    def decode(cls, value: Any, map_name: Optional[str] = None):
        try:
            return cls._from_value(value)
        except DecodeError as exc:
            raise DecodeError(
                f"Cannot decode {cls.__name__}: {exc.message}",
                map_name=exc.map_name or map_name,
                field=exc.field,
            ) from exc

    @classmethod
    def _from_value(cls, value: Any):
        raise NotImplementedError


class _ScalarSchema:
    name = "scalar"

    @classmethod
    def decode(cls, value: Any, map_name: Optional[str] = None):
        try:
            return cls._coerce(value)
        except DecodeError as exc:
            raise DecodeError(f"Cannot decode {cls.name}: {exc.message}", map_name=map_name) from exc

    @staticmethod
    def _coerce(value: Any):
        raise NotImplementedError


class Balance(_ScalarSchema):
    """u128 balance in base units."""
    name = "Balance"
    _coerce = staticmethod(to_int)


class Text(_ScalarSchema):
    """Vec<u8> rendered as UTF-8 text."""
    name = "Text"
    _coerce = staticmethod(to_text)


class ByteStrings(_ScalarSchema):
    """Vec<Vec<u8>> rendered as a list of UTF-8 strings."""
    name = "ByteStrings"

    @staticmethod
    def _coerce(value: Any) -> List[str]:
        if not isinstance(value, (list, tuple)):
            raise DecodeError(f"Expected list, got {type(value).__name__}")
        return [to_text(item) for item in value]


class ListOf:
    """Vec<T> of a record or scalar schema."""

    def __init__(self, item_schema: Any) -> None:
        self.item_schema = item_schema

    def __repr__(self) -> str:
        return f"ListOf({getattr(self.item_schema, '__name__', self.item_schema)!r})"

    def decode(self, value: Any, map_name: Optional[str] = None) -> List[Any]:
        if not isinstance(value, (list, tuple)):
            raise DecodeError(f"Expected list, got {type(value).__name__}", map_name=map_name)
        return [self.item_schema.decode(item, map_name=map_name) for item in value]


class OptionOf:
    """Option<T>; a null value decodes to None."""

    def __init__(self, item_schema: Any) -> None:
        self.item_schema = item_schema

    def decode(self, value: Any, map_name: Optional[str] = None) -> Any:
        if value is None:
            return None
        return self.item_schema.decode(value, map_name=map_name)


# ============================================================================
# Domain records
# ============================================================================

class NodeType(str, Enum):
    """Registered node roles."""
    VALIDATOR = "Validator"
    COMPUTE_MINER = "ComputeMiner"
    STORAGE_MINER = "StorageMiner"

    @classmethod
    def from_chain(cls, value: Any) -> "NodeType":
        name = enum_variant(value)
        try:
            return cls(name)
        except ValueError:
            raise DecodeError(f"Unknown node type {name!r}") from None

    @property
    def ranking_pallet(self) -> str:
        return {
            NodeType.VALIDATOR: "RankingValidators",
            NodeType.STORAGE_MINER: "RankingStorage",
            NodeType.COMPUTE_MINER: "RankingCompute",
        }[self]


@dataclass(frozen=True)
class RankingRecord(ChainRecord):
    """One entry of a pallet's RankedList."""

    node_id: str
    node_ss58_address: str
    node_type: NodeType
    weight: int
    rank: int
    last_updated: int
    is_active: bool

    @classmethod
    def _from_value(cls, value: Any) -> "RankingRecord":
        return cls(
            node_id=_decode_field(value, "node_id", to_text),
            node_ss58_address=_decode_field(value, "node_ss58_address", to_text),
            node_type=_decode_field(value, "node_type", NodeType.from_chain),
            weight=_decode_field(value, "weight", to_int),
            rank=_decode_field(value, "rank", to_int),
            last_updated=_decode_field(value, "last_updated", to_int),
            is_active=_decode_field(value, "is_active", to_bool),
        )


@dataclass(frozen=True)
class NodeInfo(ChainRecord):
    """Registration.NodeRegistration value."""

    node_id: str
    node_type: NodeType
    ipfs_node_id: Optional[str]
    status: str
    registered_at: int
    owner: str

    @classmethod
    def _from_value(cls, value: Any) -> "NodeInfo":
        return cls(
            node_id=_decode_field(value, "node_id", to_text),
            node_type=_decode_field(value, "node_type", NodeType.from_chain),
            ipfs_node_id=_decode_field(value, "ipfs_node_id", _optional(to_text)),
            status=_decode_field(value, "status", enum_variant),
            registered_at=_decode_field(value, "registered_at", to_int),
            owner=_decode_field(value, "owner", to_str),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_id": self.node_id,
            "node_type": self.node_type.value,
            "ipfs_node_id": self.ipfs_node_id,
            "status": self.status,
            "registered_at": self.registered_at,
            "owner": self.owner,
        }


@dataclass(frozen=True)
class Plan(ChainRecord):
    """Marketplace.Plans value."""

    id: str
    plan_name: str
    plan_description: str
    plan_technical_description: str
    price: int
    is_suspended: bool

    @classmethod
    def _from_value(cls, value: Any) -> "Plan":
        return cls(
            id=_decode_field(value, "id", to_str),
            plan_name=_decode_field(value, "plan_name", to_text),
            plan_description=_decode_field(value, "plan_description", to_text),
            plan_technical_description=_decode_field(value, "plan_technical_description", to_text),
            price=_decode_field(value, "price", to_int),
            is_suspended=_decode_field(value, "is_suspended", to_bool),
        )


@dataclass(frozen=True)
class LockedCredit(ChainRecord):
    """Credits.LockedCredits entry."""

    id: int
    amount_locked: int
    created_at: int
    is_fulfilled: bool
    tx_hash: Optional[str] = None
    owner: Optional[str] = None

    @classmethod
    def _from_value(cls, value: Any) -> "LockedCredit":
        return cls(
            id=_decode_field(value, "id", to_int),
            amount_locked=_decode_field(value, "amount_locked", to_int),
            created_at=_decode_field(value, "created_at", to_int),
            is_fulfilled=_decode_field(value, "is_fulfilled", to_bool),
            tx_hash=_decode_field(value, "tx_hash", _optional(to_text)) if "tx_hash" in value else None,
            owner=_decode_field(value, "owner", _optional(to_str)) if "owner" in value else None,
        )


@dataclass(frozen=True)
class LockPeriod(ChainRecord):
    """Credits.CurrentLockPeriod value."""

    start_block: int
    end_block: int

    @classmethod
    def _from_value(cls, value: Any) -> "LockPeriod":
        return cls(
            start_block=_decode_field(value, "start_block", to_int),
            end_block=_decode_field(value, "end_block", to_int),
        )


@dataclass(frozen=True)
class AccountInfo(ChainRecord):
    """System.Account value reduced to nonce and balance data."""

    nonce: int
    free: int
    reserved: int
    frozen: int

    @classmethod
    def _from_value(cls, value: Any) -> "AccountInfo":
        data = _field(value, "data")
        return cls(
            nonce=_decode_field(value, "nonce", to_int),
            free=_decode_field(data, "free", to_int),
            reserved=_decode_field(data, "reserved", to_int),
            frozen=_decode_field(data, "frozen", to_int) if "frozen" in data else 0,
        )


@dataclass(frozen=True)
class FileInput:
    """Marketplace storage_request file entry."""

    file_hash: str
    file_name: str

    def to_call_param(self) -> Dict[str, bytes]:
        return {
            "file_hash": self.file_hash.encode("utf-8"),
            "file_name": self.file_name.encode("utf-8"),
        }


@dataclass(frozen=True)
class StorageEntry:
    """One (key, value) pair produced by map iteration."""

    key: Any
    value: Any
