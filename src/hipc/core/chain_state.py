"""
Named read operations over the storage query engine.

Each storage map the client reads is declared once here with its schema.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from hipc.core.exceptions import DecodeError
from hipc.core.models import (
    Balance,
    ByteStrings,
    LockedCredit,
    ListOf,
    LockPeriod,
    NodeInfo,
    NodeType,
    OptionOf,
    Plan,
    Text,
    to_text,
)
from hipc.core.storage_query import DecodePolicy, StorageItem, StorageQueryEngine

logger = logging.getLogger(__name__)

FREE_CREDITS = StorageItem("Credits", "FreeCredits", Balance)
LOCKED_CREDITS = StorageItem("Credits", "LockedCredits", ListOf(LockedCredit))
CURRENT_LOCK_PERIOD = StorageItem("Credits", "CurrentLockPeriod", LockPeriod)
MIN_LOCK_AMOUNT = StorageItem("Credits", "MinLockAmount", Balance)
NODE_REGISTRATION = StorageItem("Registration", "NodeRegistration", OptionOf(NodeInfo))
PLANS = StorageItem("Marketplace", "Plans", Plan)
OS_DISK_IMAGES = StorageItem("Marketplace", "OSDiskImageUrls", Text)
USER_FILE_HASHES = StorageItem("Marketplace", "UserFileHashes", ByteStrings)


async def get_free_credits(engine: StorageQueryEngine, address: str) -> Optional[int]:
    return await engine.fetch_one(FREE_CREDITS, address)


async def get_locked_credits(engine: StorageQueryEngine, address: str) -> List[LockedCredit]:
    return await engine.fetch_one(LOCKED_CREDITS, address) or []


async def current_lock_period(engine: StorageQueryEngine) -> Optional[LockPeriod]:
    return await engine.fetch_one(CURRENT_LOCK_PERIOD)


async def min_lock_amount(engine: StorageQueryEngine) -> Optional[int]:
    return await engine.fetch_one(MIN_LOCK_AMOUNT)


async def list_user_files(engine: StorageQueryEngine, address: str) -> List[str]:
    return await engine.fetch_one(USER_FILE_HASHES, address) or []


async def find_owned_node(
    engine: StorageQueryEngine,
    owner: str,
    node_type: Optional[NodeType] = None,
) -> Optional[NodeInfo]:
    """
    Resolve the registered node owned by an account.

    Walks Registration.NodeRegistration at one finalized snapshot and
    returns the first record whose owner is owner (and whose type is
    node_type, when given). Entries that fail to decode are skipped.
    """
    wanted = NodeType(node_type) if node_type is not None else None
    async for entry in engine.iterate(NODE_REGISTRATION, policy=DecodePolicy.SKIP):
        info = entry.value
        if info is None or info.owner != owner:
            continue
        if wanted is not None and info.node_type is not wanted:
            continue
        logger.debug("Found owned node", extra={"event": "node.found", "node_id": info.node_id})
        return info
    return None


async def list_plans(engine: StorageQueryEngine, strict: bool = False) -> List[Plan]:
    policy = DecodePolicy.RAISE if strict else DecodePolicy.SKIP
    return [entry.value async for entry in engine.iterate(PLANS, policy=policy)]


def _image_name(key) -> str:
    if isinstance(key, (list, tuple)) and key and not all(isinstance(b, int) for b in key):
        key = key[-1]
    return to_text(key)


async def list_images(engine: StorageQueryEngine) -> List[Tuple[str, str]]:
    """(OS name, URL) pairs; entries with an empty name or URL are dropped."""
    images = []
    async for entry in engine.iterate(OS_DISK_IMAGES, policy=DecodePolicy.SKIP):
        try:
            name = _image_name(entry.key)
        except DecodeError as exc:
            logger.warning(
                "Skipping image with undecodable key",
                extra={"event": "storage.decode_skipped", "map": OS_DISK_IMAGES.map_name, "error": str(exc)},
            )
            continue
        if name and entry.value:
            images.append((name, entry.value))
    return images
