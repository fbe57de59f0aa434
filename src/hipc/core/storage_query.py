"""
Storage query engine.

A StorageItem names one storage map together with the schema its values
decode to, so every read is typed at the call site:

    FREE_CREDITS = StorageItem("Credits", "FreeCredits", Balance)
    credits = await engine.fetch_one(FREE_CREDITS, address)

Reads always go to the latest finalized block and nothing is cached.
Iteration pins the finalized head once, so entries written after the
iteration starts are not observed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, List, Optional

from hipc.core.chain_client import ChainConnection, StorageQuery
from hipc.core.exceptions import DecodeError
from hipc.core.models import StorageEntry

logger = logging.getLogger(__name__)


class DecodePolicy(str, Enum):
    """What iteration does with an entry that fails to decode."""
    SKIP = "skip"
    RAISE = "raise"


@dataclass(frozen=True)
class StorageItem:
    """A storage map and the schema of its values."""

    pallet: str
    name: str
    schema: Any

    @property
    def map_name(self) -> str:
        return f"{self.pallet}.{self.name}"

    def query(self, *keys: Any) -> StorageQuery:
        return StorageQuery(self.pallet, self.name, tuple(keys))


class StorageIterator:
    """Forward-only, non-restartable async iterator over one map snapshot."""

    def __init__(
        self,
        connection: ChainConnection,
        item: StorageItem,
        prefix_keys: tuple,
        policy: DecodePolicy = DecodePolicy.SKIP,
        page_size: int = 100,
    ) -> None:
        self.connection = connection
        self.item = item
        self.prefix_keys = prefix_keys
        self.policy = DecodePolicy(policy)
        self.page_size = page_size
        self.snapshot: Optional[str] = None
        self.skipped: List[DecodeError] = []
        self._source: Optional[AsyncIterator] = None
        self._exhausted = False

    def __aiter__(self) -> "StorageIterator":
        return self

    async def __anext__(self) -> StorageEntry:
        if self._exhausted:
            raise StopAsyncIteration
        if self._source is None:
            self.snapshot = await self.connection.finalized_head()
            self._source = self.connection.storage_iterate(
                self.item.query(*self.prefix_keys),
                block_hash=self.snapshot,
                page_size=self.page_size,
            ).__aiter__()

        while True:
            try:
                key, raw = await self._source.__anext__()
            except StopAsyncIteration:
                self._exhausted = True
                raise
            try:
                value = self.item.schema.decode(raw, map_name=self.item.map_name)
            except DecodeError as exc:
                if self.policy is DecodePolicy.RAISE:
                    self._exhausted = True
                    raise
                self.skipped.append(exc)
                logger.warning(
                    "Skipping undecodable entry",
                    extra={"event": "storage.decode_skipped", "map": self.item.map_name, "error": str(exc)},
                )
                continue
            return StorageEntry(key=key, value=value)

    async def collect(self) -> List[StorageEntry]:
        return [entry async for entry in self]


class StorageQueryEngine:
    """Typed point fetches and map iteration over a chain connection."""

    def __init__(self, connection: ChainConnection) -> None:
        self.connection = connection

    async def fetch_one(self, item: StorageItem, *keys: Any) -> Any:
        """Decoded value at keys in the latest finalized block, or None when absent."""
        head = await self.connection.finalized_head()
        raw = await self.connection.storage_fetch(item.query(*keys), block_hash=head)
        if raw is None:
            logger.debug("Storage key absent", extra={"event": "storage.absent", "map": item.map_name})
            return None
        return item.schema.decode(raw, map_name=item.map_name)

    def iterate(
        self,
        item: StorageItem,
        *prefix_keys: Any,
        policy: DecodePolicy = DecodePolicy.SKIP,
        page_size: int = 100,
    ) -> StorageIterator:
        """Lazy (key, value) entries under prefix_keys; no request is made until first iteration."""
        return StorageIterator(self.connection, item, prefix_keys, policy=policy, page_size=page_size)
