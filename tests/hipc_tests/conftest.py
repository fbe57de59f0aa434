"""
Shared fixtures for hipc tests: an in-memory chain connection and
temporary keystores.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

from hipc.core.chain_client import ChainConnection, ChainReceipt, StorageQuery
from hipc.core.config import HipcConfig, IdentityConfig, LoggingConfig
from hipc.wallet.keystore import IdentityStore

# 16 zero bytes: "abandon abandon ... about"
ZERO_ENTROPY = bytes(16)
ALICE_URI = "//Alice"


class FakeChainConnection(ChainConnection):
    """
    ChainConnection double that records every request.

    storage maps (pallet, name, keys) to a raw value for point fetches;
    maps maps (pallet, name) to a list of raw (key, value) pairs for
    iteration; receipts are returned by successive submissions.
    errors maps a method name or a "Pallet.Item" map name to an exception
    raised when it is hit.
    """

    def __init__(self) -> None:
        self.url = "ws://fake"
        self.head = "0xfinalized"
        self.storage: Dict[Tuple[str, str, Tuple[Any, ...]], Any] = {}
        self.maps: Dict[Tuple[str, str], List[Tuple[Any, Any]]] = {}
        self.receipts: List[ChainReceipt] = []
        self.errors: Dict[str, Exception] = {}
        self.requests: List[Tuple[str, Any]] = []
        self.closed = False

    def _hit(self, method: str, detail: Any = None, map_name: Optional[str] = None) -> None:
        self.requests.append((method, detail))
        for key in (method, map_name):
            if key and key in self.errors:
                raise self.errors[key]

    def methods(self) -> List[str]:
        return [method for method, _ in self.requests]

    def set_value(self, pallet: str, name: str, value: Any, *keys: Any) -> None:
        self.storage[(pallet, name, tuple(keys))] = value

    def set_map(self, pallet: str, name: str, entries: List[Tuple[Any, Any]]) -> None:
        self.maps[(pallet, name)] = list(entries)

    async def compose_call(self, call):
        self._hit("compose_call", call)
        return ("composed", call)

    async def sign(self, composed, keypair):
        self._hit("sign", keypair.ss58_address)
        return ("signed", composed, keypair.ss58_address)

    async def submit_and_watch(self, signed):
        self._hit("submit_and_watch", signed)
        if self.receipts:
            return self.receipts.pop(0)
        return ChainReceipt(is_success=True, extrinsic_hash="0xextrinsic", block_hash="0xblock")

    async def finalized_head(self) -> str:
        self._hit("finalized_head")
        return self.head

    async def storage_fetch(self, query: StorageQuery, block_hash: Optional[str] = None):
        self._hit("storage_fetch", (query, block_hash), query.map_name)
        return self.storage.get((query.pallet, query.name, tuple(query.keys)))

    async def storage_iterate(self, query: StorageQuery, block_hash: Optional[str] = None, page_size: int = 100):
        self._hit("storage_iterate", (query, block_hash), query.map_name)
        for key, value in list(self.maps.get((query.pallet, query.name), [])):
            yield key, value

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_chain() -> FakeChainConnection:
    return FakeChainConnection()


@pytest.fixture
def keystore_root(tmp_path: Path) -> Path:
    root = tmp_path / "keystore"
    root.mkdir()
    return root


@pytest.fixture
def store(keystore_root: Path) -> IdentityStore:
    """Empty keystore without a fallback seed."""
    return IdentityStore(keystore_root)


@pytest.fixture
def alice_store(keystore_root: Path) -> IdentityStore:
    """Empty keystore falling back to the //Alice development seed."""
    return IdentityStore(keystore_root, seed_phrase=ALICE_URI)


@pytest.fixture
def test_config(keystore_root: Path) -> HipcConfig:
    return HipcConfig(
        identity=IdentityConfig(
            seed_phrase=ALICE_URI,
            keystore_dir=str(keystore_root),
            hotkeys_dir=str(keystore_root / "hotkeys"),
        ),
        logging=LoggingConfig(level="CRITICAL"),
    )


@pytest.fixture
def connect_calls() -> List[HipcConfig]:
    return []


@pytest.fixture
def cli_obj(test_config, alice_store, fake_chain, connect_calls) -> Dict[str, Any]:
    """ctx.obj for CliRunner.invoke: preloaded config, keystore and fake connection."""
    async def _connect(config):
        connect_calls.append(config)
        return fake_chain

    return {"config": test_config, "store": alice_store, "connect": _connect}
