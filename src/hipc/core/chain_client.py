"""
Chain client capability and its Substrate adapter.

ChainConnection is the narrow surface the core talks to: compose and sign a
call, submit it and wait for finalization, read the finalized head, and
fetch or iterate storage at a given block. SubstrateConnection implements it
on top of py-substrate-interface, which is synchronous; every blocking
round-trip runs in a worker thread so the command's task suspends exactly
once per network call.

Every connectivity or RPC failure leaves this module as TransportError,
including a submitted extrinsic whose block or receipt could not be read.
A storage item missing from the runtime metadata, or a value that will not
decode, becomes DecodeError; parameters the runtime refuses to encode
become ValidationError.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, List, Optional, Tuple

from substrateinterface import Keypair, SubstrateInterface
from substrateinterface.exceptions import (
    BlockNotFound,
    ExtrinsicNotFound,
    StorageFunctionNotFound,
    SubstrateRequestException,
)
from websocket import WebSocketException

from hipc.core.calls import Call
from hipc.core.config import HipcConfig
from hipc.core.exceptions import ConfigurationError, DecodeError, TransportError, ValidationError

logger = logging.getLogger(__name__)

TRANSPORT_EXCEPTIONS = (
    SubstrateRequestException,
    ExtrinsicNotFound,
    BlockNotFound,
    WebSocketException,
    ConnectionError,
    OSError,
)
# Raised by scalecodec while encoding params or decoding results against metadata.
ENCODING_EXCEPTIONS = (ValueError, TypeError, KeyError, IndexError)


@dataclass(frozen=True)
class StorageQuery:
    """A read against one storage map: pallet, item name and key tuple."""

    pallet: str
    name: str
    keys: Tuple[Any, ...] = ()

    @property
    def map_name(self) -> str:
        return f"{self.pallet}.{self.name}"


@dataclass(frozen=True)
class ChainReceipt:
    """What the node reported once a submitted extrinsic was finalized."""

    is_success: bool
    extrinsic_hash: Optional[str] = None
    block_hash: Optional[str] = None
    pallet: Optional[str] = None
    error: Optional[str] = None
    docs: List[str] = field(default_factory=list)


class ChainConnection(ABC):
    """An open connection to a ledger node."""

    url: str = ""

    @abstractmethod
    async def compose_call(self, call: Call) -> Any:
        """Encode a call descriptor against the node's runtime metadata."""

    @abstractmethod
    async def sign(self, composed: Any, keypair: Keypair) -> Any:
        """Build a signed extrinsic; nonce assignment is left to the node client."""

    @abstractmethod
    async def submit_and_watch(self, signed: Any) -> ChainReceipt:
        """Submit once and wait until the extrinsic is finalized."""

    @abstractmethod
    async def finalized_head(self) -> str:
        """Hash of the latest finalized block."""

    @abstractmethod
    async def storage_fetch(self, query: StorageQuery, block_hash: Optional[str] = None) -> Any:
        """Decoded primitive value at query, or None when the key is absent."""

    @abstractmethod
    def storage_iterate(
        self, query: StorageQuery, block_hash: Optional[str] = None, page_size: int = 100
    ) -> AsyncIterator[Tuple[Any, Any]]:
        """Lazily yield (key, value) primitives for every entry under query's key prefix."""

    @abstractmethod
    async def close(self) -> None:
        """Release the connection."""

    async def __aenter__(self) -> "ChainConnection":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def _scale_value(obj: Any) -> Any:
    """Primitive value of a scalecodec object (or the object itself)."""
    return getattr(obj, "value", obj)


class SubstrateConnection(ChainConnection):
    """ChainConnection backed by a SubstrateInterface websocket session."""

    def __init__(self, substrate: SubstrateInterface, url: str) -> None:
        self.substrate = substrate
        self.url = url

    async def _run(
        self,
        operation: str,
        func: Callable[..., Any],
        *args: Any,
        map_name: Optional[str] = None,
        submitted: bool = False,
        **kwargs: Any,
    ) -> Any:
        """
        Run one blocking substrate-interface call in a worker thread.

        map_name marks a storage read, so encoding failures surface as
        DecodeError for that map. submitted marks a call made after the
        extrinsic left the client: any failure then means the outcome is
        unknown and surfaces as TransportError.
        """
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except TRANSPORT_EXCEPTIONS as exc:
            self._log_failure(operation, exc)
            raise TransportError(f"{operation} failed: {exc}", details={"url": self.url}) from exc
        except StorageFunctionNotFound as exc:
            self._log_failure(operation, exc)
            raise DecodeError(
                f"Storage item not found in runtime metadata: {exc}", map_name=map_name
            ) from exc
        except ENCODING_EXCEPTIONS as exc:
            self._log_failure(operation, exc)
            if submitted:
                raise TransportError(
                    f"{operation} outcome unknown: {exc}", details={"url": self.url}
                ) from exc
            if map_name:
                raise DecodeError(f"{operation} failed: {exc}", map_name=map_name) from exc
            raise ValidationError(f"{operation} failed: {exc}", details={"operation": operation}) from exc

    def _log_failure(self, operation: str, exc: Exception) -> None:
        logger.warning(
            "Chain request failed",
            extra={
                "event": "chain.request_failed",
                "operation": operation,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )

    async def compose_call(self, call: Call) -> Any:
        composed = await self._run(
            "compose_call",
            self.substrate.compose_call,
            call_module=call.pallet,
            call_function=call.function,
            call_params=call.params,
        )
        logger.debug("Call composed", extra={"event": "tx.composed", "call": call.name})
        return composed

    async def sign(self, composed: Any, keypair: Keypair) -> Any:
        return await self._run(
            "create_signed_extrinsic",
            self.substrate.create_signed_extrinsic,
            call=composed,
            keypair=keypair,
        )

    def _submit_blocking(self, signed: Any) -> ChainReceipt:
        receipt = self.substrate.submit_extrinsic(
            signed, wait_for_inclusion=True, wait_for_finalization=True
        )
        if receipt.is_success:
            return ChainReceipt(
                is_success=True,
                extrinsic_hash=receipt.extrinsic_hash,
                block_hash=receipt.block_hash,
            )
        message = receipt.error_message or {}
        docs = message.get("docs") or []
        if isinstance(docs, str):
            docs = [docs]
        # error_message["type"] is "Module" for pallet errors, otherwise the dispatch error kind
        kind = message.get("type")
        return ChainReceipt(
            is_success=False,
            extrinsic_hash=receipt.extrinsic_hash,
            block_hash=receipt.block_hash,
            pallet=self._failed_pallet(receipt) or (kind if kind != "Module" else None),
            error=message.get("name"),
            docs=list(docs),
        )

    def _failed_pallet(self, receipt: Any) -> Optional[str]:
        """Pallet name behind a System.ExtrinsicFailed module error, if one was emitted."""
        try:
            for event in receipt.triggered_events:
                value = event.value
                if value["module_id"] != "System" or value["event_id"] != "ExtrinsicFailed":
                    continue
                dispatch_error = value["attributes"]["dispatch_error"]
                if "Module" not in dispatch_error:
                    return None
                index = dispatch_error["Module"]["index"]
                for pallet in self.substrate.metadata.pallets:
                    if pallet.value["index"] == index:
                        return pallet.name
        except (KeyError, TypeError, AttributeError, IndexError) as exc:
            logger.debug("Could not resolve failing pallet: %s", exc)
        return None

    async def submit_and_watch(self, signed: Any) -> ChainReceipt:
        return await self._run("submit_extrinsic", self._submit_blocking, signed, submitted=True)

    async def finalized_head(self) -> str:
        return await self._run("get_chain_finalised_head", self.substrate.get_chain_finalised_head)

    async def storage_fetch(self, query: StorageQuery, block_hash: Optional[str] = None) -> Any:
        result = await self._run(
            f"query {query.map_name}",
            self.substrate.query,
            module=query.pallet,
            storage_function=query.name,
            params=list(query.keys),
            block_hash=block_hash,
            map_name=query.map_name,
        )
        if result is None:
            return None
        return _scale_value(result)

    async def storage_iterate(
        self, query: StorageQuery, block_hash: Optional[str] = None, page_size: int = 100
    ) -> AsyncIterator[Tuple[Any, Any]]:
        result = await self._run(
            f"query_map {query.map_name}",
            self.substrate.query_map,
            module=query.pallet,
            storage_function=query.name,
            params=list(query.keys),
            block_hash=block_hash,
            page_size=page_size,
            map_name=query.map_name,
        )
        entries = iter(result)
        done = object()
        while True:
            # Pages past the first are fetched inside next().
            item = await self._run(
                f"query_map {query.map_name}", next, entries, done, map_name=query.map_name
            )
            if item is done:
                return
            key, value = item
            yield _scale_value(key), _scale_value(value)

    async def close(self) -> None:
        await asyncio.to_thread(self.substrate.close)
        logger.debug("Connection closed", extra={"event": "chain.closed", "url": self.url})


async def connect(config: HipcConfig) -> SubstrateConnection:
    """Open a connection to the configured node endpoint."""
    url = config.network.node_url
    try:
        substrate = await asyncio.to_thread(
            SubstrateInterface,
            url=url,
            ss58_format=config.network.ss58_format,
            ws_options={"timeout": config.network.timeout},
        )
    except TRANSPORT_EXCEPTIONS as exc:
        logger.warning(
            "Could not connect to node",
            extra={"event": "chain.connect_failed", "url": url, "error": str(exc)},
        )
        raise TransportError(f"Could not connect to {url}: {exc}", details={"url": url}) from exc
    except ValueError as exc:
        raise ConfigurationError(f"Invalid node endpoint {url}: {exc}", details={"url": url}) from exc
    logger.info("Connected to node", extra={"event": "chain.connected", "url": url})
    return SubstrateConnection(substrate, url)
