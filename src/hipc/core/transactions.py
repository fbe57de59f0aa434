"""
Transaction lifecycle manager.

Drives one call through Built -> Submitted -> Finalized(ok) | Finalized(failed)
| TransportError. Each submit_and_watch submits exactly once; there is no
retry and no nonce tracking here. A caller that wants to retry resolves the
signer again and builds a fresh call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from hipc.core.calls import Call
from hipc.core.chain_client import ChainConnection
from hipc.core.exceptions import HipcError, ModuleFailure, TransportError

if TYPE_CHECKING:
    from hipc.wallet.keystore import Identity

logger = logging.getLogger(__name__)


class TxState(str, Enum):
    BUILT = "built"
    SUBMITTED = "submitted"
    FINALIZED_OK = "finalized_ok"
    FINALIZED_FAILED = "finalized_failed"
    TRANSPORT_ERROR = "transport_error"

    @property
    def is_terminal(self) -> bool:
        return self in (TxState.FINALIZED_OK, TxState.FINALIZED_FAILED, TxState.TRANSPORT_ERROR)


_TRANSITIONS = {
    TxState.BUILT: {TxState.SUBMITTED, TxState.TRANSPORT_ERROR},
    TxState.SUBMITTED: {TxState.FINALIZED_OK, TxState.FINALIZED_FAILED, TxState.TRANSPORT_ERROR},
}


@dataclass(frozen=True)
class FailureReason:
    """Module error reported by the ledger for a finalized extrinsic."""

    pallet: Optional[str]
    error: Optional[str]
    docs: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        label = ".".join(part for part in (self.pallet, self.error) if part) or "unknown module error"
        if self.docs:
            return f"{label}: {' '.join(self.docs)}"
        return label


@dataclass
class TransactionAttempt:
    """Ephemeral record of one call on its way to finalization."""

    call: Call
    signer_address: str
    state: TxState = TxState.BUILT
    extrinsic_hash: Optional[str] = None

    def advance(self, new_state: TxState) -> None:
        allowed = _TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise HipcError(f"Illegal transaction transition {self.state.value} -> {new_state.value}")
        self.state = new_state


@dataclass(frozen=True)
class TransactionOutcome:
    """Terminal result of submit_and_watch."""

    state: TxState
    call: Call
    signer_address: str
    extrinsic_hash: Optional[str] = None
    block_hash: Optional[str] = None
    failure: Optional[FailureReason] = None
    transport_error: Optional[TransportError] = None

    @property
    def success(self) -> bool:
        return self.state is TxState.FINALIZED_OK

    def raise_for_status(self) -> "TransactionOutcome":
        """Return self on success, otherwise raise the matching error."""
        if self.state is TxState.FINALIZED_FAILED:
            reason = self.failure or FailureReason(None, None)
            raise ModuleFailure(
                f"{self.call.name} failed: {reason}",
                pallet=reason.pallet,
                error=reason.error,
                docs=reason.docs,
                details={"extrinsic_hash": self.extrinsic_hash, "block_hash": self.block_hash},
            )
        if self.state is TxState.TRANSPORT_ERROR:
            raise self.transport_error or TransportError(f"{self.call.name} was not finalized")
        return self


class TransactionManager:
    """Signs, submits and watches calls over one chain connection."""

    def __init__(self, connection: ChainConnection) -> None:
        self.connection = connection

    async def submit_and_watch(self, call: Call, identity: "Identity") -> TransactionOutcome:
        """
        Submit call signed by identity and wait for finalization.

        Never raises for chain-side outcomes: a module failure or a transport
        failure is returned in the outcome and no further chain request is
        made after it.

        Raises:
            ValidationError: the runtime refused to encode the call; nothing
                was submitted
        """
        attempt = TransactionAttempt(call=call, signer_address=identity.address)
        log_ctx = {"call": call.name, "signer": identity.address[:8]}

        try:
            composed = await self.connection.compose_call(call)
            signed = await self.connection.sign(composed, identity.keypair)
        except TransportError as exc:
            attempt.advance(TxState.TRANSPORT_ERROR)
            logger.error("Could not build extrinsic", extra={"event": "tx.transport_error", **log_ctx})
            return TransactionOutcome(attempt.state, call, identity.address, transport_error=exc)

        attempt.advance(TxState.SUBMITTED)
        logger.info("Submitting extrinsic", extra={"event": "tx.submitted", **log_ctx})

        try:
            receipt = await self.connection.submit_and_watch(signed)
        except TransportError as exc:
            attempt.advance(TxState.TRANSPORT_ERROR)
            logger.error(
                "Transport failure before finalization",
                extra={"event": "tx.transport_error", "error": str(exc), **log_ctx},
            )
            return TransactionOutcome(attempt.state, call, identity.address, transport_error=exc)

        attempt.extrinsic_hash = receipt.extrinsic_hash
        if receipt.is_success:
            attempt.advance(TxState.FINALIZED_OK)
            logger.info(
                "Extrinsic finalized",
                extra={"event": "tx.finalized", "extrinsic_hash": receipt.extrinsic_hash, **log_ctx},
            )
            return TransactionOutcome(
                attempt.state,
                call,
                identity.address,
                extrinsic_hash=receipt.extrinsic_hash,
                block_hash=receipt.block_hash,
            )

        attempt.advance(TxState.FINALIZED_FAILED)
        reason = FailureReason(receipt.pallet, receipt.error, list(receipt.docs))
        logger.warning(
            "Extrinsic failed",
            extra={
                "event": "tx.module_failure",
                "pallet": reason.pallet,
                "module_error": reason.error,
                "extrinsic_hash": receipt.extrinsic_hash,
                **log_ctx,
            },
        )
        return TransactionOutcome(
            attempt.state,
            call,
            identity.address,
            extrinsic_hash=receipt.extrinsic_hash,
            block_hash=receipt.block_hash,
            failure=reason,
        )
