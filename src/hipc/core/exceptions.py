"""
Exception hierarchy for the hipc client.

Provides typed exceptions for keystore, chain transport, decoding and
transaction failures so command handlers can report precise errors and
the core never needs bare Exception handlers.
"""

from __future__ import annotations
from typing import Optional, Any, Dict, List


class HipcError(Exception):
    """Base exception for all hipc errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the caller may reasonably retry
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Chain Errors ====================


class TransportError(HipcError):
    """Raised when the connection or an RPC round-trip to the node fails.

    Never retried by the core; the caller decides whether to resubmit.
    """

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class DecodeError(HipcError):
    """Raised when chain data does not match the expected record shape."""

    def __init__(
        self,
        message: str,
        map_name: Optional[str] = None,
        field: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.map_name = map_name
        self.field = field

    def __str__(self) -> str:
        where = self.map_name or ""
        if self.field:
            where = f"{where}.{self.field}" if where else self.field
        return f"{self.message} ({where})" if where else self.message


class ModuleFailure(HipcError):
    """Raised when the ledger finalizes a call but rejects it logically.

    Examples: insufficient balance, duplicate node registration.
    """

    def __init__(
        self,
        message: str,
        pallet: Optional[str] = None,
        error: Optional[str] = None,
        docs: Optional[List[str]] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.pallet = pallet
        self.error = error
        self.docs = docs or []


# ==================== Identity Errors ====================


class IdentityError(HipcError):
    """Raised when a signing identity cannot be produced."""
    pass


class IdentityNotFoundError(IdentityError):
    """Raised when neither a named identity nor the primary identity resolves."""
    pass


class AmbiguousIdentityError(IdentityError):
    """Raised when more than one primary identity file exists in a keystore root."""

    def __init__(self, message: str, candidates: Optional[List[str]] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.candidates = candidates or []


class EntropyError(IdentityError):
    """Raised when the operating system random source is unavailable."""
    pass


class KeystoreIOError(HipcError):
    """Raised when a keystore file cannot be read or written."""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.path = path


# ==================== Input & Configuration Errors ====================


class ValidationError(HipcError):
    """Raised when user-supplied input is malformed.

    Always raised before any network connection is opened.
    """
    pass


class ConfigurationError(HipcError):
    """Raised when client configuration is invalid."""
    pass


# ==================== Utility Functions ====================


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging."""
    context: Dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, HipcError):
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    if isinstance(exc, ModuleFailure):
        context["pallet"] = exc.pallet
        context["module_error"] = exc.error

    if isinstance(exc, DecodeError) and exc.map_name:
        context["map_name"] = exc.map_name

    return context
