"""
Identity store.

On-disk layout:

- Primary identity: a file directly under the keystore root whose name
  starts with "68697073" ("hips" hex-encoded), followed by the hex public
  key, as written by the node keystore. Content is the secret URI, usually
  JSON-quoted.
- Secondary identities: one file per identity under the hotkeys directory,
  named by its SS58 address, containing the 12-word mnemonic and a newline.

Secondary keypairs are derived from the first 32 bytes of the BIP-39 seed
of their mnemonic (empty passphrase) as sr25519 mini-secrets.
"""

from __future__ import annotations

import json
import logging
import os
import secrets
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Union

from mnemonic import Mnemonic
from substrateinterface import Keypair, KeypairType

from hipc.core.config import DEFAULT_HOTKEYS_DIR, DEFAULT_KEYSTORE_DIR, HipcConfig
from hipc.core.exceptions import (
    AmbiguousIdentityError,
    EntropyError,
    IdentityError,
    IdentityNotFoundError,
    KeystoreIOError,
    ValidationError,
)

logger = logging.getLogger(__name__)

PRIMARY_PREFIX = "68697073"
ENTROPY_BYTES = 16
SEED_BYTES = 32

_MNEMONIC = Mnemonic("english")


class IdentityRole(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


@dataclass(frozen=True)
class Identity:
    """A resolved signing identity."""

    keypair: Keypair
    role: IdentityRole
    name: Optional[str] = None
    source: Optional[str] = None

    @property
    def address(self) -> str:
        return self.keypair.ss58_address

    @property
    def public_key(self) -> str:
        return self.keypair.public_key.hex()


@dataclass(frozen=True)
class SecondaryEntry:
    """A hotkey file as listed from disk; address is None when the file cannot be derived."""

    name: str
    address: Optional[str]


def generate_mnemonic(entropy: Optional[bytes] = None) -> str:
    """12-word English mnemonic from 128 bits of entropy (OS random source by default)."""
    if entropy is None:
        try:
            entropy = secrets.token_bytes(ENTROPY_BYTES)
        except (OSError, NotImplementedError) as exc:
            raise EntropyError(f"Random source unavailable: {exc}") from exc
    if len(entropy) != ENTROPY_BYTES:
        raise EntropyError(f"Expected {ENTROPY_BYTES} bytes of entropy, got {len(entropy)}")
    return _MNEMONIC.to_mnemonic(entropy)


def derive_keypair(mnemonic: str, ss58_format: int = 42) -> Keypair:
    """sr25519 keypair from the first 32 bytes of the mnemonic's BIP-39 seed."""
    phrase = " ".join(mnemonic.split())
    if not _MNEMONIC.check(phrase):
        raise IdentityError("Invalid mnemonic phrase")
    seed = Mnemonic.to_seed(phrase, passphrase="")[:SEED_BYTES]
    return Keypair.create_from_seed("0x" + seed.hex(), ss58_format=ss58_format, crypto_type=KeypairType.SR25519)


def keypair_from_uri(suri: str, ss58_format: int = 42) -> Keypair:
    """Keypair from a secret URI (dev URI such as //Alice, mnemonic or 0x seed)."""
    try:
        return Keypair.create_from_uri(suri, ss58_format=ss58_format, crypto_type=KeypairType.SR25519)
    except (ValueError, TypeError) as exc:
        raise IdentityError(f"Cannot derive keypair from secret URI: {exc}") from exc


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise KeystoreIOError(f"Unable to read keystore file {path}: {exc}", path=str(path)) from exc


def _write_new(path: Path, content: str) -> None:
    """Create path with owner-only permissions; never overwrites."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    except FileExistsError:
        raise IdentityError(f"Identity file already exists: {path}") from None
    except OSError as exc:
        raise KeystoreIOError(f"Unable to write keystore file {path}: {exc}", path=str(path)) from exc
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
    except OSError as exc:
        raise KeystoreIOError(f"Unable to write keystore file {path}: {exc}", path=str(path)) from exc


class IdentityStore:
    """Primary and secondary signing identities under one keystore root."""

    def __init__(
        self,
        keystore_dir: Union[str, Path],
        hotkeys_dir: Optional[Union[str, Path]] = None,
        seed_phrase: Optional[str] = None,
        ss58_format: int = 42,
    ) -> None:
        self.keystore_dir = Path(keystore_dir).expanduser()
        self.hotkeys_dir = Path(hotkeys_dir).expanduser() if hotkeys_dir else self.keystore_dir / "hotkeys"
        self.seed_phrase = seed_phrase
        self.ss58_format = ss58_format

    @classmethod
    def from_config(cls, config: HipcConfig) -> "IdentityStore":
        identity = config.identity
        hotkeys_dir = identity.hotkeys_dir
        # A custom root without its own hotkeys override keeps hotkeys inside it.
        if identity.keystore_dir != DEFAULT_KEYSTORE_DIR and hotkeys_dir == DEFAULT_HOTKEYS_DIR:
            hotkeys_dir = None
        return cls(
            identity.keystore_dir,
            hotkeys_dir,
            seed_phrase=identity.seed_phrase,
            ss58_format=config.network.ss58_format,
        )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def generate_identity(self, entropy: Optional[bytes] = None) -> Tuple[str, str]:
        """Fresh mnemonic and the address it derives to."""
        mnemonic = generate_mnemonic(entropy)
        address = derive_keypair(mnemonic, self.ss58_format).ss58_address
        logger.info("Identity generated", extra={"event": "identity.generated", "address": address[:8]})
        return mnemonic, address

    def persist_identity(self, role: IdentityRole, mnemonic: str, name: Optional[str] = None) -> Path:
        """
        Write a mnemonic to the keystore.

        Secondary identities are stored as <hotkeys_dir>/<address>; name,
        when given, must equal that address. The primary identity is stored
        as <root>/68697073<public key hex> and may exist only once.
        """
        role = IdentityRole(role)
        keypair = derive_keypair(mnemonic, self.ss58_format)
        phrase = " ".join(mnemonic.split())

        if role is IdentityRole.SECONDARY:
            if name is not None and name != keypair.ss58_address:
                raise ValidationError(
                    "Secondary identity name must be its address",
                    details={"name": name, "address": keypair.ss58_address},
                )
            path = self.hotkeys_dir / keypair.ss58_address
            _write_new(path, phrase + "\n")
        else:
            existing = self.find_primary_files()
            if existing:
                raise IdentityError(
                    f"Primary identity already exists: {existing[0].name}",
                    details={"candidates": [p.name for p in existing]},
                )
            path = self.keystore_dir / f"{PRIMARY_PREFIX}{keypair.public_key.hex()}"
            _write_new(path, json.dumps(phrase))

        logger.info(
            "Identity persisted",
            extra={"event": "identity.persisted", "role": role.value, "address": keypair.ss58_address[:8]},
        )
        return path

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def find_primary_files(self) -> List[Path]:
        """Files under the root carrying the primary prefix, in directory order."""
        if not self.keystore_dir.is_dir():
            return []
        try:
            return [
                entry
                for entry in self.keystore_dir.iterdir()
                if entry.is_file() and entry.name[:len(PRIMARY_PREFIX)] == PRIMARY_PREFIX
            ]
        except OSError as exc:
            raise KeystoreIOError(
                f"Unable to list keystore {self.keystore_dir}: {exc}", path=str(self.keystore_dir)
            ) from exc

    def _load_primary_file(self, path: Path) -> Identity:
        raw = _read_text(path).strip()
        try:
            secret = json.loads(raw)
        except ValueError:
            secret = raw
        if not isinstance(secret, str) or not secret:
            raise IdentityError(f"Primary identity file {path.name} holds no secret", details={"path": str(path)})

        expected = path.name[len(PRIMARY_PREFIX):].lower()
        keypair = keypair_from_uri(secret, self.ss58_format)
        if expected and keypair.public_key.hex() != expected and _MNEMONIC.check(" ".join(secret.split())):
            seeded = derive_keypair(secret, self.ss58_format)
            if seeded.public_key.hex() == expected:
                keypair = seeded
        if expected and keypair.public_key.hex() != expected:
            logger.warning(
                "Primary key does not match its file name",
                extra={"event": "identity.primary_mismatch", "file": path.name[:16]},
            )
        return Identity(keypair, IdentityRole.PRIMARY, name=path.name, source=str(path))

    def primary(self) -> Identity:
        """
        Resolve the primary identity.

        Uses the single primary file under the keystore root; with none
        present, falls back to the configured seed phrase. More than one
        primary file is an error rather than a guess.
        """
        candidates = self.find_primary_files()
        if len(candidates) > 1:
            names = sorted(p.name for p in candidates)
            raise AmbiguousIdentityError(
                f"{len(candidates)} primary identity files in {self.keystore_dir}",
                candidates=names,
            )
        if candidates:
            return self._load_primary_file(candidates[0])
        if self.seed_phrase:
            keypair = keypair_from_uri(self.seed_phrase, self.ss58_format)
            return Identity(keypair, IdentityRole.PRIMARY, name=None, source="config")
        raise IdentityNotFoundError(
            f"No primary identity in {self.keystore_dir} and no seed phrase configured",
            details={"keystore_dir": str(self.keystore_dir)},
        )

    def secondary(self, name: str) -> Identity:
        """Load the hotkey stored under name; no primary fallback."""
        path = self.hotkeys_dir / name
        if not path.is_file():
            raise IdentityNotFoundError(f"Hotkey {name} not found in {self.hotkeys_dir}", details={"name": name})
        keypair = derive_keypair(_read_text(path), self.ss58_format)
        if keypair.ss58_address != name:
            raise IdentityError(
                f"Hotkey file {name} derives to a different address",
                details={"name": name, "address": keypair.ss58_address},
            )
        return Identity(keypair, IdentityRole.SECONDARY, name=name, source=str(path))

    def resolve_signer(self, name: Optional[str] = None) -> Identity:
        """The named secondary identity if it exists, otherwise the primary."""
        if name and (self.hotkeys_dir / name).is_file():
            identity = self.secondary(name)
        else:
            if name:
                logger.info(
                    "Hotkey not found, using primary identity",
                    extra={"event": "identity.fallback", "hotkey": name[:8]},
                )
            identity = self.primary()
        logger.debug(
            "Signer resolved",
            extra={"event": "identity.resolved", "role": identity.role.value, "address": identity.address[:8]},
        )
        return identity

    def list_identities(self) -> Tuple[Optional[str], List[SecondaryEntry]]:
        """
        Primary address (from the keystore file, if any) and hotkey entries.

        Hotkeys are listed in directory order; callers must not rely on
        sorting.
        """
        candidates = self.find_primary_files()
        if len(candidates) > 1:
            raise AmbiguousIdentityError(
                f"{len(candidates)} primary identity files in {self.keystore_dir}",
                candidates=sorted(p.name for p in candidates),
            )
        primary = self._load_primary_file(candidates[0]).address if candidates else None

        secondary: List[SecondaryEntry] = []
        if self.hotkeys_dir.is_dir():
            try:
                entries = [entry for entry in self.hotkeys_dir.iterdir() if entry.is_file()]
            except OSError as exc:
                raise KeystoreIOError(
                    f"Unable to list hotkeys {self.hotkeys_dir}: {exc}", path=str(self.hotkeys_dir)
                ) from exc
            for entry in entries:
                try:
                    address = derive_keypair(_read_text(entry), self.ss58_format).ss58_address
                except IdentityError as exc:
                    logger.warning(
                        "Unreadable hotkey file",
                        extra={"event": "identity.unreadable", "file": entry.name[:8], "error": exc.message},
                    )
                    address = None
                secondary.append(SecondaryEntry(entry.name, address))
        return primary, secondary


def generate_raw_keypair(output_dir: Union[str, Path], ss58_format: int = 42) -> Tuple[Path, Path, str]:
    """
    Write a fresh sr25519 keypair as public_key.ss58 and seed.bin.

    Returns:
        (public key path, seed path, SS58 address)
    """
    try:
        seed = secrets.token_bytes(SEED_BYTES)
    except (OSError, NotImplementedError) as exc:
        raise EntropyError(f"Random source unavailable: {exc}") from exc
    keypair = Keypair.create_from_seed("0x" + seed.hex(), ss58_format=ss58_format, crypto_type=KeypairType.SR25519)

    directory = Path(output_dir).expanduser()
    public_path = directory / "public_key.ss58"
    seed_path = directory / "seed.bin"
    try:
        directory.mkdir(parents=True, exist_ok=True)
        public_path.write_text(keypair.ss58_address, encoding="utf-8")
        seed_path.write_bytes(seed)
        os.chmod(seed_path, 0o600)
    except OSError as exc:
        raise KeystoreIOError(f"Unable to write keypair to {directory}: {exc}", path=str(directory)) from exc

    logger.info("Keypair written", extra={"event": "identity.keypair_written", "address": keypair.ss58_address[:8]})
    return public_path, seed_path, keypair.ss58_address
