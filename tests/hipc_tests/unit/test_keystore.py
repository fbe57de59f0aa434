"""
Identity store tests: mnemonic generation, derivation, keystore layout and
signer resolution.
"""

import json

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st

from hipc.core.exceptions import (
    AmbiguousIdentityError,
    EntropyError,
    IdentityError,
    IdentityNotFoundError,
    ValidationError,
)
from hipc.wallet import keystore
from hipc.wallet.keystore import (
    PRIMARY_PREFIX,
    IdentityRole,
    IdentityStore,
    derive_keypair,
    generate_mnemonic,
    generate_raw_keypair,
)

ZERO_ENTROPY = bytes(16)
ALICE_URI = "//Alice"


class TestGenerateIdentity:
    """Mnemonic generation and deterministic derivation."""

    @settings(max_examples=20, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(entropy=st.binary(min_size=16, max_size=16))
    def test_mnemonic_round_trips_to_same_address(self, store, entropy):
        mnemonic, address = store.generate_identity(entropy)

        assert len(mnemonic.split()) == 12
        assert derive_keypair(mnemonic).ss58_address == address

    def test_known_entropy_gives_known_phrase(self):
        mnemonic = generate_mnemonic(ZERO_ENTROPY)
        assert mnemonic.split() == ["abandon"] * 11 + ["about"]

    def test_default_entropy_is_random(self, store):
        first, _ = store.generate_identity()
        second, _ = store.generate_identity()
        assert first != second

    def test_random_source_failure_raises_entropy_error(self, store, monkeypatch):
        def broken(_n):
            raise OSError("no entropy")

        monkeypatch.setattr(keystore.secrets, "token_bytes", broken)
        with pytest.raises(EntropyError):
            store.generate_identity()

    def test_wrong_entropy_length_rejected(self):
        with pytest.raises(EntropyError):
            generate_mnemonic(bytes(8))

    def test_invalid_mnemonic_rejected(self):
        with pytest.raises(IdentityError):
            derive_keypair("not a valid mnemonic phrase at all")

    def test_whitespace_is_normalised(self):
        mnemonic = generate_mnemonic(ZERO_ENTROPY)
        messy = "  " + mnemonic.replace(" ", "   ") + "\n"
        assert derive_keypair(messy).ss58_address == derive_keypair(mnemonic).ss58_address


class TestPersistIdentity:
    """On-disk layout of primary and secondary identities."""

    def test_secondary_file_named_by_address(self, store):
        mnemonic, address = store.generate_identity(ZERO_ENTROPY)
        path = store.persist_identity(IdentityRole.SECONDARY, mnemonic)

        assert path == store.hotkeys_dir / address
        assert path.read_text(encoding="utf-8") == mnemonic + "\n"

    def test_secondary_creates_missing_directories(self, tmp_path):
        store = IdentityStore(tmp_path / "a" / "b")
        mnemonic, _ = store.generate_identity(ZERO_ENTROPY)
        path = store.persist_identity(IdentityRole.SECONDARY, mnemonic)
        assert path.exists()

    def test_secondary_name_must_be_address(self, store):
        mnemonic, _ = store.generate_identity(ZERO_ENTROPY)
        with pytest.raises(ValidationError):
            store.persist_identity(IdentityRole.SECONDARY, mnemonic, name="my-hotkey")

    def test_secondary_never_overwritten(self, store):
        mnemonic, _ = store.generate_identity(ZERO_ENTROPY)
        store.persist_identity(IdentityRole.SECONDARY, mnemonic)
        with pytest.raises(IdentityError):
            store.persist_identity(IdentityRole.SECONDARY, mnemonic)

    def test_primary_file_carries_prefix_and_public_key(self, store):
        mnemonic, address = store.generate_identity(ZERO_ENTROPY)
        path = store.persist_identity(IdentityRole.PRIMARY, mnemonic)

        assert path.parent == store.keystore_dir
        assert path.name.startswith(PRIMARY_PREFIX)
        assert path.name[len(PRIMARY_PREFIX):] == derive_keypair(mnemonic).public_key.hex()
        assert json.loads(path.read_text(encoding="utf-8")) == mnemonic
        assert store.primary().address == address

    def test_only_one_primary(self, store):
        first, _ = store.generate_identity()
        second, _ = store.generate_identity()
        store.persist_identity(IdentityRole.PRIMARY, first)
        with pytest.raises(IdentityError):
            store.persist_identity(IdentityRole.PRIMARY, second)


class TestResolveSigner:
    """Signer resolution with primary fallback."""

    def test_named_hotkey_resolves_to_its_address(self, store):
        mnemonic, address = store.generate_identity(ZERO_ENTROPY)
        store.persist_identity(IdentityRole.SECONDARY, mnemonic)

        identity = store.resolve_signer(address)
        assert identity.address == address
        assert identity.role is IdentityRole.SECONDARY

    def test_missing_name_without_primary_raises(self, store):
        with pytest.raises(IdentityNotFoundError):
            store.resolve_signer("5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY")

    def test_missing_name_falls_back_to_configured_seed(self, alice_store):
        identity = alice_store.resolve_signer("does-not-exist")
        assert identity.role is IdentityRole.PRIMARY
        assert identity.source == "config"
        assert identity.address == keystore.keypair_from_uri(ALICE_URI).ss58_address

    def test_primary_file_wins_over_configured_seed(self, alice_store):
        mnemonic, address = alice_store.generate_identity(ZERO_ENTROPY)
        alice_store.persist_identity(IdentityRole.PRIMARY, mnemonic)
        assert alice_store.resolve_signer().address == address

    def test_primary_file_with_uri_secret(self, store):
        pair = keystore.keypair_from_uri(ALICE_URI)
        (store.keystore_dir / f"{PRIMARY_PREFIX}{pair.public_key.hex()}").write_text(json.dumps(ALICE_URI))
        assert store.primary().address == pair.ss58_address

    def test_ambiguous_primary_fails_loudly(self, alice_store):
        (alice_store.keystore_dir / f"{PRIMARY_PREFIX}aa").write_text(json.dumps(ALICE_URI))
        (alice_store.keystore_dir / f"{PRIMARY_PREFIX}bb").write_text(json.dumps(ALICE_URI))

        with pytest.raises(AmbiguousIdentityError) as exc_info:
            alice_store.resolve_signer()
        assert len(exc_info.value.candidates) == 2

    def test_secondary_lookup_has_no_fallback(self, alice_store):
        with pytest.raises(IdentityNotFoundError):
            alice_store.secondary("missing")

    def test_tampered_hotkey_file_rejected(self, store):
        mnemonic, _ = store.generate_identity(ZERO_ENTROPY)
        store.hotkeys_dir.mkdir(parents=True)
        (store.hotkeys_dir / "5Fake").write_text(mnemonic + "\n")
        with pytest.raises(IdentityError):
            store.secondary("5Fake")


class TestListIdentities:
    """Keystore enumeration."""

    @pytest.mark.parametrize("hotkeys", [0, 1, 3])
    def test_one_primary_and_n_secondaries(self, store, hotkeys):
        primary_mnemonic, primary_address = store.generate_identity()
        store.persist_identity(IdentityRole.PRIMARY, primary_mnemonic)
        expected = set()
        for _ in range(hotkeys):
            mnemonic, address = store.generate_identity()
            store.persist_identity(IdentityRole.SECONDARY, mnemonic)
            expected.add(address)

        primary, secondary = store.list_identities()

        assert primary == primary_address
        assert len(secondary) == hotkeys
        assert {entry.name for entry in secondary} == expected
        assert all(entry.name == entry.address for entry in secondary)

    def test_empty_keystore(self, store):
        assert store.list_identities() == (None, [])

    def test_unreadable_hotkey_listed_without_address(self, store):
        store.hotkeys_dir.mkdir(parents=True)
        (store.hotkeys_dir / "garbage").write_text("not a mnemonic\n")
        _, secondary = store.list_identities()
        assert [(e.name, e.address) for e in secondary] == [("garbage", None)]

    def test_find_primary_files_ignores_other_files(self, store):
        (store.keystore_dir / "61757261aabb").write_text("x")
        (store.keystore_dir / f"{PRIMARY_PREFIX}ccdd").write_text("x")
        assert [p.name for p in store.find_primary_files()] == [f"{PRIMARY_PREFIX}ccdd"]


class TestFromConfig:

    def test_custom_root_keeps_hotkeys_inside(self, tmp_path):
        from hipc.core.config import HipcConfig, IdentityConfig

        config = HipcConfig(identity=IdentityConfig(keystore_dir=str(tmp_path)))
        store = IdentityStore.from_config(config)
        assert store.hotkeys_dir == tmp_path / "hotkeys"

    def test_explicit_hotkeys_dir_respected(self, tmp_path):
        from hipc.core.config import HipcConfig, IdentityConfig

        config = HipcConfig(identity=IdentityConfig(keystore_dir=str(tmp_path), hotkeys_dir=str(tmp_path / "hk")))
        assert IdentityStore.from_config(config).hotkeys_dir == tmp_path / "hk"


def test_generate_raw_keypair_writes_files(tmp_path):
    public_path, seed_path, address = generate_raw_keypair(tmp_path / "out")

    assert public_path.read_text(encoding="utf-8") == address
    assert len(seed_path.read_bytes()) == 32
