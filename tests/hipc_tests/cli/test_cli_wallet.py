from __future__ import annotations

import json

from click.testing import CliRunner

from hipc.cli.enhanced_cli import cli
from hipc.wallet.keystore import IdentityRole

ALICE = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"


def test_wallet_list_json(cli_obj, alice_store):
    mnemonic, address = alice_store.generate_identity()
    alice_store.persist_identity(IdentityRole.SECONDARY, mnemonic)

    result = CliRunner().invoke(cli, ["--json-output", "wallet", "list"], obj=cli_obj)

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["primary"] is None
    assert data["hotkeys"] == [{"name": address, "address": address}]


def test_wallet_list_tree(cli_obj):
    result = CliRunner().invoke(cli, ["wallet", "list"], obj=cli_obj)
    assert result.exit_code == 0
    assert "No HIPS key" in result.output


def test_wallet_list_ambiguous_primary_fails(cli_obj, alice_store):
    (alice_store.keystore_dir / "68697073aa").write_text('"//Alice"')
    (alice_store.keystore_dir / "68697073bb").write_text('"//Bob"')

    result = CliRunner().invoke(cli, ["wallet", "list"], obj=cli_obj)

    assert result.exit_code == 1
    assert "Error" in result.output


def test_create_hotkey_adds_proxy(cli_obj, alice_store, fake_chain, connect_calls):
    result = CliRunner().invoke(cli, ["--json-output", "wallet", "create-hotkey"], obj=cli_obj)

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert (alice_store.hotkeys_dir / data["address"]).exists()
    assert len(data["mnemonic"].split()) == 12
    assert len(connect_calls) == 1

    composed = [detail for method, detail in fake_chain.requests if method == "compose_call"]
    assert composed[0].name == "Proxy.add_proxy"
    assert composed[0].params["delegate"] == data["address"]
    assert ("sign", ALICE) in fake_chain.requests


def test_whoami_falls_back_to_configured_seed(cli_obj):
    result = CliRunner().invoke(cli, ["--json-output", "wallet", "whoami"], obj=cli_obj)

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"address": ALICE, "role": "primary", "source": "config"}


def test_whoami_with_global_signer(cli_obj, alice_store):
    mnemonic, address = alice_store.generate_identity()
    alice_store.persist_identity(IdentityRole.SECONDARY, mnemonic)

    result = CliRunner().invoke(cli, ["--json-output", "--signer", address, "wallet", "whoami"], obj=cli_obj)

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["address"] == address
    assert data["role"] == "secondary"


def test_generate_keys(cli_obj, tmp_path):
    out = tmp_path / "keys"
    result = CliRunner().invoke(cli, ["--json-output", "wallet", "generate-keys", "--output-dir", str(out)],
                                obj=cli_obj)

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert (out / "public_key.ss58").read_text() == data["address"]
    assert (out / "seed.bin").exists()


def test_hips_key_lists_prefixed_files(cli_obj, alice_store):
    (alice_store.keystore_dir / "68697073cafe").write_text('"//Alice"')
    (alice_store.keystore_dir / "other").write_text("x")

    result = CliRunner().invoke(cli, ["--json-output", "wallet", "hips-key"], obj=cli_obj)

    assert result.exit_code == 0
    files = json.loads(result.stdout)["files"]
    assert [f.rsplit("/", 1)[-1] for f in files] == ["68697073cafe"]
