"""
Record decoding tests.
"""

import pytest
from hypothesis import given, strategies as st

from hipc.core.exceptions import DecodeError
from hipc.core.models import (
    AccountInfo,
    Balance,
    ByteStrings,
    ListOf,
    LockedCredit,
    NodeInfo,
    NodeType,
    OptionOf,
    Plan,
    RankingRecord,
    Text,
    to_bytes,
    to_int,
)

OWNER = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"


def node_value(**overrides):
    value = {
        "node_id": "0x6e6f64652d31",
        "node_type": "StorageMiner",
        "ipfs_node_id": None,
        "status": {"Online": None},
        "registered_at": 42,
        "owner": OWNER,
    }
    value.update(overrides)
    return value


class TestPrimitives:

    @pytest.mark.parametrize("raw", [b"abc", "0x616263", "abc", [97, 98, 99]])
    def test_to_bytes_accepts_encodings(self, raw):
        assert to_bytes(raw) == b"abc"

    def test_to_bytes_rejects_numbers(self):
        with pytest.raises(DecodeError):
            to_bytes(12)

    @given(st.integers(min_value=0, max_value=2 ** 128 - 1))
    def test_to_int_accepts_hex_and_decimal(self, n):
        assert to_int(n) == n
        assert to_int(str(n)) == n
        assert to_int(hex(n)) == n

    @pytest.mark.parametrize("raw", [-1, True, "ten", 1.5])
    def test_to_int_rejects(self, raw):
        with pytest.raises(DecodeError):
            to_int(raw)

    def test_text_replaces_invalid_utf8(self):
        assert Text.decode("0xff41") == "\ufffdA"


class TestRecords:

    def test_node_info(self):
        info = NodeInfo.decode(node_value())
        assert info.node_id == "node-1"
        assert info.node_type is NodeType.STORAGE_MINER
        assert info.status == "Online"
        assert info.to_dict()["node_type"] == "StorageMiner"

    def test_node_info_unknown_type(self):
        with pytest.raises(DecodeError) as exc_info:
            NodeInfo.decode(node_value(node_type="Miner"), map_name="Registration.NodeRegistration")
        assert exc_info.value.field == "node_type"
        assert exc_info.value.map_name == "Registration.NodeRegistration"

    def test_node_info_missing_field(self):
        value = node_value()
        del value["owner"]
        with pytest.raises(DecodeError) as exc_info:
            NodeInfo.decode(value)
        assert exc_info.value.field == "owner"

    @pytest.mark.parametrize("owner", [{"Id": OWNER}, [1, 2, 3], 7])
    def test_node_info_owner_must_be_address(self, owner):
        with pytest.raises(DecodeError) as exc_info:
            NodeInfo.decode(node_value(owner=owner))
        assert exc_info.value.field == "owner"

    def test_option(self):
        assert OptionOf(NodeInfo).decode(None) is None

    def test_ranking_list(self):
        raw = {
            "node_id": "n", "node_ss58_address": OWNER, "node_type": "ComputeMiner",
            "weight": 7, "rank": 1, "last_updated": 3, "is_active": True,
        }
        records = ListOf(RankingRecord).decode([raw, raw])
        assert [r.weight for r in records] == [7, 7]

    def test_list_of_rejects_scalar(self):
        with pytest.raises(DecodeError):
            ListOf(RankingRecord).decode(5, map_name="RankingCompute.RankedList")

    def test_plan(self):
        plan = Plan.decode({
            "id": "0x01", "plan_name": "Basic", "plan_description": "d",
            "plan_technical_description": "t", "price": "1000", "is_suspended": False,
        })
        assert plan.plan_name == "Basic"
        assert plan.price == 1000

    def test_locked_credit_optional_fields(self):
        credit = LockedCredit.decode({"id": 1, "amount_locked": 50, "created_at": 9, "is_fulfilled": False})
        assert credit.tx_hash is None
        assert credit.owner is None

    def test_locked_credit_owner_shape_checked(self):
        with pytest.raises(DecodeError) as exc_info:
            LockedCredit.decode({
                "id": 1, "amount_locked": 50, "created_at": 9, "is_fulfilled": False, "owner": {"Id": OWNER},
            })
        assert exc_info.value.field == "owner"

    def test_account_info(self):
        info = AccountInfo.decode({"nonce": 3, "data": {"free": 600, "reserved": 1}})
        assert (info.nonce, info.free, info.reserved, info.frozen) == (3, 600, 1, 0)

    def test_scalars(self):
        assert Balance.decode(10) == 10
        assert ByteStrings.decode(["0x6869", "yo"]) == ["hi", "yo"]
        with pytest.raises(DecodeError) as exc_info:
            Balance.decode("lots", map_name="Credits.FreeCredits")
        assert exc_info.value.map_name == "Credits.FreeCredits"


def test_node_type_ranking_pallets():
    assert NodeType.VALIDATOR.ranking_pallet == "RankingValidators"
    assert NodeType.COMPUTE_MINER.ranking_pallet == "RankingCompute"
    assert NodeType.STORAGE_MINER.ranking_pallet == "RankingStorage"
