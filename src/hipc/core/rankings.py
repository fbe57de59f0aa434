"""
Ranking lists and reward estimates.

estimate_reward is pure: a node's share of a pool is its weight over the
total weight of the list, in integer base units, floored. Validators take
no share of the miner pools.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from hipc.core.config import RewardsConfig
from hipc.core.exceptions import DecodeError, TransportError
from hipc.core.models import AccountInfo, ListOf, NodeType, RankingRecord
from hipc.core.storage_query import StorageItem, StorageQueryEngine

logger = logging.getLogger(__name__)

SYSTEM_ACCOUNT = StorageItem("System", "Account", AccountInfo)


def ranked_list_item(node_type: NodeType) -> StorageItem:
    """RankedList storage item of the ranking pallet for node_type."""
    return StorageItem(NodeType(node_type).ranking_pallet, "RankedList", ListOf(RankingRecord))


def pool_address(node_type: NodeType, rewards: RewardsConfig) -> Optional[str]:
    """Reward pool account for node_type; validators have none."""
    node_type = NodeType(node_type)
    if node_type is NodeType.COMPUTE_MINER:
        return rewards.compute_pool_address
    if node_type is NodeType.STORAGE_MINER:
        return rewards.storage_pool_address
    return None


def estimate_reward(record: RankingRecord, all_records: Sequence[RankingRecord], pool_balance: int) -> int:
    if record.node_type is NodeType.VALIDATOR:
        return 0
    total_weight = sum(r.weight for r in all_records)
    if total_weight == 0:
        return 0
    return record.weight * pool_balance // total_weight


def estimate_rewards(records: Sequence[RankingRecord], pool_balance: int) -> List[int]:
    return [estimate_reward(record, records, pool_balance) for record in records]


@dataclass(frozen=True)
class RankedNode:
    """A ranking record located in its list, with its estimated reward."""

    record: RankingRecord
    position: int
    estimated_reward: int
    pool_balance: int


def find_ranking(records: Sequence[RankingRecord], node_id: str) -> Optional[int]:
    """Index of the record for node_id, or None."""
    for index, record in enumerate(records):
        if record.node_id == node_id:
            return index
    return None


async def pool_balance(engine: StorageQueryEngine, address: Optional[str]) -> int:
    """Free balance of a pool account; an absent account holds nothing."""
    if address is None:
        return 0
    account = await engine.fetch_one(SYSTEM_ACCOUNT, address)
    return account.free if account is not None else 0


async def get_rankings(engine: StorageQueryEngine, node_type: NodeType) -> List[RankingRecord]:
    records = await engine.fetch_one(ranked_list_item(node_type))
    return records or []


async def rank_node(
    engine: StorageQueryEngine,
    node_type: NodeType,
    node_id: str,
    rewards: RewardsConfig,
) -> Optional[RankedNode]:
    """
    Locate node_id in the ranked list for node_type and estimate its reward.

    A failure to read the pool balance is logged and shown as a zero
    reward rather than failing the lookup.
    """
    records = await get_rankings(engine, node_type)
    index = find_ranking(records, node_id)
    if index is None:
        return None

    try:
        balance = await pool_balance(engine, pool_address(node_type, rewards))
    except (TransportError, DecodeError) as exc:
        logger.warning(
            "Could not fetch pool balance",
            extra={"event": "rankings.pool_balance_failed", "node_type": NodeType(node_type).value, "error": str(exc)},
        )
        balance = 0

    record = records[index]
    return RankedNode(
        record=record,
        position=index + 1,
        estimated_reward=estimate_reward(record, records, balance),
        pool_balance=balance,
    )
