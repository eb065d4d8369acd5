"""Pool member metrics — perPoolNodeTable counters."""

from __future__ import annotations

from typing import Sequence

from zxtm_graphite.metrics.base import (
    MetricBatch,
    NamingStrategy,
    TableWalker,
    extract,
    leaf_name,
    normalize,
)

POOL_IDENTIFIERS = (
    "perPoolNodePoolName",
    "perPoolNodeNodeHostName",
    "perPoolNodeNodePort",
)

# perPoolNodeState is carried as its raw enum value
# (undefined, alive, dead, unknown, draining)
POOL_COUNTERS = (
    "perPoolNodeState",
    "perPoolNodeCurrentRequests",
    "perPoolNodeTotalConn",
    "perPoolNodePooledConn",
    "perPoolNodeFailures",
    "perPoolNodeNewConn",
    "perPoolNodeErrors",
    "perPoolNodeResponseMean",
    "perPoolNodeResponseMax",
    "perPoolNodeResponseMin",
    "perPoolNodeIdleConns",
    "perPoolNodeCurrentConn",
    "perPoolNodeBytesFromNode",
    "perPoolNodeBytesToNode",
)


class PoolNaming(NamingStrategy):
    """``<root>.<system>.pools.<pool>.nodes.<host>_<port>.<counter>``"""

    token = "perPoolNode"

    def __init__(self, root: str, system_name: str) -> None:
        self.root = root
        self.system_name = system_name

    def compute_prefix(self, identifiers: Sequence[str]) -> str:
        pool, host, port = identifiers
        return (
            f"{self.root}.{self.system_name}.pools.{normalize(pool)}"
            f".nodes.{normalize(host)}_{port}"
        )

    def compute_leaf_name(self, raw_key: str) -> str:
        return leaf_name(raw_key, self.token)


async def extract_pool_metrics(
    walker: TableWalker, root: str, system_name: str,
) -> MetricBatch:
    return await extract(
        POOL_IDENTIFIERS, POOL_COUNTERS, PoolNaming(root, system_name), walker,
    )
