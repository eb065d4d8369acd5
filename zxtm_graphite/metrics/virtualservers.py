"""Virtual server metrics — virtualserverTable counters."""

from __future__ import annotations

from typing import Sequence

from zxtm_graphite.metrics.base import (
    MetricBatch,
    NamingStrategy,
    TableWalker,
    extract,
    leaf_name,
)

VIRTUALSERVER_IDENTIFIERS = (
    "virtualserverName",
)

VIRTUALSERVER_COUNTERS = (
    "virtualserverCurrentConn",
    "virtualserverMaxConn",
    "virtualserverTotalConn",
    "virtualserverDiscard",
    "virtualserverDirectReplies",
    "virtualserverConnectTimedOut",
    "virtualserverDataTimedOut",
    "virtualserverKeepaliveTimedOut",
    "virtualserverUdpTimedOut",
    "virtualserverTotalDgram",
    "virtualserverGzip",
    "virtualserverHttpRewriteLocation",
    "virtualserverHttpRewriteCookie",
    "virtualserverConnectionErrors",
    "virtualserverConnectionFailures",
    "virtualserverBytesIn",
    "virtualserverBytesOut",
    "virtualserverGzipBytesSaved",
    "virtualserverCertStatusRequests",
)


class VirtualServerNaming(NamingStrategy):
    """``<root>.<system>.virtualservers.<name>.<counter>``

    The virtual server name is used verbatim, unlike pool and node names.
    """

    token = "virtualserver"

    def __init__(self, root: str, system_name: str) -> None:
        self.root = root
        self.system_name = system_name

    def compute_prefix(self, identifiers: Sequence[str]) -> str:
        return f"{self.root}.{self.system_name}.virtualservers.{identifiers[0]}"

    def compute_leaf_name(self, raw_key: str) -> str:
        return leaf_name(raw_key, self.token)


async def extract_virtualserver_metrics(
    walker: TableWalker, root: str, system_name: str,
) -> MetricBatch:
    return await extract(
        VIRTUALSERVER_IDENTIFIERS, VIRTUALSERVER_COUNTERS,
        VirtualServerNaming(root, system_name), walker,
    )
