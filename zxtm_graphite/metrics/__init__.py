"""Metric extraction — maps table types to extractor functions."""

from __future__ import annotations

from typing import Awaitable, Callable

from zxtm_graphite.metrics.base import MetricBatch, TableWalker
from zxtm_graphite.metrics.pools import extract_pool_metrics
from zxtm_graphite.metrics.virtualservers import extract_virtualserver_metrics

ExtractorFunc = Callable[[TableWalker, str, str], Awaitable[MetricBatch]]

# Run in order; later tables win on a name collision
EXTRACTORS: dict[str, ExtractorFunc] = {
    "pools": extract_pool_metrics,
    "virtualservers": extract_virtualserver_metrics,
}
