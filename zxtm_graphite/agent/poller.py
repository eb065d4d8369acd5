"""Poll cycle — collect every table for one target and publish the batch."""

from __future__ import annotations

import logging
from typing import Mapping, Protocol

from zxtm_graphite.device.models import Target
from zxtm_graphite.errors import CollectorError, RequestTimeout
from zxtm_graphite.metrics import EXTRACTORS, ExtractorFunc
from zxtm_graphite.metrics.base import MetricBatch


class Publisher(Protocol):
    async def publish(self, metrics: Mapping[str, int]) -> None: ...


class PollCycle:
    """Runs the table extractors against a target and publishes the result."""

    def __init__(
        self,
        publisher: Publisher,
        root: str = "zxtm",
        extractors: Mapping[str, ExtractorFunc] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._publisher = publisher
        self._root = root
        self._extractors = dict(extractors if extractors is not None else EXTRACTORS)
        self._logger = logger or logging.getLogger(__name__)

    async def collect(self, target: Target) -> MetricBatch:
        """Run every extractor in order and merge their output."""
        batch: MetricBatch = {}
        for table, extractor in self._extractors.items():
            self._logger.info("Collecting %s metrics for %s", table, target.name)
            metrics = await extractor(target.driver.bulk_walk, self._root, target.name)
            self._logger.debug("%s metrics collected for %s: %s",
                               table, target.name, metrics)
            batch.update(metrics)
        return batch

    async def run(self, target: Target) -> bool:
        """One poll cycle. Returns False if the cycle was abandoned.

        Collection and publishing failures are logged here and never
        propagate; nothing is published unless every table was read.
        """
        self._logger.info("Collecting metrics for %s", target.label)
        try:
            batch = await self.collect(target)
            self._logger.debug("Publishing %d metrics for %s",
                               len(batch), target.name)
            await self._publisher.publish(batch)
        except RequestTimeout as exc:
            self._logger.error("%s while requesting metrics for %s",
                               exc, target.host)
            return False
        except CollectorError as exc:
            self._logger.error("%s while collecting metrics for %s: %s",
                               type(exc).__name__, target.label, exc)
            return False

        self._logger.info("Finished collection for %s: %d metrics",
                          target.name, len(batch))
        return True
