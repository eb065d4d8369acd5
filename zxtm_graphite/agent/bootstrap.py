"""Startup identity resolution — name each target before scheduling it."""

from __future__ import annotations

import logging

from zxtm_graphite.agent.scheduler import Scheduler
from zxtm_graphite.device.base import SnmpDriver
from zxtm_graphite.device.models import Target
from zxtm_graphite.errors import BootstrapError, CollectorError
from zxtm_graphite.metrics.base import underscore

logger = logging.getLogger(__name__)

# SNMPv2-MIB::sysName.0
SYS_NAME_OID = "1.3.6.1.2.1.1.5.0"


async def resolve_target(driver: SnmpDriver, interval: int) -> Target:
    """Query a target's sysName. Raises BootstrapError on any failure."""
    try:
        reported = await driver.get_value(SYS_NAME_OID)
    except CollectorError as exc:
        raise BootstrapError(driver.host, exc) from exc

    name = underscore(reported.strip())
    if not name:
        raise BootstrapError(driver.host, ValueError("empty sysName"))
    return Target(host=driver.host, name=name, interval=interval, driver=driver)


async def bootstrap(
    drivers: list[tuple[SnmpDriver, int]],
    scheduler: Scheduler,
) -> list[Target]:
    """Resolve every target in turn and register it with the scheduler.

    Stops at the first target that cannot be identified.
    """
    targets: list[Target] = []
    for driver, interval in drivers:
        logger.debug("Requesting system name for %s", driver.host)
        target = await resolve_target(driver, interval)
        scheduler.add(target, interval)
        targets.append(target)
    return targets
