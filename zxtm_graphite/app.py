"""Application orchestrator — wires together all components."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

from zxtm_graphite.agent.bootstrap import bootstrap
from zxtm_graphite.agent.poller import PollCycle
from zxtm_graphite.agent.scheduler import Scheduler
from zxtm_graphite.config.settings import Settings
from zxtm_graphite.device.base import SnmpDriver
from zxtm_graphite.device.snmp_driver import PySnmpDriver
from zxtm_graphite.errors import BootstrapError
from zxtm_graphite.graphite.client import GraphiteClient

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Application:
    """Top-level application orchestrator."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.logger = logging.getLogger("zxtm_graphite")
        graphite = settings.graphite
        self.graphite = GraphiteClient(
            host=graphite.host or "",
            port=graphite.port,
            interval=graphite.interval,
            timeout=graphite.timeout,
            logger=self.logger.getChild("graphite"),
        )
        self.poll_cycle = PollCycle(
            publisher=self.graphite,
            root=graphite.prefix,
            logger=self.logger.getChild("poller"),
        )
        self.scheduler = Scheduler(
            callback=self.poll_cycle.run,
            logger=self.logger.getChild("scheduler"),
        )
        self.drivers: list[tuple[SnmpDriver, int]] = []
        self._stop_event: asyncio.Event | None = None

    async def run(self) -> int:
        """Bootstrap targets, then poll until interrupted. Returns an exit code."""
        self._setup_logging()
        self._stop_event = asyncio.Event()
        self._install_signal_handlers()
        try:
            self.graphite.start()
            self.drivers = [
                (self._create_driver(target.host, target.port, target.community),
                 self.settings.interval_for(target))
                for target in self.settings.targets
            ]
            try:
                await bootstrap(self.drivers, self.scheduler)
            except BootstrapError as exc:
                self.logger.critical("%s", exc)
                return 1

            self.scheduler.start()
            await self._stop_event.wait()
        finally:
            await self.shutdown()
        return 0

    def request_stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    async def shutdown(self) -> None:
        """Graceful shutdown."""
        self.logger.info("Shutting down...")
        await self.scheduler.stop()
        await self.graphite.close()
        for driver, _ in self.drivers:
            await driver.close()
        self.logger.info("Shutdown complete.")

    def _create_driver(self, host: str, port: int | None,
                       community: str | None) -> SnmpDriver:
        snmp = self.settings.snmp
        self.logger.debug("Creating SNMP driver for %s", host)
        return PySnmpDriver(
            host=host,
            port=port or snmp.port,
            community=community or snmp.community,
            timeout=snmp.timeout,
            retries=snmp.retries,
            version=snmp.version,
            max_repetitions=snmp.max_repetitions,
            mib_dir=snmp.mib_dir,
            mib_module=snmp.mib_module,
        )

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self.request_stop)
            except (NotImplementedError, RuntimeError):
                # Not available on this platform / outside the main thread
                self.logger.debug("Cannot install handler for %s", signum.name)

    def _setup_logging(self) -> None:
        root = logging.getLogger()
        root.setLevel(self.settings.log_level)
        if not root.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            root.addHandler(handler)

        # pysnmp/pysmi log MIB compilation and transport chatter at INFO
        logging.getLogger("pysnmp").setLevel(logging.WARNING)
        logging.getLogger("pysmi").setLevel(logging.WARNING)
