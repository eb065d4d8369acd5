"""Graphite publisher — wraps a graphyte sender for use from the event loop."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Mapping

import graphyte

from zxtm_graphite.errors import PublishError


class GraphiteClient:
    """Sends metric batches to a Carbon receiver over TCP.

    With ``interval`` 0 each batch goes out in one write as soon as it is
    published, and a failed write raises PublishError. Otherwise graphyte
    queues the lines and a background thread flushes them every
    ``interval`` seconds; send failures are then logged by graphyte.
    """

    def __init__(self, host: str, port: int = 2003, interval: int = 0,
                 timeout: float = 10.0,
                 logger: logging.Logger | None = None) -> None:
        self._host = host
        self._port = port
        self._interval = interval
        self._timeout = timeout
        self._logger = logger or logging.getLogger(__name__)
        self._sender: graphyte.Sender | None = None
        self._lock = asyncio.Lock()

    @property
    def destination(self) -> str:
        return f"{self._host}:{self._port}"

    @property
    def buffered(self) -> bool:
        return self._interval > 0

    def start(self) -> None:
        """Create the sender. In buffered mode this starts its flush thread."""
        if self._sender is not None:
            return
        if self.buffered:
            self._sender = graphyte.Sender(
                self._host, port=self._port, timeout=self._timeout,
                interval=self._interval,
            )
            self._logger.debug("Flushing to %s every %ds",
                               self.destination, self._interval)
        else:
            self._sender = graphyte.Sender(
                self._host, port=self._port, timeout=self._timeout,
                raise_send_errors=True,
            )

    async def publish(self, metrics: Mapping[str, int],
                      timestamp: float | None = None) -> None:
        """Queue or send one batch. Raises PublishError on a failed send."""
        if not metrics:
            return
        self.start()
        ts = timestamp if timestamp is not None else time.time()

        if self.buffered:
            try:
                for name, value in metrics.items():
                    self._sender.send(name, value, timestamp=ts)
            except (TypeError, ValueError) as exc:
                raise PublishError(f"Invalid metric for {self.destination}: {exc}") from exc
            self._logger.debug("Queued %d metrics for %s",
                               len(metrics), self.destination)
            return

        try:
            message = b"".join(
                self._sender.build_message(name, value, ts)
                for name, value in metrics.items()
            )
        except (TypeError, ValueError) as exc:
            raise PublishError(f"Invalid metric for {self.destination}: {exc}") from exc
        async with self._lock:
            try:
                await asyncio.to_thread(self._sender.send_socket, message)
            except OSError as exc:
                raise PublishError(
                    f"Failed to send {len(metrics)} metrics to {self.destination}: "
                    f"{exc or type(exc).__name__}"
                ) from exc
        self._logger.info("Uploaded %d metrics to %s", len(metrics), self.destination)

    async def close(self) -> None:
        """Flush anything still queued and stop the sender."""
        sender, self._sender = self._sender, None
        if sender is not None and self.buffered:
            await asyncio.to_thread(sender.stop)
            self._logger.debug("Flushed queued metrics to %s", self.destination)
