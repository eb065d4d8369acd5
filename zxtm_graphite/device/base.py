"""Abstract SNMP driver interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Sequence


class SnmpDriver(ABC):
    """Base class for SNMP connectivity drivers."""

    def __init__(self, host: str, port: int = 161, community: str = "public",
                 timeout: float = 2.0, retries: int = 1):
        self.host = host
        self.port = port
        self.community = community
        self.timeout = timeout
        self.retries = retries

    @abstractmethod
    async def get_value(self, oid: str) -> str:
        """Fetch a single scalar object and return it as a string."""

    @abstractmethod
    def bulk_walk(self, columns: Sequence[str]) -> AsyncIterator[list[Any]]:
        """Walk table columns and yield one row (a value per column) at a time.

        Rows are yielded in table order; each row holds the values of
        ``columns`` in the same order.
        """

    async def close(self) -> None:
        """Release transport resources."""
