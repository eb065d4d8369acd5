"""Target data models."""

from __future__ import annotations

from dataclasses import dataclass, field

from zxtm_graphite.device.base import SnmpDriver


@dataclass(frozen=True)
class Target:
    """A ZXTM appliance whose identity has been resolved."""
    host: str
    name: str       # sysName, used as the metric namespace segment
    interval: int
    driver: SnmpDriver = field(compare=False, repr=False)

    @property
    def label(self) -> str:
        if self.name == self.host:
            return self.host
        return f"{self.name} ({self.host})"
