"""Exception hierarchy for collection, publishing and startup failures."""

from __future__ import annotations


class CollectorError(Exception):
    """Base class for errors raised while collecting or publishing metrics."""


class RequestTimeout(CollectorError):
    """The target did not answer within the SNMP timeout and retry budget."""


class SnmpError(CollectorError):
    """The target answered with an SNMP error or a missing object."""


class MalformedResponse(CollectorError):
    """A walked table did not have the expected shape or value types."""


class PublishError(CollectorError):
    """Metrics could not be delivered to the Graphite endpoint."""


class ConfigurationError(Exception):
    """Invalid or incomplete configuration, fatal at startup."""


class BootstrapError(Exception):
    """A target's identity could not be resolved at startup."""

    def __init__(self, host: str, cause: Exception) -> None:
        super().__init__(f"{cause} while requesting system name for {host}")
        self.host = host
        self.cause = cause
