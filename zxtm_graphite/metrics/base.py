"""Table extraction — turns walked SNMP table rows into Graphite metric names."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Sequence

from zxtm_graphite.errors import MalformedResponse

# Yields rows whose columns are the requested keys, in order
TableWalker = Callable[[Sequence[str]], AsyncIterator[Sequence[Any]]]

MetricBatch = dict[str, int]

_ACRONYM_BOUNDARY = re.compile(r"([A-Z\d]+)([A-Z][a-z])")
_CAMEL_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")
_UNSAFE = re.compile(r"[^0-9A-Za-z_]")


# ── Naming helpers ───────────────────────────────────────────────────

def underscore(word: str) -> str:
    """Convert CamelCase to snake_case (``CurrentRequests`` -> ``current_requests``)."""
    word = word.replace("::", "/")
    word = _ACRONYM_BOUNDARY.sub(r"\1_\2", word)
    word = _CAMEL_BOUNDARY.sub(r"\1_\2", word)
    return word.replace("-", "_").lower()


def normalize(value: str) -> str:
    """Reduce a free-form name to a single safe metric path segment."""
    return _UNSAFE.sub("_", underscore(value.replace(" ", "_")))


def leaf_name(raw_key: str, token: str) -> str:
    """Drop the counter family token and snake-case the rest."""
    return underscore(raw_key.replace(token, "", 1).replace(" ", "_"))


def to_int(value: Any) -> int:
    """Coerce an SNMP counter value to an integer, truncating fractions."""
    try:
        return int(value)
    except (OverflowError, TypeError, ValueError):
        pass
    try:
        return int(float(str(value)))
    except (OverflowError, ValueError):
        raise MalformedResponse(f"Counter value {value!r} is not numeric") from None


class NamingStrategy(ABC):
    """Builds metric names for one table type."""

    @abstractmethod
    def compute_prefix(self, identifiers: Sequence[str]) -> str:
        """Metric path for a row, from its identifier column values."""

    @abstractmethod
    def compute_leaf_name(self, raw_key: str) -> str:
        """Final metric path segment for a counter column key."""


# ── Row decoding ─────────────────────────────────────────────────────

@dataclass
class TableRow:
    identifiers: list[str]
    counters: list[Any]


def decode_row(row: Sequence[Any], identifier_count: int,
               counter_count: int) -> TableRow:
    """Split a walked row into identifier and counter columns."""
    expected = identifier_count + counter_count
    if len(row) != expected:
        raise MalformedResponse(
            f"Row has {len(row)} columns, expected {expected}"
        )
    return TableRow(
        identifiers=[str(value) for value in row[:identifier_count]],
        counters=list(row[identifier_count:]),
    )


async def extract(
    identifier_keys: Sequence[str],
    counter_keys: Sequence[str],
    naming: NamingStrategy,
    walker: TableWalker,
) -> MetricBatch:
    """Walk a table and map ``<prefix>.<leaf>`` to each counter value.

    Later rows overwrite earlier ones when two rows produce the same name.
    """
    if not identifier_keys or not counter_keys:
        raise ValueError("identifier_keys and counter_keys must not be empty")

    leaves = [naming.compute_leaf_name(key) for key in counter_keys]
    metrics: MetricBatch = {}

    async for raw in walker([*identifier_keys, *counter_keys]):
        row = decode_row(raw, len(identifier_keys), len(counter_keys))
        prefix = naming.compute_prefix(row.identifiers)
        for leaf, value in zip(leaves, row.counters):
            metrics[f"{prefix}.{leaf}"] = to_int(value)

    return metrics
