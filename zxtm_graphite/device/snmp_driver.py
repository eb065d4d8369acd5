"""pysnmp driver for ZXTM appliances (SNMP v1/v2c over UDP)."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, AsyncIterator, Sequence

from pysnmp.error import PySnmpError
from pysnmp.hlapi.v3arch.asyncio import (
    CommunityData,
    ContextData,
    ObjectIdentity,
    ObjectType,
    SnmpEngine,
    UdpTransportTarget,
    bulk_walk_cmd,
    get_cmd,
    walk_cmd,
)
from pysnmp.proto import errind
from pysnmp.proto.rfc1905 import EndOfMibView, NoSuchInstance, NoSuchObject

from zxtm_graphite.device.base import SnmpDriver
from zxtm_graphite.errors import MalformedResponse, RequestTimeout, SnmpError

logger = logging.getLogger(__name__)

_NUMERIC_OID = re.compile(r"^\.?\d+(\.\d+)+$")

_MISSING = (NoSuchObject, NoSuchInstance, EndOfMibView)


class PySnmpDriver(SnmpDriver):
    """SNMP driver backed by the pysnmp asyncio high-level API.

    Column keys are MIB symbol names looked up in ``mib_module`` (or
    ``MODULE::symbol``), compiled from ASN.1 sources in ``mib_dir``.
    Dotted numeric keys are sent as raw OIDs.
    """

    def __init__(self, host: str, port: int = 161, community: str = "public",
                 timeout: float = 2.0, retries: int = 1, version: str = "2c",
                 max_repetitions: int = 25, mib_dir: str | None = "mib",
                 mib_module: str = "ZXTM-MIB-SMIv2"):
        super().__init__(host, port, community, timeout, retries)
        self.version = version
        self.max_repetitions = max_repetitions
        self.mib_dir = mib_dir
        self.mib_module = mib_module
        self._engine = SnmpEngine()
        self._transport: UdpTransportTarget | None = None

    async def get_value(self, oid: str) -> str:
        transport = await self._get_transport()
        try:
            error_indication, error_status, error_index, var_binds = await get_cmd(
                self._engine, self._auth(), transport, ContextData(),
                self._object_type(oid),
            )
        except PySnmpError as exc:
            raise SnmpError(f"{self.host}: {exc}") from exc
        self._check(oid, error_indication, error_status, error_index)

        value = var_binds[0][1]
        if isinstance(value, _MISSING):
            raise SnmpError(f"{self.host}: no such object {oid}")
        return str(value)

    async def bulk_walk(self, columns: Sequence[str]) -> AsyncIterator[list[Any]]:
        # Columns of one table share an index, so the n-th instance of
        # every column belongs to the same row.
        values = []
        for column in columns:
            values.append(await self._walk_column(column))

        counts = {len(column_values) for column_values in values}
        if len(counts) > 1:
            raise MalformedResponse(
                f"{self.host}: uneven table walk "
                f"({', '.join(f'{c}={len(v)}' for c, v in zip(columns, values))})"
            )

        logger.debug("Walked %d rows of %d columns on %s",
                     counts.pop() if counts else 0, len(columns), self.host)
        for row in zip(*values):
            yield list(row)

    async def close(self) -> None:
        self._engine.close_dispatcher()
        self._transport = None

    async def _walk_column(self, column: str) -> list[Any]:
        transport = await self._get_transport()
        if self.version == "1":
            walker = walk_cmd(
                self._engine, self._auth(), transport, ContextData(),
                self._object_type(column), lexicographicMode=False,
            )
        else:
            walker = bulk_walk_cmd(
                self._engine, self._auth(), transport, ContextData(),
                0, self.max_repetitions,
                self._object_type(column), lexicographicMode=False,
            )

        collected: list[Any] = []
        try:
            async for error_indication, error_status, error_index, var_binds in walker:
                self._check(column, error_indication, error_status, error_index)
                for var_bind in var_binds:
                    value = var_bind[1]
                    if isinstance(value, _MISSING):
                        continue
                    collected.append(value)
        except PySnmpError as exc:
            raise SnmpError(f"{self.host}: {exc}") from exc
        return collected

    async def _get_transport(self) -> UdpTransportTarget:
        if self._transport is None:
            try:
                self._transport = await UdpTransportTarget.create(
                    (self.host, self.port),
                    timeout=self.timeout, retries=self.retries,
                )
            except PySnmpError as exc:
                raise SnmpError(f"{self.host}: {exc}") from exc
        return self._transport

    def _auth(self) -> CommunityData:
        return CommunityData(self.community, mpModel=0 if self.version == "1" else 1)

    def _object_type(self, key: str) -> ObjectType:
        if _NUMERIC_OID.match(key):
            return ObjectType(ObjectIdentity(key.lstrip(".")))

        module, _, symbol = key.rpartition("::")
        identity = ObjectIdentity(module or self.mib_module, symbol)
        if self.mib_dir:
            identity.add_asn1_mib_source(str(Path(self.mib_dir).expanduser().resolve()))
        return ObjectType(identity)

    def _check(self, key: str, error_indication: Any, error_status: Any,
               error_index: Any) -> None:
        """Translate pysnmp error indications into collector errors."""
        if error_indication:
            if isinstance(error_indication, errind.RequestTimedOut):
                raise RequestTimeout(f"{self.host}: {error_indication} ({key})")
            raise SnmpError(f"{self.host}: {error_indication} ({key})")
        if error_status:
            raise SnmpError(
                f"{self.host}: {error_status.prettyPrint()} at index {error_index} ({key})"
            )
