"""Shared test fixtures."""

from __future__ import annotations

from typing import Any, Sequence

import pytest

from zxtm_graphite.config.settings import (
    GraphiteConfig,
    ScheduleConfig,
    Settings,
    TargetConfig,
)
from zxtm_graphite.device.base import SnmpDriver
from zxtm_graphite.device.models import Target
from zxtm_graphite.errors import RequestTimeout


class FakeDriver(SnmpDriver):
    """In-memory driver: tables keyed by their first requested column."""

    def __init__(self, host: str = "10.1.1.1", sys_name: str = "lb-01",
                 tables: dict[str, list[list[Any]]] | None = None,
                 error: Exception | None = None) -> None:
        super().__init__(host)
        self.sys_name = sys_name
        self.tables = tables or {}
        self.error = error
        self.walks: list[list[str]] = []
        self.closed = False

    async def get_value(self, oid: str) -> str:
        if self.error is not None:
            raise self.error
        return self.sys_name

    async def bulk_walk(self, columns: Sequence[str]):
        self.walks.append(list(columns))
        if self.error is not None:
            raise self.error
        for row in self.tables.get(columns[0], []):
            yield row

    async def close(self) -> None:
        self.closed = True


POOL_ROW = ["Pool A", "10.0.0.5", 80, 1, 2, 300, 4, 0, 6, 0, 12, 50, 3, 1, 5, 1000, 2000]
VS_ROW = ["Web_VS", 10, 100, 5000, 0, 7, 0, 1, 0, 0, 0, 9, 0, 0, 0, 0, 123, 456, 78, 0]


@pytest.fixture
def fake_driver() -> FakeDriver:
    return FakeDriver(tables={
        "perPoolNodePoolName": [POOL_ROW],
        "virtualserverName": [VS_ROW],
    })


@pytest.fixture
def timeout_driver() -> FakeDriver:
    return FakeDriver(host="10.1.1.2", sys_name="lb-02",
                      error=RequestTimeout("10.1.1.2: No SNMP response received"))


@pytest.fixture
def make_target():
    def _make(driver: SnmpDriver, name: str = "lb_01", interval: int = 10) -> Target:
        return Target(host=driver.host, name=name, interval=interval, driver=driver)
    return _make


@pytest.fixture
def sample_settings() -> Settings:
    return Settings(
        targets=[TargetConfig(host="10.1.1.1"), TargetConfig(host="10.1.1.2", interval=30)],
        graphite=GraphiteConfig(host="graphite.example.com"),
        schedule=ScheduleConfig(interval=10),
    )


@pytest.fixture
def driver_factory():
    return FakeDriver
