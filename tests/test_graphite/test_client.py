"""Tests for the Graphite plaintext client against an in-process Carbon receiver."""

from __future__ import annotations

import asyncio
import logging

import pytest

from zxtm_graphite.errors import PublishError
from zxtm_graphite.graphite.client import GraphiteClient


class CarbonReceiver:
    """Collects lines written to a local TCP server."""

    def __init__(self) -> None:
        self.lines: list[str] = []
        self.connections = 0
        self._server: asyncio.Server | None = None
        self._received = asyncio.Event()

    async def start(self) -> int:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        return self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        self._server.close()
        await self._server.wait_closed()

    async def wait_for(self, count: int, timeout: float = 2.0) -> None:
        async def _wait():
            while len(self.lines) < count:
                self._received.clear()
                await self._received.wait()
        await asyncio.wait_for(_wait(), timeout)

    async def _handle(self, reader: asyncio.StreamReader,
                      writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        while line := await reader.readline():
            self.lines.append(line.decode().rstrip("\n"))
            self._received.set()
        writer.close()


@pytest.fixture
async def carbon():
    receiver = CarbonReceiver()
    port = await receiver.start()
    receiver.port = port
    yield receiver
    await receiver.stop()


def test_destination_and_mode():
    assert GraphiteClient("graphite", 2003).destination == "graphite:2003"
    assert not GraphiteClient("graphite").buffered
    assert GraphiteClient("graphite", interval=30).buffered


@pytest.mark.asyncio
async def test_publish_immediately(carbon):
    client = GraphiteClient("127.0.0.1", carbon.port)

    await client.publish({"zxtm.lb.pools.p.nodes.h_80.state": 1}, timestamp=1700000000)
    await carbon.wait_for(1)
    await client.close()

    assert carbon.lines == ["zxtm.lb.pools.p.nodes.h_80.state 1 1700000000"]


@pytest.mark.asyncio
async def test_batch_is_sent_in_one_connection(carbon):
    client = GraphiteClient("127.0.0.1", carbon.port)

    await client.publish({"a": 1, "b": 2, "c": 3}, timestamp=1)
    await carbon.wait_for(3)
    await client.close()

    assert carbon.lines == ["a 1 1", "b 2 1", "c 3 1"]
    assert carbon.connections == 1


@pytest.mark.asyncio
async def test_batches_keep_publish_order(carbon):
    client = GraphiteClient("127.0.0.1", carbon.port)

    await client.publish({"a": 1}, timestamp=1)
    await client.publish({"b": 2}, timestamp=2)
    await carbon.wait_for(2)
    await client.close()

    assert carbon.lines == ["a 1 1", "b 2 2"]


@pytest.mark.asyncio
async def test_concurrent_publishers_do_not_interleave(carbon):
    client = GraphiteClient("127.0.0.1", carbon.port)
    batches = [{f"t{i}.m{j}": j for j in range(50)} for i in range(5)]

    await asyncio.gather(*(client.publish(b, timestamp=10) for b in batches))
    await carbon.wait_for(250)
    await client.close()

    assert len(carbon.lines) == 250
    assert all(len(line.split(" ")) == 3 for line in carbon.lines)


@pytest.mark.asyncio
async def test_empty_batch_sends_nothing(carbon):
    client = GraphiteClient("127.0.0.1", carbon.port)
    await client.publish({})
    await client.close()
    assert carbon.connections == 0


@pytest.mark.asyncio
async def test_invalid_metric_name_raises():
    client = GraphiteClient("127.0.0.1", 2003)
    with pytest.raises(PublishError, match="Invalid metric"):
        await client.publish({"zxtm.lb.virtualservers.Web VS.bytes_in": 1})
    await client.close()


@pytest.mark.asyncio
async def test_buffered_publish_waits_for_flush(carbon, caplog):
    client = GraphiteClient("127.0.0.1", carbon.port, interval=60)
    client.start()

    with caplog.at_level(logging.DEBUG):
        await client.publish({"a": 1}, timestamp=5)
        await client.publish({"b": 2}, timestamp=6)
    await asyncio.sleep(0.05)

    assert carbon.lines == []
    assert "Queued 1 metrics" in caplog.text
    assert "Uploaded" not in caplog.text

    await client.close()
    await carbon.wait_for(2)
    assert carbon.lines == ["a 1 5", "b 2 6"]


@pytest.mark.asyncio
async def test_buffered_sender_flushes_on_interval(carbon):
    client = GraphiteClient("127.0.0.1", carbon.port, interval=1)
    client.start()

    await client.publish({"a": 1}, timestamp=5)
    await carbon.wait_for(1, timeout=3.0)
    await client.close()

    assert carbon.lines == ["a 1 5"]


@pytest.mark.asyncio
async def test_publish_to_closed_port_raises():
    receiver = CarbonReceiver()
    port = await receiver.start()
    await receiver.stop()

    client = GraphiteClient("127.0.0.1", port, timeout=1.0)
    with pytest.raises(PublishError, match=f"127.0.0.1:{port}"):
        await client.publish({"a": 1})
    await client.close()


@pytest.mark.asyncio
async def test_buffered_send_failure_is_logged(caplog):
    receiver = CarbonReceiver()
    port = await receiver.start()
    await receiver.stop()

    client = GraphiteClient("127.0.0.1", port, interval=60, timeout=1.0)
    await client.publish({"a": 1})

    with caplog.at_level(logging.ERROR):
        await client.close()

    assert any(r.name == "graphyte" and r.levelno == logging.ERROR
               for r in caplog.records)
