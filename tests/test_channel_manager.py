from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest
from fakes import FakeConnector, RecordingSleep

from tabbridge.channels.base import MalformedFrame
from tabbridge.channels.manager import ChannelManager
from tabbridge.channels.policy import IMMEDIATE
from tabbridge.errors import FrameDecodeError


def _frame(n: int) -> dict[str, Any]:
    return {"type": "event", "data": {"type": "updated", "data": {"tabId": n, "delta": {}}}}


@pytest.mark.asyncio
async def test_inbound_frames_reach_handlers_in_order(eventually: Callable[..., Any]) -> None:
    connector = FakeConnector()
    manager = ChannelManager(connector, "tabs_server", policy=IMMEDIATE)
    received: list[Any] = []
    manager.on_message(received.append)
    await manager.start()
    try:
        connection = connector.opened[0]
        for n in range(3):
            connection.push({"type": "request", "data": {"id": n, "method": "list"}})
        await eventually(lambda: len(received) == 3)

        assert [frame["data"]["id"] for frame in received] == [0, 1, 2]
        assert manager.generation == 1
        assert connection.name == "tabs_server"
    finally:
        await manager.stop()


@pytest.mark.asyncio
async def test_unsubscribed_handler_stops_receiving(eventually: Callable[..., Any]) -> None:
    connector = FakeConnector()
    manager = ChannelManager(connector, "tabs_server", policy=IMMEDIATE)
    first: list[Any] = []
    second: list[Any] = []
    unsubscribe = manager.on_message(first.append)
    manager.on_message(second.append)
    await manager.start()
    try:
        unsubscribe()
        connector.opened[0].push({"n": 1})
        await eventually(lambda: len(second) == 1)

        assert first == []
    finally:
        await manager.stop()


@pytest.mark.asyncio
async def test_disconnect_triggers_exactly_one_reconnect(eventually: Callable[..., Any]) -> None:
    connector = FakeConnector()
    manager = ChannelManager(connector, "tabs_server", policy=IMMEDIATE)
    disconnects: list[int] = []
    manager.disconnected.connect(lambda sender, **kw: disconnects.append(kw["generation"]), weak=False)
    await manager.start()
    try:
        first = connector.opened[0]
        first.drop()
        await first.close()
        await eventually(lambda: manager.generation == 2)
        await asyncio.sleep(0.05)

        assert connector.attempts == 2
        assert disconnects == [1]
        assert manager.connection is connector.opened[1]
        assert not first.alive
    finally:
        await manager.stop()


@pytest.mark.asyncio
async def test_frames_sent_while_disconnected_are_flushed_in_order(eventually: Callable[..., Any]) -> None:
    sleep = RecordingSleep()
    connector = FakeConnector(failures=2)
    manager = ChannelManager(connector, "tabs_server", sleep=sleep)

    for n in range(3):
        manager.send(_frame(n))
    await manager.start()
    try:
        await eventually(lambda: connector.opened and len(connector.opened[0].sent) == 3)

        assert connector.opened[0].sent == [_frame(0), _frame(1), _frame(2)]
        assert sleep.delays == [0.0, 0.1]
        assert manager.pending == 0
    finally:
        await manager.stop()


@pytest.mark.asyncio
async def test_received_frame_resets_backoff(eventually: Callable[..., Any]) -> None:
    sleep = RecordingSleep()
    connector = FakeConnector(failures=2)
    manager = ChannelManager(connector, "tabs_server", sleep=sleep)
    received: list[Any] = []
    manager.on_message(received.append)
    await manager.start()
    try:
        await eventually(lambda: manager.generation == 1)
        connection = connector.opened[0]
        connection.push({"n": 1})
        await eventually(lambda: len(received) == 1)
        connection.drop()
        await eventually(lambda: manager.generation == 2)

        assert sleep.delays == [0.0, 0.1, 0.0]
    finally:
        await manager.stop()


@pytest.mark.asyncio
async def test_failed_write_is_retried_on_next_connection(eventually: Callable[..., Any]) -> None:
    connector = FakeConnector()
    manager = ChannelManager(connector, "tabs_server", policy=IMMEDIATE)
    await manager.start()
    try:
        first = connector.opened[0]
        first.fail_writes = True
        manager.send(_frame(1))
        manager.send(_frame(2))
        await asyncio.sleep(0.02)
        assert manager.pending == 2

        first.drop()
        await eventually(lambda: len(connector.opened) == 2 and len(connector.opened[1].sent) == 2)

        assert first.sent == []
        assert connector.opened[1].sent == [_frame(1), _frame(2)]
    finally:
        await manager.stop()


@pytest.mark.asyncio
async def test_outbox_drops_oldest_when_full(eventually: Callable[..., Any]) -> None:
    connector = FakeConnector()
    manager = ChannelManager(connector, "tabs_server", policy=IMMEDIATE, outbox_limit=2)

    for n in range(3):
        manager.send(_frame(n))
    assert manager.pending == 2

    await manager.start()
    try:
        await eventually(lambda: len(connector.opened[0].sent) == 2)
        assert connector.opened[0].sent == [_frame(1), _frame(2)]
    finally:
        await manager.stop()


@pytest.mark.asyncio
async def test_undecodable_frame_is_delivered_as_malformed(eventually: Callable[..., Any]) -> None:
    connector = FakeConnector()
    manager = ChannelManager(connector, "tabs_server", policy=IMMEDIATE)
    received: list[Any] = []
    manager.on_message(received.append)
    await manager.start()
    try:
        connection = connector.opened[0]
        connection.push(FrameDecodeError("frame body is not valid JSON"))
        connection.push({"n": 2})
        await eventually(lambda: len(received) == 2)

        assert received == [MalformedFrame("frame body is not valid JSON"), {"n": 2}]
        assert manager.generation == 1
    finally:
        await manager.stop()


@pytest.mark.asyncio
async def test_stop_closes_connection_without_reconnecting() -> None:
    connector = FakeConnector()
    manager = ChannelManager(connector, "tabs_server", policy=IMMEDIATE)
    await manager.start()
    connection = connector.opened[0]

    await manager.stop()
    await asyncio.sleep(0.02)

    assert not connection.alive
    assert connector.attempts == 1
    assert manager.connection is None


@pytest.mark.asyncio
async def test_oversized_response_is_replaced_by_error(eventually: Callable[..., Any]) -> None:
    connector = FakeConnector(max_frame_bytes=200)
    manager = ChannelManager(connector, "tabs_server", policy=IMMEDIATE)
    await manager.start()
    try:
        tabs = [{"id": n, "url": f"https://example.org/{n}"} for n in range(20)]
        manager.send({"type": "response", "data": {"id": 9, "status": "list", "info": tabs}})
        manager.send(_frame(1))
        await eventually(lambda: len(connector.opened[0].sent) == 2)

        assert connector.opened[0].sent == [
            {
                "type": "response",
                "data": {"id": 9, "status": "error", "info": "response exceeds frame limit of 200 bytes"},
            },
            _frame(1),
        ]
    finally:
        await manager.stop()


@pytest.mark.asyncio
async def test_oversized_event_is_dropped(eventually: Callable[..., Any]) -> None:
    connector = FakeConnector(max_frame_bytes=200)
    manager = ChannelManager(connector, "tabs_server", policy=IMMEDIATE)
    await manager.start()
    try:
        manager.send({"type": "event", "data": {"type": "created", "data": {"title": "x" * 300}}})
        manager.send(_frame(2))
        await eventually(lambda: len(connector.opened[0].sent) == 1)

        assert connector.opened[0].sent == [_frame(2)]
        assert manager.pending == 0
    finally:
        await manager.stop()


@pytest.mark.asyncio
async def test_each_disconnect_is_reported_once(eventually: Callable[..., Any]) -> None:
    connector = FakeConnector()
    manager = ChannelManager(connector, "tabs_server", policy=IMMEDIATE)
    disconnects: list[int] = []
    manager.disconnected.connect(lambda sender, **kw: disconnects.append(kw["generation"]), weak=False)
    await manager.start()
    try:
        for generation in (1, 2, 3):
            await eventually(lambda expected=generation: manager.generation == expected)
            connection = connector.opened[-1]
            connection.drop()
            await connection.close()
        await eventually(lambda: manager.generation == 4)
        await asyncio.sleep(0.02)

        assert disconnects == [1, 2, 3]
        assert connector.attempts == 4
    finally:
        await manager.stop()
