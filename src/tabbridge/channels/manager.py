"""Channel manager."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from blinker import Signal
from loguru import logger

from tabbridge.channels.base import Connection, Connector, MalformedFrame
from tabbridge.channels.policy import ReconnectPolicy
from tabbridge.envelope import Frame, FrameType, Response, Status
from tabbridge.errors import ChannelError, FrameDecodeError, FrameTooLargeError

MessageHandler = Callable[[Frame | MalformedFrame], None]
Sleep = Callable[[float], Awaitable[None]]


class ChannelManager:
    """Own the single duplex connection to the controller.

    Inbound frames are delivered to the registered handlers in arrival order.
    Outbound frames go through one ordered outbox drained by a single writer
    into whichever connection is live; while none is, they wait (bounded).
    Every disconnection schedules exactly one new connect attempt, delayed by
    the reconnect policy.
    """

    def __init__(
        self,
        connector: Connector,
        name: str,
        *,
        policy: ReconnectPolicy | None = None,
        outbox_limit: int = 1024,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.connector = connector
        self.name = name
        self.policy = policy or ReconnectPolicy()
        self.connected = Signal("tabbridge.channel.connected")
        self.disconnected = Signal("tabbridge.channel.disconnected")
        self._inbound = Signal("tabbridge.channel.inbound")
        self._sleep = sleep
        self._outbox: deque[Frame] = deque()
        self._outbox_limit = outbox_limit
        self._outbox_ready = asyncio.Event()
        self._live = asyncio.Event()
        self._connection: Connection | None = None
        self._generation = 0
        self._failures = 0
        self._running = False
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def connection(self) -> Connection | None:
        return self._connection

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending(self) -> int:
        return len(self._outbox)

    def on_message(self, handler: MessageHandler) -> Callable[[], None]:
        def _receiver(sender: Any, *, frame: Frame | MalformedFrame) -> None:
            handler(frame)

        self._inbound.connect(_receiver, weak=False)
        return lambda: self._inbound.disconnect(_receiver)

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._spawn(self._drain_outbox())
        try:
            await self.connect()
        except ChannelError as exc:
            logger.warning("channel.connect.failed name={} error={}", self.name, exc)
            self._spawn(self._reconnect())

    async def stop(self) -> None:
        self._running = False
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                continue
        self._tasks.clear()
        connection, self._connection = self._connection, None
        self._live.clear()
        if connection is not None:
            await connection.close()
        logger.info("channel.stopped name={} pending={}", self.name, len(self._outbox))

    async def connect(self) -> Connection:
        """Open a fresh connection and make it the live one."""
        connection = await self.connector.open(self.name)
        previous = self._connection
        self._generation += 1
        generation = self._generation
        self._connection = connection
        if previous is not None:
            await previous.close()
        self._spawn(self._pump(connection, generation))
        self._live.set()
        logger.info("channel.connected name={} generation={}", self.name, generation)
        self.connected.send(self, connection=connection, generation=generation)
        return connection

    async def wait_connected(self) -> Connection:
        await self._live.wait()
        assert self._connection is not None  # noqa: S101
        return self._connection

    def send(self, frame: Frame) -> None:
        """Queue one outbound frame for the writer."""
        if len(self._outbox) >= self._outbox_limit:
            dropped = self._outbox.popleft()
            logger.warning(
                "channel.outbox.full name={} limit={} dropped_type={}",
                self.name,
                self._outbox_limit,
                dropped.get("type"),
            )
        self._outbox.append(frame)
        self._outbox_ready.set()

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _deliver(self, frame: Frame | MalformedFrame) -> None:
        try:
            self._inbound.send(self, frame=frame)
        except Exception:
            logger.exception("channel.inbound.error name={}", self.name)

    async def _pump(self, connection: Connection, generation: int) -> None:
        reason: BaseException | None = None
        while True:
            try:
                frame = await connection.receive()
            except FrameDecodeError as exc:
                logger.warning("channel.frame.malformed name={} error={}", self.name, exc)
                self._deliver(MalformedFrame(str(exc)))
                continue
            except ChannelError as exc:
                reason = exc
                break
            if frame is None:
                break
            self._failures = 0
            self._deliver(frame)
        await self._on_disconnect(connection, generation, reason or connection.close_reason)

    async def _on_disconnect(self, connection: Connection, generation: int, reason: BaseException | None) -> None:
        # runs once per connection, from the end of its own pump
        current = connection is self._connection
        if current:
            self._connection = None
            self._live.clear()
        await connection.close(reason)
        logger.warning(
            "channel.disconnected name={} generation={} reason={}",
            self.name,
            generation,
            reason if reason is not None else "unknown",
        )
        self.disconnected.send(self, connection=connection, generation=generation, reason=reason)
        if current and self._running:
            await self._reconnect()

    async def _reconnect(self) -> None:
        while self._running:
            self._failures += 1
            delay = self.policy.delay(self._failures)
            logger.info("channel.reconnect name={} attempt={} delay={:.3f}", self.name, self._failures, delay)
            await self._sleep(delay)
            try:
                await self.connect()
            except ChannelError as exc:
                logger.warning("channel.connect.failed name={} attempt={} error={}", self.name, self._failures, exc)
                continue
            return

    async def _drain_outbox(self) -> None:
        while True:
            await self._outbox_ready.wait()
            if not self._outbox:
                self._outbox_ready.clear()
                continue
            connection = await self.wait_connected()
            if not connection.alive:
                # closed, but the reader has not reported it yet
                if connection is self._connection:
                    self._live.clear()
                continue
            frame = self._outbox.popleft()
            try:
                await connection.send(frame)
            except FrameTooLargeError as exc:
                logger.error("channel.send.dropped name={} type={} error={}", self.name, frame.get("type"), exc)
                replacement = _oversize_reply(frame, exc)
                if replacement is not None:
                    self._outbox.appendleft(replacement)
            except ChannelError as exc:
                self._outbox.appendleft(frame)
                logger.warning("channel.send.failed name={} error={}", self.name, exc)
                await connection.wait_closed()
            except (TypeError, ValueError):
                logger.exception("channel.send.unencodable name={} type={}", self.name, frame.get("type"))


def _oversize_reply(frame: Frame, exc: FrameTooLargeError) -> Frame | None:
    """Error response standing in for a response too large to send."""
    if frame.get("type") != FrameType.RESPONSE:
        return None
    data = frame.get("data")
    request_id = data.get("id") if isinstance(data, dict) else None
    if request_id is None:
        return None
    info = f"response exceeds frame limit of {exc.limit} bytes"
    if data.get("info") == info:
        return None
    return Response(id=request_id, status=Status.ERROR.value, info=info).to_frame()
