"""Bridge runtime: one channel, one dispatcher, one emitter."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from loguru import logger

from tabbridge.channels.manager import ChannelManager
from tabbridge.core.capabilities import TabsHost, capability_table
from tabbridge.core.dispatcher import Dispatcher
from tabbridge.core.emitter import EventEmitter
from tabbridge.core.responder import Responder
from tabbridge.core.signals import HostSignals


class BridgeRuntime:
    """Wire the channel to the host: requests in, responses and events out."""

    def __init__(self, channel: ChannelManager, host: TabsHost, signals: HostSignals) -> None:
        self.channel = channel
        self.host = host
        self.responder = Responder(channel)
        self.dispatcher = Dispatcher(capability_table(host), self.responder)
        self.emitter = EventEmitter(channel, signals)
        self._unsub_inbound: Callable[[], None] | None = None
        self._stopped = asyncio.Event()

    async def start(self) -> None:
        self._stopped.clear()
        self._unsub_inbound = self.channel.on_message(self.dispatcher.handle)
        self.emitter.bind()
        logger.info("bridge.start channel={}", self.channel.name)
        await self.channel.start()

    async def stop(self) -> None:
        self.emitter.unbind()
        if self._unsub_inbound is not None:
            self._unsub_inbound()
            self._unsub_inbound = None
        await self.dispatcher.close()
        await self.channel.stop()
        self._stopped.set()
        logger.info("bridge.stopped channel={}", self.channel.name)

    def request_stop(self) -> None:
        self._stopped.set()

    async def run_forever(self) -> None:
        await self.start()
        try:
            await self._stopped.wait()
        finally:
            await self.stop()

    async def __aenter__(self) -> BridgeRuntime:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
