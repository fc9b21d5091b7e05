"""Subprocess transport: the bridge launches the controller and talks over its stdio."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Sequence

from loguru import logger

from tabbridge.channels.base import Connection, Connector, StreamConnection
from tabbridge.codec import DEFAULT_MAX_FRAME_BYTES
from tabbridge.errors import ChannelError


class ProcessConnection(StreamConnection):
    """Stream connection that owns the controller process."""

    def __init__(self, name: str, process: asyncio.subprocess.Process, *, max_frame_bytes: int) -> None:
        assert process.stdout is not None and process.stdin is not None  # noqa: S101
        super().__init__(name, process.stdout, process.stdin, max_frame_bytes=max_frame_bytes)
        self.process = process

    async def _shutdown(self) -> None:
        await super()._shutdown()
        if self.process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                self.process.terminate()
        returncode = await self.process.wait()
        logger.debug("native.channel.exit name={} pid={} returncode={}", self.name, self.process.pid, returncode)


class NativeProcessConnector(Connector):
    """Start ``command + [name]`` for every new connection, in the manner of browser native messaging."""

    def __init__(self, command: Sequence[str], *, max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES) -> None:
        if not command:
            raise ValueError("native command must not be empty")
        self.command = list(command)
        self.max_frame_bytes = max_frame_bytes

    async def open(self, name: str) -> Connection:
        argv = [*self.command, name]
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ChannelError(f"cannot start {argv[0]!r}: {exc}") from exc
        logger.info("native.channel.open name={} pid={}", name, process.pid)
        return ProcessConnection(name, process, max_frame_bytes=self.max_frame_bytes)
