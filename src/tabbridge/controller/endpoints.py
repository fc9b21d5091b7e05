"""Controller ends of the channel: a Unix socket listener and process stdio."""

from __future__ import annotations

import asyncio
import contextlib
import sys
from pathlib import Path

from loguru import logger

from tabbridge.channels.base import Connection, StreamConnection
from tabbridge.codec import DEFAULT_MAX_FRAME_BYTES


class BridgeListener:
    """Listen on a Unix socket; every bridge (re)connection becomes a new connection."""

    def __init__(self, path: Path, *, max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES) -> None:
        self.path = path
        self.max_frame_bytes = max_frame_bytes
        self._server: asyncio.Server | None = None
        self._accepted: asyncio.Queue[Connection] = asyncio.Queue()
        self._connections: set[Connection] = set()

    async def start(self) -> None:
        with contextlib.suppress(FileNotFoundError):
            self.path.unlink()
        self._server = await asyncio.start_unix_server(self._on_client, path=str(self.path))
        logger.info("controller.listen path={}", self.path)

    async def _on_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        connection = StreamConnection(self.path.stem, reader, writer, max_frame_bytes=self.max_frame_bytes)
        self._connections.add(connection)
        logger.info("controller.bridge.connected path={}", self.path)
        await self._accepted.put(connection)
        try:
            await connection.wait_closed()
        finally:
            self._connections.discard(connection)

    async def accept(self) -> Connection:
        return await self._accepted.get()

    async def close(self) -> None:
        for connection in list(self._connections):
            await connection.close()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        with contextlib.suppress(FileNotFoundError):
            self.path.unlink()

    async def __aenter__(self) -> BridgeListener:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


async def stdio_connection(name: str, *, max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES) -> Connection:
    """Wrap this process's stdin/stdout, for a controller launched by the native transport."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin.buffer)
    transport, protocol = await loop.connect_write_pipe(asyncio.streams.FlowControlMixin, sys.stdout.buffer)
    writer = asyncio.StreamWriter(transport, protocol, reader, loop)
    return StreamConnection(name, reader, writer, max_frame_bytes=max_frame_bytes)
