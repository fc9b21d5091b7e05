"""Unix socket transport: the controller listens, the bridge dials in."""

from __future__ import annotations

import asyncio
from pathlib import Path

from loguru import logger

from tabbridge.channels.base import Connection, Connector, StreamConnection
from tabbridge.codec import DEFAULT_MAX_FRAME_BYTES
from tabbridge.errors import ChannelError


def socket_path_for(socket_dir: Path, name: str) -> Path:
    return socket_dir / f"{name}.sock"


class UnixSocketConnector(Connector):
    """Dial ``<socket_dir>/<name>.sock`` for every new connection."""

    def __init__(self, socket_dir: Path, *, max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES) -> None:
        self.socket_dir = socket_dir
        self.max_frame_bytes = max_frame_bytes

    async def open(self, name: str) -> Connection:
        path = socket_path_for(self.socket_dir, name)
        try:
            reader, writer = await asyncio.open_unix_connection(str(path))
        except OSError as exc:
            raise ChannelError(f"cannot connect to {path}: {exc}") from exc
        logger.debug("unix.channel.open path={}", path)
        return StreamConnection(name, reader, writer, max_frame_bytes=self.max_frame_bytes)
