"""Connection and connector interfaces."""

from __future__ import annotations

import asyncio
import contextlib
from abc import ABC, abstractmethod
from dataclasses import dataclass

from tabbridge.codec import DEFAULT_MAX_FRAME_BYTES, read_frame, write_frame
from tabbridge.envelope import Frame
from tabbridge.errors import ChannelClosedError, ChannelError, FrameDecodeError


@dataclass(frozen=True)
class MalformedFrame:
    """Placeholder delivered for an inbound frame whose body could not be decoded."""

    reason: str


class Connection(ABC):
    """One lifetime of the duplex channel. Never reused after it closes."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.close_reason: BaseException | None = None
        self._closed = asyncio.Event()

    @property
    def alive(self) -> bool:
        return not self._closed.is_set()

    @abstractmethod
    async def receive(self) -> Frame | None:
        """Read the next frame; ``None`` once the transport reports closure."""

    @abstractmethod
    async def send(self, frame: Frame) -> None:
        """Write one frame. Raises :class:`ChannelClosedError` if the write fails."""

    @abstractmethod
    async def _shutdown(self) -> None:
        """Release the transport handle."""

    async def close(self, reason: BaseException | None = None) -> None:
        if self._closed.is_set():
            return
        if reason is not None and self.close_reason is None:
            self.close_reason = reason
        self._closed.set()
        await self._shutdown()

    async def wait_closed(self) -> None:
        await self._closed.wait()


class StreamConnection(Connection):
    """Connection over an asyncio stream pair using native messaging framing."""

    def __init__(
        self,
        name: str,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        *,
        max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES,
    ) -> None:
        super().__init__(name)
        self._reader = reader
        self._writer = writer
        self._max_frame_bytes = max_frame_bytes

    async def receive(self) -> Frame | None:
        if not self.alive:
            return None
        try:
            frame = await read_frame(self._reader, max_bytes=self._max_frame_bytes)
        except FrameDecodeError:
            raise
        except (ChannelError, OSError) as exc:
            await self.close(exc)
            return None
        if frame is None:
            await self.close()
        return frame

    async def send(self, frame: Frame) -> None:
        if not self.alive:
            raise ChannelClosedError(f"connection {self.name!r} is closed")
        try:
            await write_frame(self._writer, frame, max_bytes=self._max_frame_bytes)
        except (ConnectionError, OSError) as exc:
            raise ChannelClosedError(f"write to {self.name!r} failed: {exc}") from exc

    async def _shutdown(self) -> None:
        self._writer.close()
        with contextlib.suppress(ConnectionError, OSError):
            await self._writer.wait_closed()


class Connector(ABC):
    """Opens a fresh connection to the external process by channel name."""

    @abstractmethod
    async def open(self, name: str) -> Connection:
        """Establish the channel. Raises :class:`ChannelError` on failure."""
