"""Native messaging framing: a little-endian uint32 length, then a UTF-8 JSON object."""

from __future__ import annotations

import asyncio
import json
import struct
from typing import Any

from tabbridge.errors import ChannelClosedError, FrameDecodeError, FrameTooLargeError

HEADER = struct.Struct("<I")
DEFAULT_MAX_FRAME_BYTES = 8_000_000


def encode_frame(frame: dict[str, Any], *, max_bytes: int = DEFAULT_MAX_FRAME_BYTES) -> bytes:
    raw = json.dumps(frame, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    if len(raw) > max_bytes:
        raise FrameTooLargeError(len(raw), max_bytes)
    return HEADER.pack(len(raw)) + raw


def decode_body(raw: bytes) -> dict[str, Any]:
    try:
        obj = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise FrameDecodeError(f"frame body is not valid JSON: {exc}") from exc
    if not isinstance(obj, dict):
        raise FrameDecodeError(f"frame body is not an object: {type(obj).__name__}")
    return obj


async def read_frame(reader: asyncio.StreamReader, *, max_bytes: int = DEFAULT_MAX_FRAME_BYTES) -> dict[str, Any] | None:
    """Read one frame. Returns ``None`` on a clean end of stream.

    A body that fails to decode raises :class:`FrameDecodeError` after it has
    been consumed, so the stream stays aligned on the next frame. An oversized
    length cannot be skipped safely and raises :class:`FrameTooLargeError`.
    """
    try:
        header = await reader.readexactly(HEADER.size)
    except asyncio.IncompleteReadError as exc:
        if not exc.partial:
            return None
        raise ChannelClosedError("stream ended inside a frame header") from exc
    (length,) = HEADER.unpack(header)
    if length > max_bytes:
        raise FrameTooLargeError(length, max_bytes)
    try:
        raw = await reader.readexactly(length)
    except asyncio.IncompleteReadError as exc:
        raise ChannelClosedError("stream ended inside a frame body") from exc
    return decode_body(raw)


async def write_frame(
    writer: asyncio.StreamWriter, frame: dict[str, Any], *, max_bytes: int = DEFAULT_MAX_FRAME_BYTES
) -> None:
    writer.write(encode_frame(frame, max_bytes=max_bytes))
    await writer.drain()
