from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import pytest

Condition = Callable[[], bool]


async def _eventually(condition: Condition, *, timeout_seconds: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_seconds
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def eventually() -> Callable[..., Awaitable[None]]:
    return _eventually
