"""Route inbound request frames to host capabilities."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

from loguru import logger

from tabbridge.channels.base import MalformedFrame
from tabbridge.core.capabilities import Capability, invoke
from tabbridge.core.responder import Invocation, Responder
from tabbridge.envelope import Request, read_request
from tabbridge.errors import MalformedRequestError


class Dispatcher:
    """Validate request envelopes and run one capability task per request.

    ``handle`` never waits for a capability: malformed requests are answered
    immediately, accepted ones settle through the responder whenever their
    task completes, in any order.
    """

    def __init__(self, capabilities: Mapping[str, Capability], responder: Responder) -> None:
        self.capabilities = dict(capabilities)
        self.responder = responder
        self._inflight: dict[asyncio.Task[None], Invocation] = {}

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    def handle(self, frame: Any) -> None:
        if isinstance(frame, MalformedFrame):
            logger.warning("dispatch.rejected id=None reason={}", frame.reason)
            self.responder.respond_error(None, frame.reason)
            return
        try:
            request = read_request(frame)
        except MalformedRequestError as exc:
            logger.warning("dispatch.rejected id={} reason={}", exc.request_id, exc.reason)
            self.responder.respond_error(exc.request_id, exc.reason)
            return

        capability = self.capabilities.get(request.method)
        if capability is None:
            logger.warning("dispatch.unknown_method id={} method={}", request.id, request.method)
            self.responder.respond_error(request.id, f"method {request.method!r} is unknown")
            return

        invocation = Invocation(id=request.id, method=request.method)
        task = asyncio.create_task(self._run(capability, request, invocation))
        self._inflight[task] = invocation
        task.add_done_callback(self._forget)
        logger.debug("dispatch.accepted id={} method={} inflight={}", request.id, request.method, len(self._inflight))

    async def _run(self, capability: Capability, request: Request, invocation: Invocation) -> None:
        outcome = await invoke(capability, request)
        self.responder.settle(invocation, outcome)

    def _forget(self, task: asyncio.Task[None]) -> None:
        invocation = self._inflight.pop(task, None)
        if task.cancelled() or invocation is None:
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error("dispatch.task.error id={} method={}", invocation.id, invocation.method)

    async def drain(self) -> None:
        """Wait until every accepted request has settled."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def close(self) -> None:
        """Cancel invocations still in flight; used on shutdown only."""
        tasks = list(self._inflight)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
