"""Controller-side client: numbered requests, correlated responses, event stream."""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import AsyncIterator
from typing import Any

from loguru import logger
from pydantic import ValidationError

from tabbridge.channels.base import Connection
from tabbridge.envelope import CorrelationId, Event, Request, Response, read_reply
from tabbridge.errors import ChannelClosedError, FrameDecodeError, RequestFailedError, RequestTimeoutError
from tabbridge.tabs import Tab

DEFAULT_TIMEOUT_SECONDS = 5.0


class TabsClient:
    """Talk to a bridge over one connection.

    Every request gets the next integer id and waits for the response bearing
    that id. Events are queued in arrival order for :meth:`events`.
    """

    def __init__(self, connection: Connection, *, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.connection = connection
        self.timeout_seconds = timeout_seconds
        self.unattributed: list[Response] = []
        self._ids = itertools.count(1)
        self._pending: dict[CorrelationId, asyncio.Future[Response]] = {}
        self._events: asyncio.Queue[Event | None] = asyncio.Queue()
        self._listener: asyncio.Task[None] | None = None

    async def start(self) -> None:
        if self._listener is None:
            self._listener = asyncio.create_task(self._listen())

    async def close(self) -> None:
        await self.connection.close()
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        self._fail_pending()

    async def __aenter__(self) -> TabsClient:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def request(
        self,
        method: str,
        *,
        tab_id: Any = None,
        tab_ids: Any = None,
        props: Any = None,
        timeout_seconds: float | None = None,
    ) -> Response:
        """Send one request and wait for its response, whatever its status."""
        if not self.connection.alive:
            raise ChannelClosedError("cannot send request to closed bridge connection")
        request_id = next(self._ids)
        request = Request(id=request_id, method=method, tab_id=tab_id, tab_ids=tab_ids, props=props)
        future: asyncio.Future[Response] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        try:
            await self.connection.send(request.to_frame())
            return await asyncio.wait_for(future, timeout)
        except TimeoutError:
            raise RequestTimeoutError(method, timeout) from None
        finally:
            self._pending.pop(request_id, None)

    async def call(self, method: str, **kwargs: Any) -> Any:
        """Send one request and return its ``info``; raise on an error status."""
        response = await self.request(method, **kwargs)
        if not response.ok:
            raise RequestFailedError(method, response.status, response.info)
        return response.info

    async def events(self) -> AsyncIterator[Event]:
        """Yield events in arrival order until the connection ends."""
        while True:
            event = await self._events.get()
            if event is None:
                return
            yield event

    # -- tab operations ----------------------------------------------------

    async def list_tabs(self) -> list[Tab]:
        return [Tab.model_validate(item) for item in await self.call("list")]

    async def query(self, **props: Any) -> list[Tab]:
        return [Tab.model_validate(item) for item in await self.call("query", props=props)]

    async def create(self, url: str | None = None, **props: Any) -> int:
        if url is not None:
            props["url"] = url
        return await self.call("create", props=props)

    async def duplicate(self, tab_id: int, **props: Any) -> int:
        return await self.call("duplicate", tab_id=tab_id, props=props or None)

    async def update(self, tab_id: int, **props: Any) -> Any:
        return await self.call("update", tab_id=tab_id, props=props)

    async def activate(self, tab_id: int) -> None:
        await self.update(tab_id, active=True)

    async def move(self, tab_ids: list[int], *, index: int = -1, window_id: int | None = None) -> Any:
        props: dict[str, Any] = {"index": index}
        if window_id is not None:
            props["windowId"] = window_id
        return await self.call("move", tab_ids=tab_ids, props=props)

    async def reload(self, tab_id: int, *, bypass_cache: bool = False) -> None:
        await self.call("reload", tab_id=tab_id, props={"bypassCache": bypass_cache})

    async def close_tabs(self, *tab_ids: int) -> None:
        await self.call("remove", tab_ids=list(tab_ids))

    async def discard(self, *tab_ids: int) -> None:
        await self.call("discard", tab_ids=list(tab_ids))

    async def hide(self, *tab_ids: int) -> Any:
        return await self.call("hide", tab_ids=list(tab_ids))

    async def show(self, *tab_ids: int) -> None:
        await self.call("show", tab_ids=list(tab_ids))

    async def toggle_reader_mode(self, tab_id: int) -> None:
        await self.call("toggleReaderMode", tab_id=tab_id)

    async def go_back(self, tab_id: int) -> None:
        await self.call("goBack", tab_id=tab_id)

    async def go_forward(self, tab_id: int) -> None:
        await self.call("goForward", tab_id=tab_id)

    # -- inbound -----------------------------------------------------------

    async def _listen(self) -> None:
        try:
            while True:
                try:
                    frame = await self.connection.receive()
                except FrameDecodeError as exc:
                    logger.warning("controller.frame.malformed error={}", exc)
                    continue
                if frame is None:
                    break
                try:
                    reply = read_reply(frame)
                except ValidationError as exc:
                    logger.warning("controller.frame.invalid type={} errors={}", frame.get("type"), exc.error_count())
                    continue
                if isinstance(reply, Response):
                    self._resolve(reply)
                elif isinstance(reply, Event):
                    self._events.put_nowait(reply)
                else:
                    logger.warning("controller.frame.unexpected type={}", frame.get("type"))
        finally:
            self._fail_pending()
            self._events.put_nowait(None)

    def _resolve(self, response: Response) -> None:
        if response.id is None:
            logger.warning("controller.response.unattributed status={} info={}", response.status, response.info)
            self.unattributed.append(response)
            return
        future = self._pending.get(response.id)
        if future is None or future.done():
            logger.warning("controller.response.unexpected id={} status={}", response.id, response.status)
            return
        future.set_result(response)

    def _fail_pending(self) -> None:
        for request_id, future in list(self._pending.items()):
            if not future.done():
                future.set_exception(ChannelClosedError(f"connection closed before response to request {request_id}"))
