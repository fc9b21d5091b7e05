"""Capability table and the outcome of one capability call."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeAlias, runtime_checkable

from loguru import logger

from tabbridge.envelope import Request

Capability: TypeAlias = Callable[[Request], Awaitable[Any]]

# wire method name -> host attribute
METHODS: dict[str, str] = {
    "list": "list",
    "query": "query",
    "create": "create",
    "duplicate": "duplicate",
    "update": "update",
    "move": "move",
    "reload": "reload",
    "remove": "remove",
    "discard": "discard",
    "hide": "hide",
    "show": "show",
    "toggleReaderMode": "toggle_reader_mode",
    "goForward": "go_forward",
    "goBack": "go_back",
}

# methods whose success status echoes the method name instead of "success"
ECHO_STATUS = frozenset({"list", "query"})


@runtime_checkable
class TabsHost(Protocol):
    """Tab-management capabilities of the host application.

    Each method receives the whole request envelope and reads the addressing
    fields and ``props`` it needs. A return value becomes the response
    ``info``; an exception becomes an error response carrying its message.
    """

    async def list(self, request: Request) -> Any: ...

    async def query(self, request: Request) -> Any: ...

    async def create(self, request: Request) -> Any: ...

    async def duplicate(self, request: Request) -> Any: ...

    async def update(self, request: Request) -> Any: ...

    async def move(self, request: Request) -> Any: ...

    async def reload(self, request: Request) -> Any: ...

    async def remove(self, request: Request) -> Any: ...

    async def discard(self, request: Request) -> Any: ...

    async def hide(self, request: Request) -> Any: ...

    async def show(self, request: Request) -> Any: ...

    async def toggle_reader_mode(self, request: Request) -> Any: ...

    async def go_forward(self, request: Request) -> Any: ...

    async def go_back(self, request: Request) -> Any: ...


def capability_table(host: TabsHost) -> dict[str, Capability]:
    """Bind every recognized wire method to the host's coroutine."""
    return {method: getattr(host, attr) for method, attr in METHODS.items()}


@dataclass(frozen=True)
class Success:
    value: Any = None


@dataclass(frozen=True)
class Failure:
    reason: str


Outcome: TypeAlias = Success | Failure


def _failure_message(exc: Exception) -> str:
    message = str(exc)
    if message:
        return message
    return type(exc).__name__


async def invoke(capability: Capability, request: Request) -> Outcome:
    """Run one capability and fold its result or exception into an outcome."""
    try:
        value = await capability(request)
    except Exception as exc:
        logger.debug("capability.failed method={} id={} error={!r}", request.method, request.id, exc)
        return Failure(_failure_message(exc))
    return Success(value)
