"""Relay host lifecycle signals to the controller as event envelopes."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from loguru import logger

from tabbridge.core.responder import FrameSink
from tabbridge.core.signals import HostSignals
from tabbridge.envelope import Event, EventKind


def _activated(tab_id: Any, previous: Any = None, window_id: Any = None) -> dict[str, Any]:
    return {"tabId": tab_id, "previous": previous, "windowId": window_id}


def _updated(tab_id: Any, delta: Any = None) -> dict[str, Any]:
    return {"tabId": tab_id, "delta": delta if delta is not None else {}}


def _created(tab: Any) -> Any:
    return tab


def _moved(tab_id: Any, window_id: Any = None, from_index: Any = None, to_index: Any = None) -> dict[str, Any]:
    return {"tabId": tab_id, "windowId": window_id, "fromIndex": from_index, "toIndex": to_index}


def _removed(tab_id: Any, window_id: Any = None, is_window_closing: bool = False) -> dict[str, Any]:
    return {"tabId": tab_id, "windowId": window_id, "isWindowClosing": is_window_closing}


def _window_position(tab_id: Any, window_id: Any = None, position: Any = None) -> dict[str, Any]:
    return {"tabId": tab_id, "windowId": window_id, "position": position}


SHAPES: dict[EventKind, Callable[..., Any]] = {
    EventKind.ACTIVATED: _activated,
    EventKind.UPDATED: _updated,
    EventKind.CREATED: _created,
    EventKind.MOVED: _moved,
    EventKind.REMOVED: _removed,
    EventKind.ATTACHED: _window_position,
    EventKind.DETACHED: _window_position,
}


class EventEmitter:
    """One event envelope per host signal, in signal order, never coalesced."""

    def __init__(self, channel: FrameSink, signals: HostSignals) -> None:
        self.channel = channel
        self.signals = signals
        self._unbinders: list[Callable[[], None]] = []

    def emit(self, kind: EventKind, data: Any) -> Event:
        event = Event(kind=kind, data=data)
        self.channel.send(event.to_frame())
        logger.debug("event.emitted kind={}", kind.value)
        return event

    def bind(self) -> None:
        if self._unbinders:
            return
        for kind, shape in SHAPES.items():
            self._unbinders.append(self._bind_kind(kind, shape))

    def unbind(self) -> None:
        for unbind in self._unbinders:
            unbind()
        self._unbinders.clear()

    def _bind_kind(self, kind: EventKind, shape: Callable[..., Any]) -> Callable[[], None]:
        signal = self.signals.for_kind(kind)

        def _receiver(sender: Any, **kwargs: Any) -> None:
            self.emit(kind, shape(**kwargs))

        signal.connect(_receiver, weak=False)
        return lambda: signal.disconnect(_receiver)
