"""Controller-side mirror of the host tab set, kept current by events."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from tabbridge.envelope import Event, EventKind
from tabbridge.errors import TabNotFoundError
from tabbridge.tabs import Tab


class TabStore:
    def __init__(self) -> None:
        self.open: dict[int, Tab] = {}
        self.closed: list[Tab] = []
        self._appliers: dict[EventKind, Callable[[Any], None]] = {
            EventKind.CREATED: self._created,
            EventKind.ACTIVATED: self._activated,
            EventKind.UPDATED: self._updated,
            EventKind.MOVED: self._moved,
            EventKind.REMOVED: self._removed,
            EventKind.ATTACHED: self._attached,
            EventKind.DETACHED: self._detached,
        }

    def load(self, tabs: Iterable[Tab | Mapping[str, Any]]) -> None:
        for item in tabs:
            tab = item if isinstance(item, Tab) else Tab.model_validate(item)
            self.open[tab.id] = tab

    def get(self, tab_id: int) -> Tab:
        try:
            return self.open[tab_id]
        except KeyError:
            raise TabNotFoundError(tab_id) from None

    def ordered(self) -> list[Tab]:
        return sorted(self.open.values(), key=lambda t: (t.window_id, t.index))

    def apply(self, event: Event) -> None:
        """Apply one event. Raises :class:`TabNotFoundError` for tabs not in the store."""
        self._appliers[event.kind](event.data)

    def _shift(self, window_id: int, start: int, stop: int | None, step: int, *, skip: int | None = None) -> None:
        """Move every tab of ``window_id`` with ``start <= index < stop`` by ``step``."""
        for tab in self.open.values():
            if tab.id == skip or tab.window_id != window_id:
                continue
            if tab.index >= start and (stop is None or tab.index < stop):
                tab.index += step

    def _created(self, data: Any) -> None:
        tab = Tab.model_validate(data)
        if tab.id in self.open:
            raise ValueError(f"tab {tab.id} already exists")
        self._shift(tab.window_id, tab.index, None, 1)
        self.open[tab.id] = tab

    def _activated(self, data: Any) -> None:
        previous = self.open.get(data.get("previous"))
        if previous is not None:
            previous.active = False
        self.get(data["tabId"]).active = True

    def _updated(self, data: Any) -> None:
        tab = self.get(data["tabId"])
        self.open[tab.id] = tab.with_delta(data.get("delta") or {})

    def _moved(self, data: Any) -> None:
        tab = self.get(data["tabId"])
        source, target = tab.index, data["toIndex"]
        if target > source:
            self._shift(tab.window_id, source + 1, target + 1, -1, skip=tab.id)
        elif target < source:
            self._shift(tab.window_id, target, source, 1, skip=tab.id)
        tab.index = target

    def _removed(self, data: Any) -> None:
        tab = self.get(data["tabId"])
        del self.open[tab.id]
        self._shift(tab.window_id, tab.index + 1, None, -1)
        self.closed.append(tab)

    def _attached(self, data: Any) -> None:
        tab = self.get(data["tabId"])
        tab.window_id = data["windowId"]
        tab.index = data["position"]
        self._shift(tab.window_id, tab.index, None, 1, skip=tab.id)

    def _detached(self, data: Any) -> None:
        # the matching attached event carries the new window and position
        tab = self.get(data["tabId"])
        self._shift(tab.window_id, tab.index + 1, None, -1, skip=tab.id)
        tab.window_id = -1
