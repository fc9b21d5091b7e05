"""In-process host: a tab set held in memory that fires lifecycle signals.

Stands in for a real browser so the bridge can be served and exercised end to
end. Capabilities take the request envelope and return wire-format values.
"""

from __future__ import annotations

import builtins
import fnmatch
import itertools
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from tabbridge.core.signals import HostSignals
from tabbridge.envelope import Request
from tabbridge.errors import TabNotFoundError
from tabbridge.tabs import Tab

DEFAULT_WINDOW_ID = 1

# update() props that map one to one onto wire fields
_UPDATE_FIELDS = frozenset({"url", "pinned", "muted", "highlighted", "openerTabId", "successorTabId"})
_PATTERN_FIELDS = frozenset({"url", "title"})


@dataclass
class _History:
    entries: list[str] = field(default_factory=list)
    position: int = -1

    def visit(self, url: str) -> None:
        del self.entries[self.position + 1 :]
        self.entries.append(url)
        self.position = len(self.entries) - 1


def _now_ms() -> int:
    return int(time.time() * 1000)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _matches(value: Any, expected: Any, *, pattern: bool) -> bool:
    if pattern and isinstance(value, str):
        patterns = expected if isinstance(expected, builtins.list) else [expected]
        return any(fnmatch.fnmatchcase(value, str(p)) for p in patterns)
    return value == expected


class MemoryTabs:
    """Tab set with browser-like semantics for every recognized capability."""

    def __init__(self, signals: HostSignals | None = None) -> None:
        self.signals = signals or HostSignals()
        self._tabs: dict[int, Tab] = {}
        self._history: dict[int, _History] = {}
        self._ids = itertools.count(1)

    # -- helpers -----------------------------------------------------------

    def seed(self, urls: Iterable[str], *, window_id: int = DEFAULT_WINDOW_ID) -> builtins.list[Tab]:
        """Open tabs without firing signals; the first becomes active."""
        opened = []
        for url in urls:
            tab = self._new_tab(window_id=window_id, url=url, index=None)
            opened.append(tab)
        if opened and self._active_in(window_id) is None:
            opened[0].active = True
        return opened

    def get(self, tab_id: Any) -> Tab:
        if isinstance(tab_id, bool) or not isinstance(tab_id, int) or tab_id not in self._tabs:
            raise TabNotFoundError(tab_id)
        return self._tabs[tab_id]

    def window(self, window_id: int) -> builtins.list[Tab]:
        return sorted((t for t in self._tabs.values() if t.window_id == window_id), key=lambda t: t.index)

    def _active_in(self, window_id: int) -> Tab | None:
        return next((t for t in self._tabs.values() if t.window_id == window_id and t.active), None)

    def _reindex(self, window_id: int) -> None:
        for index, tab in enumerate(self.window(window_id)):
            tab.index = index

    def _new_tab(self, *, window_id: int, url: str, index: int | None, **fields: Any) -> Tab:
        siblings = self.window(window_id)
        position = len(siblings) if index is None or index < 0 or index > len(siblings) else index
        for sibling in siblings[position:]:
            sibling.index += 1
        tab = Tab(id=next(self._ids), index=position, window_id=window_id, url=url, last_accessed=_now_ms(), **fields)
        self._tabs[tab.id] = tab
        history = _History()
        history.visit(url)
        self._history[tab.id] = history
        return tab

    def _selected(self, request: Request) -> builtins.list[Tab]:
        raw = request.tab_ids if request.tab_ids is not None else request.tab_id
        if raw is None:
            raise ValueError(f"{request.method} requires tabId or tabIds")
        ids = raw if isinstance(raw, builtins.list) else [raw]
        return [self.get(tab_id) for tab_id in ids]

    def _target(self, request: Request) -> Tab:
        if request.tab_id is None:
            active = self._active_in(DEFAULT_WINDOW_ID)
            if active is None:
                raise ValueError(f"{request.method} requires tabId")
            return active
        return self.get(request.tab_id)

    @staticmethod
    def _props(request: Request) -> Mapping[str, Any]:
        if request.props is None:
            return {}
        if not isinstance(request.props, Mapping):
            raise ValueError(f"{request.method} props must be an object")
        return request.props

    def _activate(self, tab: Tab) -> None:
        previous = self._active_in(tab.window_id)
        if previous is tab:
            return
        if previous is not None:
            previous.active = False
        tab.active = True
        tab.last_accessed = _now_ms()
        self.signals.activated.send(
            self, tab_id=tab.id, previous=previous.id if previous else None, window_id=tab.window_id
        )

    def _change(self, tab: Tab, delta: dict[str, Any]) -> None:
        if not delta:
            return
        updated = tab.with_delta(delta)
        for name in type(tab).model_fields:
            setattr(tab, name, getattr(updated, name))
        self.signals.updated.send(self, tab_id=tab.id, delta=delta)

    def _navigate(self, tab: Tab, url: str) -> None:
        self._change(tab, {"url": url, "status": "loading"})
        self._change(tab, {"status": "complete"})

    # -- capabilities ------------------------------------------------------

    async def list(self, request: Request) -> Any:
        tabs = sorted(self._tabs.values(), key=lambda t: (t.window_id, t.index))
        return [tab.wire() for tab in tabs]

    async def query(self, request: Request) -> Any:
        props = self._props(request)
        result = []
        for tab in sorted(self._tabs.values(), key=lambda t: (t.window_id, t.index)):
            wire = tab.wire()
            if all(
                key in wire and _matches(wire[key], expected, pattern=key in _PATTERN_FIELDS)
                for key, expected in props.items()
            ):
                result.append(wire)
        return result

    async def create(self, request: Request) -> Any:
        props = self._props(request)
        window_id = props.get("windowId", DEFAULT_WINDOW_ID)
        tab = self._new_tab(
            window_id=window_id,
            url=props.get("url", "about:blank"),
            index=props.get("index"),
            title=props.get("title", ""),
            pinned=bool(props.get("pinned", False)),
            muted=bool(props.get("muted", False)),
            discarded=bool(props.get("discarded", False)),
            opener_tab_id=props.get("openerTabId"),
        )
        self.signals.created.send(self, tab=tab.wire())
        if props.get("active", True):
            self._activate(tab)
        logger.debug("memory.host.created tab_id={} window_id={}", tab.id, window_id)
        return tab.id

    async def duplicate(self, request: Request) -> Any:
        source = self._target(request)
        props = self._props(request)
        index = props.get("index", source.index + 1)
        tab = self._new_tab(
            window_id=source.window_id,
            url=source.url,
            index=index,
            title=source.title,
            pinned=source.pinned,
            opener_tab_id=source.id,
        )
        self.signals.created.send(self, tab=tab.wire())
        if props.get("active", True):
            self._activate(tab)
        return tab.id

    async def update(self, request: Request) -> Any:
        tab = self._target(request)
        props = self._props(request)
        unknown = sorted(set(props) - _UPDATE_FIELDS - {"active", "loadReplace"})
        if unknown:
            raise ValueError(f"update does not accept: {', '.join(unknown)}")
        if "url" in props and props["url"] != tab.url:
            history = self._history[tab.id]
            if props.get("loadReplace"):
                history.entries[history.position] = props["url"]
            else:
                history.visit(props["url"])
        current = tab.wire()
        delta = {key: value for key, value in props.items() if key in _UPDATE_FIELDS and current.get(key) != value}
        if "url" in delta:
            delta["status"] = "loading"
        self._change(tab, delta)
        if "url" in delta:
            self._change(tab, {"status": "complete"})
        if props.get("active"):
            self._activate(tab)
        return tab.wire()

    async def move(self, request: Request) -> Any:
        tabs = self._selected(request)
        props = self._props(request)
        if "index" not in props:
            raise ValueError("move requires props.index")
        index = props["index"]
        if not _is_int(index):
            raise ValueError("move requires an integer props.index")
        if "windowId" in props and not _is_int(props["windowId"]):
            raise ValueError("move requires an integer props.windowId")
        moved = []
        for offset, tab in enumerate(tabs):
            target_window = props.get("windowId", tab.window_id)
            old_window, old_index = tab.window_id, tab.index
            if target_window != old_window:
                was_active = tab.active
                tab.active = False
                self._detach(tab)
                self.signals.detached.send(self, tab_id=tab.id, window_id=old_window, position=old_index)
                self._insert(tab, target_window, index, offset)
                self.signals.attached.send(self, tab_id=tab.id, window_id=target_window, position=tab.index)
                if was_active:
                    self._activate_neighbour(old_window, old_index)
            else:
                self._detach(tab)
                self._insert(tab, old_window, index, offset)
                if tab.index != old_index:
                    self.signals.moved.send(
                        self, tab_id=tab.id, window_id=old_window, from_index=old_index, to_index=tab.index
                    )
            moved.append(tab.wire())
        return moved

    def _detach(self, tab: Tab) -> None:
        window_id = tab.window_id
        tab.window_id = -1
        self._reindex(window_id)

    def _insert(self, tab: Tab, window_id: int, index: int, offset: int) -> None:
        siblings = self.window(window_id)
        position = len(siblings) if index < 0 else min(index + offset, len(siblings))
        for sibling in siblings[position:]:
            sibling.index += 1
        tab.window_id = window_id
        tab.index = position

    def _activate_neighbour(self, window_id: int, index: int) -> None:
        siblings = self.window(window_id)
        if not siblings or self._active_in(window_id) is not None:
            return
        self._activate(siblings[min(index, len(siblings) - 1)])

    async def reload(self, request: Request) -> Any:
        tab = self._target(request)
        self._change(tab, {"status": "loading"})
        self._change(tab, {"status": "complete"})
        return None

    async def remove(self, request: Request) -> Any:
        tabs = self._selected(request)
        for tab in tabs:
            was_active = tab.active
            del self._tabs[tab.id]
            self._history.pop(tab.id, None)
            self._reindex(tab.window_id)
            closing = not self.window(tab.window_id)
            self.signals.removed.send(self, tab_id=tab.id, window_id=tab.window_id, is_window_closing=closing)
            if was_active:
                self._activate_neighbour(tab.window_id, tab.index)
        return None

    async def discard(self, request: Request) -> Any:
        for tab in self._selected(request):
            if not tab.discarded:
                self._change(tab, {"discarded": True})
        return None

    async def hide(self, request: Request) -> Any:
        tabs = self._selected(request)
        active = [tab.id for tab in tabs if tab.active]
        if active:
            raise ValueError(f"cannot hide active tab: {active[0]}")
        hidden = []
        for tab in tabs:
            if not tab.hidden:
                self._change(tab, {"hidden": True})
                hidden.append(tab.id)
        return hidden

    async def show(self, request: Request) -> Any:
        for tab in self._selected(request):
            if tab.hidden:
                self._change(tab, {"hidden": False})
        return None

    async def toggle_reader_mode(self, request: Request) -> Any:
        tab = self._target(request)
        self._change(tab, {"isInReaderMode": not tab.is_in_reader_mode})
        return None

    async def go_forward(self, request: Request) -> Any:
        tab = self._target(request)
        history = self._history[tab.id]
        if history.position + 1 >= len(history.entries):
            raise ValueError(f"tab {tab.id} has no forward history")
        history.position += 1
        self._navigate(tab, history.entries[history.position])
        return None

    async def go_back(self, request: Request) -> Any:
        tab = self._target(request)
        history = self._history[tab.id]
        if history.position <= 0:
            raise ValueError(f"tab {tab.id} has no back history")
        history.position -= 1
        self._navigate(tab, history.entries[history.position])
        return None
