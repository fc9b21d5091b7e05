from __future__ import annotations

from typing import Any

import pytest

from tabbridge.core.capabilities import METHODS, TabsHost
from tabbridge.core.signals import HostSignals
from tabbridge.envelope import EventKind, Request
from tabbridge.errors import TabNotFoundError
from tabbridge.hosts.memory import MemoryTabs


class SignalLog:
    def __init__(self, signals: HostSignals) -> None:
        self.entries: list[tuple[str, dict[str, Any]]] = []
        for kind in EventKind:
            signals.for_kind(kind).connect(self._recorder(kind.value), weak=False)

    def _recorder(self, kind: str) -> Any:
        def _record(sender: Any, **kwargs: Any) -> None:
            self.entries.append((kind, kwargs))

        return _record

    @property
    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.entries]


def _host(*urls: str) -> tuple[MemoryTabs, SignalLog]:
    signals = HostSignals()
    host = MemoryTabs(signals)
    host.seed(urls)
    return host, SignalLog(signals)


def _req(method: str, **fields: Any) -> Request:
    return Request(id=1, method=method, **fields)


def test_memory_host_implements_every_method() -> None:
    host = MemoryTabs()

    assert isinstance(host, TabsHost)
    assert all(callable(getattr(host, attr)) for attr in METHODS.values())


@pytest.mark.asyncio
async def test_list_returns_wire_tabs_in_window_order() -> None:
    host, _ = _host("https://a.example/", "https://b.example/")

    tabs = await host.list(_req("list"))

    assert [(tab["id"], tab["index"], tab["active"]) for tab in tabs] == [(1, 0, True), (2, 1, False)]
    assert tabs[0]["windowId"] == 1
    assert "isInReaderMode" in tabs[0]


@pytest.mark.asyncio
async def test_query_matches_fields_and_url_patterns() -> None:
    host, _ = _host("https://a.example/x", "https://b.example/y")

    assert [t["id"] for t in await host.query(_req("query", props={"active": True}))] == [1]
    assert [t["id"] for t in await host.query(_req("query", props={"url": "*b.example*"}))] == [2]
    assert [t["id"] for t in await host.query(_req("query", props={"url": ["*/x", "*/y"]}))] == [1, 2]
    assert await host.query(_req("query", props={"nope": 1})) == []


@pytest.mark.asyncio
async def test_update_emits_delta_and_rejects_unknown_props() -> None:
    host, log = _host("https://a.example/")

    tab = await host.update(_req("update", tab_id=1, props={"url": "https://c.example/", "pinned": True}))

    assert tab["url"] == "https://c.example/"
    assert tab["pinned"] is True
    assert log.entries == [
        ("updated", {"tab_id": 1, "delta": {"url": "https://c.example/", "pinned": True, "status": "loading"}}),
        ("updated", {"tab_id": 1, "delta": {"status": "complete"}}),
    ]
    with pytest.raises(ValueError, match="does not accept: index"):
        await host.update(_req("update", tab_id=1, props={"index": 3}))


@pytest.mark.asyncio
async def test_move_within_and_across_windows() -> None:
    host, log = _host("https://a.example/", "https://b.example/", "https://c.example/")

    await host.move(_req("move", tab_ids=[3], props={"index": 0}))
    assert [t.id for t in host.window(1)] == [3, 1, 2]
    assert log.entries[-1] == ("moved", {"tab_id": 3, "window_id": 1, "from_index": 2, "to_index": 0})

    await host.move(_req("move", tab_ids=[2], props={"index": 0, "windowId": 2}))
    assert [t.id for t in host.window(1)] == [3, 1]
    assert [t.id for t in host.window(2)] == [2]
    assert log.kinds[-2:] == ["detached", "attached"]

    with pytest.raises(ValueError, match="props.index"):
        await host.move(_req("move", tab_ids=[1]))


@pytest.mark.asyncio
async def test_remove_active_tab_activates_neighbour() -> None:
    host, log = _host("https://a.example/", "https://b.example/")

    await host.remove(_req("remove", tab_ids=[1]))

    assert log.entries[0] == ("removed", {"tab_id": 1, "window_id": 1, "is_window_closing": False})
    assert log.entries[1] == ("activated", {"tab_id": 2, "previous": None, "window_id": 1})
    assert host.get(2).active
    assert host.get(2).index == 0
    with pytest.raises(TabNotFoundError, match="no such tab: 1"):
        host.get(1)


@pytest.mark.asyncio
async def test_removing_last_tab_reports_window_closing() -> None:
    host, log = _host("https://a.example/")

    await host.remove(_req("remove", tab_id=1))

    assert log.entries == [("removed", {"tab_id": 1, "window_id": 1, "is_window_closing": True})]


@pytest.mark.asyncio
async def test_hide_refuses_active_tab() -> None:
    host, _ = _host("https://a.example/", "https://b.example/")

    with pytest.raises(ValueError, match="cannot hide active tab: 1"):
        await host.hide(_req("hide", tab_ids=[1, 2]))
    assert await host.hide(_req("hide", tab_ids=[2])) == [2]
    assert await host.hide(_req("hide", tab_ids=[2])) == []

    await host.show(_req("show", tab_ids=[2]))
    assert not host.get(2).hidden


@pytest.mark.asyncio
async def test_history_navigation() -> None:
    host, _ = _host("https://a.example/")
    await host.update(_req("update", tab_id=1, props={"url": "https://b.example/"}))

    await host.go_back(_req("goBack", tab_id=1))
    assert host.get(1).url == "https://a.example/"
    with pytest.raises(ValueError, match="no back history"):
        await host.go_back(_req("goBack", tab_id=1))

    await host.go_forward(_req("goForward"))
    assert host.get(1).url == "https://b.example/"
    assert host.get(1).status == "complete"
    with pytest.raises(ValueError, match="no forward history"):
        await host.go_forward(_req("goForward", tab_id=1))


@pytest.mark.asyncio
async def test_flags_and_duplicate() -> None:
    host, log = _host("https://a.example/", "https://b.example/")

    await host.discard(_req("discard", tab_ids=[2]))
    await host.toggle_reader_mode(_req("toggleReaderMode", tab_id=1))
    await host.reload(_req("reload", tab_id=1))
    copy_id = await host.duplicate(_req("duplicate", tab_id=1))

    assert host.get(2).discarded
    assert host.get(1).is_in_reader_mode
    copy = host.get(copy_id)
    assert (copy.url, copy.index, copy.opener_tab_id, copy.active) == ("https://a.example/", 1, 1, True)
    assert log.kinds == ["updated", "updated", "updated", "updated", "created", "activated"]


@pytest.mark.asyncio
async def test_unknown_tab_is_reported() -> None:
    host, _ = _host("https://a.example/")

    with pytest.raises(TabNotFoundError):
        await host.reload(_req("reload", tab_id=42))
    with pytest.raises(ValueError, match="requires tabId or tabIds"):
        await host.remove(_req("remove"))


@pytest.mark.asyncio
@pytest.mark.parametrize("props", [{"index": "0"}, {"index": True}, {"index": 0, "windowId": "2"}])
async def test_move_with_bad_props_leaves_tabs_untouched(props: dict[str, Any]) -> None:
    host, log = _host("https://a.example/", "https://b.example/")

    with pytest.raises(ValueError, match="move requires an integer"):
        await host.move(_req("move", tab_ids=[2], props=props))

    tabs = await host.list(_req("list"))
    assert [(tab["id"], tab["windowId"], tab["index"]) for tab in tabs] == [(1, 1, 0), (2, 1, 1)]
    assert log.entries == []
