from __future__ import annotations

import pytest

from tabbridge.envelope import Event, EventKind, Request, Response, read_reply, read_request
from tabbridge.errors import MalformedRequestError


def test_read_request_keeps_addressing_and_extra_fields() -> None:
    request = read_request(
        {"type": "request", "data": {"id": 3, "method": "move", "tabIds": [1, 2], "props": {"index": 0}, "x": 1}}
    )

    assert request.id == 3
    assert request.method == "move"
    assert request.tab_ids == [1, 2]
    assert request.tab_id is None
    assert request.props == {"index": 0}
    assert request.model_extra == {"x": 1}


def test_read_request_accepts_string_ids() -> None:
    assert read_request({"type": "request", "data": {"id": "a-1", "method": "list"}}).id == "a-1"


@pytest.mark.parametrize(
    ("frame", "reason"),
    [
        ({"type": "request", "data": {"method": "list"}}, "request has no id"),
        ({"type": "request", "data": {"id": True, "method": "list"}}, "request id is invalid: True"),
        ({"type": "request", "data": {"id": [1], "method": "list"}}, "request id is invalid: [1]"),
        ({"type": "request"}, "frame has no data object"),
        (["request"], "frame is not an object"),
    ],
)
def test_read_request_rejects_unattributable_frames(frame: object, reason: str) -> None:
    with pytest.raises(MalformedRequestError) as exc_info:
        read_request(frame)

    assert exc_info.value.request_id is None
    assert exc_info.value.reason == reason


def test_read_request_attributes_rejection_when_id_is_readable() -> None:
    with pytest.raises(MalformedRequestError) as no_method:
        read_request({"type": "request", "data": {"id": 4}})
    with pytest.raises(MalformedRequestError) as bad_type:
        read_request({"type": "response", "data": {"id": 5, "method": "list"}})

    assert no_method.value.request_id == 4
    assert no_method.value.reason == "request has no method"
    assert bad_type.value.request_id == 5
    assert "unsupported frame type" in bad_type.value.reason


def test_request_frame_uses_wire_names() -> None:
    frame = Request(id=1, method="update", tab_id=9, props={"pinned": True}).to_frame()

    assert frame == {"type": "request", "data": {"id": 1, "method": "update", "tabId": 9, "props": {"pinned": True}}}


def test_response_and_event_frames() -> None:
    assert Response(id=None, status="error", info="bad").to_frame() == {
        "type": "response",
        "data": {"id": None, "status": "error", "info": "bad"},
    }
    assert Response(id=2, status="success").to_frame()["data"]["info"] == {}
    assert Event(kind=EventKind.REMOVED, data={"tabId": 1}).to_frame() == {
        "type": "event",
        "data": {"type": "removed", "data": {"tabId": 1}},
    }


def test_read_reply() -> None:
    response = read_reply({"type": "response", "data": {"id": 7, "status": "query", "info": []}})
    event = read_reply({"type": "event", "data": {"type": "created", "data": {"id": 3}}})

    assert isinstance(response, Response)
    assert response.ok
    assert isinstance(event, Event)
    assert event.kind is EventKind.CREATED
    assert read_reply({"type": "request", "data": {"id": 1, "method": "list"}}) is None
    assert read_reply({"type": "event"}) is None
