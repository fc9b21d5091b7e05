"""Envelope models exchanged over the duplex channel.

Every frame on the wire is a JSON object ``{"type": ..., "data": ...}``:

* ``request``  -- controller to bridge, ``data`` is a :class:`Request`
* ``response`` -- bridge to controller, ``data`` is a :class:`Response`
* ``event``    -- bridge to controller, ``data`` is an :class:`Event`
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tabbridge.errors import MalformedRequestError

CorrelationId: TypeAlias = int | float | str
Frame: TypeAlias = dict[str, Any]


class FrameType(StrEnum):
    REQUEST = "request"
    RESPONSE = "response"
    EVENT = "event"


class Status(StrEnum):
    SUCCESS = "success"
    ERROR = "error"


class EventKind(StrEnum):
    """Host lifecycle signals relayed to the controller."""

    ACTIVATED = "activated"
    UPDATED = "updated"
    CREATED = "created"
    MOVED = "moved"
    REMOVED = "removed"
    ATTACHED = "attached"
    DETACHED = "detached"


class Request(BaseModel):
    """Inbound unit of work.

    Addressing fields and ``props`` are opaque here; unknown fields are kept so
    capabilities can read them.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    id: CorrelationId
    method: str
    tab_id: Any = Field(default=None, alias="tabId")
    tab_ids: Any = Field(default=None, alias="tabIds")
    props: Any = None

    def to_frame(self) -> Frame:
        return {
            "type": FrameType.REQUEST.value,
            "data": self.model_dump(mode="json", by_alias=True, exclude_none=True),
        }


class Response(BaseModel):
    """Outbound result correlated to one request. ``id`` is ``None`` when unattributable."""

    id: CorrelationId | None
    status: str
    info: Any = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status != Status.ERROR

    def to_frame(self) -> Frame:
        return {"type": FrameType.RESPONSE.value, "data": self.model_dump(mode="json")}


class Event(BaseModel):
    """Outbound unsolicited notification."""

    model_config = ConfigDict(populate_by_name=True)

    kind: EventKind = Field(alias="type")
    data: Any = None

    def to_frame(self) -> Frame:
        return {"type": FrameType.EVENT.value, "data": self.model_dump(mode="json", by_alias=True)}


def _is_correlation_id(value: Any) -> bool:
    return isinstance(value, (int, float, str)) and not isinstance(value, bool)


def read_request(frame: Any) -> Request:
    """Validate one inbound frame as a request envelope.

    Raises :class:`MalformedRequestError` carrying the correlation id whenever
    one could be read, so the rejection can still be attributed.
    """
    if not isinstance(frame, Mapping):
        raise MalformedRequestError("frame is not an object")
    data = frame.get("data")
    if not isinstance(data, Mapping):
        raise MalformedRequestError("frame has no data object")

    raw_id = data.get("id")
    request_id = raw_id if _is_correlation_id(raw_id) else None
    frame_type = frame.get("type")
    if frame_type != FrameType.REQUEST:
        raise MalformedRequestError(f"unsupported frame type: {frame_type!r}", request_id)
    if request_id is None:
        reason = "request has no id" if raw_id is None else f"request id is invalid: {raw_id!r}"
        raise MalformedRequestError(reason)

    method = data.get("method")
    if method is None or method == "":
        raise MalformedRequestError("request has no method", request_id)
    if not isinstance(method, str):
        raise MalformedRequestError(f"request method is invalid: {method!r}", request_id)

    try:
        return Request.model_validate(data)
    except ValidationError as exc:
        raise MalformedRequestError(f"request is invalid: {exc.error_count()} error(s)", request_id) from exc


def read_reply(frame: Mapping[str, Any]) -> Response | Event | None:
    """Decode a bridge-to-controller frame; ``None`` for anything else."""
    frame_type = frame.get("type")
    data = frame.get("data")
    if not isinstance(data, Mapping):
        return None
    if frame_type == FrameType.RESPONSE:
        return Response.model_validate(data)
    if frame_type == FrameType.EVENT:
        return Event.model_validate(data)
    return None
