"""Build correlated response envelopes and hand them to the channel."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from loguru import logger

from tabbridge.core.capabilities import ECHO_STATUS, Failure, Outcome, Success
from tabbridge.envelope import CorrelationId, Frame, Response, Status


class FrameSink(Protocol):
    def send(self, frame: Frame) -> None: ...


@dataclass
class Invocation:
    """A capability call in flight, settled at most once."""

    id: CorrelationId
    method: str
    settled: bool = False


class Responder:
    def __init__(self, channel: FrameSink) -> None:
        self.channel = channel

    def respond_success(self, request_id: CorrelationId, content: Any = None, *, method: str | None = None) -> Response:
        status = method if method in ECHO_STATUS else Status.SUCCESS.value
        response = Response(id=request_id, status=status, info={} if content is None else content)
        self.channel.send(response.to_frame())
        return response

    def respond_error(self, request_id: CorrelationId | None, message: str) -> Response:
        response = Response(id=request_id, status=Status.ERROR.value, info=message)
        self.channel.send(response.to_frame())
        return response

    def settle(self, invocation: Invocation, outcome: Outcome) -> bool:
        """Send the terminal response for ``invocation``; later outcomes are ignored."""
        if invocation.settled:
            logger.warning(
                "responder.duplicate_outcome id={} method={} outcome={!r}",
                invocation.id,
                invocation.method,
                outcome,
            )
            return False
        invocation.settled = True
        match outcome:
            case Success(value):
                try:
                    self.respond_success(invocation.id, value, method=invocation.method)
                except (TypeError, ValueError) as exc:
                    # pydantic serialization errors are ValueErrors
                    logger.warning(
                        "responder.unserializable id={} method={} error={}", invocation.id, invocation.method, exc
                    )
                    self.respond_error(invocation.id, f"result of {invocation.method} is not serializable: {exc}")
            case Failure(reason):
                self.respond_error(invocation.id, reason)
        return True
