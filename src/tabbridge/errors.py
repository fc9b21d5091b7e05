"""Application-level exception types for tabbridge."""

from __future__ import annotations


class TabBridgeError(Exception):
    """Base exception for tabbridge."""


class ConfigurationError(TabBridgeError):
    """Raised when settings are missing or inconsistent."""


class ChannelError(TabBridgeError):
    """Base exception for channel and transport failures."""


class ChannelClosedError(ChannelError):
    """Raised when reading from or writing to a connection that is gone."""


class FrameDecodeError(ChannelError):
    """Raised when one frame body cannot be decoded into a JSON object."""


class FrameTooLargeError(ChannelError):
    """Raised when a frame exceeds the configured size limit."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"frame of {size} bytes exceeds limit of {limit} bytes")
        self.size = size
        self.limit = limit


class RequestError(TabBridgeError):
    """Base exception for controller-side request failures."""


class RequestFailedError(RequestError):
    """Raised when the bridge answers a request with an error status."""

    def __init__(self, method: str, status: str, info: object) -> None:
        super().__init__(f"{method} failed: {status}: {info}")
        self.method = method
        self.status = status
        self.info = info


class RequestTimeoutError(RequestError):
    """Raised when no response arrives within the request timeout."""

    def __init__(self, method: str, timeout_seconds: float) -> None:
        super().__init__(f"{method} timed out after {timeout_seconds:g} seconds")
        self.method = method
        self.timeout_seconds = timeout_seconds


class TabNotFoundError(TabBridgeError):
    """Raised by the in-memory host for an unknown tab id."""

    def __init__(self, tab_id: object) -> None:
        super().__init__(f"no such tab: {tab_id}")
        self.tab_id = tab_id


class MalformedRequestError(TabBridgeError):
    """Raised when an inbound frame cannot be accepted as a request.

    ``request_id`` is the correlation id when one could be read, else ``None``.
    """

    def __init__(self, reason: str, request_id: object = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.request_id = request_id
