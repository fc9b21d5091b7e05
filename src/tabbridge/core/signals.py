"""Host lifecycle signals, one blinker signal per event kind."""

from __future__ import annotations

from blinker import Signal

from tabbridge.envelope import EventKind


class HostSignals:
    """Signals a host fires when its tab set changes.

    Keyword arguments per signal:

    * ``activated`` -- ``tab_id``, ``previous``, ``window_id``
    * ``updated``   -- ``tab_id``, ``delta``
    * ``created``   -- ``tab``
    * ``moved``     -- ``tab_id``, ``window_id``, ``from_index``, ``to_index``
    * ``removed``   -- ``tab_id``, ``window_id``, ``is_window_closing``
    * ``attached``  -- ``tab_id``, ``window_id``, ``position``
    * ``detached``  -- ``tab_id``, ``window_id``, ``position``
    """

    def __init__(self) -> None:
        self.activated = Signal("tabbridge.host.activated")
        self.updated = Signal("tabbridge.host.updated")
        self.created = Signal("tabbridge.host.created")
        self.moved = Signal("tabbridge.host.moved")
        self.removed = Signal("tabbridge.host.removed")
        self.attached = Signal("tabbridge.host.attached")
        self.detached = Signal("tabbridge.host.detached")

    def for_kind(self, kind: EventKind) -> Signal:
        return getattr(self, kind.value)
