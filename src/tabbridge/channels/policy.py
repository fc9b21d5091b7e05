"""Reconnect delay policy."""

from __future__ import annotations

from dataclasses import dataclass

from tabbridge.config import Settings


@dataclass(frozen=True)
class ReconnectPolicy:
    """Delay before the n-th consecutive reconnect attempt.

    Attempts are never limited. ``attempt`` counts consecutive failed
    connections and starts at 1; the streak is reset by the channel manager once
    a connection delivers a frame.
    """

    immediate_first: bool = True
    base_delay: float = 0.1
    max_delay: float = 5.0
    multiplier: float = 2.0

    def delay(self, attempt: int) -> float:
        if attempt < 1:
            return 0.0
        if self.immediate_first:
            if attempt == 1:
                return 0.0
            attempt -= 1
        return min(self.max_delay, self.base_delay * self.multiplier ** (attempt - 1))

    @classmethod
    def from_settings(cls, settings: Settings) -> ReconnectPolicy:
        return cls(
            immediate_first=settings.reconnect_immediate_first,
            base_delay=settings.reconnect_base_delay,
            max_delay=settings.reconnect_max_delay,
            multiplier=settings.reconnect_multiplier,
        )


IMMEDIATE = ReconnectPolicy(immediate_first=True, base_delay=0.0, max_delay=0.0)
