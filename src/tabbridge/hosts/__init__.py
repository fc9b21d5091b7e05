"""Host implementations."""

from tabbridge.hosts.memory import MemoryTabs

__all__ = ["MemoryTabs"]
