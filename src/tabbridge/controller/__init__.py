"""Controller side of the channel."""

from tabbridge.controller.client import TabsClient
from tabbridge.controller.endpoints import BridgeListener, stdio_connection
from tabbridge.controller.store import TabStore

__all__ = ["BridgeListener", "TabStore", "TabsClient", "stdio_connection"]
