"""tabbridge - relay tab commands and events over one duplex channel."""

from tabbridge.app import BridgeRuntime, build_runtime
from tabbridge.channels import ChannelManager, ReconnectPolicy
from tabbridge.core import Dispatcher, EventEmitter, HostSignals, Responder, TabsHost

__version__ = "0.1.0"

__all__ = [
    "BridgeRuntime",
    "ChannelManager",
    "Dispatcher",
    "EventEmitter",
    "HostSignals",
    "ReconnectPolicy",
    "Responder",
    "TabsHost",
    "build_runtime",
]
