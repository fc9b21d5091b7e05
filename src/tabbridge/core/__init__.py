"""Message-correlation core: dispatch, responses and events."""

from tabbridge.core.capabilities import METHODS, Failure, Outcome, Success, TabsHost, capability_table, invoke
from tabbridge.core.dispatcher import Dispatcher
from tabbridge.core.emitter import EventEmitter
from tabbridge.core.responder import Invocation, Responder
from tabbridge.core.signals import HostSignals

__all__ = [
    "METHODS",
    "Dispatcher",
    "EventEmitter",
    "Failure",
    "HostSignals",
    "Invocation",
    "Outcome",
    "Responder",
    "Success",
    "TabsHost",
    "capability_table",
    "invoke",
]
