"""Duplex channel to the controller process."""

from tabbridge.channels.base import Connection, Connector, MalformedFrame, StreamConnection
from tabbridge.channels.manager import ChannelManager
from tabbridge.channels.native import NativeProcessConnector
from tabbridge.channels.policy import IMMEDIATE, ReconnectPolicy
from tabbridge.channels.unix import UnixSocketConnector

__all__ = [
    "IMMEDIATE",
    "ChannelManager",
    "Connection",
    "Connector",
    "MalformedFrame",
    "NativeProcessConnector",
    "ReconnectPolicy",
    "StreamConnection",
    "UnixSocketConnector",
]
