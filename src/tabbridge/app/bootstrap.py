"""Runtime bootstrap helpers."""

from __future__ import annotations

from tabbridge.app.runtime import BridgeRuntime
from tabbridge.channels.base import Connector
from tabbridge.channels.manager import ChannelManager
from tabbridge.channels.native import NativeProcessConnector
from tabbridge.channels.policy import ReconnectPolicy
from tabbridge.channels.unix import UnixSocketConnector
from tabbridge.config import Settings
from tabbridge.core.capabilities import TabsHost
from tabbridge.core.signals import HostSignals


def build_connector(settings: Settings) -> Connector:
    if settings.transport == "native":
        return NativeProcessConnector(settings.native_argv(), max_frame_bytes=settings.max_frame_bytes)
    return UnixSocketConnector(settings.socket_dir, max_frame_bytes=settings.max_frame_bytes)


def build_runtime(
    settings: Settings,
    host: TabsHost,
    signals: HostSignals,
    *,
    connector: Connector | None = None,
) -> BridgeRuntime:
    """Build a bridge runtime for ``host`` from settings."""
    channel = ChannelManager(
        connector or build_connector(settings),
        settings.channel_name,
        policy=ReconnectPolicy.from_settings(settings),
        outbox_limit=settings.outbox_limit,
    )
    return BridgeRuntime(channel, host, signals)
