"""tabbridge command line."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, NoReturn

import typer
from loguru import logger

from tabbridge.app.bootstrap import build_runtime
from tabbridge.config import Settings, load_settings
from tabbridge.controller.client import TabsClient
from tabbridge.controller.endpoints import BridgeListener, stdio_connection
from tabbridge.controller.store import TabStore
from tabbridge.core.signals import HostSignals
from tabbridge.errors import ConfigurationError, TabBridgeError
from tabbridge.hosts.memory import MemoryTabs
from tabbridge.logging_utils import configure_logging

app = typer.Typer(
    name="tabbridge",
    help="Relay tab commands and events between a host and a controller process.",
    add_completion=False,
)

ChannelOption = typer.Option(None, "--channel", "-c", help="Channel name agreed with the other side")
SocketDirOption = typer.Option(None, "--socket-dir", help="Directory holding <channel>.sock")
LogLevelOption = typer.Option(None, "--log-level", help="Log level")


def _exit_with_error(message: str) -> NoReturn:
    typer.echo(f"error: {message}", err=True)
    raise typer.Exit(1)


@app.command()
def serve(
    channel: str | None = ChannelOption,
    transport: str | None = typer.Option(None, "--transport", "-t", help="unix or native"),
    command: str | None = typer.Option(None, "--command", help="Controller command line for the native transport"),
    socket_dir: Path | None = SocketDirOption,
    urls: list[str] | None = typer.Option(None, "--open", help="Seed the in-memory host with this URL"),
    log_level: str | None = LogLevelOption,
) -> None:
    """Run the bridge against the in-memory host."""
    if transport not in (None, "unix", "native"):
        _exit_with_error(f"unknown transport: {transport}")
    settings = load_settings(
        channel_name=channel,
        transport=transport,
        native_command=command,
        socket_dir=socket_dir,
        log_level=log_level,
    )
    configure_logging(settings.log_level)
    signals = HostSignals()
    host = MemoryTabs(signals)
    host.seed(urls or ["about:blank"])
    try:
        runtime = build_runtime(settings, host, signals)
    except ConfigurationError as exc:
        _exit_with_error(str(exc))
    try:
        asyncio.run(runtime.run_forever())
    except KeyboardInterrupt:
        logger.info("bridge.interrupted")


async def _watch_connection(client: TabsClient) -> None:
    store = TabStore()
    store.load(await client.list_tabs())
    for tab in store.ordered():
        marker = "*" if tab.active else " "
        logger.info("{} {}.{}\t{}\t{}", marker, tab.window_id, tab.id, tab.title, tab.url)
    async for event in client.events():
        try:
            store.apply(event)
        except (TabBridgeError, ValueError, KeyError) as exc:
            logger.warning("watch.apply.failed kind={} error={}", event.kind.value, exc)
        logger.info("watch.event kind={} data={}", event.kind.value, json.dumps(event.data, ensure_ascii=False))
    logger.info("watch.disconnected open={} closed={}", len(store.open), len(store.closed))


async def _watch(settings: Settings, stdio: bool) -> None:
    if stdio:
        connection = await stdio_connection(settings.channel_name, max_frame_bytes=settings.max_frame_bytes)
        async with TabsClient(connection, timeout_seconds=settings.request_timeout_seconds) as client:
            await _watch_connection(client)
        return
    async with BridgeListener(settings.socket_path, max_frame_bytes=settings.max_frame_bytes) as listener:
        while True:
            connection = await listener.accept()
            async with TabsClient(connection, timeout_seconds=settings.request_timeout_seconds) as client:
                try:
                    await _watch_connection(client)
                except TabBridgeError as exc:
                    logger.warning("watch.connection.failed error={}", exc)


@app.command()
def watch(
    channel_arg: str | None = typer.Argument(None, metavar="[CHANNEL]", help="Channel name, as passed by the bridge"),
    channel: str | None = ChannelOption,
    socket_dir: Path | None = SocketDirOption,
    stdio: bool = typer.Option(False, "--stdio", help="Speak over stdin/stdout (native transport)"),
    log_level: str | None = LogLevelOption,
) -> None:
    """Act as controller: list tabs, then mirror and log every event."""
    settings = load_settings(channel_name=channel or channel_arg, socket_dir=socket_dir, log_level=log_level)
    configure_logging(settings.log_level, profile="console")
    try:
        asyncio.run(_watch(settings, stdio))
    except KeyboardInterrupt:
        logger.info("watch.interrupted")


def _parse_props(raw: str | None) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"not valid JSON: {exc}", param_hint="--props") from exc


async def _call(settings: Settings, method: str, **kwargs: Any) -> dict[str, Any]:
    async with BridgeListener(settings.socket_path, max_frame_bytes=settings.max_frame_bytes) as listener:
        connection = await listener.accept()
        async with TabsClient(connection, timeout_seconds=settings.request_timeout_seconds) as client:
            response = await client.request(method, **kwargs)
    return response.model_dump(mode="json")


@app.command()
def call(
    method: str = typer.Argument(..., help="Method name, e.g. list, query, create, remove"),
    tab_id: int | None = typer.Option(None, "--tab-id", help="tabId of the request"),
    tab_ids: list[int] | None = typer.Option(None, "--tab-ids", help="tabIds of the request (repeatable)"),
    props: str | None = typer.Option(None, "--props", help="props of the request as JSON"),
    channel: str | None = ChannelOption,
    socket_dir: Path | None = SocketDirOption,
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds to wait for the response"),
    log_level: str | None = LogLevelOption,
) -> None:
    """Act as controller for one request: wait for the bridge, send, print the response."""
    settings = load_settings(
        channel_name=channel,
        socket_dir=socket_dir,
        request_timeout_seconds=timeout,
        log_level=log_level or "WARNING",
    )
    configure_logging(settings.log_level, profile="console")
    parsed = _parse_props(props)
    try:
        response = asyncio.run(_call(settings, method, tab_id=tab_id, tab_ids=tab_ids or None, props=parsed))
    except TabBridgeError as exc:
        _exit_with_error(str(exc))
    typer.echo(json.dumps(response, ensure_ascii=False))
    if response["status"] == "error":
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
