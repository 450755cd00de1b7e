#!/usr/bin/env python3
"""Display-side CLI: request actions from the controller and show its status."""

import asyncio
import logging
from typing import Optional

import click

from action_mailbox import DisplayMailbox
from config import load_config
from constants import SNAPSHOT_REFRESH_INTERVAL, WIDGET_RELOAD_DELAY
from models import ActionKind, Status, StatusSnapshot
from shared_store import SharedStore, build_store

logger = logging.getLogger(__name__)

_STATUS_TEXT = {
    Status.ONLINE: "Online",
    Status.OFFLINE: "Offline",
    Status.UNKNOWN: "Unknown",
}


def format_snapshot(snapshot: StatusSnapshot) -> str:
    lines = [f"PC status: {_STATUS_TEXT[snapshot.status]}"]
    if snapshot.endpoint is not None:
        validity = "" if snapshot.endpoint.is_valid else " (invalid)"
        lines.append(f"Endpoint: {snapshot.endpoint.base_url}{validity}")
    if snapshot.last_error:
        lines.append(f"Error: {snapshot.last_error}")
    else:
        lines.append(f"Last updated: {snapshot.observed_at.astimezone():%H:%M:%S}")
    return "\n".join(lines)


async def _with_store(store: SharedStore, func):
    await store.connect()
    try:
        return await func(DisplayMailbox(store))
    finally:
        await store.close()


def _open_store(ctx: click.Context) -> SharedStore:
    factory = ctx.obj.get("store_factory")
    if factory is not None:
        return factory()
    try:
        config = load_config(ctx.obj.get("config_path"))
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e))
    return build_store(config['store'])


@click.group()
@click.option("--config", "config_path", default=None, help="Path to the controller YAML config")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], verbose: bool):
    """Talk to the PC controller through its shared mailbox."""
    ctx.ensure_object(dict)
    ctx.obj.setdefault("config_path", config_path)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@cli.command()
@click.argument("action", type=click.Choice([k.value for k in ActionKind]))
@click.option("--wait", default=WIDGET_RELOAD_DELAY, show_default=True, type=float,
              help="Seconds to wait before reading the status back")
@click.pass_context
def request(ctx: click.Context, action: str, wait: float):
    """Ask the controller to turn the PC on/off or refresh its status."""
    kind = ActionKind(action)

    async def _run(mailbox: DisplayMailbox):
        await mailbox.request_action(kind)
        if wait > 0:
            await asyncio.sleep(wait)
        return await mailbox.read_snapshot()

    snapshot = asyncio.run(_with_store(_open_store(ctx), _run))
    click.echo(f"Requested {kind.value}")
    click.echo(format_snapshot(snapshot))


@cli.command()
@click.option("--watch", is_flag=True, help="Keep re-reading the status")
@click.option("--interval", default=SNAPSHOT_REFRESH_INTERVAL, show_default=True, type=float,
              help="Seconds between reads with --watch")
@click.pass_context
def status(ctx: click.Context, watch: bool, interval: float):
    """Show the latest status published by the controller."""

    async def _run(mailbox: DisplayMailbox):
        while True:
            click.echo(format_snapshot(await mailbox.read_snapshot()))
            if not watch:
                return
            await asyncio.sleep(interval)
            click.echo()

    try:
        asyncio.run(_with_store(_open_store(ctx), _run))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    cli()
