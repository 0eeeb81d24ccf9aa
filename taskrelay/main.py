"""taskrelay entry point: wires everything together and runs the service."""

from __future__ import annotations

import asyncio
import signal
import sys

import click
from pydantic import ValidationError

from taskrelay import __version__
from taskrelay.asana.client import AsanaClient, AsanaError
from taskrelay.config import ConfigError, Settings, load_settings
from taskrelay.rules import build_rules
from taskrelay.utils.logging import get_logger, setup_logging
from taskrelay.webhooks.dispatcher import EventDispatcher
from taskrelay.webhooks.lifecycle import ReconcileReport, WebhookManager
from taskrelay.webhooks.server import WebhookServer

log = get_logger(__name__)


class TaskRelay:
    """Main application: owns the client, rules, dispatcher and server."""

    def __init__(self, settings: Settings, client: AsanaClient | None = None) -> None:
        self.settings = settings
        self.client = client or AsanaClient(settings.asana)
        self.webhooks = WebhookManager(
            self.client,
            workspace=settings.asana.workspace,
            team=settings.asana.team,
            target_url=settings.server.public_url,
        )
        self.dispatcher = EventDispatcher(
            build_rules(self.client, settings, self.webhooks),
            max_queue_size=settings.dispatch.queue_size,
        )
        self.server = WebhookServer(settings.server, self.dispatcher)
        self._reconcile_task: asyncio.Task[ReconcileReport] | None = None

    async def start(self) -> None:
        log.info(
            "taskrelay_starting",
            version=__version__,
            workspace=self.settings.asana.workspace,
            rules=[r.name for r in self.dispatcher.rules],
        )
        await self.dispatcher.start()
        await self.server.start()

        # The listener must be up first: creating a hook triggers a handshake
        self._reconcile_task = asyncio.create_task(
            self.webhooks.reconcile_all(), name="webhook-reconcile"
        )
        log.info("taskrelay_ready")

    async def stop(self) -> None:
        log.info("taskrelay_stopping")
        if self._reconcile_task is not None and not self._reconcile_task.done():
            self._reconcile_task.cancel()
            await asyncio.gather(self._reconcile_task, return_exceptions=True)
        await self.dispatcher.stop()
        await self.server.stop()
        await self.client.close()
        log.info("taskrelay_stopped")


async def run(settings: Settings) -> None:
    app = TaskRelay(settings)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        log.info("shutdown_signal")
        stop_event.set()

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _signal_handler)

    await app.start()

    try:
        if sys.platform == "win32":
            while not stop_event.is_set():
                await asyncio.sleep(1)
        else:
            await stop_event.wait()
    except KeyboardInterrupt:
        pass
    finally:
        await app.stop()


async def purge(settings: Settings) -> int:
    client = AsanaClient(settings.asana)
    try:
        manager = WebhookManager(
            client,
            workspace=settings.asana.workspace,
            team=settings.asana.team,
            target_url=settings.server.public_url,
        )
        return await manager.purge_hooks()
    finally:
        await client.close()


@click.command()
@click.option("--config", "config_path", default=None, help="Path to config YAML file")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
@click.option(
    "--purge-hooks",
    is_flag=True,
    help="Delete every webhook in the workspace and exit",
)
def cli(config_path: str | None, log_level: str | None, purge_hooks: bool) -> None:
    """Start taskrelay, the Asana webhook automation service."""
    try:
        settings = load_settings(config_path)
        if log_level:
            settings.log_level = log_level
        settings.validate_required()
    except (ConfigError, ValidationError) as e:
        raise click.ClickException(str(e)) from e

    setup_logging(level=settings.log_level, json_output=settings.log_json)

    if purge_hooks:
        try:
            count = asyncio.run(purge(settings))
        except AsanaError as e:
            raise click.ClickException(f"Purge failed: {e}") from e
        click.echo(f"Deleted {count} webhook(s).")
        return

    asyncio.run(run(settings))


if __name__ == "__main__":
    cli()
