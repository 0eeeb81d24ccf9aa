"""Webhook HTTP server using aiohttp."""

from __future__ import annotations

import json
from typing import Any

from aiohttp import web

from taskrelay.config import ServerConfig
from taskrelay.utils.logging import get_logger
from taskrelay.webhooks.dispatcher import EventDispatcher

log = get_logger(__name__)

HOOK_SECRET_HEADER = "X-Hook-Secret"


class WebhookServer:
    """Answers handshakes and hands event batches to the dispatcher."""

    def __init__(self, config: ServerConfig, dispatcher: EventDispatcher) -> None:
        self._config = config
        self._dispatcher = dispatcher
        self._runner: web.AppRunner | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        app = self._build_app()
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.bind, self._config.port)
        await site.start()
        log.info(
            "webhook_server_started",
            bind=self._config.bind,
            port=self._config.port,
            path=self._path,
        )

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        log.info("webhook_server_stopped")

    # ------------------------------------------------------------------
    # App construction
    # ------------------------------------------------------------------

    @property
    def _path(self) -> str:
        path = self._config.path
        return path if path.startswith("/") else f"/{path}"

    def _build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post(self._path, self._handle_webhook)
        app.router.add_get("/health", self._handle_health)
        return app

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    async def _handle_webhook(self, request: web.Request) -> web.Response:
        # Handshake: echo the secret before looking at the body
        secret = request.headers.get(HOOK_SECRET_HEADER)
        if secret:
            log.info("webhook_handshake")
            return web.Response(status=200, headers={HOOK_SECRET_HEADER: secret})

        try:
            payload: Any = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return web.Response(status=400, text="Invalid JSON")

        events = payload.get("events") if isinstance(payload, dict) else None
        if isinstance(events, list) and events:
            # Acknowledge now; rules run after the response is sent
            self._dispatcher.submit(events)
            log.info("webhook_events_received", count=len(events))

        return web.Response(status=200)

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "ok"})
