"""Webhook intake, dispatch and subscription management."""

from taskrelay.webhooks.dispatcher import EventDispatcher
from taskrelay.webhooks.lifecycle import PROJECT_ADDED_FILTERS, ReconcileReport, WebhookManager
from taskrelay.webhooks.server import HOOK_SECRET_HEADER, WebhookServer

__all__ = [
    "EventDispatcher",
    "WebhookManager",
    "ReconcileReport",
    "PROJECT_ADDED_FILTERS",
    "WebhookServer",
    "HOOK_SECRET_HEADER",
]
