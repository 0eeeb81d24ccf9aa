"""Asana API client and payload models."""

from taskrelay.asana.client import AsanaClient, AsanaError
from taskrelay.asana.models import Event, ResourceRef, Webhook, WebhookFilter

__all__ = [
    "AsanaClient",
    "AsanaError",
    "Event",
    "ResourceRef",
    "Webhook",
    "WebhookFilter",
]
