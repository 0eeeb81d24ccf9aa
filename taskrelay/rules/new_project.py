"""Subscribe to events of projects created after startup."""

from __future__ import annotations

from typing import TYPE_CHECKING

from taskrelay.asana.models import Event
from taskrelay.rules.base import Rule, RuleOutcome
from taskrelay.utils.logging import get_logger

if TYPE_CHECKING:
    from taskrelay.webhooks.lifecycle import WebhookManager

log = get_logger(__name__)


class NewProjectRule(Rule):
    def __init__(self, manager: WebhookManager) -> None:
        self._manager = manager

    @property
    def name(self) -> str:
        return "new_project"

    def applies(self, event: Event) -> bool:
        return event.matches("added", "project")

    async def apply(self, event: Event) -> RuleOutcome:
        created = await self._manager.ensure_hook(event.resource.gid)
        if not created:
            return RuleOutcome.SATISFIED
        log.info("new_project_subscribed", project=event.resource.gid)
        return RuleOutcome.APPLIED
