"""File tasks added to a "Top Priority" section into the backlog section."""

from __future__ import annotations

from taskrelay.asana.client import AsanaClient
from taskrelay.asana.models import Event
from taskrelay.config import RulesConfig
from taskrelay.rules.base import Rule, RuleOutcome
from taskrelay.utils.logging import get_logger

log = get_logger(__name__)


class BacklogRule(Rule):
    def __init__(self, client: AsanaClient, config: RulesConfig) -> None:
        self._client = client
        self._backlog = config.backlog_section
        self._label = config.backlog_label.lower()
        self._ignored = set(config.backlog_ignore_sections)

    @property
    def name(self) -> str:
        return "backlog"

    def applies(self, event: Event) -> bool:
        return bool(self._backlog) and event.matches("added", "task", "section")

    async def apply(self, event: Event) -> RuleOutcome:
        assert event.parent is not None
        section = await self._client.get_section(event.parent.gid)

        if (section.get("name") or "").lower() != self._label:
            return RuleOutcome.SKIPPED
        section_gid = section.get("gid", event.parent.gid)
        if section_gid in self._ignored:
            return RuleOutcome.SKIPPED
        # Moving into the backlog fires another "added to section" event
        if section_gid == self._backlog:
            return RuleOutcome.SATISFIED

        await self._client.add_task_to_section(self._backlog, event.resource.gid)
        log.info(
            "task_filed_to_backlog",
            task=event.resource.gid,
            section=section_gid,
            backlog=self._backlog,
        )
        return RuleOutcome.APPLIED
