"""Classify tasks in the current project by the other project they belong to."""

from __future__ import annotations

from typing import Any

from taskrelay.asana.client import AsanaClient
from taskrelay.asana.models import Event
from taskrelay.config import RulesConfig
from taskrelay.rules.base import Rule, RuleOutcome
from taskrelay.utils.logging import get_logger

log = get_logger(__name__)


class CustomFieldRule(Rule):
    """Set an enum custom field to the name of the task's second project.

    Only tasks that live in the current project plus at least one other
    project qualify, and only while the field is still empty.
    """

    def __init__(self, client: AsanaClient, config: RulesConfig) -> None:
        self._client = client
        self._field = config.custom_field
        self._current_project = config.current_project

    @property
    def name(self) -> str:
        return "custom_field"

    def applies(self, event: Event) -> bool:
        return bool(self._field) and event.matches("added", "task", "section")

    def _find_field(self, task: dict[str, Any]) -> dict[str, Any] | None:
        for field in task.get("custom_fields") or []:
            if field.get("gid") == self._field:
                return field
        return None

    async def apply(self, event: Event) -> RuleOutcome:
        task = await self._client.get_task(event.resource.gid)
        project_names = [p.get("name", "") for p in task.get("projects") or []]

        if self._current_project not in project_names:
            return RuleOutcome.SKIPPED
        others = [n for n in project_names if n and n != self._current_project]
        if not others:
            return RuleOutcome.SKIPPED

        field = self._find_field(task)
        if field is None:
            return RuleOutcome.SKIPPED
        if field.get("enum_value"):
            return RuleOutcome.SATISFIED

        option = await self._client.find_or_create_enum_option(self._field, others[0])
        await self._client.set_task_custom_field(
            event.resource.gid, self._field, option["gid"]
        )
        log.info(
            "custom_field_set",
            task=event.resource.gid,
            field=self._field,
            option=option["gid"],
            value=others[0],
        )
        return RuleOutcome.APPLIED
