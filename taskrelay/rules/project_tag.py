"""Tag new tasks with the name of the project they were added to."""

from __future__ import annotations

from taskrelay.asana.client import AsanaClient
from taskrelay.asana.models import Event
from taskrelay.config import RulesConfig
from taskrelay.rules.base import Rule, RuleOutcome
from taskrelay.utils.logging import get_logger

log = get_logger(__name__)


class ProjectTagRule(Rule):
    def __init__(self, client: AsanaClient, workspace: str, config: RulesConfig) -> None:
        self._client = client
        self._workspace = workspace
        self._excluded = set(config.tag_excluded_projects)

    @property
    def name(self) -> str:
        return "project_tag"

    def applies(self, event: Event) -> bool:
        return event.matches("added", "task", "project")

    async def apply(self, event: Event) -> RuleOutcome:
        assert event.parent is not None
        project = await self._client.get_project(event.parent.gid)
        project_name = project.get("name", "")

        if not project_name or project_name in self._excluded:
            return RuleOutcome.SKIPPED

        task = await self._client.get_task(event.resource.gid)
        tag_names = {tag.get("name") for tag in task.get("tags") or []}
        if project_name in tag_names:
            return RuleOutcome.SATISFIED

        log.info("project_new_task", project=project_name, task=event.resource.gid)
        tag = await self._client.find_or_create_tag(
            self._workspace, project_name, project.get("color")
        )
        await self._client.add_tag_to_task(event.resource.gid, tag["gid"])
        log.info(
            "tag_added",
            tag=tag["gid"],
            name=project_name,
            task=event.resource.gid,
            task_name=task.get("name", ""),
        )
        return RuleOutcome.APPLIED
