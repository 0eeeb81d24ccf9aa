"""Event rules and the fixed order they run in."""

from __future__ import annotations

from typing import TYPE_CHECKING

from taskrelay.asana.client import AsanaClient
from taskrelay.config import Settings
from taskrelay.rules.backlog import BacklogRule
from taskrelay.rules.base import Rule, RuleOutcome
from taskrelay.rules.custom_field import CustomFieldRule
from taskrelay.rules.new_project import NewProjectRule
from taskrelay.rules.project_tag import ProjectTagRule

if TYPE_CHECKING:
    from taskrelay.webhooks.lifecycle import WebhookManager

__all__ = [
    "Rule",
    "RuleOutcome",
    "ProjectTagRule",
    "CustomFieldRule",
    "BacklogRule",
    "NewProjectRule",
    "build_rules",
]


def build_rules(
    client: AsanaClient, settings: Settings, manager: WebhookManager
) -> list[Rule]:
    """Return the rule set in the order every event is run through it."""
    return [
        ProjectTagRule(client, settings.asana.workspace, settings.rules),
        CustomFieldRule(client, settings.rules),
        BacklogRule(client, settings.rules),
        NewProjectRule(manager),
    ]
