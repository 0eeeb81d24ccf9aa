"""Common interface for event rules."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum

from taskrelay.asana.client import AsanaError
from taskrelay.asana.models import Event
from taskrelay.utils.logging import get_logger

log = get_logger(__name__)


class RuleOutcome(str, Enum):
    SKIPPED = "skipped"  # predicate false
    SATISFIED = "satisfied"  # desired state already holds
    APPLIED = "applied"
    FAILED = "failed"


class Rule(ABC):
    """One independent policy applied to every incoming event.

    Subclasses implement ``applies`` (a cheap check on the event shape) and
    ``apply`` (lookups and mutations). Callers go through ``run``, which
    never raises.
    """

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def applies(self, event: Event) -> bool: ...

    @abstractmethod
    async def apply(self, event: Event) -> RuleOutcome: ...

    async def run(self, event: Event) -> RuleOutcome:
        if not self.applies(event):
            return RuleOutcome.SKIPPED
        try:
            outcome = await self.apply(event)
        except AsanaError as e:
            log.warning(
                "rule_failed",
                rule=self.name,
                resource=event.resource.gid,
                status=e.status,
                errors=e.errors,
                error=str(e),
            )
            return RuleOutcome.FAILED
        except Exception:
            log.exception("rule_error", rule=self.name, resource=event.resource.gid)
            return RuleOutcome.FAILED

        log.debug(
            "rule_finished",
            rule=self.name,
            resource=event.resource.gid,
            outcome=outcome.value,
        )
        return outcome
