"""Keep one webhook per project (and one for the team) pointed at this service."""

from __future__ import annotations

from dataclasses import dataclass, field

from taskrelay.asana.client import AsanaClient, AsanaError
from taskrelay.asana.models import Webhook, WebhookFilter
from taskrelay.utils.logging import get_logger

log = get_logger(__name__)

# Team-level hooks only report project creation
PROJECT_ADDED_FILTERS = [WebhookFilter(resource_type="project", action="added")]

@dataclass
class ReconcileReport:
    created: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

class WebhookManager:
    def __init__(
        self,
        client: AsanaClient,
        workspace: str,
        team: str,
        target_url: str,
    ) -> None:
        self._client = client
        self._workspace = workspace
        self._team = team
        self._target_url = target_url

    # ------------------------------------------------------------------
    # Single resource
    # ------------------------------------------------------------------

    async def _delete(self, hook: Webhook, report: ReconcileReport | None = None) -> None:
        await self._client.delete_webhook(hook.gid)
        log.info(
            "webhook_deleted",
            webhook=hook.gid,
            resource=hook.resource.gid,
            target=hook.target,
        )
        if report is not None:
            report.deleted.append(hook.gid)

    async def _sync(
        self,
        resource_gid: str,
        hooks: list[Webhook],
        filters: list[WebhookFilter] | None = None,
        report: ReconcileReport | None = None,
    ) -> bool:
        """Leave *resource_gid* with exactly one hook targeting this service.

        The first hook already targeting the URL is kept, whatever Asana says
        about ``active``, and any further ones on the same resource are
        deleted. Hooks pointing elsewhere are only touched when none targets
        the URL: then the first of them is deleted and a new hook created.
        Returns True when a hook was created.
        """
        matches = [h for h in hooks if h.resource.gid == resource_gid]
        current = [h for h in matches if h.target == self._target_url]
        if current:
            for extra in current[1:]:
                await self._delete(extra, report)
            return False

        if matches:
            await self._delete(matches[0], report)

        # Asana performs the X-Hook-Secret handshake before this returns
        hook = await self._client.create_webhook(resource_gid, self._target_url, filters)
        log.info("webhook_created", webhook=hook.gid, resource=resource_gid)
        if report is not None:
            report.created.append(resource_gid)
        return True

    async def ensure_hook(
        self,
        resource_gid: str,
        hooks: list[Webhook] | None = None,
        filters: list[WebhookFilter] | None = None,
    ) -> bool:
        """Make sure *resource_gid* has a hook targeting this service.

        Returns True when a hook was (re)created, False when one was already
        in place. Errors from the API propagate.
        """
        if hooks is None:
            hooks = await self._client.list_webhooks(self._workspace, resource=resource_gid)
        return await self._sync(resource_gid, hooks, filters)

    # ------------------------------------------------------------------
    # Whole workspace
    # ------------------------------------------------------------------

    async def reconcile_all(self) -> ReconcileReport:
        """One pass over every project in the workspace plus the team hook.

        Never raises: a failure on one project is logged and the pass moves
        on to the next.
        """
        report = ReconcileReport()
        try:
            hooks = await self._client.list_webhooks(self._workspace)
            projects = await self._client.list_projects(self._workspace)
        except AsanaError as e:
            log.error("webhook_reconcile_aborted", error=str(e), status=e.status)
            return report
        except Exception:
            log.exception("webhook_reconcile_aborted")
            return report

        for project in projects:
            gid = project.get("gid")
            if not gid:
                continue
            try:
                if not await self._sync(gid, hooks, report=report):
                    report.unchanged.append(gid)
            except AsanaError as e:
                log.warning(
                    "webhook_reconcile_failed",
                    project=gid,
                    name=project.get("name", ""),
                    status=e.status,
                    error=str(e),
                )
                report.failed.append(gid)
            except Exception:
                log.exception("webhook_reconcile_error", project=gid)
                report.failed.append(gid)

        await self.ensure_team_hook(hooks, report)

        log.info(
            "webhook_reconcile_done",
            projects=len(projects),
            created=len(report.created),
            deleted=len(report.deleted),
            unchanged=len(report.unchanged),
            failed=len(report.failed),
        )
        return report

    async def ensure_team_hook(
        self, hooks: list[Webhook], report: ReconcileReport | None = None
    ) -> None:
        """Best effort: any failure here is logged at debug level and dropped."""
        if not self._team:
            return
        try:
            created = await self._sync(self._team, hooks, PROJECT_ADDED_FILTERS, report)
        except Exception as e:
            log.debug("team_webhook_skipped", team=self._team, error=str(e))
            return
        if not created and report is not None:
            report.unchanged.append(self._team)

    async def purge_hooks(self) -> int:
        """Delete every webhook registered in the workspace."""
        hooks = await self._client.list_webhooks(self._workspace)
        for hook in hooks:
            await self._client.delete_webhook(hook.gid)
            log.info("webhook_deleted", webhook=hook.gid, resource=hook.resource.gid)
        return len(hooks)
