"""Async Asana REST client over httpx."""

from __future__ import annotations

from typing import Any, AsyncIterator

import httpx

from taskrelay.asana.models import Webhook, WebhookFilter
from taskrelay.config import AsanaConfig
from taskrelay.utils.logging import get_logger

log = get_logger(__name__)

_TASK_FIELDS = ",".join([
    "name",
    "tags.name",
    "projects.name",
    "custom_fields.name",
    "custom_fields.enum_value.name",
])
_PROJECT_FIELDS = "name,color"
_SECTION_FIELDS = "name,project.name"
_CUSTOM_FIELD_FIELDS = "name,enum_options.name,enum_options.enabled"
_WEBHOOK_FIELDS = "resource,target,active,filters"


class AsanaError(Exception):
    """Any failed call to the Asana API: transport error, timeout, or non-2xx."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        errors: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.errors = errors or []

    def __str__(self) -> str:
        base = super().__str__()
        if self.errors:
            return f"{base}: {'; '.join(self.errors)}"
        return base


def _error_messages(resp: httpx.Response) -> list[str]:
    try:
        body = resp.json()
    except ValueError:
        return [resp.text] if resp.text else []
    errors = body.get("errors") if isinstance(body, dict) else None
    if not errors:
        return []
    return [str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors]


class AsanaClient:
    """Thin wrapper over the endpoints the rules and webhook manager need.

    Request bodies are wrapped in ``{"data": ...}`` and responses are
    unwrapped the same way. Every request is bounded by ``config.timeout``.
    """

    def __init__(
        self,
        config: AsanaConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url.rstrip("/"),
            timeout=config.timeout,
            headers={
                "Authorization": f"Bearer {config.access_token}",
                "Accept": "application/json",
            },
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        body = {"data": data} if data is not None else None
        try:
            resp = await self._client.request(method, path, params=params, json=body)
        except httpx.TimeoutException as e:
            raise AsanaError(f"{method} {path} timed out") from e
        except httpx.HTTPError as e:
            raise AsanaError(f"{method} {path} failed: {e}") from e

        if resp.is_error:
            raise AsanaError(
                f"{method} {path} returned {resp.status_code}",
                status=resp.status_code,
                errors=_error_messages(resp),
            )
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise AsanaError(
                f"{method} {path} returned invalid JSON", status=resp.status_code
            ) from e

    async def _get_one(
        self, path: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        return (await self._request("GET", path, params=params)).get("data") or {}

    async def _paginate(
        self, path: str, params: dict[str, Any] | None = None
    ) -> AsyncIterator[dict[str, Any]]:
        query = dict(params or {})
        query["limit"] = self._config.page_size
        while True:
            page = await self._request("GET", path, params=query)
            for item in page.get("data") or []:
                yield item
            next_page = page.get("next_page") or {}
            offset = next_page.get("offset")
            if not offset:
                return
            query["offset"] = offset

    async def _list(
        self, path: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        return [item async for item in self._paginate(path, params)]

    # ------------------------------------------------------------------
    # Tasks, projects, sections
    # ------------------------------------------------------------------

    async def get_task(self, gid: str) -> dict[str, Any]:
        return await self._get_one(f"/tasks/{gid}", {"opt_fields": _TASK_FIELDS})

    async def get_project(self, gid: str) -> dict[str, Any]:
        return await self._get_one(f"/projects/{gid}", {"opt_fields": _PROJECT_FIELDS})

    async def get_section(self, gid: str) -> dict[str, Any]:
        return await self._get_one(f"/sections/{gid}", {"opt_fields": _SECTION_FIELDS})

    async def list_projects(self, workspace: str) -> list[dict[str, Any]]:
        return await self._list(
            "/projects", {"workspace": workspace, "opt_fields": "name"}
        )

    async def add_task_to_section(self, section: str, task: str) -> None:
        await self._request("POST", f"/sections/{section}/addTask", data={"task": task})

    async def set_task_custom_field(self, task: str, field: str, value: str | None) -> None:
        await self._request(
            "PUT", f"/tasks/{task}", data={"custom_fields": {field: value}}
        )

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    async def list_tags(self, workspace: str) -> list[dict[str, Any]]:
        return await self._list(f"/workspaces/{workspace}/tags", {"opt_fields": "name"})

    async def create_tag(
        self, workspace: str, name: str, color: str | None = None
    ) -> dict[str, Any]:
        data: dict[str, Any] = {"name": name}
        if color:
            data["color"] = color
        resp = await self._request("POST", f"/workspaces/{workspace}/tags", data=data)
        return resp.get("data") or {}

    async def find_or_create_tag(
        self, workspace: str, name: str, color: str | None = None
    ) -> dict[str, Any]:
        """Return the workspace tag called *name*, creating it on first use.

        Not atomic: two concurrent callers that both miss will both create.
        """
        for tag in await self.list_tags(workspace):
            if tag.get("name") == name:
                return tag
        tag = await self.create_tag(workspace, name, color)
        log.info("tag_created", tag=tag.get("gid"), name=name)
        return tag

    async def add_tag_to_task(self, task: str, tag: str) -> None:
        await self._request("POST", f"/tasks/{task}/addTag", data={"tag": tag})

    # ------------------------------------------------------------------
    # Custom fields
    # ------------------------------------------------------------------

    async def get_custom_field(self, gid: str) -> dict[str, Any]:
        return await self._get_one(
            f"/custom_fields/{gid}", {"opt_fields": _CUSTOM_FIELD_FIELDS}
        )

    async def create_enum_option(self, field: str, name: str) -> dict[str, Any]:
        resp = await self._request(
            "POST", f"/custom_fields/{field}/enum_options", data={"name": name}
        )
        return resp.get("data") or {}

    async def find_or_create_enum_option(self, field: str, name: str) -> dict[str, Any]:
        """Same race caveat as find_or_create_tag."""
        custom_field = await self.get_custom_field(field)
        for option in custom_field.get("enum_options") or []:
            if option.get("name") == name and option.get("enabled", True):
                return option
        option = await self.create_enum_option(field, name)
        log.info("enum_option_created", field=field, option=option.get("gid"), name=name)
        return option

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    async def list_webhooks(
        self, workspace: str, resource: str | None = None
    ) -> list[Webhook]:
        params = {"workspace": workspace, "opt_fields": _WEBHOOK_FIELDS}
        if resource:
            params["resource"] = resource
        return [Webhook.from_payload(item) for item in await self._list("/webhooks", params)]

    async def create_webhook(
        self,
        resource: str,
        target: str,
        filters: list[WebhookFilter] | None = None,
    ) -> Webhook:
        data: dict[str, Any] = {"resource": resource, "target": target}
        if filters:
            data["filters"] = [f.to_payload() for f in filters]
        resp = await self._request("POST", "/webhooks", data=data)
        return Webhook.from_payload(resp.get("data") or {})

    async def delete_webhook(self, gid: str) -> None:
        await self._request("DELETE", f"/webhooks/{gid}")
