"""Typed models for webhook events and subscriptions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ResourceRef:
    gid: str
    resource_type: str = ""
    name: str = ""

    @classmethod
    def from_payload(cls, data: dict[str, Any] | None) -> ResourceRef | None:
        if not data or "gid" not in data:
            return None
        return cls(
            gid=str(data.get("gid", "")),
            resource_type=data.get("resource_type", ""),
            name=data.get("name", "") or "",
        )


@dataclass
class Event:
    """A single change reported inside a webhook callback batch."""

    action: str
    resource: ResourceRef
    parent: ResourceRef | None = None
    created_at: str = ""
    change: dict[str, Any] | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> Event:
        """Build an Event from one entry of the ``events`` list.

        Raises ValueError when the entry has no action or resource.
        """
        action = data.get("action")
        resource = ResourceRef.from_payload(data.get("resource"))
        if not action or resource is None:
            raise ValueError("event is missing action or resource")
        return cls(
            action=action,
            resource=resource,
            parent=ResourceRef.from_payload(data.get("parent")),
            created_at=data.get("created_at", "") or "",
            change=data.get("change"),
        )

    def matches(
        self,
        action: str,
        resource_type: str,
        parent_type: str | None = None,
    ) -> bool:
        if self.action != action or self.resource.resource_type != resource_type:
            return False
        if parent_type is None:
            return True
        return self.parent is not None and self.parent.resource_type == parent_type


@dataclass
class WebhookFilter:
    resource_type: str
    action: str

    def to_payload(self) -> dict[str, str]:
        return {"resource_type": self.resource_type, "action": self.action}


@dataclass
class Webhook:
    gid: str
    resource: ResourceRef
    target: str
    active: bool = True
    filters: list[WebhookFilter] = field(default_factory=list)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> Webhook:
        resource = ResourceRef.from_payload(data.get("resource")) or ResourceRef(gid="")
        return cls(
            gid=str(data.get("gid", "")),
            resource=resource,
            target=data.get("target", ""),
            active=data.get("active", True),
            filters=[
                WebhookFilter(f.get("resource_type", ""), f.get("action", ""))
                for f in data.get("filters") or []
            ],
        )
