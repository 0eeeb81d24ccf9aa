"""Runs every rule over every event, one batch at a time."""

from __future__ import annotations

import asyncio
from typing import Any

from taskrelay.asana.models import Event
from taskrelay.rules.base import Rule, RuleOutcome
from taskrelay.utils.logging import event_context, get_logger

log = get_logger(__name__)


class EventDispatcher:
    """Queue of webhook batches drained by a single consumer task.

    Batches are processed in arrival order and events inside a batch one
    after another. A failing rule never stops the rules or events after it.
    """

    def __init__(self, rules: list[Rule], max_queue_size: int = 256) -> None:
        self._rules = list(rules)
        self._queue: asyncio.Queue[list[dict[str, Any]]] = asyncio.Queue(
            maxsize=max_queue_size
        )
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def rules(self) -> list[Rule]:
        return list(self._rules)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def dispatch_event(self, event: Event) -> dict[str, RuleOutcome]:
        outcomes: dict[str, RuleOutcome] = {}
        parent = event.parent.gid if event.parent else None
        with event_context(event.action, event.resource.gid, parent):
            for rule in self._rules:
                try:
                    outcomes[rule.name] = await rule.run(event)
                except Exception:
                    log.exception("rule_crashed", rule=rule.name)
                    outcomes[rule.name] = RuleOutcome.FAILED
        return outcomes

    async def dispatch(
        self, payloads: list[dict[str, Any]]
    ) -> list[dict[str, RuleOutcome]]:
        results: list[dict[str, RuleOutcome]] = []
        for payload in payloads:
            try:
                event = Event.from_payload(payload)
            except (ValueError, TypeError, AttributeError) as e:
                log.warning("event_invalid", error=str(e))
                continue
            log.debug(
                "event_received",
                action=event.action,
                resource=event.resource.gid,
                resource_type=event.resource.resource_type,
                parent_type=event.parent.resource_type if event.parent else None,
            )
            results.append(await self.dispatch_event(event))
        return results

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def submit(self, payloads: list[dict[str, Any]]) -> bool:
        try:
            self._queue.put_nowait(payloads)
        except asyncio.QueueFull:
            log.warning("event_batch_dropped", events=len(payloads))
            return False
        return True

    async def start(self) -> None:
        self._running = True
        self._task = asyncio.create_task(self._consumer(), name="event-dispatcher")

    async def _consumer(self) -> None:
        while self._running:
            try:
                batch = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            try:
                await self.dispatch(batch)
            except Exception:
                log.exception("event_batch_error", events=len(batch))
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every submitted batch has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        self._running = False
        pending = self._queue.qsize()
        if pending:
            log.warning("event_batches_discarded", batches=pending)
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
