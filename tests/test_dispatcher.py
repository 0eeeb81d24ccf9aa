"""Tests for sequential event dispatch and per-rule isolation."""

import asyncio
from unittest.mock import patch

import pytest
import structlog

from taskrelay.asana.client import AsanaError
from taskrelay.asana.models import Event
from taskrelay.rules.base import Rule, RuleOutcome
from taskrelay.webhooks.dispatcher import EventDispatcher


class RecordingRule(Rule):
    def __init__(self, name: str, log: list, delay: float = 0.0) -> None:
        self._name = name
        self._log = log
        self._delay = delay

    @property
    def name(self) -> str:
        return self._name

    def applies(self, event: Event) -> bool:
        return True

    async def apply(self, event: Event) -> RuleOutcome:
        if self._delay:
            await asyncio.sleep(self._delay)
        self._log.append((self._name, event.resource.gid))
        return RuleOutcome.APPLIED


class FailingRule(RecordingRule):
    async def apply(self, event: Event) -> RuleOutcome:
        self._log.append((self._name, event.resource.gid))
        raise AsanaError("POST /tasks/x/addTag returned 500", status=500)


class CrashingRule(RecordingRule):
    async def run(self, event: Event) -> RuleOutcome:
        raise RuntimeError("bypassed run() isolation")


def payload(gid: str) -> dict:
    return {
        "action": "added",
        "resource": {"gid": gid, "resource_type": "task"},
        "parent": {"gid": "p1", "resource_type": "project"},
    }


@pytest.fixture
def calls():
    return []


class TestDispatch:
    async def test_events_and_rules_run_in_order(self, calls):
        # The slow first rule must not let the second overtake it
        dispatcher = EventDispatcher([
            RecordingRule("a", calls, delay=0.01),
            RecordingRule("b", calls),
        ])

        await dispatcher.dispatch([payload("e1"), payload("e2")])

        assert calls == [("a", "e1"), ("b", "e1"), ("a", "e2"), ("b", "e2")]

    async def test_failing_rule_does_not_block_siblings(self, calls):
        dispatcher = EventDispatcher([FailingRule("bad", calls), RecordingRule("good", calls)])

        results = await dispatcher.dispatch([payload("e1"), payload("e2")])

        assert ("good", "e1") in calls
        assert ("good", "e2") in calls
        assert results[0] == {"bad": RuleOutcome.FAILED, "good": RuleOutcome.APPLIED}

    async def test_crashing_rule_is_isolated(self, calls):
        dispatcher = EventDispatcher([CrashingRule("crash", calls), RecordingRule("good", calls)])

        results = await dispatcher.dispatch([payload("e1")])

        assert results == [{"crash": RuleOutcome.FAILED, "good": RuleOutcome.APPLIED}]

    async def test_invalid_events_are_dropped(self, calls):
        dispatcher = EventDispatcher([RecordingRule("a", calls)])

        results = await dispatcher.dispatch([
            {"action": "added"},
            "not-a-dict",
            payload("e1"),
        ])

        assert len(results) == 1
        assert calls == [("a", "e1")]


class TestQueue:
    async def test_batches_processed_in_arrival_order(self, calls):
        dispatcher = EventDispatcher([RecordingRule("a", calls, delay=0.01)])
        await dispatcher.start()

        assert dispatcher.submit([payload("e1"), payload("e2")])
        assert dispatcher.submit([payload("e3")])
        await asyncio.wait_for(dispatcher.join(), timeout=5)

        assert [gid for _, gid in calls] == ["e1", "e2", "e3"]
        await dispatcher.stop()

    async def test_failing_batch_keeps_consumer_alive(self, calls):
        dispatcher = EventDispatcher([FailingRule("bad", calls)])
        await dispatcher.start()

        dispatcher.submit([payload("e1")])
        dispatcher.submit([payload("e2")])
        await asyncio.wait_for(dispatcher.join(), timeout=5)

        assert calls == [("bad", "e1"), ("bad", "e2")]
        await dispatcher.stop()

    async def test_full_queue_drops_batch(self, calls):
        dispatcher = EventDispatcher([RecordingRule("a", calls)], max_queue_size=1)

        assert dispatcher.submit([payload("e1")]) is True
        assert dispatcher.submit([payload("e2")]) is False

    async def test_stop_without_start(self, calls):
        dispatcher = EventDispatcher([RecordingRule("a", calls)])
        await dispatcher.stop()

    async def test_stop_reports_unprocessed_batches(self, calls):
        dispatcher = EventDispatcher([RecordingRule("a", calls)])
        dispatcher.submit([payload("e1")])
        dispatcher.submit([payload("e2")])

        with patch("taskrelay.webhooks.dispatcher.log") as log:
            await dispatcher.stop()

        log.warning.assert_called_once_with("event_batches_discarded", batches=2)
        assert calls == []


class ContextRule(RecordingRule):
    async def apply(self, event: Event) -> RuleOutcome:
        self._log.append(structlog.contextvars.get_contextvars())
        return RuleOutcome.SATISFIED


class TestLogContext:
    async def test_event_ids_bound_while_rules_run(self, calls):
        dispatcher = EventDispatcher([ContextRule("ctx", calls)])

        await dispatcher.dispatch([payload("e1")])

        assert calls == [{
            "event_action": "added",
            "event_resource": "e1",
            "event_parent": "p1",
        }]
        assert "event_resource" not in structlog.contextvars.get_contextvars()
