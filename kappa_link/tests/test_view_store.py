# Copyright 2019-present Kensho Technologies, LLC.
import unittest

from ..link import KappaLink
from ..operation import Operation
from ..view_store import ReadinessGate
from .in_memory_view_store import InMemoryViewStore
from .test_observable import RecordingObserver


def _fail():
    raise RuntimeError("The callback is broken.")


class ReadinessGateTests(unittest.TestCase):
    def test_callbacks_wait_for_the_gate(self) -> None:
        calls = []
        gate = ReadinessGate()
        gate.add_callback(lambda: calls.append("first"))
        gate.add_callback(lambda: calls.append("second"))
        self.assertEqual([], calls)
        self.assertFalse(gate.is_open)

        gate.open()
        self.assertEqual(["first", "second"], calls)
        self.assertTrue(gate.is_open)

    def test_late_callbacks_run_immediately(self) -> None:
        calls = []
        gate = ReadinessGate()
        gate.open()
        gate.add_callback(lambda: calls.append("late"))
        self.assertEqual(["late"], calls)

    def test_opening_twice_runs_callbacks_once(self) -> None:
        calls = []
        gate = ReadinessGate()
        gate.add_callback(lambda: calls.append("once"))
        gate.open()
        gate.open()
        self.assertEqual(["once"], calls)


class ViewStoreTests(unittest.TestCase):
    def test_ready(self) -> None:
        calls = []
        view_store = InMemoryViewStore()
        view_store.ready(lambda: calls.append("ready"))
        self.assertFalse(view_store.is_ready)
        self.assertEqual([], calls)

        view_store.mark_ready()
        self.assertTrue(view_store.is_ready)
        self.assertEqual(["ready"], calls)

    def test_failing_callback_does_not_starve_later_callbacks(self) -> None:
        calls = []
        gate = ReadinessGate()
        gate.add_callback(lambda: calls.append("first"))
        gate.add_callback(_fail)
        gate.add_callback(lambda: calls.append("last"))

        with self.assertLogs("kappa_link.view_store", level="ERROR") as logs:
            gate.open()
        self.assertEqual(["first", "last"], calls)
        self.assertTrue(gate.is_open)
        self.assertIn("Readiness callback", logs.output[0])

    def test_subscriptions_bind_after_a_failing_ready_callback(self) -> None:
        view_store = InMemoryViewStore()
        events = view_store.items_view.events
        view_store.ready(_fail)

        operation = Operation.from_query_string(
            'subscription { onItem @kappa(view: "items", event: "added") { id } }'
        )
        observer = RecordingObserver()
        KappaLink(view_store).request(operation).subscribe(observer)

        with self.assertLogs("kappa_link.view_store", level="ERROR"):
            view_store.mark_ready()
        self.assertEqual(1, events.listener_count("added"))

        events.emit("added", {"id": "x1"})
        expected_value = {"data": {"onItem": {"id": "x1", "__typename": "OnItem"}}}
        self.assertEqual([expected_value], observer.values)
