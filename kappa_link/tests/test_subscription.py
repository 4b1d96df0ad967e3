# Copyright 2019-present Kensho Technologies, LLC.
import unittest

from ..directives import find_first_kappa_field
from ..operation import Operation
from ..resolver_map import ResolverMap
from ..subscription import KappaSubscriptionManager, SubscriptionBinding
from .in_memory_view_store import InMemoryViewStore
from .test_observable import RecordingObserver


ON_ITEM_SUBSCRIPTION = 'subscription { onItem @kappa(view: "items", event: "added") { id } }'


def _make_manager(view_store, query_string, resolvers=None, variables=None):
    """Return the subscription manager for the first @kappa field of the query."""
    operation = Operation.from_query_string(query_string, variables=variables)
    field_ast = find_first_kappa_field(operation.query)
    return KappaSubscriptionManager(view_store, operation, field_ast, ResolverMap(resolvers))


class SubscriptionBindingTests(unittest.TestCase):
    def test_bind_and_unbind(self) -> None:
        view_store = InMemoryViewStore()
        events = view_store.items_view.events
        binding = SubscriptionBinding(view="items", event="added")

        binding.bind(view_store, print)
        self.assertEqual(1, events.listener_count("added"))
        with self.assertRaises(AssertionError):
            binding.bind(view_store, print)

        binding.unbind(view_store)
        binding.unbind(view_store)
        self.assertEqual(0, events.listener_count("added"))

    def test_accepts(self) -> None:
        self.assertTrue(SubscriptionBinding(view="items", event="added").accepts({}, {}))

        binding = SubscriptionBinding(
            view="items", event="added", filter=lambda data, args: data["id"] == args["id"]
        )
        self.assertTrue(binding.accepts({"id": "x1"}, {"id": "x1"}))
        self.assertFalse(binding.accepts({"id": "x2"}, {"id": "x1"}))


class SubscriptionManagerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.view_store = InMemoryViewStore()
        self.events = self.view_store.items_view.events

    def test_events_are_emitted_with_typename(self) -> None:
        manager = _make_manager(self.view_store.make_ready(), ON_ITEM_SUBSCRIPTION)
        observer = RecordingObserver()
        subscription = manager.to_observable().subscribe(observer)

        self.events.emit("added", {"id": "x1"})
        self.events.emit("added", {"id": "x2", "__typename": "Item"})
        self.events.emit("removed", {"id": "x3"})

        expected_values = [
            {"data": {"onItem": {"id": "x1", "__typename": "OnItem"}}},
            {"data": {"onItem": {"id": "x2", "__typename": "Item"}}},
        ]
        self.assertEqual(expected_values, observer.values)

        subscription.unsubscribe()
        self.events.emit("added", {"id": "x4"})
        self.assertEqual(2, len(observer.values))
        self.assertEqual(0, self.events.listener_count("added"))

    def test_binding_waits_for_readiness(self) -> None:
        manager = _make_manager(self.view_store, ON_ITEM_SUBSCRIPTION)
        observer = RecordingObserver()
        manager.to_observable().subscribe(observer)
        self.assertEqual(0, self.events.listener_count("added"))

        self.view_store.mark_ready()
        self.assertEqual(1, self.events.listener_count("added"))
        self.events.emit("added", {"id": "x1"})
        self.assertEqual(1, len(observer.values))

    def test_unsubscribing_before_readiness(self) -> None:
        manager = _make_manager(self.view_store, ON_ITEM_SUBSCRIPTION)
        observer = RecordingObserver()
        subscription = manager.to_observable().subscribe(observer)
        subscription.unsubscribe()
        subscription.unsubscribe()

        self.view_store.mark_ready()
        self.assertEqual(0, self.events.listener_count("added"))
        self.events.emit("added", {"id": "x1"})
        self.assertEqual([], observer.values)

    def test_filter_receives_variables(self) -> None:
        resolvers = {
            "Subscription": {
                "onItem": {"filter": lambda data, args: data["id"] == args["id"]},
            },
        }
        manager = _make_manager(
            self.view_store.make_ready(), ON_ITEM_SUBSCRIPTION, resolvers, {"id": "x2"}
        )
        observer = RecordingObserver()
        manager.to_observable().subscribe(observer)

        for item_id in ("x1", "x2", "x3", "x2"):
            self.events.emit("added", {"id": item_id})

        expected_value = {"data": {"onItem": {"id": "x2", "__typename": "OnItem"}}}
        self.assertEqual([expected_value, expected_value], observer.values)

    def test_rejecting_filter_never_emits(self) -> None:
        resolvers = {"Subscription": {"onItem": {"filter": lambda data, args: False}}}
        manager = _make_manager(self.view_store.make_ready(), ON_ITEM_SUBSCRIPTION, resolvers)
        observer = RecordingObserver()
        manager.to_observable().subscribe(observer)

        for _ in range(5):
            self.events.emit("added", {"id": "x1"})
        self.assertEqual([], observer.values)

    def test_failing_filter_ends_the_stream(self) -> None:
        def _fail(data, args):
            raise ValueError("bad payload")

        resolvers = {"Subscription": {"onItem": {"filter": _fail}}}
        manager = _make_manager(self.view_store.make_ready(), ON_ITEM_SUBSCRIPTION, resolvers)
        observer = RecordingObserver()
        subscription = manager.to_observable().subscribe(observer)

        self.events.emit("added", {"id": "x1"})
        self.assertIsInstance(observer.errors[0], ValueError)
        self.assertTrue(subscription.closed)
        self.assertEqual(0, self.events.listener_count("added"))

    def test_unknown_view_ends_the_stream(self) -> None:
        manager = _make_manager(
            self.view_store.make_ready(),
            'subscription { onItem @kappa(view: "nope", event: "added") { id } }',
        )
        observer = RecordingObserver()
        manager.to_observable().subscribe(observer)
        self.assertIsInstance(observer.errors[0], KeyError)

    def test_concurrent_subscriptions_are_independent(self) -> None:
        manager = _make_manager(self.view_store.make_ready(), ON_ITEM_SUBSCRIPTION)
        first_observer = RecordingObserver()
        second_observer = RecordingObserver()
        first_subscription = manager.to_observable().subscribe(first_observer)
        manager.to_observable().subscribe(second_observer)
        self.assertEqual(2, self.events.listener_count("added"))

        self.events.emit("added", {"id": "x1"})
        first_subscription.unsubscribe()
        self.events.emit("added", {"id": "x2"})

        self.assertEqual(1, len(first_observer.values))
        self.assertEqual(2, len(second_observer.values))
        self.assertEqual(1, self.events.listener_count("added"))

    def test_subscribe_function_for_fields_without_event(self) -> None:
        teardowns = []
        captured_contexts = []

        def _subscribe(root_value, args, context):
            captured_contexts.append(context)
            context["next"]({"id": args["id"]})
            return lambda: teardowns.append("torn down")

        operation_string = 'subscription { onMessage @kappa(view: "messages") { id } }'
        resolvers = {"Subscription": {"onMessage": {"subscribe": _subscribe}}}
        manager = _make_manager(
            self.view_store.make_ready(), operation_string, resolvers, {"id": "m1"}
        )
        observer = RecordingObserver()
        subscription = manager.to_observable().subscribe(observer)

        self.assertEqual(
            [{"data": {"onMessage": {"id": "m1", "__typename": "OnMessage"}}}], observer.values
        )
        self.assertIn("schemas", captured_contexts[0])

        captured_contexts[0]["error"](RuntimeError("connection lost"))
        self.assertIsInstance(observer.errors[0], RuntimeError)
        self.assertTrue(subscription.closed)
        self.assertEqual(["torn down"], teardowns)

    def test_missing_resolver_is_reported_and_silent(self) -> None:
        operation_string = 'subscription { onMessage @kappa(view: "messages") { id } }'
        with self.assertLogs("kappa_link.subscription", level="WARNING") as logs:
            manager = _make_manager(self.view_store.make_ready(), operation_string)
        self.assertIn("No resolver registered for onMessage", logs.output[0])

        observer = RecordingObserver()
        subscription = manager.to_observable().subscribe(observer)
        self.assertEqual([], observer.values)
        self.assertEqual([], observer.errors)
        self.assertFalse(subscription.closed)
        subscription.unsubscribe()
