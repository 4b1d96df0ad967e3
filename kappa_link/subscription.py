# Copyright 2019-present Kensho Technologies, LLC.
"""Binding of subscription operations to view events.

A subscription operation is served by at most one field: the first field of the document, in
document order, that carries the @kappa directive. All other @kappa fields are ignored, since each
subscription operation follows a single event stream.

Each subscriber to the resulting Observable goes through the following states:
- CREATED: the subscriber has not been set up yet;
- AWAITING_READY: waiting for the view store to become ready;
- BOUND: a handler is registered for the view event, and matching payloads are emitted;
- UNBOUND: the handler is deregistered, or was never registered. This state is final.

Unsubscribing while AWAITING_READY moves straight to UNBOUND, so that no handler gets registered
when the view store eventually becomes ready.
"""
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Callable, Dict, Optional

from graphql.language.ast import FieldNode

from .ast_manipulation import get_ast_field_name
from .directives import DirectiveInfo, extract_kappa_directive
from .normalization import add_typename
from .observable import Cleanup, Observable, SubscriptionObserver
from .operation import Operation
from .resolver_map import ResolverMap, SubscribeFunction, SubscriptionFilter


logger = logging.getLogger(__name__)


class SubscriptionState(Enum):
    CREATED = "created"
    AWAITING_READY = "awaiting_ready"
    BOUND = "bound"
    UNBOUND = "unbound"


@dataclass
class SubscriptionBinding:
    """The registration of one handler for one event of one view."""

    view: str
    event: str
    filter: Optional[SubscriptionFilter] = None
    handler: Optional[Callable[[Any], None]] = None

    def _get_events(self, view_store: Any) -> Any:
        return view_store.api[self.view].events

    def bind(self, view_store: Any, handler: Callable[[Any], None]) -> None:
        """Register the handler for the view event."""
        if self.handler is not None:
            raise AssertionError(f"Attempting to bind an already-bound subscription: {self}")
        self.handler = handler
        self._get_events(view_store).on(self.event, handler)

    def unbind(self, view_store: Any) -> None:
        """Deregister the handler, if it is registered."""
        if self.handler is None:
            return
        handler = self.handler
        self.handler = None
        self._get_events(view_store).remove_listener(self.event, handler)

    def accepts(self, data: Any, args: Dict[str, Any]) -> bool:
        """Return True if the event payload passes the filter, or if there is no filter."""
        return self.filter is None or bool(self.filter(data, args))


class _ActiveSubscription:
    """The state of one subscriber to a subscription operation."""

    def __init__(
        self,
        manager: "KappaSubscriptionManager",
        observer: SubscriptionObserver,
    ) -> None:
        self.manager = manager
        self.observer = observer
        self.state = SubscriptionState.CREATED
        self.binding: Optional[SubscriptionBinding] = None
        self.teardown: Cleanup = None

    def start(self) -> None:
        self.state = SubscriptionState.AWAITING_READY
        self.manager.view_store.ready(self._on_ready)

    def _on_ready(self) -> None:
        if self.state is not SubscriptionState.AWAITING_READY:
            # Unsubscribed before the view store became ready.
            return

        try:
            self._bind()
        except Exception as e:  # pylint: disable=broad-except
            # Binding errors, e.g. an unknown view, end the stream.
            self.observer.error(e)

    def _bind(self) -> None:
        manager = self.manager
        directive_info = manager.directive_info
        if directive_info is not None and directive_info.event is not None:
            self.binding = SubscriptionBinding(
                view=directive_info.view,
                event=directive_info.event,
                filter=manager.filter,
            )
            self.binding.bind(manager.view_store, self._on_event)
            self.state = SubscriptionState.BOUND
            logger.debug(
                "Bound subscription field %s to event %s of view %s.",
                manager.field_name,
                directive_info.event,
                directive_info.view,
            )
        elif manager.subscribe_function is not None:
            self.state = SubscriptionState.BOUND
            context = manager.operation.get_context()
            context["next"] = self._emit
            context["error"] = self.observer.error
            teardown = manager.subscribe_function({}, manager.operation.variables, context)
            if self.state is SubscriptionState.UNBOUND:
                # The subscribe function ended the stream before returning its teardown.
                if teardown is not None:
                    teardown()
            else:
                self.teardown = teardown

    def _on_event(self, data: Any) -> None:
        if self.state is not SubscriptionState.BOUND or self.binding is None:
            return

        try:
            accepted = self.binding.accepts(data, self.manager.operation.variables)
        except Exception as e:  # pylint: disable=broad-except
            # Filter errors end the stream, and the observer's cleanup unbinds the handler.
            self.observer.error(e)
            return

        if accepted:
            self._emit(data)

    def _emit(self, data: Any) -> None:
        if self.state is not SubscriptionState.BOUND:
            return
        field_name = self.manager.field_name
        self.observer.next({"data": {field_name: add_typename(data, field_name)}})

    def cancel(self) -> None:
        """Move to the final state, deregistering whatever was registered. Idempotent."""
        previous_state = self.state
        self.state = SubscriptionState.UNBOUND
        if previous_state is not SubscriptionState.BOUND:
            return

        if self.binding is not None:
            self.binding.unbind(self.manager.view_store)
        if self.teardown is not None:
            teardown = self.teardown
            self.teardown = None
            teardown()


class KappaSubscriptionManager:
    """Serve a subscription operation from the events of the view named by its @kappa field."""

    def __init__(
        self,
        view_store: Any,
        operation: Operation,
        field_ast: FieldNode,
        resolver_map: ResolverMap,
    ) -> None:
        """Prepare the subscription for the given @kappa field of the operation.

        Args:
            view_store: the store whose view events feed the subscription
            operation: the subscription operation
            field_ast: the first field of the operation that carries @kappa
            resolver_map: the operation's resolver map, whose Subscription entry for the field
                          may supply a filter, or a subscribe function for fields with no event
        """
        self.view_store = view_store
        self.operation = operation
        self.field_name = get_ast_field_name(field_ast)
        self.directive_info: Optional[DirectiveInfo] = extract_kappa_directive(
            field_ast, operation.variables
        )

        subscription_entry = resolver_map.get_subscription_entry(self.field_name)
        self.filter: Optional[SubscriptionFilter] = None
        self.subscribe_function: Optional[SubscribeFunction] = None
        if subscription_entry is not None:
            self.filter = subscription_entry.filter
            self.subscribe_function = subscription_entry.subscribe

        if not self.has_resolver:
            logger.warning("No resolver registered for %s", self.field_name)

    @property
    def has_resolver(self) -> bool:
        """Return True if the subscription has a source of events."""
        has_event = self.directive_info is not None and self.directive_info.event is not None
        return has_event or self.subscribe_function is not None

    def _subscriber(self, observer: SubscriptionObserver) -> Cleanup:
        active_subscription = _ActiveSubscription(self, observer)
        active_subscription.start()
        return active_subscription.cancel

    def to_observable(self) -> Observable:
        """Return the stream of {"data": {field_name: payload}} results for the subscription."""
        return Observable(self._subscriber)
