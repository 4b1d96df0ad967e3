# Copyright 2019-present Kensho Technologies, LLC.
"""The interface of the view store that @kappa fields are routed to.

A view store exposes named views through its "api" mapping. Each view offers:
- methods, called by query and mutation fields as `view.method_name(args)` and returning either
  a value or an awaitable of one;
- an "events" attribute, on which subscription fields register handlers through
  `events.on(event_name, handler)` and deregister them through
  `events.remove_listener(event_name, handler)`. The events object must support several handlers
  for the same event name at once.

Queries and subscriptions do not touch the views until the view store signals readiness:
`view_store.ready(callback)` runs the callback once the store is ready, immediately if it already
is. The link only relies on these duck-typed capabilities; the ViewStore base class below is
a convenient way to provide them.
"""
from abc import ABCMeta, abstractmethod
import logging
from typing import Any, Callable, List, Mapping


logger = logging.getLogger(__name__)


class ReadinessGate:
    """A one-shot signal that replays to callbacks registered after it fired.

    Callbacks registered before the gate opens run once, in registration order, when it opens.
    A callback that raises is logged, and the remaining callbacks still run. Callbacks registered
    after it opened run immediately. Opening the gate again has no effect.
    """

    __slots__ = ("_is_open", "_pending_callbacks")

    def __init__(self) -> None:
        """Create a closed gate."""
        self._is_open = False
        self._pending_callbacks: List[Callable[[], None]] = []

    @property
    def is_open(self) -> bool:
        """Return True if the gate has opened."""
        return self._is_open

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run the callback when the gate opens, or now if it is already open."""
        if self._is_open:
            callback()
        else:
            self._pending_callbacks.append(callback)

    def open(self) -> None:
        """Open the gate and run the callbacks waiting for it."""
        if self._is_open:
            return

        self._is_open = True
        pending_callbacks = self._pending_callbacks
        self._pending_callbacks = []
        logger.debug("Readiness gate opened, running %d pending callbacks.", len(pending_callbacks))
        for callback in pending_callbacks:
            try:
                callback()
            except Exception:  # pylint: disable=broad-except
                # A failing callback must not starve the callbacks registered after it.
                logger.exception("Readiness callback %s failed.", callback)


class ViewStore(metaclass=ABCMeta):
    """Base class for view stores, providing the readiness gate.

    Subclasses define the "api" property, and call mark_ready() once their views may be used.
    """

    def __init__(self) -> None:
        """Create a view store that is not yet ready."""
        self._readiness_gate = ReadinessGate()

    @property
    @abstractmethod
    def api(self) -> Mapping[str, Any]:
        """Return the mapping of view name to view object."""
        raise NotImplementedError()

    @property
    def is_ready(self) -> bool:
        """Return True if the view store has signalled readiness."""
        return self._readiness_gate.is_open

    def ready(self, callback: Callable[[], None]) -> None:
        """Run the callback once the view store is ready, or now if it already is."""
        self._readiness_gate.add_callback(callback)

    def mark_ready(self) -> None:
        """Signal that the views may be used."""
        self._readiness_gate.open()
