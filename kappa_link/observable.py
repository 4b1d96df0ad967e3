# Copyright 2019-present Kensho Technologies, LLC.
"""A minimal push-based stream of results.

Links return an Observable for each operation they handle. Nothing happens until the Observable is
subscribed to: subscribing runs the Observable's subscriber function, which pushes values to the
observer and returns a cleanup function. The cleanup function runs exactly once, when the
subscriber unsubscribes or when the stream ends by an error or by completion.

Observables also support async iteration:

    async for result in link.request(operation):
        ...
"""
import asyncio
from typing import Any, AsyncIterator, Callable, List, Optional, Protocol, Tuple


class Observer(Protocol):
    """The receiving end of an Observable."""

    def next(self, value: Any) -> None:
        """Receive the next value of the stream."""

    def error(self, error: BaseException) -> None:
        """Receive the error that ended the stream."""

    def complete(self) -> None:
        """Receive notice that the stream ended without error."""


Cleanup = Optional[Callable[[], None]]
Subscriber = Callable[["SubscriptionObserver"], Cleanup]


def _ignore(*args: Any) -> None:
    """Drop the notification."""


def _raise(error: BaseException) -> None:
    """Re-raise errors nobody listens for, so they are not silently lost."""
    raise error


class _CallbackObserver:
    """Observer assembled from optional callbacks."""

    __slots__ = ("next", "error", "complete")

    def __init__(
        self,
        on_next: Optional[Callable[[Any], None]],
        on_error: Optional[Callable[[BaseException], None]],
        on_complete: Optional[Callable[[], None]],
    ) -> None:
        self.next = on_next or _ignore
        self.error = on_error or _raise
        self.complete = on_complete or _ignore


class Subscription:
    """Handle to a running subscription to an Observable."""

    __slots__ = ("_observer", "_cleanup", "_closed")

    def __init__(self, observer: Observer) -> None:
        self._observer: Optional[Observer] = observer
        self._cleanup: Cleanup = None
        self._closed = False

    @property
    def closed(self) -> bool:
        """Return True once the subscription has ended, by unsubscribing or otherwise."""
        return self._closed

    def _start(self, subscriber: Subscriber) -> None:
        """Run the subscriber, then run its cleanup at once if the stream already ended."""
        try:
            cleanup = subscriber(SubscriptionObserver(self))
        except Exception as e:  # pylint: disable=broad-except
            if self._closed:
                # Raised by the observer itself, after the stream ended.
                raise
            # Errors raised while subscribing are delivered like any other stream error.
            self._error(e)
            return

        if self._closed:
            if cleanup is not None:
                cleanup()
        else:
            self._cleanup = cleanup

    def _close(self) -> Optional[Observer]:
        """Mark the subscription as ended, run the cleanup, and return the former observer."""
        if self._closed:
            return None

        observer = self._observer
        self._closed = True
        self._observer = None

        cleanup = self._cleanup
        self._cleanup = None
        if cleanup is not None:
            cleanup()
        return observer

    def _next(self, value: Any) -> None:
        if self._observer is not None:
            self._observer.next(value)

    def _error(self, error: BaseException) -> None:
        observer = self._close()
        if observer is not None:
            observer.error(error)

    def _complete(self) -> None:
        observer = self._close()
        if observer is not None:
            observer.complete()

    def unsubscribe(self) -> None:
        """End the subscription. Safe to call any number of times."""
        self._close()


class SubscriptionObserver:
    """Observer handed to subscriber functions, which drops notifications after the stream ends."""

    __slots__ = ("_subscription",)

    def __init__(self, subscription: Subscription) -> None:
        self._subscription = subscription

    @property
    def closed(self) -> bool:
        """Return True if notifications sent to this observer are no longer delivered."""
        return self._subscription.closed

    def next(self, value: Any) -> None:
        """Deliver the next value of the stream."""
        self._subscription._next(value)  # pylint: disable=protected-access

    def error(self, error: BaseException) -> None:
        """Deliver the error that ends the stream."""
        self._subscription._error(error)  # pylint: disable=protected-access

    def complete(self) -> None:
        """End the stream without error."""
        self._subscription._complete()  # pylint: disable=protected-access


# Tags for notifications queued up for async iteration.
_NEXT = "next"
_ERROR = "error"
_COMPLETE = "complete"


class Observable:
    """A lazily-started stream of values, produced by a subscriber function."""

    __slots__ = ("_subscriber",)

    def __init__(self, subscriber: Subscriber) -> None:
        """Create an Observable that runs the subscriber function on every subscription."""
        self._subscriber = subscriber

    @classmethod
    def of(cls, *values: Any) -> "Observable":
        """Return an Observable that emits the given values, then completes."""

        def _subscriber(observer: SubscriptionObserver) -> Cleanup:
            for value in values:
                observer.next(value)
            observer.complete()
            return None

        return cls(_subscriber)

    def subscribe(
        self,
        observer: Optional[Observer] = None,
        on_next: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        on_complete: Optional[Callable[[], None]] = None,
    ) -> Subscription:
        """Start the stream, delivering its notifications to the observer or to the callbacks."""
        if observer is None:
            observer = _CallbackObserver(on_next, on_error, on_complete)
        elif any(callback is not None for callback in (on_next, on_error, on_complete)):
            raise AssertionError(
                "Expected either an observer or callbacks to be given, but received both: "
                "{} {} {} {}".format(observer, on_next, on_error, on_complete)
            )

        subscription = Subscription(observer)
        subscription._start(self._subscriber)  # pylint: disable=protected-access
        return subscription

    def __aiter__(self) -> AsyncIterator[Any]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Any]:
        """Yield the values of the stream, raising its error if it ends with one."""
        queue: "asyncio.Queue[Tuple[str, Any]]" = asyncio.Queue()
        subscription = self.subscribe(
            on_next=lambda value: queue.put_nowait((_NEXT, value)),
            on_error=lambda error: queue.put_nowait((_ERROR, error)),
            on_complete=lambda: queue.put_nowait((_COMPLETE, None)),
        )
        try:
            while True:
                kind, value = await queue.get()
                if kind == _NEXT:
                    yield value
                elif kind == _ERROR:
                    raise value
                else:
                    return
        finally:
            subscription.unsubscribe()

    async def to_list(self) -> List[Any]:
        """Wait for the stream to complete, and return all the values it emitted."""
        return [value async for value in self]
