# Copyright 2019-present Kensho Technologies, LLC.
"""Caller-supplied resolvers, keyed by type name and then by field name.

Callers write resolver maps as plain nested mappings:

    {
        "Query": {
            "items": lambda root_value, args, context, info: [...],
            "__typename": None,
        },
        "Subscription": {
            "onItem": {"filter": lambda data, args: data["id"] == args["id"]},
        },
    }

Each entry is converted into one of the tagged entry types below, so that resolution can branch
on the entry's kind instead of probing the raw value.
"""
from dataclasses import dataclass
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

from funcy import walk_values


QUERY_TYPE = "Query"
MUTATION_TYPE = "Mutation"
SUBSCRIPTION_TYPE = "Subscription"


# (root_value, args, context, info) -> data, or an awaitable of data
ResolverFunction = Callable[..., Union[Any, Awaitable[Any]]]

# (data, args) -> whether the event payload is emitted to the subscriber
SubscriptionFilter = Callable[[Any, Dict[str, Any]], bool]

# (root_value, args, context) -> teardown function. The context carries "next" and "error".
SubscribeFunction = Callable[[Any, Dict[str, Any], Dict[str, Any]], Optional[Callable[[], None]]]


@dataclass(frozen=True)
class ValueEntry:
    """A static value, returned as-is. Typically None, e.g. for "__typename" fields."""

    value: Any


@dataclass(frozen=True)
class FunctionEntry:
    """A resolver function, whose (possibly awaitable) result is normalized before use."""

    resolve: ResolverFunction


@dataclass(frozen=True)
class SubscriptionEntry:
    """Options for a subscription field.

    The filter decides which event payloads reach the subscriber. The subscribe function is only
    used for fields whose @kappa directive names no event.
    """

    filter: Optional[SubscriptionFilter] = None
    subscribe: Optional[SubscribeFunction] = None


ResolverEntry = Union[ValueEntry, FunctionEntry, SubscriptionEntry]

RawResolverMap = Mapping[str, Mapping[str, Any]]
ResolversSource = Union[RawResolverMap, Callable[[], RawResolverMap], None]


def _make_entry(type_name: str, raw_entry: Any) -> ResolverEntry:
    """Convert a raw resolver map value into its tagged entry."""
    if isinstance(raw_entry, (ValueEntry, FunctionEntry, SubscriptionEntry)):
        return raw_entry

    if type_name == SUBSCRIPTION_TYPE:
        if isinstance(raw_entry, Mapping):
            return SubscriptionEntry(
                filter=raw_entry.get("filter"), subscribe=raw_entry.get("subscribe")
            )
        elif callable(raw_entry):
            return SubscriptionEntry(subscribe=raw_entry)

    if callable(raw_entry):
        return FunctionEntry(raw_entry)
    return ValueEntry(raw_entry)


class ResolverMap:
    """An immutable table of resolver entries, keyed by type name and then by field name."""

    __slots__ = ("_entries",)

    def __init__(self, raw_resolvers: Optional[RawResolverMap] = None) -> None:
        """Convert the raw nested mapping into tagged entries."""
        raw_resolvers = raw_resolvers or {}
        self._entries: Dict[str, Dict[str, ResolverEntry]] = {
            type_name: walk_values(partial(_make_entry, type_name), dict(field_resolvers))
            for type_name, field_resolvers in raw_resolvers.items()
        }

    def __repr__(self) -> str:
        return f"ResolverMap({self._entries})"

    def get_entry(self, type_name: str, field_name: str) -> Optional[ResolverEntry]:
        """Return the entry for the field of the given type, or None if there is none."""
        return self._entries.get(type_name, {}).get(field_name)

    def get_subscription_entry(self, field_name: str) -> Optional[SubscriptionEntry]:
        """Return the subscription options for the given root subscription field, if any."""
        entry = self.get_entry(SUBSCRIPTION_TYPE, field_name)
        if isinstance(entry, SubscriptionEntry):
            return entry
        # Static values, e.g. "__typename": None, carry no subscription options.
        return None


def load_resolver_map(resolvers: ResolversSource) -> ResolverMap:
    """Build the resolver map for one operation, calling the resolvers factory if given one."""
    if isinstance(resolvers, ResolverMap):
        return resolvers
    if callable(resolvers):
        resolvers = resolvers()
        if isinstance(resolvers, ResolverMap):
            return resolvers
    return ResolverMap(resolvers)
