# Copyright 2019-present Kensho Technologies, LLC.
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Union

from graphql.language.ast import DocumentNode

from .ast_manipulation import safe_parse_graphql
from .schema import SchemaFragment


SCHEMAS_CONTEXT_KEY = "schemas"

ContextUpdate = Union[Mapping[str, Any], Callable[[Dict[str, Any]], Mapping[str, Any]]]


class OperationContext:
    """Append-only key/value store threaded through the links that handle one operation.

    Later contributions shadow earlier ones per key, and keys are never removed. The schema
    fragments stored under "schemas" are the exception to shadowing: each link appends its own
    fragments to the accumulated list.
    """

    __slots__ = ("_values",)

    def __init__(self, initial_values: Optional[Mapping[str, Any]] = None) -> None:
        """Create a context holding a copy of the given values."""
        self._values: Dict[str, Any] = {SCHEMAS_CONTEXT_KEY: []}
        if initial_values:
            self.update(initial_values)

    def __repr__(self) -> str:
        return f"OperationContext({self._values})"

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for the key, or the default if the key was never set."""
        return self._values.get(key, default)

    def update(self, values: Mapping[str, Any]) -> None:
        """Merge the given values into the context, shadowing existing values per key.

        Schema fragments given under "schemas" are appended to the accumulated list instead.
        """
        for key, value in values.items():
            if key == SCHEMAS_CONTEXT_KEY:
                for schema_fragment in value:
                    self.append_schema(schema_fragment)
            else:
                self._values[key] = value

    def append_schema(self, schema_fragment: SchemaFragment) -> None:
        """Add a schema fragment to the list accumulated across the link chain."""
        self._values[SCHEMAS_CONTEXT_KEY] = self._values[SCHEMAS_CONTEXT_KEY] + [schema_fragment]

    @property
    def schemas(self) -> List[SchemaFragment]:
        """Return the schema fragments accumulated so far, in contribution order."""
        return list(self._values[SCHEMAS_CONTEXT_KEY])

    def to_dict(self) -> Dict[str, Any]:
        """Return a shallow copy of the context's contents."""
        result = dict(self._values)
        result[SCHEMAS_CONTEXT_KEY] = self.schemas
        return result


@dataclass
class Operation:
    """A parsed GraphQL request travelling through a chain of links."""

    query: DocumentNode
    variables: Dict[str, Any] = field(default_factory=dict)
    operation_name: Optional[str] = None
    context: OperationContext = field(default_factory=OperationContext)

    @classmethod
    def from_query_string(
        cls,
        query_string: str,
        variables: Optional[Dict[str, Any]] = None,
        operation_name: Optional[str] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> "Operation":
        """Parse the query string and wrap it into an Operation."""
        return cls(
            query=safe_parse_graphql(query_string),
            variables=dict(variables or {}),
            operation_name=operation_name,
            context=OperationContext(context),
        )

    def get_context(self) -> Dict[str, Any]:
        """Return a snapshot of the operation's context."""
        return self.context.to_dict()

    def set_context(self, update: ContextUpdate) -> Dict[str, Any]:
        """Merge new values into the context, and return the resulting snapshot.

        The update is either a mapping, or a function from the current context snapshot
        to a mapping, as is convenient when the new values depend on the old ones. A function
        returns the full "schemas" list, typically by spreading the snapshot, so only the
        fragments past the snapshot's list are added.
        """
        if callable(update):
            snapshot = self.get_context()
            update = dict(update(snapshot))
            if SCHEMAS_CONTEXT_KEY in update:
                known_schema_count = len(snapshot[SCHEMAS_CONTEXT_KEY])
                update[SCHEMAS_CONTEXT_KEY] = list(update[SCHEMAS_CONTEXT_KEY])[
                    known_schema_count:
                ]
        self.context.update(update)
        return self.get_context()
