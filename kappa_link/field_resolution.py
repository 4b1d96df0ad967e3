# Copyright 2019-present Kensho Technologies, LLC.
import inspect
import logging
from typing import Any, Dict, Mapping

from .ast_manipulation import get_result_key
from .directives import extract_kappa_directive
from .execution import ExecutionInfo
from .normalization import TYPENAME_FIELD, add_typename
from .resolver_map import FunctionEntry, ResolverMap, ValueEntry


logger = logging.getLogger(__name__)


class _Missing:
    """Marker for keys absent from the root value, as distinct from keys set to None."""

    def __repr__(self) -> str:
        return "<missing>"


MISSING = _Missing()


def _get_key(root_value: Any, key: str) -> Any:
    """Return the value stored under the key of a mapping root value, or MISSING."""
    if isinstance(root_value, Mapping):
        return root_value.get(key, MISSING)
    return MISSING


async def _await_if_needed(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def call_view_method(view_store: Any, view_name: str, method_name: str, args: Any) -> Any:
    """Call the named method of the named view, passing the arguments only if there are any."""
    view = view_store.api[view_name]
    method = getattr(view, method_name)
    if args:
        return await _await_if_needed(method(args))
    return await _await_if_needed(method())


class KappaFieldResolver:
    """Resolve fields of queries and mutations, one call per field.

    Resolution proceeds in the following order, using the first applicable step:
    1. A field with a @kappa(view, method) directive is computed by calling the view's method with
       the field's arguments. The result is returned as-is.
    2. If the root value already holds a value for the field, under its alias or under its name,
       that value is returned. The value may have been computed by another link, or by the
       resolver of the parent field. The aliased value takes precedence.
    3. The resolver map is consulted, under the type name of the root value or, at the top level,
       under the operation type. Resolver functions are called and their results get __typename
       values derived from the field name; static values are returned unmodified.
    4. Otherwise the field resolves to None.

    Errors raised by view methods or resolver functions are not caught.
    """

    def __init__(self, view_store: Any, resolver_map: ResolverMap, operation_type: str) -> None:
        """Create a resolver for one operation of the given type, e.g. "Query"."""
        self.view_store = view_store
        self.resolver_map = resolver_map
        self.operation_type = operation_type

    async def __call__(
        self,
        field_name: str,
        root_value: Any,
        args: Dict[str, Any],
        context: Any,
        info: ExecutionInfo,
    ) -> Any:
        """Return the value of the field."""
        directive_info = extract_kappa_directive(info.field, info.variables)
        if directive_info is not None and directive_info.method is not None:
            logger.debug(
                "Calling view method %s.%s for field %s.",
                directive_info.view,
                directive_info.method,
                field_name,
            )
            return await call_view_method(
                self.view_store, directive_info.view, directive_info.method, args
            )

        aliased_value = _get_key(root_value, get_result_key(info.field))
        plain_value = _get_key(root_value, field_name)
        if aliased_value is not MISSING or plain_value is not MISSING:
            if aliased_value is not MISSING and aliased_value is not None:
                return aliased_value
            return None if plain_value is MISSING else plain_value

        type_name = _get_key(root_value, TYPENAME_FIELD)
        if type_name is MISSING or not type_name:
            type_name = self.operation_type

        entry = self.resolver_map.get_entry(type_name, field_name)
        if isinstance(entry, FunctionEntry):
            data = await _await_if_needed(entry.resolve(root_value, args, context, info))
            return add_typename(data, field_name)
        elif isinstance(entry, ValueEntry):
            return entry.value

        return None
