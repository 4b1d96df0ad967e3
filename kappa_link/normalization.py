# Copyright 2019-present Kensho Technologies, LLC.
from typing import Any, Mapping


TYPENAME_FIELD = "__typename"


def capitalize_first_letter(string: str) -> str:
    """Return the string with its first letter uppercased and the rest left as-is."""
    return string[:1].upper() + string[1:]


def _add_typename_to_mapping(data: Mapping[str, Any], typename: str) -> Any:
    """Return a copy of the mapping with the given __typename, unless it already has one."""
    if data.get(TYPENAME_FIELD):
        return data

    result = dict(data)
    result[TYPENAME_FIELD] = typename
    return result


def add_typename(data: Any, field_name: str) -> Any:
    """Stamp the __typename derived from the field name onto object results.

    Scalars and None are returned unchanged. A mapping that lacks a __typename is copied and the
    copy gets the capitalized field name as its __typename. Lists and tuples of mappings are
    handled element-wise, producing a new list. Existing __typename values are never overwritten,
    and the input data is never mutated, since resolvers may return shared or cached values.
    """
    typename = capitalize_first_letter(field_name)

    if isinstance(data, Mapping):
        return _add_typename_to_mapping(data, typename)
    elif isinstance(data, (list, tuple)):
        return [
            _add_typename_to_mapping(item, typename) if isinstance(item, Mapping) else item
            for item in data
        ]
    else:
        return data
