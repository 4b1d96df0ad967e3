# Copyright 2019-present Kensho Technologies, LLC.
"""Schemaless execution of GraphQL documents through a single resolver callback.

Unlike graphql-core's execute(), no schema is involved: the executor walks the document's
selection sets and asks a resolver function for the value of each field, then recurses into
the field's sub-selections using the returned value as the new root value. Which type a
fragment applies to is decided by a caller-supplied fragment matcher.
"""
import asyncio
from dataclasses import dataclass
import inspect
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union

from graphql import GraphQLIncludeDirective, GraphQLSkipDirective
from graphql.execution.values import get_directive_values
from graphql.language.ast import (
    DirectiveNode,
    DocumentNode,
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    InlineFragmentNode,
    SelectionNode,
    SelectionSetNode,
)
from graphql.pyutils import Undefined
from graphql.utilities import value_from_ast_untyped

from .ast_manipulation import get_ast_field_name, get_main_definition, get_result_key
from .exceptions import KappaInvalidOperationError


@dataclass(frozen=True)
class ExecutionInfo:
    """Information about the field being resolved, passed to the resolver function."""

    field: FieldNode
    result_key: str  # the field's alias if it has one, or else its name
    is_leaf: bool  # True if the field has no sub-selections
    directives: Dict[str, Dict[str, Any]]  # directive name -> argument name -> value
    variables: Dict[str, Any]


# (field_name, root_value, args, context, info) -> value, or an awaitable of the value
FieldResolver = Callable[[str, Any, Dict[str, Any], Any, ExecutionInfo], Union[Any, Awaitable[Any]]]

# (root_value, type_condition, context) -> whether the fragment applies to the root value
FragmentMatcher = Callable[[Any, str, Any], bool]


def match_any_fragment(root_value: Any, type_condition: str, context: Any) -> bool:
    """Apply every fragment, regardless of its type condition."""
    return True


def get_argument_values_untyped(
    node: Union[FieldNode, DirectiveNode], variables: Optional[Dict[str, Any]]
) -> Dict[str, Any]:
    """Return the node's arguments, with variables substituted and no type coercion applied.

    Arguments whose value refers to a variable that was not provided are left out.
    """
    result = {}
    for argument in node.arguments or []:
        value = value_from_ast_untyped(argument.value, variables)
        if value is not Undefined:
            result[argument.name.value] = value
    return result


def get_directive_info(field_ast: FieldNode, variables: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Return a dict of directive name to the directive's argument values for the given field."""
    return {
        directive.name.value: get_argument_values_untyped(directive, variables)
        for directive in field_ast.directives or []
    }


def should_include_node(node: SelectionNode, variables: Optional[Dict[str, Any]]) -> bool:
    """Determine if the selection should be executed, based on its @skip and @include directives."""
    skip = get_directive_values(GraphQLSkipDirective, node, variables)
    if skip and skip["if"]:
        return False

    include = get_directive_values(GraphQLIncludeDirective, node, variables)
    if include and not include["if"]:
        return False

    return True


async def _gather_or_cancel(awaitables: Iterable[Awaitable[Any]]) -> List[Any]:
    """Await the awaitables concurrently, cancelling the unfinished ones if any fails."""
    tasks = [asyncio.ensure_future(awaitable) for awaitable in awaitables]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        raise


def _merge_into(target: Dict[str, Any], source: Mapping[str, Any]) -> None:
    """Deep-merge the source into the target, copying any nested dicts that get merged."""
    for key, value in source.items():
        existing_value = target.get(key)
        if isinstance(existing_value, Mapping) and isinstance(value, Mapping):
            merged_value = dict(existing_value)
            _merge_into(merged_value, value)
            target[key] = merged_value
        else:
            target[key] = value


class _DocumentExecutor:
    """Execution state shared by all the fields of one document."""

    def __init__(
        self,
        resolver: FieldResolver,
        fragment_map: Dict[str, FragmentDefinitionNode],
        context: Any,
        variables: Dict[str, Any],
        fragment_matcher: FragmentMatcher,
    ) -> None:
        self.resolver = resolver
        self.fragment_map = fragment_map
        self.context = context
        self.variables = variables
        self.fragment_matcher = fragment_matcher

    async def execute_selection_set(
        self, selection_set: SelectionSetNode, root_value: Any
    ) -> Dict[str, Any]:
        """Resolve all included selections concurrently, and merge their results in order."""
        included_selections = [
            selection
            for selection in selection_set.selections
            if should_include_node(selection, self.variables)
        ]
        selection_results = await _gather_or_cancel(
            self._execute_selection(selection, root_value) for selection in included_selections
        )

        result: Dict[str, Any] = {}
        for selection_result in selection_results:
            _merge_into(result, selection_result)
        return result

    async def _execute_selection(
        self, selection: SelectionNode, root_value: Any
    ) -> Dict[str, Any]:
        if isinstance(selection, FieldNode):
            value = await self._execute_field(selection, root_value)
            return {get_result_key(selection): value}

        if isinstance(selection, InlineFragmentNode):
            fragment: Union[InlineFragmentNode, FragmentDefinitionNode] = selection
        elif isinstance(selection, FragmentSpreadNode):
            fragment_name = selection.name.value
            if fragment_name not in self.fragment_map:
                raise KappaInvalidOperationError(
                    "Found a spread of fragment {}, but the document has no fragment with "
                    "that name.".format(fragment_name)
                )
            fragment = self.fragment_map[fragment_name]
        else:
            raise AssertionError(f"Unexpected selection type: {type(selection).__name__}")

        if fragment.type_condition is not None:
            type_condition = fragment.type_condition.name.value
            if not self.fragment_matcher(root_value, type_condition, self.context):
                return {}

        return await self.execute_selection_set(fragment.selection_set, root_value)

    async def _execute_field(self, field_ast: FieldNode, root_value: Any) -> Any:
        field_name = get_ast_field_name(field_ast)
        args = get_argument_values_untyped(field_ast, self.variables)
        info = ExecutionInfo(
            field=field_ast,
            result_key=get_result_key(field_ast),
            is_leaf=field_ast.selection_set is None,
            directives=get_directive_info(field_ast, self.variables),
            variables=self.variables,
        )

        value = self.resolver(field_name, root_value, args, self.context, info)
        if inspect.isawaitable(value):
            value = await value

        if field_ast.selection_set is None:
            return value
        return await self._complete_value(field_ast.selection_set, value)

    async def _complete_value(self, selection_set: SelectionSetNode, value: Any) -> Any:
        """Execute the sub-selections over the value, element-wise if it is a list."""
        if value is None:
            return None
        if isinstance(value, (list, tuple)):
            return await _gather_or_cancel(
                self._complete_value(selection_set, item) for item in value
            )
        return await self.execute_selection_set(selection_set, value)


async def execute_document(
    resolver: FieldResolver,
    document_ast: DocumentNode,
    root_value: Any = None,
    context: Any = None,
    variables: Optional[Dict[str, Any]] = None,
    fragment_matcher: Optional[FragmentMatcher] = None,
) -> Dict[str, Any]:
    """Execute the document's main definition, resolving each field through the resolver.

    Args:
        resolver: function called once per executed field, as
                  resolver(field_name, root_value, args, context, info); may return an awaitable
        document_ast: the parsed GraphQL document to execute
        root_value: the value whose fields the top-level selections resolve; defaults to {}
        context: opaque value passed through to every resolver call
        variables: the operation's variables, substituted into arguments and directives
        fragment_matcher: decides whether a fragment with a type condition applies to a value;
                          by default all fragments apply

    Returns:
        dict, the result object with one key per executed top-level selection
    """
    fragment_map = {
        definition.name.value: definition
        for definition in document_ast.definitions
        if isinstance(definition, FragmentDefinitionNode)
    }
    executor = _DocumentExecutor(
        resolver,
        fragment_map,
        context,
        dict(variables or {}),
        fragment_matcher or match_any_fragment,
    )

    main_definition = get_main_definition(document_ast)
    if root_value is None:
        root_value = {}
    return await executor.execute_selection_set(main_definition.selection_set, root_value)
