# Copyright 2019-present Kensho Technologies, LLC.
from typing import Any, Iterable, List, Union

from funcy import first
from graphql.error import GraphQLSyntaxError
from graphql.language.ast import (
    DirectiveNode,
    DocumentNode,
    FieldNode,
    FragmentDefinitionNode,
    OperationDefinitionNode,
)
from graphql.language.parser import parse
from graphql.language.visitor import BREAK, Visitor, visit

from .exceptions import KappaInvalidOperationError, KappaParsingError


def get_ast_field_name(ast: FieldNode) -> str:
    """Return the field name for the given AST node."""
    return ast.name.value


def get_result_key(ast: FieldNode) -> str:
    """Return the key under which the field's value is placed in the result: its alias or name."""
    if ast.alias is not None:
        return ast.alias.value
    return get_ast_field_name(ast)


def safe_parse_graphql(graphql_string: str) -> DocumentNode:
    """Return an AST representation of the given GraphQL input, reraising GraphQL library errors."""
    try:
        ast = parse(graphql_string)
    except GraphQLSyntaxError as e:
        raise KappaParsingError(e) from e

    return ast


def get_main_definition(
    document_ast: DocumentNode,
) -> Union[OperationDefinitionNode, FragmentDefinitionNode]:
    """Return the first operation definition in the document, or else its first fragment."""
    definitions = document_ast.definitions or []

    operation_definition = first(
        definition
        for definition in definitions
        if isinstance(definition, OperationDefinitionNode)
    )
    if operation_definition is not None:
        return operation_definition

    fragment_definition = first(
        definition for definition in definitions if isinstance(definition, FragmentDefinitionNode)
    )
    if fragment_definition is not None:
        return fragment_definition

    raise KappaInvalidOperationError(
        "Expected a GraphQL document with an operation or a fragment definition, but found "
        "neither: {}".format(definitions)
    )


class DirectivePresenceVisitor(Visitor):
    """Stop the traversal as soon as a directive with one of the given names is found."""

    def __init__(self, directive_names: Iterable[str]) -> None:
        """Create a visitor looking for any of the given directive names."""
        super().__init__()
        self.directive_names = frozenset(directive_names)
        self.found = False

    def enter_directive(
        self, node: DirectiveNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> Any:
        """Record the directive and end the traversal if it is one we look for."""
        if node.name.value in self.directive_names:
            self.found = True
            return BREAK
        return None


def has_directives(directive_names: Iterable[str], document_ast: DocumentNode) -> bool:
    """Return True if any of the named directives appears anywhere in the document."""
    visitor = DirectivePresenceVisitor(directive_names)
    visit(document_ast, visitor)
    return visitor.found
