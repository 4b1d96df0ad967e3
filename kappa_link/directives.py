# Copyright 2019-present Kensho Technologies, LLC.
"""Helper functions for dealing with the @kappa directive."""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from graphql import GraphQLError
from graphql.execution.values import get_directive_values
from graphql.language.ast import DocumentNode, FieldNode
from graphql.language.visitor import BREAK, Visitor, visit

from .exceptions import KappaDirectiveError
from .schema import KAPPA_DIRECTIVE_NAME, KappaDirective


@dataclass(frozen=True)
class DirectiveInfo:
    """The arguments of a @kappa directive applied to a field."""

    view: str
    method: Optional[str] = None
    event: Optional[str] = None


def has_kappa_directive(field_ast: FieldNode) -> bool:
    """Return True if the field carries the @kappa directive."""
    return any(
        directive.name.value == KAPPA_DIRECTIVE_NAME for directive in field_ast.directives or []
    )


def extract_kappa_directive(
    field_ast: FieldNode, variables: Optional[Dict[str, Any]] = None
) -> Optional[DirectiveInfo]:
    """Return the @kappa directive arguments of the given field, or None if it has no @kappa.

    Args:
        field_ast: GraphQL AST node of the field, obtained from the graphql library
        variables: the operation's variables, used if the directive's arguments refer to any

    Returns:
        DirectiveInfo describing the directive, or None if the directive is absent

    Raises:
        KappaDirectiveError: if the directive's arguments cannot be coerced, e.g. the required
                             "view" argument is missing
    """
    if not has_kappa_directive(field_ast):
        return None

    try:
        directive_args = get_directive_values(KappaDirective, field_ast, variables)
    except GraphQLError as e:
        raise KappaDirectiveError(
            "Invalid @kappa directive on field {}: {}".format(field_ast.name.value, e.message)
        ) from e

    if directive_args is None:
        raise AssertionError(
            "Expected to find @kappa arguments on field {}, but found none. This is a "
            "bug.".format(field_ast.name.value)
        )

    return DirectiveInfo(
        view=directive_args["view"],
        method=directive_args.get("method"),
        event=directive_args.get("event"),
    )


class FirstKappaFieldVisitor(Visitor):
    """Record the first field carrying @kappa in pre-order, then stop the traversal."""

    def __init__(self) -> None:
        """Create a visitor that has not found any field yet."""
        super().__init__()
        self.field: Optional[FieldNode] = None

    def enter_field(
        self, node: FieldNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> Any:
        """Stop at the first field annotated with @kappa."""
        if has_kappa_directive(node):
            self.field = node
            return BREAK
        return None


def find_first_kappa_field(document_ast: DocumentNode) -> Optional[FieldNode]:
    """Return the first field in document order that carries @kappa, or None if there is none."""
    visitor = FirstKappaFieldVisitor()
    visit(document_ast, visitor)
    return visitor.field
