# Copyright 2019-present Kensho Technologies, LLC.
from collections import OrderedDict
from typing import NamedTuple, Sequence, Union

from graphql import (
    DirectiveLocation,
    DocumentNode,
    GraphQLArgument,
    GraphQLDirective,
    GraphQLNonNull,
    GraphQLString,
)
from graphql.language.printer import print_ast


KAPPA_DIRECTIVE_NAME = "kappa"

# The declaration contributed to the accumulated schema list of the link chain.
KAPPA_DIRECTIVE_DECLARATION = "directive @kappa on FIELD"


# Constraints:
# - 'view' names an entry of the view store's API;
# - 'method' is used by query and mutation fields, and names a method of that view;
# - 'event' is used by subscription fields, and names an event emitted by that view.
KappaDirective = GraphQLDirective(
    name=KAPPA_DIRECTIVE_NAME,
    args=OrderedDict(
        [
            (
                "view",
                GraphQLArgument(
                    type_=GraphQLNonNull(GraphQLString),
                    description="Name of the view to which the field is routed.",
                ),
            ),
            (
                "method",
                GraphQLArgument(
                    type_=GraphQLString,
                    description="Name of the view method that computes the field's value.",
                ),
            ),
            (
                "event",
                GraphQLArgument(
                    type_=GraphQLString,
                    description="Name of the view event whose payloads the field subscribes to.",
                ),
            ),
        ]
    ),
    locations=[
        DirectiveLocation.FIELD,
    ],
)


TypeDefs = Union[str, DocumentNode, Sequence[Union[str, DocumentNode]]]


class SchemaFragment(NamedTuple):
    """A piece of schema contributed by one link to the link chain's accumulated schemas."""

    definition: str
    directives: str


def normalize_type_defs(type_defs: TypeDefs) -> str:
    """Print and concatenate the given type definitions into a single schema string."""
    if isinstance(type_defs, (str, DocumentNode)):
        type_defs = [type_defs]

    printed_defs = (
        type_def if isinstance(type_def, str) else print_ast(type_def) for type_def in type_defs
    )
    return "\n".join(printed_def.strip() for printed_def in printed_defs)


def make_schema_fragment(type_defs: TypeDefs) -> SchemaFragment:
    """Return the schema fragment describing the given type definitions and the @kappa directive."""
    return SchemaFragment(
        definition=normalize_type_defs(type_defs), directives=KAPPA_DIRECTIVE_DECLARATION
    )
