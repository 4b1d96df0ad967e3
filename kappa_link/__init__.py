# Copyright 2019-present Kensho Technologies, LLC.
"""Route GraphQL fields annotated with @kappa to the methods and events of kappa views."""
from .directives import DirectiveInfo, extract_kappa_directive, find_first_kappa_field  # noqa
from .exceptions import (  # noqa
    KappaDirectiveError,
    KappaInvalidOperationError,
    KappaLinkError,
    KappaParsingError,
)
from .execution import ExecutionInfo, execute_document  # noqa
from .link import VIEW_STORE_CONTEXT_KEY, KappaLink, Link  # noqa
from .normalization import TYPENAME_FIELD, add_typename  # noqa
from .observable import Observable, Subscription  # noqa
from .operation import Operation, OperationContext  # noqa
from .resolver_map import (  # noqa
    FunctionEntry,
    ResolverMap,
    SubscriptionEntry,
    ValueEntry,
    load_resolver_map,
)
from .schema import KAPPA_DIRECTIVE_DECLARATION, KappaDirective, SchemaFragment  # noqa
from .view_store import ReadinessGate, ViewStore  # noqa


__package_name__ = "graphql-kappa-link"
__version__ = "1.0.0"
