# Copyright 2019-present Kensho Technologies, LLC.
from abc import ABCMeta, abstractmethod
import asyncio
import logging
from typing import Any, Callable, Optional, Union

from graphql.language.ast import FragmentDefinitionNode, OperationDefinitionNode

from .ast_manipulation import get_main_definition, has_directives
from .directives import find_first_kappa_field
from .execution import FragmentMatcher, execute_document
from .field_resolution import KappaFieldResolver
from .normalization import capitalize_first_letter
from .observable import Cleanup, Observable, SubscriptionObserver
from .operation import Operation
from .resolver_map import (
    MUTATION_TYPE,
    QUERY_TYPE,
    SUBSCRIPTION_TYPE,
    ResolverMap,
    ResolversSource,
    load_resolver_map,
)
from .schema import KAPPA_DIRECTIVE_NAME, TypeDefs, make_schema_fragment
from .subscription import KappaSubscriptionManager


logger = logging.getLogger(__name__)


# The context key under which the view store is made available to resolvers.
VIEW_STORE_CONTEXT_KEY = "kappa"

# Hands the operation to the rest of the link chain.
NextLink = Callable[[Operation], Any]


class Link(metaclass=ABCMeta):
    """A step of the request pipeline, which handles an operation or forwards it onwards."""

    @abstractmethod
    def request(self, operation: Operation, forward: Optional[NextLink] = None) -> Any:
        """Return the result stream for the operation, possibly by calling forward(operation)."""
        raise NotImplementedError()


def get_operation_type(
    definition: Union[OperationDefinitionNode, FragmentDefinitionNode]
) -> str:
    """Return the capitalized operation type of the definition, defaulting to "Query"."""
    operation = getattr(definition, "operation", None)
    operation_name = "query" if operation is None else operation.value
    return capitalize_first_letter(operation_name)


class _QueryExecution:
    """One subscriber's execution of a query or mutation, started once the views are ready."""

    def __init__(
        self,
        link: "KappaLink",
        operation: Operation,
        field_resolver: KappaFieldResolver,
        observer: SubscriptionObserver,
    ) -> None:
        self.link = link
        self.operation = operation
        self.field_resolver = field_resolver
        self.observer = observer
        self.task: Optional["asyncio.Task[Any]"] = None

    def start(self) -> Cleanup:
        self.link.view_store.ready(self._on_ready)
        return self.cancel

    def _on_ready(self) -> None:
        if self.observer.closed:
            return
        operation = self.operation
        execution = execute_document(
            self.field_resolver,
            operation.query,
            root_value={},
            context=operation.get_context(),
            variables=operation.variables,
            fragment_matcher=self.link.fragment_matcher,
        )
        try:
            self.task = asyncio.get_running_loop().create_task(execution)
        except RuntimeError as e:
            # No running event loop in the thread that signalled readiness.
            execution.close()
            self.observer.error(e)
            return
        self.task.add_done_callback(self._on_done)

    def _on_done(self, task: "asyncio.Task[Any]") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.observer.error(error)
        else:
            self.observer.next({"data": task.result()})
            self.observer.complete()

    def cancel(self) -> None:
        if self.task is not None and not self.task.done():
            self.task.cancel()


class KappaLink(Link):
    """Link that routes GraphQL fields annotated with @kappa to the views of a view store.

    Queries and mutations are executed field by field: fields carrying @kappa(view, method)
    are computed by calling view methods, and other fields are resolved from data already present
    on their parent object or through the resolver map. Subscriptions follow the view event named
    by the first @kappa(view, event) field of the document. Operations that do not use @kappa at
    all are forwarded to the rest of the link chain untouched.
    """

    def __init__(
        self,
        view_store: Any,
        resolvers: ResolversSource = None,
        type_defs: Optional[TypeDefs] = None,
        fragment_matcher: Optional[FragmentMatcher] = None,
    ) -> None:
        """Create a link over the given view store.

        Args:
            view_store: object exposing the views through its "api" mapping, and a
                        ready(callback) readiness gate; see the view_store module
            resolvers: resolver map, given as a nested mapping of type name to field name to
                       resolver function or static value, or as a zero-argument function
                       returning one, which is then called once per operation
            type_defs: schema definitions contributed to the "schemas" list of each operation's
                       context, as a string, a parsed document, or a list of those
            fragment_matcher: function deciding whether a fragment with a type condition applies
                              to a value, as fragment_matcher(root_value, type_condition, context)
        """
        self.view_store = view_store
        self.resolvers = resolvers
        self.type_defs = type_defs
        self.fragment_matcher = fragment_matcher

    def request(
        self, operation: Operation, forward: Optional[NextLink] = None
    ) -> Optional[Observable]:
        """Return the result stream for the operation.

        Operations without any @kappa directive are handed to forward(), and None is returned if
        there is no forward(). Operations of an unknown type are logged and not executed.
        """
        if self.type_defs is not None:
            operation.context.append_schema(make_schema_fragment(self.type_defs))
        operation.set_context({VIEW_STORE_CONTEXT_KEY: self.view_store})

        if not has_directives([KAPPA_DIRECTIVE_NAME], operation.query):
            logger.debug("Forwarding operation %s without @kappa.", operation.operation_name)
            return forward(operation) if forward is not None else None

        definition = get_main_definition(operation.query)
        resolver_map = load_resolver_map(self.resolvers)
        operation_type = get_operation_type(definition)

        if operation_type in (QUERY_TYPE, MUTATION_TYPE):
            return self._run_query(operation_type, resolver_map, operation)
        elif operation_type == SUBSCRIPTION_TYPE:
            return self._run_subscription(resolver_map, operation, forward)
        else:
            logger.error("Invalid operation type: %s", operation_type)
            return None

    def _run_query(
        self, operation_type: str, resolver_map: ResolverMap, operation: Operation
    ) -> Observable:
        """Execute the query or mutation once the views are ready, emitting a single result."""
        field_resolver = KappaFieldResolver(self.view_store, resolver_map, operation_type)

        def _subscriber(observer: SubscriptionObserver) -> Cleanup:
            return _QueryExecution(self, operation, field_resolver, observer).start()

        return Observable(_subscriber)

    def _run_subscription(
        self, resolver_map: ResolverMap, operation: Operation, forward: Optional[NextLink]
    ) -> Optional[Observable]:
        """Stream the view events named by the first @kappa field of the subscription."""
        field_ast = find_first_kappa_field(operation.query)
        if field_ast is None:
            logger.debug(
                "Forwarding subscription %s without @kappa fields.", operation.operation_name
            )
            return forward(operation) if forward is not None else None

        manager = KappaSubscriptionManager(self.view_store, operation, field_ast, resolver_map)
        return manager.to_observable()
