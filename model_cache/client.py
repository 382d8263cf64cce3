"""
Query and mutation surface of the model query cache.

Queries are described by a `QueryRequest`: the identity the result is
cached under and a fetch coroutine for the store to call. Mutations are
executed by `ModelMutation`, which wires cache maintenance into the
mutation lifecycle.
"""

from typing import Any, Optional, TYPE_CHECKING

from shared.config import ClientConfig
from shared.errors import ValidationError
from shared.logging import clear_context, get_logger, set_mutation_id
from shared.tracing import trace_operation
from .adapters import ModelApiClient
from .caching.lifecycle import MutationHooks, MutationLifecycle
from .caching.mutations import WRITE_OPERATIONS, parse_mutation
from .caching.orchestrator import (
    CacheOrchestrator,
    CacheStore,
    InvalidationMiddleware,
    OptimisticUpdateMiddleware,
)
from .caching.query_key import QueryIdentity, get_query_key
from .schema import ModelMeta
from .wire import make_url, marshal

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


MUTATION_METHODS = ("POST", "PUT", "DELETE")


class QueryRequest:
    """A cacheable read against the model API."""

    def __init__(self, identity: QueryIdentity, url: str, client: ModelApiClient):
        self.identity = identity
        self.url = url
        self.client = client

    @property
    def key(self):
        return self.identity.as_key()

    async def fetch(self, page_param: Any = None) -> Any:
        """Fetch the query result; for infinite queries ``page_param`` replaces the args."""
        args = page_param if page_param is not None else self.identity.args
        return await self.client.fetch(make_url(self.url, args), check_read_back=False)


def model_query(
    client: ModelApiClient,
    model: str,
    operation: str,
    args: Any = None,
    *,
    optimistic_update: Optional[bool] = None,
) -> QueryRequest:
    """Describe a query on a model; ``optimistic_update`` defaults to the client config."""
    if optimistic_update is None:
        optimistic_update = client.config.optimistic_update
    url = client.url_for(model, operation)
    identity = get_query_key(model, url, args, infinite=False, optimistic_update=optimistic_update)
    return QueryRequest(identity, url, client)


def infinite_model_query(client: ModelApiClient, model: str, operation: str, args: Any = None) -> QueryRequest:
    """Describe a paged query; paged results are never optimistically updated."""
    url = client.url_for(model, operation)
    identity = get_query_key(model, url, args, infinite=True, optimistic_update=False)
    return QueryRequest(identity, url, client)


class ModelMutation:
    """
    A mutation endpoint of a model, with cache maintenance attached.

    The operation name is taken from the last segment of ``url``. ``DELETE``
    sends its args as the ``q`` query parameter, other methods send them
    as the JSON body. Per-mutation flags default to the values in
    ``config``.
    """

    def __init__(
        self,
        model: str,
        method: str,
        url: str,
        schema: ModelMeta,
        store: CacheStore,
        client: ModelApiClient,
        config: ClientConfig,
        *,
        hooks: Optional[MutationHooks] = None,
        invalidate_queries: Optional[bool] = None,
        optimistic_update: Optional[bool] = None,
        check_read_back: Optional[bool] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        method = method.upper()
        if method not in MUTATION_METHODS:
            raise ValidationError(f"Unsupported mutation method: {method}", details={"model": model, "url": url})

        self.operation = url.rstrip("/").split("/")[-1]
        if not self.operation:
            raise ValidationError("Unable to derive operation from url", details={"model": model, "url": url})

        self.model = schema.require_model(model).name
        self.method = method
        self.url = url
        self.schema = schema
        self.client = client
        self.config = config
        self.invalidate_queries = config.invalidate_queries if invalidate_queries is None else invalidate_queries
        self.optimistic_update = config.optimistic_update if optimistic_update is None else optimistic_update
        self.check_read_back = config.check_read_back if check_read_back is None else check_read_back
        self.logger = get_logger("model_cache.mutation")

        self.orchestrator = CacheOrchestrator(schema, store, config, metrics=metrics)

        middlewares = []
        if self.invalidate_queries:
            middlewares.append(InvalidationMiddleware(self.orchestrator, self.model, self.operation))
        if self.optimistic_update:
            middlewares.append(
                OptimisticUpdateMiddleware(
                    self.orchestrator,
                    self.model,
                    self.operation,
                    settle_invalidation=self.invalidate_queries,
                )
            )
        self.lifecycle = MutationLifecycle(middlewares, hooks)

    @property
    def middlewares(self) -> tuple:
        return self.lifecycle.middlewares

    async def mutate(self, variables: Any) -> Any:
        """Run the mutation through its lifecycle and return the response data."""
        if self.operation in WRITE_OPERATIONS:
            parse_mutation(self.model, self.operation, variables, self.schema)

        mutation_id = set_mutation_id(model=self.model)
        try:
            with trace_operation(
                "model_cache.mutate",
                model=self.model,
                operation=self.operation,
                method=self.method,
                mutation_id=mutation_id,
            ):
                return await self._run(variables)
        finally:
            clear_context()

    async def _run(self, variables: Any) -> Any:
        context = None
        try:
            context = await self.lifecycle.on_mutate(variables)
            data = await self._send(variables)
            await self.lifecycle.on_success(data, variables, context)
            await self.lifecycle.on_settled(data, None, variables, context)
            return data
        except Exception as exc:
            self.logger.warning(
                "Mutation failed",
                model=self.model,
                operation=self.operation,
                error=str(exc),
            )
            await self.lifecycle.on_error(exc, variables, context)
            await self.lifecycle.on_settled(None, exc, variables, context)
            raise

    async def _send(self, variables: Any) -> Any:
        if self.method == "DELETE":
            return await self.client.fetch(
                make_url(self.url, variables),
                method=self.method,
                check_read_back=self.check_read_back,
            )
        return await self.client.fetch(
            self.url,
            method=self.method,
            body=marshal(variables),
            check_read_back=self.check_read_back,
        )
