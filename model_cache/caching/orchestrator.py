"""
Cache orchestration around the mutation lifecycle.

`CacheOrchestrator` works against a cache store it does not own, through
the `CacheStore` primitives. Optimistic merges run before the request is
dispatched, invalidation runs once the outcome is known.
"""

from typing import Any, Awaitable, Callable, List, Optional, Protocol, TYPE_CHECKING

from shared.config import ClientConfig
from shared.logging import get_logger
from shared.tracing import add_span_event
from ..schema import ModelMeta
from .invalidation import InvalidationPredicate, get_invalidation_predicate
from .lifecycle import LifecycleMiddleware
from .mutations import WRITE_OPERATIONS, parse_mutation
from .optimistic import apply_optimistic
from .query_key import CacheEntry, QueryIdentity

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class CacheStore(Protocol):
    """Primitives a query cache exposes to the orchestrator."""

    def snapshot_entries(self) -> List[CacheEntry]:
        ...

    def set_cache(self, identity: QueryIdentity, data: Any) -> None:
        ...

    def cancel_in_flight(self, identity: QueryIdentity, *, revert: bool = False) -> None:
        ...

    def invalidate(self, predicate: InvalidationPredicate) -> Awaitable[Any]:
        ...


class CacheOrchestrator:
    """Applies optimistic updates and invalidation for mutations against one store."""

    def __init__(
        self,
        schema: ModelMeta,
        store: CacheStore,
        config: ClientConfig,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.schema = schema
        self.store = store
        self.config = config
        self.metrics = metrics
        self.logger = get_logger("model_cache.orchestrator")

    async def invalidate(self, model: str, operation: str, args: Any, phase: str = "success") -> int:
        """Invalidate every cached query the mutation may have made stale; returns the match count."""
        predicate = get_invalidation_predicate(model, operation, args, self.schema, logging=self.config.logging)
        matched = 0

        def counting_predicate(query: Any) -> bool:
            nonlocal matched
            hit = predicate(query)
            if hit:
                matched += 1
            return hit

        await self.store.invalidate(counting_predicate)

        if self.metrics:
            self.metrics.increment_counter("invalidations_total", model=model, operation=operation, phase=phase)
            if matched:
                self.metrics.increment_counter("invalidated_queries_total", matched, model=model, operation=operation)

        add_span_event("cache.invalidated", model=model, operation=operation, phase=phase, matched=matched)
        self.logger.debug("Invalidated cached queries", model=model, operation=operation, phase=phase, matched=matched)
        return matched

    def apply_optimistic_update(self, model: str, operation: str, args: Any) -> int:
        """Patch every eligible cached entry with the mutation's speculative effect."""
        if operation not in WRITE_OPERATIONS:
            self.logger.debug("Operation has no optimistic effect", model=model, operation=operation)
            return 0

        mutation = parse_mutation(model, operation, args, self.schema)
        entries = self.store.snapshot_entries()
        updated = apply_optimistic(
            mutation,
            entries,
            self.schema,
            self._write_optimistic,
            logging=self.config.logging,
        )

        if self.metrics and updated:
            self.metrics.increment_counter("optimistic_updates_total", updated, model=mutation.model, operation=operation)

        add_span_event("cache.optimistic_update", model=mutation.model, operation=operation, updated=updated)
        self.logger.debug(
            "Applied optimistic update",
            model=mutation.model,
            operation=operation,
            entries=len(entries),
            updated=updated,
        )
        return updated

    def _write_optimistic(self, identity: QueryIdentity, data: Any) -> None:
        self.store.set_cache(identity, data)
        # keep the optimistic value until the mutation settles
        self.store.cancel_in_flight(identity, revert=False)


class InvalidationMiddleware(LifecycleMiddleware):
    """Invalidates affected queries after a successful mutation."""

    def __init__(self, orchestrator: CacheOrchestrator, model: str, operation: str):
        self.orchestrator = orchestrator
        self.model = model
        self.operation = operation

    async def on_success(self, data: Any, variables: Any, context: Any, call_next: Callable[..., Awaitable[Any]]) -> Any:
        await self.orchestrator.invalidate(self.model, self.operation, variables, phase="success")
        return await call_next(data, variables, context)


class OptimisticUpdateMiddleware(LifecycleMiddleware):
    """
    Applies optimistic updates before the mutation is sent.

    With ``settle_invalidation`` the affected queries are invalidated again
    when the mutation settles, so a failed mutation does not leave
    optimistic data in the cache.
    """

    def __init__(self, orchestrator: CacheOrchestrator, model: str, operation: str, *, settle_invalidation: bool = False):
        self.orchestrator = orchestrator
        self.model = model
        self.operation = operation
        self.settle_invalidation = settle_invalidation

    async def on_mutate(self, variables: Any, call_next: Callable[..., Awaitable[Any]]) -> Any:
        self.orchestrator.apply_optimistic_update(self.model, self.operation, variables)
        return await call_next(variables)

    async def on_settled(
        self,
        data: Any,
        error: Optional[Exception],
        variables: Any,
        context: Any,
        call_next: Callable[..., Awaitable[Any]],
    ) -> Any:
        if self.settle_invalidation:
            await self.orchestrator.invalidate(self.model, self.operation, variables, phase="settled")
        return await call_next(data, error, variables, context)
