"""
Model query caching package.

Keeps a client-side query cache consistent with mutations sent to the
model API:

- Query identities under which results are cached
- Mutation impact and nested read resolution over the schema graph
- Invalidation predicates built from the two
- Optimistic merges of mutation effects into cached results
- Lifecycle middleware wiring both around a mutation

The cache store itself is external; only its primitives are used.
"""

from .impact import resolve_mutated_models
from .invalidation import build_predicate, get_invalidation_predicate
from .lifecycle import LifecycleMiddleware, MutationHooks, MutationLifecycle
from .mutations import MutationDescriptor, WriteOperation, parse_mutation
from .nested_writes import WriteVisit, iter_nested_writes
from .optimistic import NOT_APPLICABLE, OPTIMISTIC_MARKER, apply_optimistic, merge
from .orchestrator import (
    CacheOrchestrator,
    CacheStore,
    InvalidationMiddleware,
    OptimisticUpdateMiddleware,
)
from .query_key import QUERY_KEY_PREFIX, CacheEntry, QueryFlags, QueryIdentity, get_query_key
from .reads import resolve_read_models

__all__ = [
    "QUERY_KEY_PREFIX",
    "CacheEntry",
    "QueryFlags",
    "QueryIdentity",
    "get_query_key",
    "WriteOperation",
    "MutationDescriptor",
    "parse_mutation",
    "WriteVisit",
    "iter_nested_writes",
    "resolve_mutated_models",
    "resolve_read_models",
    "build_predicate",
    "get_invalidation_predicate",
    "NOT_APPLICABLE",
    "OPTIMISTIC_MARKER",
    "merge",
    "apply_optimistic",
    "MutationHooks",
    "LifecycleMiddleware",
    "MutationLifecycle",
    "CacheStore",
    "CacheOrchestrator",
    "InvalidationMiddleware",
    "OptimisticUpdateMiddleware",
]
