"""
Model query cache.

Client-side cache consistency for a model-aware data-fetching layer:
decides which cached query results a mutation makes stale and patches
eligible results optimistically before the server responds.
"""

from .adapters import ModelApiClient
from .caching import (
    NOT_APPLICABLE,
    CacheEntry,
    CacheOrchestrator,
    CacheStore,
    MutationHooks,
    QueryIdentity,
    get_invalidation_predicate,
    get_query_key,
    merge,
    resolve_mutated_models,
    resolve_read_models,
)
from .client import ModelMutation, QueryRequest, infinite_model_query, model_query
from .schema import ModelMeta

__version__ = "1.0.0"

__all__ = [
    "NOT_APPLICABLE",
    "CacheEntry",
    "CacheOrchestrator",
    "CacheStore",
    "ModelApiClient",
    "ModelMeta",
    "ModelMutation",
    "MutationHooks",
    "QueryIdentity",
    "QueryRequest",
    "get_invalidation_predicate",
    "get_query_key",
    "infinite_model_query",
    "merge",
    "model_query",
    "resolve_mutated_models",
    "resolve_read_models",
]
