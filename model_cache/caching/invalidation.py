"""
Invalidation predicate construction.
"""

from typing import Any, Callable, Iterable, Optional, Set, Union

from shared.logging import get_logger
from ..schema import ModelMeta
from .impact import resolve_mutated_models
from .query_key import QueryIdentity
from .reads import resolve_read_models

logger = get_logger("model_cache.invalidation")

InvalidationPredicate = Callable[[Union[QueryIdentity, tuple]], bool]


def build_predicate(
    mutated_models: Iterable[str],
    schema: ModelMeta,
    *,
    label: Optional[str] = None,
    logging: bool = False,
) -> InvalidationPredicate:
    """
    Build a predicate deciding whether a cached query must be invalidated.

    A query matches when its model is one of ``mutated_models`` or, when it
    carries args, when any model its args read through relations is. Queries
    without args only ever match directly.
    """
    mutated: Set[str] = set()
    for name in mutated_models:
        info = schema.get_model(name)
        mutated.add(info.name if info else name)

    def predicate(query: Union[QueryIdentity, tuple]) -> bool:
        identity = QueryIdentity.coerce(query)
        info = schema.get_model(identity.model)
        query_model = info.name if info else identity.model

        if query_model in mutated:
            if logging:
                logger.info(
                    "Invalidating query on direct model match",
                    mutation=label,
                    query_model=query_model,
                    query_operation=identity.operation,
                )
            return True

        if identity.args is not None:
            read_models = resolve_read_models(query_model, identity.args, schema)
            hits = read_models & mutated
            if hits:
                if logging:
                    logger.info(
                        "Invalidating query on nested read match",
                        mutation=label,
                        query_model=query_model,
                        query_operation=identity.operation,
                        models=sorted(hits),
                    )
                return True

        return False

    return predicate


def get_invalidation_predicate(
    model: str,
    operation: str,
    args: Any,
    schema: ModelMeta,
    logging: bool = False,
) -> InvalidationPredicate:
    """Resolve a mutation's impact and build its invalidation predicate."""
    mutated = resolve_mutated_models(model, operation, args, schema)
    return build_predicate(mutated, schema, label=f"{model}.{operation}", logging=logging)
