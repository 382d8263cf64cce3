"""
Mutation impact resolution.

Computes the set of models whose stored data a mutation may change. The
result over-approximates: missing a model leaves stale reads in the
cache, while an extra model only costs a refetch.
"""

from typing import Any, Set

from ..schema import ModelMeta
from .nested_writes import iter_nested_writes

DELETE_ACTIONS = frozenset({"delete", "deleteMany"})


def resolve_mutated_models(model: str, operation: str, args: Any, schema: ModelMeta) -> Set[str]:
    """
    Resolve the models affected by a mutation.

    The result always contains ``model``. Models reached through nested
    writes are added, along with delete cascades of deleted models and the
    delegate base models of everything collected.
    """
    info = schema.get_model(model)
    result: Set[str] = {info.name if info else model}

    for visit in iter_nested_writes(schema, model, operation, args):
        result.add(visit.model)
        if visit.action in DELETE_ACTIONS:
            _collect_delete_cascades(visit.model, schema, result)

    for name in list(result):
        _collect_base_types(name, schema, result)

    return result


def _collect_delete_cascades(model: str, schema: ModelMeta, result: Set[str]) -> None:
    visited: Set[str] = set()
    pending = [model]
    while pending:
        current = pending.pop()
        if current in visited:
            continue
        visited.add(current)
        for cascaded in schema.get_delete_cascades(current):
            result.add(cascaded)
            pending.append(cascaded)


def _collect_base_types(model: str, schema: ModelMeta, result: Set[str]) -> None:
    visited: Set[str] = set()
    pending = [model]
    while pending:
        current = pending.pop()
        if current in visited:
            continue
        visited.add(current)
        for base in schema.get_base_types(current):
            result.add(base)
            pending.append(base)
