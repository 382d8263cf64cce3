"""
Optimistic merge engine.

Computes the speculative effect of a mutation on a cached query result
before the mutation reaches the server. Merges are copy-on-write: cached
data is never modified in place, a merge returns either a new value or
`NOT_APPLICABLE` when no safe patch can be identified.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from shared.logging import get_logger
from ..schema import FieldInfo, ModelMeta
from .mutations import MutationDescriptor
from .query_key import CacheEntry, QueryIdentity

logger = get_logger("model_cache.optimistic")

# Marker set on records synthesized or patched by an optimistic merge
OPTIMISTIC_MARKER = "$optimistic"

ATOMIC_OPERATIONS = frozenset({"set", "increment", "decrement", "multiply", "divide", "push"})

INTEGER_ID_TYPES = frozenset({"Int", "BigInt"})


class _NotApplicable:
    """Sentinel type for merges with no bearing on a cached value."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_APPLICABLE"

    def __bool__(self) -> bool:
        return False


NOT_APPLICABLE = _NotApplicable()


class _Inapplicable(Exception):
    """Raised inside a merge when a matched record cannot be patched safely."""


def merge(
    query_model: str,
    query_operation: str,
    current_data: Any,
    mutation: MutationDescriptor,
    schema: ModelMeta,
    *,
    query_args: Any = None,
    logging: bool = False,
) -> Any:
    """
    Merge a mutation's effect into a cached query result.

    Args:
        query_model: Model of the cached query.
        query_operation: Operation of the cached query, only ``find*`` queries are eligible.
        current_data: Cached result.
        mutation: Parsed mutation descriptor.
        schema: Schema graph.
        query_args: Args of the cached query, used to check whether a created record
            could belong to a ``findMany`` result.

    Returns:
        The new result, or `NOT_APPLICABLE`.
    """
    if not query_operation.startswith("find"):
        return NOT_APPLICABLE
    if not isinstance(current_data, (dict, list)):
        return NOT_APPLICABLE

    info = schema.get_model(query_model)
    model = info.name if info else query_model
    where = query_args.get("where") if isinstance(query_args, dict) else None
    list_root = query_operation == "findMany"

    try:
        result = _merge_value(model, current_data, mutation, schema, list_root=list_root, where=where)
    except _Inapplicable as exc:
        if logging:
            logger.info(
                "Optimistic merge not applicable",
                mutation=mutation.label,
                query_model=model,
                query_operation=query_operation,
                reason=str(exc),
            )
        return NOT_APPLICABLE

    if result is NOT_APPLICABLE:
        return NOT_APPLICABLE

    if logging:
        logger.info(
            "Optimistically patched query result",
            mutation=mutation.label,
            query_model=model,
            query_operation=query_operation,
        )
    return result


def apply_optimistic(
    mutation: MutationDescriptor,
    entries: Iterable[CacheEntry],
    schema: ModelMeta,
    set_cache: Callable[[QueryIdentity, Any], Any],
    *,
    logging: bool = False,
) -> int:
    """
    Apply a mutation's optimistic effect to every eligible cache entry.

    Entries holding an error, opted out of optimistic updates or backed by
    an infinite query are skipped. Returns the number of entries replaced.
    """
    updated = 0
    for entry in entries:
        identity = QueryIdentity.coerce(entry.identity)

        if entry.error is not None:
            if logging:
                logger.debug("Skipping errored cache entry", query_model=identity.model, query_operation=identity.operation)
            continue
        if not identity.flags.optimistic_update or identity.flags.infinite:
            continue

        new_data = merge(
            identity.model,
            identity.operation,
            entry.data,
            mutation,
            schema,
            query_args=identity.args,
            logging=logging,
        )
        if new_data is NOT_APPLICABLE:
            continue

        set_cache(identity, new_data)
        updated += 1

    return updated


def _merge_value(
    model: str,
    value: Any,
    mutation: MutationDescriptor,
    schema: ModelMeta,
    *,
    list_root: bool,
    where: Any,
) -> Any:
    result = value
    changed = False

    if model == mutation.model:
        patched = _apply_to_model(model, value, mutation, schema, list_root=list_root, where=where)
        if patched is not NOT_APPLICABLE:
            result = patched
            changed = True

    if isinstance(result, list):
        items = None
        for index, item in enumerate(result):
            if not isinstance(item, dict) or item.get(OPTIMISTIC_MARKER):
                continue
            patched = _merge_value(model, item, mutation, schema, list_root=False, where=None)
            if patched is NOT_APPLICABLE:
                continue
            if items is None:
                items = list(result)
            items[index] = patched
        if items is not None:
            result = items
            changed = True

    elif isinstance(result, dict):
        record = None
        fields = schema.get_fields(model)
        for key, nested in result.items():
            field = fields.get(key)
            if field is None or not field.is_data_model or not isinstance(nested, (dict, list)):
                continue
            patched = _merge_value(field.type, nested, mutation, schema, list_root=False, where=None)
            if patched is NOT_APPLICABLE:
                continue
            if record is None:
                record = dict(result)
            record[key] = patched
        if record is not None:
            result = record
            changed = True

    return result if changed else NOT_APPLICABLE


def _apply_to_model(model: str, value: Any, mutation: MutationDescriptor, schema: ModelMeta, *, list_root: bool, where: Any) -> Any:
    args = mutation.raw_args
    operation = mutation.operation

    if operation == "create":
        if list_root and isinstance(value, list):
            return _create(model, value, [args.get("data")], schema, where)
        return NOT_APPLICABLE

    if operation in ("createMany", "createManyAndReturn"):
        if list_root and isinstance(value, list):
            data = args.get("data")
            return _create(model, value, data if isinstance(data, list) else [data], schema, where)
        return NOT_APPLICABLE

    if operation == "update":
        return _update(model, value, args.get("where"), args.get("data"), schema)

    if operation == "upsert":
        return _upsert(model, value, args, schema, list_root=list_root, where=where)

    if operation == "delete":
        return _delete(model, value, args.get("where"), schema)

    # updateMany / deleteMany cannot identify their targets client-side
    return NOT_APPLICABLE


def _create(model: str, current: List[Any], items: List[Any], schema: ModelMeta, where: Any) -> Any:
    created = []
    existing = list(current)
    for data in items:
        if not isinstance(data, dict):
            continue
        record = _synthesize_record(model, data, schema, existing)
        if not _filter_allows(schema, model, where, record):
            continue
        created.append(record)
        existing.append(record)

    if not created:
        return NOT_APPLICABLE
    created.reverse()
    return created + list(current)


def _synthesize_record(model: str, data: Dict[str, Any], schema: ModelMeta, existing: List[Any]) -> Dict[str, Any]:
    fields = schema.get_fields(model)
    record: Dict[str, Any] = {}
    now = datetime.now(timezone.utc)

    for name, value in data.items():
        field = fields.get(name)
        if field is None:
            continue
        if field.is_data_model:
            _assign_foreign_keys(field, value, record)
        else:
            record[name] = value

    for field in fields.values():
        if field.is_data_model or field.name in record:
            continue
        default = field.get_attribute("@default")
        if field.type == "DateTime" and (default is not None or field.get_attribute("@updatedAt") is not None):
            record[field.name] = now
        elif default is not None and default.args and _is_literal(default.args[0].value):
            record[field.name] = default.args[0].value

    for field in schema.get_id_fields(model):
        if field.name not in record:
            record[field.name] = _temporary_id(field, existing)

    record[OPTIMISTIC_MARKER] = True
    return record


def _temporary_id(field: FieldInfo, existing: List[Any]) -> Any:
    if field.type in INTEGER_ID_TYPES:
        ids = [
            item[field.name] for item in existing
            if isinstance(item, dict) and isinstance(item.get(field.name), int) and not isinstance(item.get(field.name), bool)
        ]
        return max(ids, default=0) + 1
    return str(uuid.uuid4())


def _is_literal(value: Any) -> bool:
    return isinstance(value, (str, int, float, bool))


def _assign_foreign_keys(field: FieldInfo, value: Any, record: Dict[str, Any]) -> None:
    """Translate a ``connect`` on an owning relation into its foreign key scalars."""
    if not field.foreign_key_mapping or not isinstance(value, dict):
        return
    connect = value.get("connect")
    if not isinstance(connect, dict):
        return
    for id_field, fk_field in field.foreign_key_mapping.items():
        if id_field in connect:
            record[fk_field] = connect[id_field]


def _update(model: str, value: Any, where: Any, data: Any, schema: ModelMeta) -> Any:
    if not isinstance(where, dict) or not isinstance(data, dict):
        return NOT_APPLICABLE

    if isinstance(value, list):
        items = None
        for index, item in enumerate(value):
            if isinstance(item, dict) and _id_fields_match(schema, model, item, where):
                if items is None:
                    items = list(value)
                items[index] = _patch_record(model, item, data, schema)
        return items if items is not None else NOT_APPLICABLE

    if isinstance(value, dict) and _id_fields_match(schema, model, value, where):
        return _patch_record(model, value, data, schema)

    return NOT_APPLICABLE


def _patch_record(model: str, record: Dict[str, Any], data: Dict[str, Any], schema: ModelMeta) -> Dict[str, Any]:
    fields = schema.get_fields(model)
    patched = dict(record)

    for name, value in data.items():
        field = fields.get(name)
        if field is None:
            continue
        if field.is_data_model:
            _assign_foreign_keys(field, value, patched)
            continue
        if isinstance(value, dict) and field.type != "Json":
            patched[name] = _apply_atomic(name, patched.get(name), value)
        else:
            patched[name] = value

    for field in fields.values():
        if field.type == "DateTime" and field.get_attribute("@updatedAt") is not None and field.name not in data:
            patched[field.name] = datetime.now(timezone.utc)

    patched[OPTIMISTIC_MARKER] = True
    return patched


def _apply_atomic(name: str, current: Any, operation: Dict[str, Any]) -> Any:
    if len(operation) != 1:
        raise _Inapplicable(f"ambiguous update of field '{name}'")
    op, operand = next(iter(operation.items()))
    if op not in ATOMIC_OPERATIONS:
        raise _Inapplicable(f"unsupported update operation '{op}' on field '{name}'")

    if op == "set":
        return operand
    if op == "push":
        base = list(current) if isinstance(current, list) else []
        return base + (list(operand) if isinstance(operand, list) else [operand])

    if not _is_number(current) or not _is_number(operand):
        raise _Inapplicable(f"non-numeric '{op}' on field '{name}'")
    if op == "increment":
        return current + operand
    if op == "decrement":
        return current - operand
    if op == "multiply":
        return current * operand
    if operand == 0:
        raise _Inapplicable(f"division by zero on field '{name}'")
    if isinstance(current, int) and isinstance(operand, int):
        return current // operand
    return current / operand


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _upsert(model: str, value: Any, args: Dict[str, Any], schema: ModelMeta, *, list_root: bool, where: Any) -> Any:
    unique = args.get("where")
    if not isinstance(unique, dict):
        return NOT_APPLICABLE

    if isinstance(value, list):
        if any(isinstance(item, dict) and _id_fields_match(schema, model, item, unique) for item in value):
            return _update(model, value, unique, args.get("update"), schema)
        if list_root:
            return _create(model, value, [args.get("create")], schema, where)
        return NOT_APPLICABLE

    return _update(model, value, unique, args.get("update"), schema)


def _delete(model: str, value: Any, where: Any, schema: ModelMeta) -> Any:
    if not isinstance(where, dict):
        return NOT_APPLICABLE

    if isinstance(value, list):
        remaining = [
            item for item in value
            if not (isinstance(item, dict) and _id_fields_match(schema, model, item, where))
        ]
        return remaining if len(remaining) != len(value) else NOT_APPLICABLE

    if isinstance(value, dict) and _id_fields_match(schema, model, value, where):
        return None

    return NOT_APPLICABLE


def _id_fields_match(schema: ModelMeta, model: str, record: Dict[str, Any], where: Dict[str, Any]) -> bool:
    """Whether ``record`` is the record identified by the unique filter ``where``."""
    id_fields = schema.get_id_fields(model)
    if not id_fields:
        return False

    for field in id_fields:
        expected = _unique_value(where, field.name)
        if expected is NOT_APPLICABLE or field.name not in record:
            return False
        if record[field.name] != expected:
            return False
    return True


def _unique_value(where: Dict[str, Any], name: str) -> Any:
    if name in where:
        value = where[name]
        if isinstance(value, dict):
            return value.get("equals", NOT_APPLICABLE)
        return value

    # compound unique input, e.g. {"userId_tagId": {"userId": 1, "tagId": 2}}
    for value in where.values():
        if isinstance(value, dict) and name in value and not isinstance(value[name], dict):
            return value[name]
    return NOT_APPLICABLE


def _filter_allows(schema: ModelMeta, model: str, where: Any, record: Dict[str, Any]) -> bool:
    """
    Whether a query filter could include ``record``.

    Returns False only when the filter definitely excludes the record;
    conditions it cannot evaluate are treated as matching.
    """
    if not isinstance(where, dict):
        return True

    for key, condition in where.items():
        if key == "AND":
            conditions = condition if isinstance(condition, list) else [condition]
            if not all(_filter_allows(schema, model, c, record) for c in conditions):
                return False
            continue
        if key == "OR":
            conditions = condition if isinstance(condition, list) else [condition]
            if conditions and not any(_filter_allows(schema, model, c, record) for c in conditions):
                return False
            continue
        if key == "NOT":
            continue

        field = schema.get_field(model, key)
        if field is None or field.is_data_model or key not in record:
            continue
        if not _scalar_allows(record[key], condition):
            return False

    return True


def _scalar_allows(value: Any, condition: Any) -> bool:
    if not isinstance(condition, dict):
        return value == condition
    if "mode" in condition:
        # case-insensitive and other mode-qualified comparisons are not evaluated
        return True

    for op, operand in condition.items():
        try:
            if op == "equals" and value != operand:
                return False
            if op == "not" and not isinstance(operand, dict) and value == operand:
                return False
            if op == "in" and isinstance(operand, list) and value not in operand:
                return False
            if op == "notIn" and isinstance(operand, list) and value in operand:
                return False
            if op == "lt" and not value < operand:
                return False
            if op == "lte" and not value <= operand:
                return False
            if op == "gt" and not value > operand:
                return False
            if op == "gte" and not value >= operand:
                return False
        except TypeError:
            # incomparable values, e.g. a datetime against its string form
            continue
    return True
