"""
Nested read scanning.

Computes the set of models a query result could contain data from, by
following relation selections (``select`` / ``include`` / ``_count``)
and relation filters (``where``, ``orderBy``) through the schema graph.
Without a selection only the root model's scalars are read.
"""

from typing import Any, Dict, List, Set, Tuple, Union

from ..schema import ModelMeta

PathKey = Union[str, int]

SELECTION_KEYS = ("select", "include")
LOGICAL_FILTERS = ("AND", "OR", "NOT")
RELATION_FILTERS = ("some", "every", "none", "is", "isNot")

# (kind, model, value, path)
_WorkItem = Tuple[str, str, Any, Tuple[PathKey, ...]]


def resolve_read_models(model: str, args: Any, schema: ModelMeta) -> Set[str]:
    """Resolve the models reachable through a query's relation selections and filters."""
    info = schema.get_model(model)
    root = info.name if info else model
    result: Set[str] = {root}
    if not isinstance(args, dict):
        return result

    stack: List[_WorkItem] = [("args", root, args, ())]
    visited: Set[Tuple[str, str, Tuple[PathKey, ...]]] = set()

    while stack:
        kind, current, value, path = stack.pop()
        key = (kind, current, path)
        if key in visited:
            continue
        visited.add(key)

        if kind == "args":
            _scan_args(schema, current, value, path, result, stack)
        elif kind == "where":
            _scan_where(schema, current, value, path, result, stack)
        elif kind == "orderBy":
            _scan_order_by(schema, current, value, path, result, stack)

    return result


def _scan_args(schema: ModelMeta, model: str, args: Dict[str, Any], path, result: Set[str], stack: List[_WorkItem]) -> None:
    for selection_key in SELECTION_KEYS:
        selection = args.get(selection_key)
        if not isinstance(selection, dict):
            continue

        for name, value in selection.items():
            if not value:
                continue
            if name == "_count":
                _scan_count(schema, model, value, path + (selection_key, name), result, stack)
                continue

            field = schema.get_field(model, name)
            if field is None or not field.is_data_model:
                continue
            result.add(field.type)
            if isinstance(value, dict):
                stack.append(("args", field.type, value, path + (selection_key, name)))

    if "where" in args:
        stack.append(("where", model, args["where"], path + ("where",)))
    if "orderBy" in args:
        stack.append(("orderBy", model, args["orderBy"], path + ("orderBy",)))


def _scan_count(schema: ModelMeta, model: str, value: Any, path, result: Set[str], stack: List[_WorkItem]) -> None:
    if value is True:
        # counts every to-many relation
        for field in schema.get_relation_fields(model):
            if field.is_array:
                result.add(field.type)
        return

    selection = value.get("select") if isinstance(value, dict) else None
    if not isinstance(selection, dict):
        return
    for name, count_args in selection.items():
        field = schema.get_field(model, name)
        if field is None or not field.is_data_model or not count_args:
            continue
        result.add(field.type)
        if isinstance(count_args, dict) and "where" in count_args:
            stack.append(("where", field.type, count_args["where"], path + (name, "where")))


def _scan_where(schema: ModelMeta, model: str, where: Any, path, result: Set[str], stack: List[_WorkItem]) -> None:
    if not isinstance(where, dict):
        return

    for name, condition in where.items():
        if name in LOGICAL_FILTERS:
            for index, item in enumerate(_enumerate(condition)):
                stack.append(("where", model, item, path + (name, index)))
            continue

        field = schema.get_field(model, name)
        if field is None or not field.is_data_model:
            continue
        result.add(field.type)
        if not isinstance(condition, dict):
            continue

        relation_filters = [op for op in RELATION_FILTERS if op in condition]
        if relation_filters:
            for op in relation_filters:
                stack.append(("where", field.type, condition[op], path + (name, op)))
        else:
            stack.append(("where", field.type, condition, path + (name,)))


def _scan_order_by(schema: ModelMeta, model: str, order_by: Any, path, result: Set[str], stack: List[_WorkItem]) -> None:
    for index, item in enumerate(_enumerate(order_by)):
        if not isinstance(item, dict):
            continue
        for name, value in item.items():
            field = schema.get_field(model, name)
            if field is None or not field.is_data_model:
                continue
            result.add(field.type)
            if isinstance(value, dict):
                stack.append(("orderBy", field.type, value, path + (index, name)))


def _enumerate(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]
