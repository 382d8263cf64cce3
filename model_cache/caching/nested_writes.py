"""
Traversal of write arguments against the schema graph.

A write's args may embed further writes under relation fields, e.g. a
``create`` of a user that also creates posts and connects a profile.
`iter_nested_writes` yields one `WriteVisit` per write action found,
root action first, in argument order. The traversal uses an explicit
stack and a visited set keyed by ``(model, path)``, so it terminates on
self-referencing and mutually referencing models.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple, Union

from shared.errors import ValidationError
from ..schema import FieldInfo, ModelMeta

PathKey = Union[str, int]

# Actions accepted under a relation field in write data
RELATION_ACTIONS = frozenset({
    "create",
    "createMany",
    "connectOrCreate",
    "connect",
    "update",
    "updateMany",
    "upsert",
    "delete",
    "deleteMany",
    "disconnect",
    "set",
})


@dataclass(frozen=True)
class WriteVisit:
    """
    A single write action found while traversing mutation args.

    ``args`` is normalised per action:

    - ``create``: the record data
    - ``createMany``: ``{"data": [records]}``
    - ``connectOrCreate``: ``{"where": ..., "create": ...}``
    - ``update`` / ``updateMany``: ``{"where": ..., "data": ...}``
    - ``upsert``: ``{"where": ..., "create": ..., "update": ...}``
    - ``delete`` / ``deleteMany`` / ``connect`` / ``disconnect``: the unique filter, or None
    """
    model: str
    action: str
    args: Any
    path: Tuple[PathKey, ...] = ()
    field: Optional[FieldInfo] = None

    @property
    def nested(self) -> bool:
        return self.field is not None


def iter_nested_writes(
    schema: ModelMeta,
    model: str,
    operation: str,
    args: Any,
    *,
    strict: bool = False,
) -> Iterator[WriteVisit]:
    """
    Yield every write action contained in a mutation.

    With ``strict`` set, unknown fields in write data and unknown actions
    under relation fields raise `ValidationError`; otherwise they are
    skipped (unknown actions still yield a visit so the target model is
    accounted for).
    """
    info = schema.get_model(model)
    root_model = info.name if info else model
    args = args if isinstance(args, dict) else {}

    stack: List[WriteVisit] = [WriteVisit(root_model, _root_action(operation), _root_payload(operation, args))]
    visited: Set[Tuple[str, Tuple[PathKey, ...]]] = set()

    while stack:
        visit = stack.pop()
        key = (visit.model, visit.path)
        if key in visited:
            continue
        visited.add(key)

        yield visit

        children: List[WriteVisit] = []
        for suffix, data in _data_payloads(visit):
            children.extend(_scan_data(schema, visit.model, data, visit.path + suffix, strict))

        # reversed so that children pop in argument order
        stack.extend(reversed(children))


def _root_action(operation: str) -> str:
    if operation == "createManyAndReturn":
        return "createMany"
    return operation


def _root_payload(operation: str, args: Dict[str, Any]) -> Any:
    if operation == "create":
        return args.get("data")
    if operation in ("createMany", "createManyAndReturn"):
        return {"data": _enumerate(args.get("data"))}
    if operation in ("delete", "deleteMany"):
        return args.get("where")
    return args


def _data_payloads(visit: WriteVisit) -> List[Tuple[Tuple[PathKey, ...], Dict[str, Any]]]:
    """Record data dicts inside a visit's args that may hold nested writes."""
    args = visit.args
    action = visit.action
    if action == "create":
        candidates = [((), args)]
    elif action == "createMany":
        items = args.get("data", []) if isinstance(args, dict) else []
        candidates = [(("data", index), item) for index, item in enumerate(items)]
    elif action == "connectOrCreate":
        candidates = [(("create",), args.get("create"))] if isinstance(args, dict) else []
    elif action in ("update", "updateMany"):
        candidates = [(("data",), args.get("data"))] if isinstance(args, dict) else []
    elif action == "upsert":
        candidates = [(("create",), args.get("create")), (("update",), args.get("update"))] if isinstance(args, dict) else []
    else:
        candidates = []
    return [(suffix, data) for suffix, data in candidates if isinstance(data, dict)]


def _scan_data(
    schema: ModelMeta,
    model: str,
    data: Dict[str, Any],
    path: Tuple[PathKey, ...],
    strict: bool,
) -> List[WriteVisit]:
    fields = schema.get_fields(model)
    visits: List[WriteVisit] = []

    for name, value in data.items():
        field = fields.get(name)
        if field is None:
            if strict and fields:
                raise ValidationError(
                    f"Unknown field '{name}' for model {model}",
                    details={"model": model, "field": name, "path": list(path)},
                )
            continue
        if not field.is_data_model:
            continue

        if not isinstance(value, dict):
            # not a nested-write object, the relation is still touched
            visits.append(WriteVisit(field.type, "set", value, path + (name,), field))
            continue

        for action, payload in value.items():
            if action not in RELATION_ACTIONS and strict:
                raise ValidationError(
                    f"Unknown nested write action '{action}' on {model}.{name}",
                    details={"model": model, "field": name, "action": action},
                )
            items = _nested_items(action, payload, field)
            if not items:
                # e.g. ``disconnect: false``; the relation is named, keep the model
                visits.append(WriteVisit(field.type, action, None, path + (name, action), field))
            for index, item in enumerate(items):
                visits.append(WriteVisit(field.type, action, item, path + (name, action, index), field))

    return visits


def _nested_items(action: str, payload: Any, field: FieldInfo) -> List[Any]:
    if payload is False:
        return []
    if action == "createMany":
        if isinstance(payload, dict):
            return [{"data": _enumerate(payload.get("data"))}]
        return [{"data": _enumerate(payload)}]
    if not field.is_array:
        if action == "update":
            if isinstance(payload, dict) and "data" in payload and set(payload) <= {"where", "data"}:
                return [payload]
            return [{"where": None, "data": payload}]
        if payload is True:
            return [None]
    return _enumerate(payload)


def _enumerate(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]
