"""
Rich value serialization for the model API wire format.

Values JSON cannot carry natively are converted to JSON-safe
representations and their locations recorded in a metadata object of
the form ``{"values": {"<dotted.path>": ["<Type>"]}}``. A rich value at
the root is recorded as ``{"values": ["<Type>"]}``. Dots inside keys are
escaped with a backslash.
"""

import base64
import copy
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple, Union

# Largest integer a JavaScript number represents exactly
MAX_SAFE_INTEGER = 2 ** 53 - 1

TYPE_DATE = "Date"
TYPE_DECIMAL = "Decimal"
TYPE_BYTES = "Bytes"
TYPE_BIGINT = "bigint"
RICH_TYPES = frozenset({TYPE_DATE, TYPE_DECIMAL, TYPE_BYTES, TYPE_BIGINT})

PathKey = Union[str, int]


def serialize(value: Any) -> Tuple[Any, Optional[Dict[str, Any]]]:
    """Convert a value into JSON-safe data plus optional serialization metadata."""
    annotations: Dict[str, List[str]] = {}
    data = _serialize_value(value, (), annotations)

    if not annotations:
        return data, None
    if "" in annotations:
        return data, {"values": annotations[""]}
    return data, {"values": annotations}


def deserialize(data: Any, meta: Optional[Dict[str, Any]]) -> Any:
    """Reverse `serialize` using the recorded metadata."""
    if not meta:
        return data
    if not isinstance(meta, dict):
        raise ValueError(f"Serialization metadata must be an object, got {type(meta).__name__}")

    values = meta.get("values")
    if not values:
        return data
    if isinstance(values, list):
        return _restore(data, values[0])
    if not isinstance(values, dict):
        raise ValueError(f"Serialization values must be a list or an object, got {type(values).__name__}")

    data = copy.deepcopy(data)
    for path, type_tags in values.items():
        keys = _split_path(path)
        data = _replace_at(data, keys, type_tags[0])
    return data


def _serialize_value(value: Any, path: Tuple[PathKey, ...], annotations: Dict[str, List[str]]) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, datetime):
        annotations[_format_path(path)] = [TYPE_DATE]
        return _format_datetime(value)
    if isinstance(value, Decimal):
        annotations[_format_path(path)] = [TYPE_DECIMAL]
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        annotations[_format_path(path)] = [TYPE_BYTES]
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, int) and abs(value) > MAX_SAFE_INTEGER:
        annotations[_format_path(path)] = [TYPE_BIGINT]
        return str(value)
    if isinstance(value, dict):
        return {
            key: _serialize_value(item, path + (str(key),), annotations)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [
            _serialize_value(item, path + (index,), annotations)
            for index, item in enumerate(value)
        ]
    return value


def _restore(value: Any, type_tag: str) -> Any:
    if type_tag in RICH_TYPES and not isinstance(value, str):
        raise ValueError(f"{type_tag} value must be a string, got {type(value).__name__}")

    if type_tag == TYPE_DATE:
        return _parse_datetime(value)
    if type_tag == TYPE_DECIMAL:
        try:
            return Decimal(value)
        except InvalidOperation as exc:
            raise ValueError(f"Invalid Decimal value: {value!r}") from exc
    if type_tag == TYPE_BYTES:
        return base64.b64decode(value)
    if type_tag == TYPE_BIGINT:
        return int(value)
    return value


def _replace_at(data: Any, keys: List[str], type_tag: str) -> Any:
    if not keys:
        return _restore(data, type_tag)

    head, rest = keys[0], keys[1:]
    if isinstance(data, list):
        index = int(head)
        if index >= len(data):
            return data
        data[index] = _replace_at(data[index], rest, type_tag)
    elif isinstance(data, dict):
        if head not in data:
            return data
        data[head] = _replace_at(data[head], rest, type_tag)
    return data


def _format_datetime(value: datetime) -> str:
    if value.tzinfo is not None and value.utcoffset() == timezone.utc.utcoffset(None):
        return value.isoformat().replace("+00:00", "Z")
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    return parsed


def _escape_key(key: str) -> str:
    return key.replace("\\", "\\\\").replace(".", "\\.")


def _format_path(path: Tuple[PathKey, ...]) -> str:
    return ".".join(_escape_key(str(part)) for part in path)


def _split_path(path: str) -> List[str]:
    keys: List[str] = []
    current: List[str] = []
    escaped = False
    for char in path:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == ".":
            keys.append("".join(current))
            current = []
        else:
            current.append(char)
    keys.append("".join(current))
    return keys
