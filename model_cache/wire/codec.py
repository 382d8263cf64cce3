"""
JSON codec for model API requests and responses.

Request bodies carry serialization metadata inline under a ``meta`` key;
response envelopes carry it beside ``data``::

    {"data": <value>, "meta": {"serialization": <metadata>}}
    {"error": {"prisma": true, "code": "P2004", "reason": "RESULT_NOT_READABLE"}}

Request values that cannot take an inline ``meta`` key (non-objects, or
objects with a ``meta`` key of their own) are wrapped in the envelope
form with ``"envelope": true`` set in ``meta``.
"""

import json
from typing import Any, Dict
from urllib.parse import quote

from .serialization import deserialize, serialize

ENVELOPE_KEYS = frozenset({"data", "meta"})


def marshal(value: Any) -> str:
    """Encode a value for a request body."""
    data, meta = serialize(value)
    if isinstance(data, dict) and "meta" in data:
        return _envelope(data, meta)
    if not meta:
        return json.dumps(data)
    if isinstance(data, dict):
        return json.dumps({**data, "meta": {"serialization": meta}})
    return _envelope(data, meta)


def unmarshal(value: str) -> Any:
    """Decode a value encoded by `marshal`."""
    parsed = json.loads(value)
    if not isinstance(parsed, dict):
        return parsed

    meta = parsed.get("meta")
    if not isinstance(meta, dict):
        return parsed

    if meta.get("envelope") is True and set(parsed) == ENVELOPE_KEYS:
        return deserialize(parsed["data"], meta.get("serialization"))

    serialization = meta.get("serialization")
    if not serialization:
        return parsed

    rest = {key: item for key, item in parsed.items() if key != "meta"}
    return deserialize(rest, serialization)


def unmarshal_response(value: str) -> Dict[str, Any]:
    """Decode a response envelope, keeping the envelope structure."""
    parsed = json.loads(value)
    if not isinstance(parsed, dict):
        return {"data": parsed}

    meta = parsed.get("meta")
    serialization = meta.get("serialization") if isinstance(meta, dict) else None
    if serialization and "data" in parsed:
        return {**parsed, "data": deserialize(parsed["data"], serialization)}
    return parsed


def make_url(url: str, args: Any) -> str:
    """Append query args to a URL as ``q`` and, when needed, ``meta`` parameters."""
    if not args:
        return url

    data, meta = serialize(args)
    result = f"{url}?q={quote(json.dumps(data), safe='')}"
    if meta:
        result += f"&meta={quote(json.dumps({'serialization': meta}), safe='')}"
    return result


def _envelope(data: Any, meta: Any) -> str:
    return json.dumps({"data": data, "meta": {"serialization": meta, "envelope": True}})
