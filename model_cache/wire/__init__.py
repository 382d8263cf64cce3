"""
Wire codec for the model API.

Query args travel URL-encoded as a ``q`` parameter with an optional
``meta`` sibling; bodies and responses are JSON with serialization
metadata for values JSON cannot natively represent.
"""

from .codec import make_url, marshal, unmarshal, unmarshal_response
from .serialization import deserialize, serialize

__all__ = [
    "deserialize",
    "make_url",
    "marshal",
    "serialize",
    "unmarshal",
    "unmarshal_response",
]
