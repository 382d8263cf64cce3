"""
Schema graph accessors.

The engine consumes model metadata (fields, relations, ids, delete
cascades, delegate base types) but never builds or mutates it.
"""

from .models import AttributeArg, FieldAttribute, FieldInfo, ModelInfo, ModelMeta, RelationInfo

__all__ = [
    "AttributeArg",
    "FieldAttribute",
    "FieldInfo",
    "ModelInfo",
    "ModelMeta",
    "RelationInfo",
]
