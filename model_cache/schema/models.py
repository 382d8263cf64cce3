"""
Schema graph data models.

The schema graph is produced elsewhere (typically generated from the data
model definition) and consumed read-only here. Both snake_case and the
camelCase wire names are accepted when loading it.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.errors import SchemaError


@dataclass(frozen=True)
class RelationInfo:
    """Relation described by a field."""
    target_model: str
    is_list: bool
    is_required: bool


class AttributeArg(BaseModel):
    """Argument of a field attribute."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: Optional[str] = None
    value: Any = None


class FieldAttribute(BaseModel):
    """Field attribute such as ``@default`` or ``@updatedAt``."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    args: List[AttributeArg] = Field(default_factory=list)


class FieldInfo(BaseModel):
    """Metadata for a single model field."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    type: str
    is_id: bool = Field(False, alias="isId")
    is_data_model: bool = Field(False, alias="isDataModel")
    is_array: bool = Field(False, alias="isArray")
    is_optional: bool = Field(False, alias="isOptional")
    attributes: List[FieldAttribute] = Field(default_factory=list)
    foreign_key_mapping: Optional[Dict[str, str]] = Field(None, alias="foreignKeyMapping")
    back_link: Optional[str] = Field(None, alias="backLink")
    is_relation_owner: bool = Field(False, alias="isRelationOwner")

    @property
    def relation(self) -> Optional[RelationInfo]:
        if not self.is_data_model:
            return None
        return RelationInfo(
            target_model=self.type,
            is_list=self.is_array,
            is_required=not self.is_optional,
        )

    def get_attribute(self, name: str) -> Optional[FieldAttribute]:
        for attr in self.attributes:
            if attr.name == name:
                return attr
        return None


class ModelInfo(BaseModel):
    """Metadata for a model."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    fields: Dict[str, FieldInfo] = Field(default_factory=dict)
    base_types: List[str] = Field(default_factory=list, alias="baseTypes")
    unique_constraints: Dict[str, Any] = Field(default_factory=dict, alias="uniqueConstraints")

    @property
    def id_fields(self) -> List[FieldInfo]:
        return [f for f in self.fields.values() if f.is_id]

    @property
    def relation_fields(self) -> List[FieldInfo]:
        return [f for f in self.fields.values() if f.is_data_model]


class ModelMeta(BaseModel):
    """
    Process-wide schema graph.

    Models are keyed by name; lookups are case-insensitive on the first
    character, so ``post`` and ``Post`` resolve to the same model.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    models: Dict[str, ModelInfo] = Field(default_factory=dict)
    delete_cascade: Dict[str, List[str]] = Field(default_factory=dict, alias="deleteCascade")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelMeta":
        """Load model metadata from its JSON-compatible form."""
        return cls.model_validate(data)

    def get_model(self, model: str) -> Optional[ModelInfo]:
        if not model:
            return None
        info = self.models.get(model)
        if info is None:
            info = self.models.get(_lower_first(model))
        if info is None:
            info = self.models.get(model[:1].upper() + model[1:])
        return info

    def require_model(self, model: str) -> ModelInfo:
        info = self.get_model(model)
        if info is None:
            raise SchemaError(f"Unknown model: {model}", details={"model": model})
        return info

    def get_fields(self, model: str) -> Dict[str, FieldInfo]:
        info = self.get_model(model)
        return info.fields if info else {}

    def get_field(self, model: str, field: str) -> Optional[FieldInfo]:
        return self.get_fields(model).get(field)

    def get_id_fields(self, model: str) -> List[FieldInfo]:
        info = self.get_model(model)
        return info.id_fields if info else []

    def get_relation_fields(self, model: str) -> List[FieldInfo]:
        info = self.get_model(model)
        return info.relation_fields if info else []

    def get_base_types(self, model: str) -> List[str]:
        info = self.get_model(model)
        return list(info.base_types) if info else []

    def get_delete_cascades(self, model: str) -> List[str]:
        cascades = self.delete_cascade.get(model)
        if cascades is None:
            cascades = self.delete_cascade.get(_lower_first(model), [])
        return list(cascades)


def _lower_first(value: str) -> str:
    return value[:1].lower() + value[1:]
