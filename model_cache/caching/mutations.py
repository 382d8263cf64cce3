"""
Mutation descriptors.

Each write operation kind has its own descriptor carrying a typed args
payload. Descriptors are validated against the schema graph before any
impact resolution or optimistic merge runs.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from shared.errors import ValidationError
from ..schema import ModelMeta
from .nested_writes import iter_nested_writes


class WriteOperation(str, Enum):
    """Top-level write operations."""
    CREATE = "create"
    CREATE_MANY = "createMany"
    CREATE_MANY_AND_RETURN = "createManyAndReturn"
    UPDATE = "update"
    UPDATE_MANY = "updateMany"
    UPSERT = "upsert"
    DELETE = "delete"
    DELETE_MANY = "deleteMany"


WRITE_OPERATIONS = frozenset(op.value for op in WriteOperation)


class _Args(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    select: Optional[Dict[str, Any]] = None
    include: Optional[Dict[str, Any]] = None


class CreateArgs(_Args):
    data: Dict[str, Any]


class CreateManyArgs(_Args):
    data: Union[List[Dict[str, Any]], Dict[str, Any]]
    skip_duplicates: Optional[bool] = Field(None, alias="skipDuplicates")


class UpdateArgs(_Args):
    where: Dict[str, Any]
    data: Dict[str, Any]


class UpdateManyArgs(_Args):
    where: Optional[Dict[str, Any]] = None
    data: Dict[str, Any]


class UpsertArgs(_Args):
    where: Dict[str, Any]
    create: Dict[str, Any]
    update: Dict[str, Any]


class DeleteArgs(_Args):
    where: Dict[str, Any]


class DeleteManyArgs(_Args):
    where: Optional[Dict[str, Any]] = None


class _Mutation(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    model: str

    @property
    def raw_args(self) -> Dict[str, Any]:
        """Args in their wire form, as sent to the model API."""
        return self.args.model_dump(by_alias=True, exclude_unset=True)

    @property
    def label(self) -> str:
        return f"{self.model}.{self.operation}"


class CreateMutation(_Mutation):
    operation: Literal["create"] = "create"
    args: CreateArgs


class CreateManyMutation(_Mutation):
    operation: Literal["createMany", "createManyAndReturn"] = "createMany"
    args: CreateManyArgs


class UpdateMutation(_Mutation):
    operation: Literal["update"] = "update"
    args: UpdateArgs


class UpdateManyMutation(_Mutation):
    operation: Literal["updateMany"] = "updateMany"
    args: UpdateManyArgs


class UpsertMutation(_Mutation):
    operation: Literal["upsert"] = "upsert"
    args: UpsertArgs


class DeleteMutation(_Mutation):
    operation: Literal["delete"] = "delete"
    args: DeleteArgs


class DeleteManyMutation(_Mutation):
    operation: Literal["deleteMany"] = "deleteMany"
    args: DeleteManyArgs


MutationDescriptor = Annotated[
    Union[
        CreateMutation,
        CreateManyMutation,
        UpdateMutation,
        UpdateManyMutation,
        UpsertMutation,
        DeleteMutation,
        DeleteManyMutation,
    ],
    Field(discriminator="operation"),
]

_descriptor_adapter = TypeAdapter(MutationDescriptor)


def parse_mutation(
    model: str,
    operation: str,
    args: Any,
    schema: Optional[ModelMeta] = None,
) -> MutationDescriptor:
    """
    Build a typed mutation descriptor.

    When a schema is given the model name is canonicalised and every field
    named in the write payload, nested writes included, is checked against
    the schema graph.
    """
    if operation not in WRITE_OPERATIONS:
        raise ValidationError(
            f"Unsupported write operation: {operation}",
            details={"model": model, "operation": operation},
        )

    if schema is not None:
        info = schema.get_model(model)
        if info is None:
            raise ValidationError(f"Unknown model: {model}", details={"model": model})
        model = info.name

    try:
        descriptor = _descriptor_adapter.validate_python(
            {"model": model, "operation": operation, "args": args if args is not None else {}}
        )
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Invalid arguments for {model}.{operation}",
            details={"errors": exc.errors(include_url=False)},
        ) from exc

    if schema is not None:
        for _ in iter_nested_writes(schema, descriptor.model, descriptor.operation, descriptor.raw_args, strict=True):
            pass

    return descriptor
