"""
Query identity: the key a cached query result is stored under.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Tuple

from shared.errors import ValidationError

# Prefix for query keys
QUERY_KEY_PREFIX = "model-query"


@dataclass(frozen=True)
class QueryFlags:
    """Behaviour flags carried by a query identity."""
    infinite: bool = False
    optimistic_update: bool = False

    def as_dict(self) -> dict:
        return {"infinite": self.infinite, "optimisticUpdate": self.optimistic_update}


@dataclass(frozen=True)
class QueryIdentity:
    """
    Canonical identity of a cached query.

    Two identities are equal when model, operation, args and flags are
    structurally equal; ``args`` is compared by value, so dict key order
    does not matter.
    """
    model: str
    operation: str
    args: Any = None
    flags: QueryFlags = field(default_factory=QueryFlags)
    prefix: str = QUERY_KEY_PREFIX

    def __post_init__(self):
        if not self.model:
            raise ValidationError("Query model must not be empty")
        if not self.operation:
            raise ValidationError("Query operation must not be empty", details={"model": self.model})

    def __hash__(self) -> int:
        return hash((self.prefix, self.model, self.operation, _freeze(self.args), self.flags))

    def as_key(self) -> Tuple[str, str, str, Any, dict]:
        """Return the five-element key shape used by cache stores."""
        return (self.prefix, self.model, self.operation, self.args, self.flags.as_dict())

    @classmethod
    def from_key(cls, key: Sequence[Any]) -> "QueryIdentity":
        """Rebuild an identity from its five-element key."""
        if len(key) != 5:
            raise ValidationError("Query key must have five elements", details={"length": len(key)})
        prefix, model, operation, args, flags = key
        flags = flags or {}
        return cls(
            model=model,
            operation=operation,
            args=args,
            flags=QueryFlags(
                infinite=bool(flags.get("infinite", False)),
                optimistic_update=bool(flags.get("optimisticUpdate", False)),
            ),
            prefix=prefix,
        )

    @classmethod
    def coerce(cls, value: Any) -> "QueryIdentity":
        if isinstance(value, cls):
            return value
        return cls.from_key(value)


@dataclass
class CacheEntry:
    """A cached query result as exposed by the cache store."""
    identity: QueryIdentity
    data: Any = None
    error: Any = None


def get_query_key(
    model: str,
    url_or_operation: str,
    args: Any = None,
    infinite: bool = False,
    optimistic_update: bool = False,
    prefix: Optional[str] = None,
) -> QueryIdentity:
    """
    Compute the query identity for the given model, operation and query args.

    Args:
        model: Model name.
        url_or_operation: Operation name (e.g. ``findMany``) or request URL. For a
            URL the last path segment is used as the operation name.
        args: Query arguments.
        infinite: Whether the query is an infinite (paged) query.
        optimistic_update: Whether the query takes part in optimistic updates.
    """
    if not url_or_operation:
        raise ValidationError("Invalid urlOrOperation", details={"model": model})
    operation = url_or_operation.split("/")[-1]
    if not operation:
        raise ValidationError(
            "Unable to derive operation from urlOrOperation",
            details={"model": model, "url_or_operation": url_or_operation},
        )

    return QueryIdentity(
        model=model,
        operation=operation,
        args=args,
        flags=QueryFlags(infinite=infinite, optimistic_update=optimistic_update),
        prefix=prefix or QUERY_KEY_PREFIX,
    )


def _freeze(value: Any) -> Any:
    """Hashable form of ``value`` whose hash agrees with ``==`` on the original."""
    if isinstance(value, dict):
        return frozenset((_freeze(key), _freeze(item)) for key, item in value.items())
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(_freeze(item) for item in value)
    try:
        hash(value)
    except TypeError:
        # unhashable leaves hash by type only
        return type(value).__qualname__
    return value
