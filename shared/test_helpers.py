"""
Test helper functions and factory methods for the model query cache.
"""

import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional
from datetime import datetime, timezone

from model_cache.caching.query_key import CacheEntry, QueryIdentity
from model_cache.schema import ModelMeta


def _field(name: str, type_: str, **extra: Any) -> Dict[str, Any]:
    field = {"name": name, "type": type_}
    field.update(extra)
    return field


def _default(value: Any = None) -> Dict[str, Any]:
    if value is None:
        return {"name": "@default", "args": []}
    return {"name": "@default", "args": [{"value": value}]}


UPDATED_AT = {"name": "@updatedAt", "args": []}


class TestDataFactory:
    """Factory for creating test data."""

    @staticmethod
    def create_test_schema() -> Dict[str, Any]:
        """Create the model metadata used across tests, in its wire (camelCase) form."""
        return {
            "models": {
                "user": {
                    "name": "User",
                    "fields": {
                        "id": _field("id", "Int", isId=True, attributes=[_default()]),
                        "email": _field("email", "String"),
                        "name": _field("name", "String", isOptional=True),
                        "role": _field("role", "String", attributes=[_default("USER")]),
                        "createdAt": _field("createdAt", "DateTime", attributes=[_default()]),
                        "posts": _field("posts", "Post", isDataModel=True, isArray=True, backLink="author"),
                        "comments": _field("comments", "Comment", isDataModel=True, isArray=True, backLink="author"),
                        "profile": _field("profile", "Profile", isDataModel=True, isOptional=True, backLink="user"),
                    },
                    "uniqueConstraints": {"id": {"name": "id", "fields": ["id"]}, "email": {"name": "email", "fields": ["email"]}},
                },
                "post": {
                    "name": "Post",
                    "fields": {
                        "id": _field("id", "Int", isId=True, attributes=[_default()]),
                        "title": _field("title", "String"),
                        "published": _field("published", "Boolean", attributes=[_default(False)]),
                        "viewCount": _field("viewCount", "Int", attributes=[_default(0)]),
                        "tags": _field("tags", "String", isArray=True),
                        "metadata": _field("metadata", "Json", isOptional=True),
                        "updatedAt": _field("updatedAt", "DateTime", attributes=[UPDATED_AT]),
                        "authorId": _field("authorId", "Int"),
                        "author": _field(
                            "author",
                            "User",
                            isDataModel=True,
                            backLink="posts",
                            isRelationOwner=True,
                            foreignKeyMapping={"id": "authorId"},
                        ),
                        "comments": _field("comments", "Comment", isDataModel=True, isArray=True, backLink="post"),
                    },
                },
                "comment": {
                    "name": "Comment",
                    "fields": {
                        "id": _field("id", "Int", isId=True, attributes=[_default()]),
                        "body": _field("body", "String"),
                        "postId": _field("postId", "Int"),
                        "post": _field(
                            "post",
                            "Post",
                            isDataModel=True,
                            backLink="comments",
                            isRelationOwner=True,
                            foreignKeyMapping={"id": "postId"},
                        ),
                        "authorId": _field("authorId", "Int"),
                        "author": _field(
                            "author",
                            "User",
                            isDataModel=True,
                            backLink="comments",
                            isRelationOwner=True,
                            foreignKeyMapping={"id": "authorId"},
                        ),
                    },
                },
                "profile": {
                    "name": "Profile",
                    "fields": {
                        "id": _field("id", "Int", isId=True, attributes=[_default()]),
                        "bio": _field("bio", "String", isOptional=True),
                        "userId": _field("userId", "Int"),
                        "user": _field(
                            "user",
                            "User",
                            isDataModel=True,
                            backLink="profile",
                            isRelationOwner=True,
                            foreignKeyMapping={"id": "userId"},
                        ),
                    },
                },
                "tag": {
                    "name": "Tag",
                    "fields": {
                        "id": _field("id", "String", isId=True, attributes=[_default()]),
                        "label": _field("label", "String"),
                    },
                },
                "category": {
                    "name": "Category",
                    "fields": {
                        "id": _field("id", "Int", isId=True),
                        "name": _field("name", "String"),
                        "parentId": _field("parentId", "Int", isOptional=True),
                        "parent": _field(
                            "parent",
                            "Category",
                            isDataModel=True,
                            isOptional=True,
                            backLink="children",
                            isRelationOwner=True,
                            foreignKeyMapping={"id": "parentId"},
                        ),
                        "children": _field("children", "Category", isDataModel=True, isArray=True, backLink="parent"),
                    },
                },
                "like": {
                    "name": "Like",
                    "fields": {
                        "userId": _field("userId", "Int", isId=True),
                        "postId": _field("postId", "Int", isId=True),
                        "weight": _field("weight", "Int", attributes=[_default(1)]),
                    },
                },
                "asset": {
                    "name": "Asset",
                    "fields": {
                        "id": _field("id", "Int", isId=True),
                        "assetType": _field("assetType", "String"),
                    },
                },
                "video": {
                    "name": "Video",
                    "baseTypes": ["Asset"],
                    "fields": {
                        "id": _field("id", "Int", isId=True),
                        "assetType": _field("assetType", "String"),
                        "duration": _field("duration", "Int"),
                    },
                },
            },
            "deleteCascade": {
                "user": ["Post", "Profile", "Comment"],
                "post": ["Comment"],
            },
        }

    @staticmethod
    def create_model_meta() -> ModelMeta:
        """Create the parsed schema graph."""
        return ModelMeta.from_dict(TestDataFactory.create_test_schema())

    @staticmethod
    def create_test_users() -> List[Dict[str, Any]]:
        """Create test users."""
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        return [
            {"id": 1, "email": "john.doe@example.com", "name": "John Doe", "role": "ADMIN", "createdAt": created},
            {"id": 2, "email": "jane.smith@example.com", "name": "Jane Smith", "role": "USER", "createdAt": created},
        ]

    @staticmethod
    def create_test_posts() -> List[Dict[str, Any]]:
        """Create test posts."""
        updated = datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc)
        return [
            {"id": 1, "title": "Hello", "published": True, "viewCount": 10, "authorId": 1, "updatedAt": updated},
            {"id": 2, "title": "Draft", "published": False, "viewCount": 0, "authorId": 1, "updatedAt": updated},
            {"id": 3, "title": "Notes", "published": True, "viewCount": 3, "authorId": 2, "updatedAt": updated},
        ]

    @staticmethod
    def create_test_user_with_posts() -> Dict[str, Any]:
        """Create a user result including its posts."""
        user = dict(TestDataFactory.create_test_users()[0])
        user["posts"] = [post for post in TestDataFactory.create_test_posts() if post["authorId"] == 1]
        return user

    @staticmethod
    def create_read_back_denied_error() -> Dict[str, Any]:
        """Create the error envelope of a mutation whose result cannot be read back."""
        return {
            "error": {
                "prisma": True,
                "code": "P2004",
                "reason": "RESULT_NOT_READABLE",
                "message": "result is not allowed to be read back",
            }
        }


class FakeQueryCache:
    """
    In-memory query cache implementing the store primitives.

    Entries registered with a fetcher are refetched when invalidated.
    """

    def __init__(self):
        self._entries: Dict[QueryIdentity, CacheEntry] = {}
        self._fetchers: Dict[QueryIdentity, Callable[[], Awaitable[Any]]] = {}
        self.writes: List[QueryIdentity] = []
        self.cancelled: List[tuple] = []
        self.invalidated: List[QueryIdentity] = []

    def put(
        self,
        identity: QueryIdentity,
        data: Any = None,
        error: Any = None,
        fetcher: Optional[Callable[[], Awaitable[Any]]] = None,
    ) -> QueryIdentity:
        self._entries[identity] = CacheEntry(identity=identity, data=data, error=error)
        if fetcher is not None:
            self._fetchers[identity] = fetcher
        return identity

    def get(self, identity: QueryIdentity) -> Any:
        entry = self._entries.get(identity)
        return entry.data if entry else None

    def get_entry(self, identity: QueryIdentity) -> Optional[CacheEntry]:
        return self._entries.get(identity)

    def snapshot_entries(self) -> List[CacheEntry]:
        return list(self._entries.values())

    def set_cache(self, identity: QueryIdentity, data: Any) -> None:
        self._entries[identity] = CacheEntry(identity=identity, data=data)
        self.writes.append(identity)

    def cancel_in_flight(self, identity: QueryIdentity, *, revert: bool = False) -> None:
        self.cancelled.append((identity, revert))

    async def invalidate(self, predicate: Callable[[QueryIdentity], bool]) -> List[QueryIdentity]:
        matched = [identity for identity in list(self._entries) if predicate(identity)]
        self.invalidated.extend(matched)

        for identity in matched:
            fetcher = self._fetchers.get(identity)
            if fetcher is None:
                continue
            result = fetcher()
            if inspect.isawaitable(result):
                result = await result
            self._entries[identity] = CacheEntry(identity=identity, data=result)

        return matched


# Global instances for easy access
test_data_factory = TestDataFactory()
