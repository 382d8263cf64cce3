"""
Unit tests for invalidation predicates.
"""

import pytest
from unittest.mock import patch

from model_cache.caching.invalidation import build_predicate, get_invalidation_predicate
from model_cache.caching.query_key import get_query_key
from shared.test_helpers import TestDataFactory


@pytest.fixture
def schema():
    """Create the schema graph."""
    return TestDataFactory.create_model_meta()


class TestInvalidationPredicate:
    """Test cases for invalidation predicates."""

    def test_post_update_scenario(self, schema):
        """Test a Post update hits Post readers and spares unrelated models."""
        predicate = get_invalidation_predicate("Post", "update", {"where": {"id": 1}, "data": {"title": "x"}}, schema)

        user_with_posts = get_query_key("User", "findMany", {"include": {"posts": True}})
        tags = get_query_key("Tag", "findMany", {"where": {"label": "news"}})

        assert predicate(user_with_posts) is True
        assert predicate(tags) is False

    def test_direct_hit(self, schema):
        """Test queries on a mutated model always match."""
        predicate = build_predicate({"Post"}, schema)

        assert predicate(get_query_key("Post", "findMany")) is True
        assert predicate(get_query_key("Post", "count", {"where": {"published": True}})) is True
        assert predicate(get_query_key("Post", "findMany", infinite=True)) is True

    def test_no_args_only_direct(self, schema):
        """Test queries without args never match through relations."""
        predicate = build_predicate({"Post"}, schema)

        assert predicate(get_query_key("User", "findMany")) is False

    def test_scalar_only_query_not_hit(self, schema):
        """Test a query selecting only scalars is not an indirect hit."""
        predicate = build_predicate({"Post"}, schema)

        assert predicate(get_query_key("User", "findMany", {"where": {"name": "x"}})) is False

    def test_relation_filter_hit(self, schema):
        """Test relation filters count as reads."""
        predicate = build_predicate({"Comment"}, schema)
        query = get_query_key("User", "findMany", {"where": {"posts": {"some": {"comments": {"some": {}}}}}})

        assert predicate(query) is True

    def test_accepts_key_tuples(self, schema):
        """Test predicates accept the five-element key form."""
        predicate = build_predicate({"Post"}, schema)
        query = get_query_key("User", "findUnique", {"where": {"id": 1}, "include": {"posts": True}})

        assert predicate(query.as_key()) is True

    def test_model_names_canonicalised(self, schema):
        """Test lower-case names on either side still match."""
        predicate = build_predicate({"post"}, schema)

        assert predicate(get_query_key("post", "findMany")) is True
        assert predicate(get_query_key("user", "findMany", {"include": {"posts": True}})) is True

    def test_nested_write_hits_related_queries(self, schema):
        """Test a create with nested writes invalidates queries on the nested models."""
        predicate = get_invalidation_predicate(
            "User",
            "create",
            {"data": {"email": "a@b.c", "profile": {"create": {"bio": "x"}}}},
            schema,
        )

        assert predicate(get_query_key("Profile", "findMany")) is True
        assert predicate(get_query_key("Tag", "findMany")) is False

    def test_logging_does_not_change_result(self, schema):
        """Test diagnostic logging leaves decisions unchanged."""
        quiet = build_predicate({"Post"}, schema)
        with patch("model_cache.caching.invalidation.logger") as mock_logger:
            verbose = build_predicate({"Post"}, schema, label="Post.update", logging=True)
            queries = [
                get_query_key("Post", "findMany"),
                get_query_key("User", "findMany", {"include": {"posts": True}}),
                get_query_key("Tag", "findMany"),
            ]

            assert [verbose(q) for q in queries] == [quiet(q) for q in queries]
            assert mock_logger.info.call_count == 2

    def test_no_logging_by_default(self, schema):
        """Test the predicate is silent unless logging is enabled."""
        with patch("model_cache.caching.invalidation.logger") as mock_logger:
            predicate = build_predicate({"Post"}, schema)
            predicate(get_query_key("Post", "findMany"))

            mock_logger.info.assert_not_called()
