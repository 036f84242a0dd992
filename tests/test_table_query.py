import json
import unittest

from primeng_query.core.config import QueryOptions
from primeng_query.core.errors import InvalidFilterFormat, UnknownField, UnknownRelation
from primeng_query.schemas.table_query import TableQueryParams
from primeng_query.services.pagination import paginate
from primeng_query.services.relation_registry import RelationRegistry
from primeng_query.services.table_query import apply_table_query, resolve_searchable_fields

from tests.base import FixtureDatabaseTestCase, Member, Post, member_rows


class SearchableFieldResolutionTests(unittest.TestCase):
    def test_explicit_fields_win(self):
        fields = resolve_searchable_fields(Post, ["title"], {"globalFilterFields": '["status"]'})
        self.assertEqual(fields, ["title"])

    def test_all_expands_to_columns_without_audit_timestamps(self):
        fields = resolve_searchable_fields(Member, "all", {})
        self.assertEqual(fields, ["id", "name", "email", "status", "age"])

    def test_request_fields_come_next(self):
        fields = resolve_searchable_fields(Post, None, {"globalFilterFields": '["title", "author.name"]'})
        self.assertEqual(fields, ["title", "author.name"])

    def test_model_declared_fields_are_the_fallback(self):
        self.assertEqual(resolve_searchable_fields(Post, None, {}), ["title", "status"])
        self.assertEqual(resolve_searchable_fields(Member, None, {}), [])


class TableQueryTests(FixtureDatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.registry = RelationRegistry()

    def compose(self, request_data, model=Post, **kwargs):
        kwargs.setdefault("registry", self.registry)
        return apply_table_query(self.db.query(model), model, request_data, **kwargs)

    def ids(self, request_data, **kwargs):
        composed = self.compose(request_data, **kwargs)
        return [row.id for row in composed.query.order_by(Post.id.asc()).all()]

    def test_end_to_end_scenario(self):
        request_data = {
            "filters": json.dumps(
                {
                    "status": {"value": "active", "matchMode": "equals"},
                    "age": {"value": 18, "matchMode": "gte"},
                }
            ),
            "globalFilter": "john",
            "globalFilterFields": json.dumps(["name", "email"]),
            "sortField": "created_at",
            "sortOrder": "desc",
            "page": 1,
            "per_page": 20,
        }
        expected = [
            row
            for row in member_rows()
            if row["status"] == "active"
            and row["age"] >= 18
            and ("john" in row["name"].lower() or "john" in row["email"].lower())
        ]
        expected.sort(key=lambda row: row["created_at"], reverse=True)

        composed = self.compose(request_data, model=Member)
        self.assertEqual((composed.page.page, composed.per_page), (1, 20))
        envelope = paginate(composed.query, composed.page, lambda row: row.id)

        self.assertEqual(envelope.total, len(expected))
        self.assertEqual(envelope.data, [row["id"] for row in expected][:20])
        self.assertEqual(envelope.total_pages, (len(expected) + 19) // 20)
        self.assertEqual(composed.skipped, [])

    def test_second_page_via_offset_convention(self):
        request_data = {"sortField": "id", "sortOrder": 1, "first": 20, "rows": 10}
        composed = self.compose(request_data, model=Member)
        envelope = paginate(composed.query, composed.page, lambda row: row.id)
        self.assertEqual(envelope.page, 3)
        self.assertEqual(envelope.data, list(range(21, 31)))
        self.assertEqual(envelope.total, 100)
        self.assertEqual(envelope.total_pages, 10)

    def test_global_search_is_one_or_group_anded_with_filters(self):
        request_data = {
            "filters": {"status": {"value": "published"}},
            "globalFilter": "zebra",
            "globalFilterFields": ["title", "author.name"],
        }
        self.assertEqual(self.ids(request_data), [3])

    def test_global_search_crosses_relations(self):
        request_data = {"globalFilter": "bob", "globalFilterFields": ["title", "author.name"]}
        self.assertEqual(self.ids(request_data), [2])
        request_data = {"globalFilter": "great", "globalFilterFields": ["title", "comments.body"]}
        composed = self.compose(request_data)
        self.assertEqual(composed.query.count(), 2)

    def test_global_search_escapes_wildcards(self):
        request_data = {"globalFilter": "%", "globalFilterFields": ["title", "status"]}
        self.assertEqual(self.ids(request_data), [2])

    def test_global_search_uses_model_fields_when_none_given(self):
        self.assertEqual(self.ids({"globalFilter": "draft"}), [2, 5])

    def test_global_search_skips_unknown_fields(self):
        composed = self.compose({"globalFilter": "hello", "globalFilterFields": ["nope", "title", "writer.name"]})
        self.assertEqual([row.id for row in composed.query.all()], [1])
        self.assertEqual([type(exc) for exc in composed.skipped], [UnknownField, UnknownRelation])

    def test_global_search_with_no_usable_field_is_not_applied(self):
        self.assertEqual(self.ids({"globalFilter": "hello", "globalFilterFields": ["nope"]}), [1, 2, 3, 4, 5])

    def test_blank_global_search_is_not_applied(self):
        self.assertEqual(self.ids({"globalFilter": "", "globalFilterFields": ["title"]}), [1, 2, 3, 4, 5])

    def test_explicit_searchable_fields_override_the_request(self):
        request_data = {"globalFilter": "acme", "globalFilterFields": ["title"]}
        self.assertEqual(self.ids(request_data, searchable_fields=["author.email"]), [1, 3])

    def test_relation_sort_with_filters(self):
        request_data = {
            "filters": [{"field": "views", "operator": "gte", "value": 20}],
            "sortField": "author.name",
            "sortOrder": "-1",
        }
        composed = self.compose(request_data)
        self.assertEqual([row.id for row in composed.query.order_by(Post.id.asc()).all()], [4, 2, 3, 5])

    def test_degraded_inputs_are_reported(self):
        request_data = {
            "filters": {
                "nope": {"value": 1},
                "status": {"value": "draft", "matchMode": "bogus"},
                "views": {"value": 30, "matchMode": "lte"},
            },
            "sortField": "comments.body",
        }
        composed = self.compose(request_data)
        self.assertEqual([row.id for row in composed.query.order_by(Post.id.asc()).all()], [1, 2, 3])
        self.assertEqual(
            [type(exc).__name__ for exc in composed.skipped],
            ["UnknownField", "UnsupportedOperator", "SortTargetInvalid"],
        )

    def test_strict_mode_fails_the_request(self):
        with self.assertRaises(UnknownField):
            self.compose({"filters": {"nope": {"value": 1}}}, options=QueryOptions(strict=True))

    def test_unparseable_filters_fail_even_when_tolerant(self):
        with self.assertRaises(InvalidFilterFormat):
            self.compose({"filters": "{not json"})

    def test_allow_list_limits_filters_search_and_sort(self):
        options = QueryOptions(allowed_fields=frozenset({"title"}))
        composed = self.compose(
            {
                "filters": {"status": {"value": "draft"}},
                "globalFilter": "o",
                "globalFilterFields": ["title", "author.name"],
                "sortField": "views",
            },
            options=options,
        )
        self.assertEqual(len(composed.skipped), 3)
        self.assertNotIn("ORDER BY", str(composed.query.statement.compile()))

    def test_validated_params_object_is_accepted(self):
        params = TableQueryParams(
            filters='{"status": {"value": "published", "matchMode": "equals"}}',
            sortField="views",
            sortOrder="desc",
            page=1,
            per_page=1,
        )
        composed = self.compose(params)
        envelope = paginate(composed.query, composed.page, lambda row: row.id)
        self.assertEqual(envelope.data, [3])
        self.assertEqual((envelope.total, envelope.total_pages), (2, 2))

    def test_query_is_returned_unexecuted(self):
        composed = self.compose({"filters": {"status": {"value": "draft"}}})
        self.assertIn("WHERE", str(composed.query.statement.compile()))
        self.assertNotIn("LIMIT", str(composed.query.statement.compile()))


if __name__ == "__main__":
    unittest.main()
