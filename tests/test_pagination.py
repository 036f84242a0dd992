import unittest

from primeng_query.core.config import QueryOptions
from primeng_query.services.pagination import paginate, resolve_pagination, total_pages
from tests.base import FixtureDatabaseTestCase, Member


class PaginationResolverTests(unittest.TestCase):
    def test_offset_pair_is_converted_to_page(self):
        page = resolve_pagination({"first": 20, "rows": 10})
        self.assertEqual((page.page, page.per_page), (3, 10))
        page = resolve_pagination({"first": 0, "rows": 25})
        self.assertEqual((page.page, page.per_page), (1, 25))
        page = resolve_pagination({"first": 19, "rows": 10})
        self.assertEqual((page.page, page.per_page), (2, 10))

    def test_page_pair_is_kept(self):
        page = resolve_pagination({"page": 2, "per_page": 10})
        self.assertEqual((page.page, page.per_page), (2, 10))
        self.assertEqual(page.offset, 10)

    def test_offset_pair_wins_when_both_are_present(self):
        page = resolve_pagination({"first": 40, "rows": 20, "page": 7, "per_page": 5})
        self.assertEqual((page.page, page.per_page), (3, 20))

    def test_half_offset_pair_falls_back_to_page_pair(self):
        page = resolve_pagination({"first": 40, "page": 4, "per_page": 5})
        self.assertEqual((page.page, page.per_page), (4, 5))

    def test_bounds_are_clamped(self):
        self.assertEqual(resolve_pagination({"per_page": 9999}).per_page, 500)
        self.assertEqual(resolve_pagination({"per_page": 0}).per_page, 1)
        self.assertEqual(resolve_pagination({"page": 0}).page, 1)
        self.assertEqual(resolve_pagination({"page": -3}).page, 1)
        self.assertEqual(resolve_pagination({"first": 0, "rows": 1000}).per_page, 500)

    def test_oversized_rows_keep_the_page_index_not_the_offset(self):
        page = resolve_pagination({"first": 1000, "rows": 1000})
        self.assertEqual((page.page, page.per_page), (2, 500))
        self.assertEqual(page.offset, 500)

    def test_defaults_and_string_values(self):
        page = resolve_pagination({})
        self.assertEqual((page.page, page.per_page), (1, 15))
        page = resolve_pagination({"page": "2", "per_page": "30"})
        self.assertEqual((page.page, page.per_page), (2, 30))
        page = resolve_pagination({"page": "abc"})
        self.assertEqual(page.page, 1)

    def test_defaults_follow_options(self):
        options = QueryOptions(default_per_page=25, max_per_page=50)
        self.assertEqual(resolve_pagination({}, options=options).per_page, 25)
        self.assertEqual(resolve_pagination({"per_page": 80}, options=options).per_page, 50)

    def test_total_pages_rounds_up(self):
        self.assertEqual(total_pages(95, 20), 5)
        self.assertEqual(total_pages(100, 20), 5)
        self.assertEqual(total_pages(101, 20), 6)
        self.assertEqual(total_pages(0, 20), 0)


class PaginateEnvelopeTests(FixtureDatabaseTestCase):
    def test_envelope_counts_before_slicing(self):
        q = self.db.query(Member).filter(Member.status == "active").order_by(Member.id.asc())
        envelope = paginate(q, resolve_pagination({"page": 3, "per_page": 20}), lambda row: row.id)
        self.assertEqual(envelope.total, 50)
        self.assertEqual(envelope.total_pages, 3)
        self.assertEqual((envelope.page, envelope.per_page), (3, 20))
        self.assertEqual(envelope.data, list(range(82, 101, 2)))

    def test_page_past_the_end_is_empty(self):
        q = self.db.query(Member).order_by(Member.id.asc())
        envelope = paginate(q, resolve_pagination({"page": 9, "per_page": 20}))
        self.assertEqual(envelope.data, [])
        self.assertEqual(envelope.total, 100)


if __name__ == "__main__":
    unittest.main()
