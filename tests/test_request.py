"""
Test: JSON:API query parameters
===============================

Pagination, sparse fieldsets, sorting, includes and filters.
"""

from urllib.parse import parse_qs, urlsplit

import pytest
from starlette.datastructures import URL

from jsonapi_rql.jsonapi import BadRequest, JsonApiRequest, Page
from jsonapi_rql.rql import ComparisonNode, LogicalNode, Query


def parse(params, **kwargs):
    return JsonApiRequest.from_query_params(params, **kwargs)


class TestPagination:
    """page[...] parameters."""

    def test_defaults(self):
        request = parse({})
        assert request.page == Page(offset=0, size=10)
        assert request.filter == Query()
        assert request.sort == {}
        assert request.include == []

    def test_number_and_size(self):
        page = parse({"page[number]": "2", "page[size]": "5"}).page
        assert page == Page(offset=5, size=5)
        assert page.number == 2

    def test_size_is_clamped(self):
        assert parse({"page[size]": "500"}, max_page_size=100).page.size == 100

    def test_offset_and_limit(self):
        assert parse({"page[offset]": "20", "page[limit]": "10"}).page == Page(offset=20, size=10)

    def test_default_size_setting(self):
        assert parse({}, default_page_size=3).page.size == 3

    @pytest.mark.parametrize(
        "params, parameter",
        [
            ({"page[number]": "x"}, "page[number]"),
            ({"page[number]": "0"}, "page[number]"),
            ({"page[size]": "-1"}, "page[size]"),
            ({"page[size]": "0"}, "page[size]"),
            ({"page[cursor]": "1"}, "page[cursor]"),
        ],
    )
    def test_invalid(self, params, parameter):
        with pytest.raises(BadRequest) as excinfo:
            parse(params)
        assert excinfo.value.parameter == parameter
        assert excinfo.value.status_code == 400

    def test_rql_limit_is_a_fallback(self):
        assert parse({"filter": "limit(5,10)"}).page == Page(offset=10, size=5)

    def test_page_parameters_win_over_rql_limit(self):
        page = parse({"filter": "limit(5,10)", "page[size]": "2"}).page
        assert page == Page(offset=0, size=2)


class TestFieldsSortInclude:
    def test_sparse_fieldsets(self):
        request = parse({"fields[posts]": "title, body", "fields[people]": "name"})
        assert request.fields == {"posts": ["title", "body"], "people": ["name"]}

    def test_sort(self):
        assert parse({"sort": "-rating,title,+status"}).sort == {"rating": -1, "title": 1, "status": 1}

    def test_rql_sort_is_a_fallback(self):
        assert parse({"filter": "sort(-title)"}).sort == {"title": -1}
        assert parse({"filter": "sort(-title)", "sort": "rating"}).sort == {"rating": 1}

    def test_include(self):
        assert parse({"include": "author,comments"}).include == ["author", "comments"]


class TestFilters:
    """filter (RQL) and filter[field] parameters."""

    def test_rql_filter(self):
        assert parse({"filter": "eq(status,published)"}).filter.query == ComparisonNode(
            "eq", "status", "published"
        )

    def test_field_filters_become_eq_nodes(self):
        request = parse({"filter[status]": "draft", "filter[rating]": "null()"})
        assert request.filter.query == LogicalNode(
            "and",
            (ComparisonNode("eq", "status", "draft"), ComparisonNode("eq", "rating", None)),
        )

    def test_both_forms_are_combined(self):
        request = parse({"filter": "gt(rating,3)", "filter[author_id]": "1"})
        assert request.filter.query == LogicalNode(
            "and",
            (ComparisonNode("gt", "rating", 3), ComparisonNode("eq", "author_id", 1)),
        )

    def test_select_is_kept(self):
        assert parse({"filter": "select(title)"}).filter.select.fields == ("title",)

    def test_malformed_rql(self):
        with pytest.raises(BadRequest) as excinfo:
            parse({"filter": "eq(status"})
        assert excinfo.value.parameter == "filter"

    def test_malformed_field_filter(self):
        with pytest.raises(BadRequest) as excinfo:
            parse({"filter[rating]": "float:high"})
        assert excinfo.value.parameter == "filter[rating]"


def query_of(link):
    return {key: values[0] for key, values in parse_qs(urlsplit(link).query).items()}


class TestPageLinks:
    """Pagination links keep the other query parameters."""

    def test_middle_page(self):
        url = URL("http://test/posts?page[number]=2&page[size]=2&sort=title")
        links = Page(offset=2, size=2).links(url, total=5)
        assert query_of(links["self"]) == {"page[number]": "2", "page[size]": "2", "sort": "title"}
        assert query_of(links["first"])["page[number]"] == "1"
        assert query_of(links["last"])["page[number]"] == "3"
        assert query_of(links["prev"])["page[number]"] == "1"
        assert query_of(links["next"])["page[number]"] == "3"

    def test_first_page_has_no_prev(self):
        links = Page(offset=0, size=2).links(URL("http://test/posts"), total=5)
        assert links["prev"] is None
        assert links["next"] is not None

    def test_last_page_has_no_next(self):
        links = Page(offset=4, size=2).links(URL("http://test/posts"), total=5)
        assert links["next"] is None

    def test_offset_parameters_are_replaced(self):
        url = URL("http://test/posts?page[offset]=4&page[limit]=2")
        links = Page(offset=4, size=2).links(url, total=5)
        assert query_of(links["self"]) == {"page[number]": "3", "page[size]": "2"}

    def test_empty_collection(self):
        page = Page(offset=0, size=10)
        assert page.last_number(0) == 1
        links = page.links(URL("http://test/posts"), total=0)
        assert links["prev"] is None and links["next"] is None
