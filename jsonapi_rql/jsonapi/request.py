"""
Parsing of JSON:API query parameters.

    GET /posts?page[number]=2&page[size]=10
              &fields[posts]=title,body&include=author&sort=-created_at
              &filter=and(eq(status,published),gt(rating,3))
              &filter[author_id]=7
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from jsonapi_rql.rql.exceptions import RqlSyntaxError
from jsonapi_rql.rql.nodes import AbstractQueryNode, ComparisonNode, LogicalNode, Query
from jsonapi_rql.rql.parser import parse_rql, parse_value

from .errors import BadRequest

_FIELDS_RE = re.compile(r"^fields\[([^\]]+)\]$")
_FILTER_RE = re.compile(r"^filter\[([^\]]+)\]$")
_PAGE_RE = re.compile(r"^page\[([^\]]+)\]$")

PAGE_KEYS = ("number", "size", "offset", "limit")


@dataclass(frozen=True)
class Page:
    """A window over a collection; ``number`` is 1-based."""
    offset: int
    size: int

    @property
    def number(self) -> int:
        return self.offset // self.size + 1

    def last_number(self, total: int) -> int:
        return max(1, -(-total // self.size))

    def links(self, url: Any, total: int) -> Dict[str, Optional[str]]:
        """
        Build pagination links from a request URL (starlette.datastructures.URL).

        prev/next are None at the edges of the collection.
        """
        last = self.last_number(total)

        def page_url(number: int) -> str:
            params = {"page[number]": number, "page[size]": self.size}
            stripped = url.remove_query_params(
                [f"page[{key}]" for key in PAGE_KEYS]
            )
            return str(stripped.include_query_params(**params))

        return {
            "self": page_url(self.number),
            "first": page_url(1),
            "last": page_url(last),
            "prev": page_url(self.number - 1) if self.number > 1 else None,
            "next": page_url(self.number + 1) if self.number < last else None,
        }


@dataclass
class JsonApiRequest:
    """Query parameters of a JSON:API request, parsed and validated."""
    page: Page
    fields: Dict[str, List[str]] = field(default_factory=dict)
    sort: Dict[str, int] = field(default_factory=dict)
    include: List[str] = field(default_factory=list)
    filter: Query = field(default_factory=Query)

    # PUBLIC_INTERFACE
    @classmethod
    def from_query_params(
        cls,
        params: Mapping[str, str],
        default_page_size: int = 10,
        max_page_size: int = 100,
    ) -> "JsonApiRequest":
        """
        Parse query parameters into a JsonApiRequest.

        Parameters:
            params: query parameters (e.g. starlette QueryParams or a dict)
            default_page_size: page size when the request names none
            max_page_size: upper bound applied to page[size]/page[limit]
        Raises:
            BadRequest: on malformed pagination, sort or filter parameters.
        """
        page_params: Dict[str, int] = {}
        fields: Dict[str, List[str]] = {}
        filter_pairs: List[Tuple[str, str]] = []
        rql_text: Optional[str] = None
        sort: Dict[str, int] = {}
        include: List[str] = []

        for key, value in params.items():
            if key == "filter":
                rql_text = value
            elif key == "sort":
                sort = _parse_sort(value)
            elif key == "include":
                include = _split(value)
            elif _FIELDS_RE.match(key):
                fields[_FIELDS_RE.match(key).group(1)] = _split(value)
            elif _FILTER_RE.match(key):
                filter_pairs.append((_FILTER_RE.match(key).group(1), value))
            elif _PAGE_RE.match(key):
                name = _PAGE_RE.match(key).group(1)
                if name not in PAGE_KEYS:
                    raise BadRequest(f"Unknown page parameter {name!r}", parameter=key)
                page_params[name] = _parse_int(key, value)

        try:
            rql = parse_rql(rql_text)
        except RqlSyntaxError as exc:
            raise BadRequest(str(exc), parameter="filter") from exc

        query = rql.with_query(_combine(rql.query, _filter_pairs_to_nodes(filter_pairs)))
        if not sort and rql.sort is not None:
            sort = dict(rql.sort.fields)

        page = _build_page(page_params, rql, default_page_size, max_page_size)
        return cls(page=page, fields=fields, sort=sort, include=include, filter=query)


def _split(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _parse_int(key: str, value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise BadRequest(f"{key} must be an integer", parameter=key) from exc
    if number < 0:
        raise BadRequest(f"{key} must not be negative", parameter=key)
    return number


def _parse_sort(value: str) -> Dict[str, int]:
    sort: Dict[str, int] = {}
    for part in _split(value):
        if part.startswith("-"):
            sort[part[1:]] = -1
        else:
            sort[part.lstrip("+")] = 1
    return sort


_CONSTANT_VALUES = {"null()": None, "true()": True, "false()": False, "empty()": ""}


def _filter_pairs_to_nodes(pairs: Iterable[Tuple[str, str]]) -> List[AbstractQueryNode]:
    nodes: List[AbstractQueryNode] = []
    for name, raw in pairs:
        if raw in _CONSTANT_VALUES:
            value = _CONSTANT_VALUES[raw]
        else:
            try:
                value = parse_value(raw)
            except RqlSyntaxError as exc:
                raise BadRequest(str(exc), parameter=f"filter[{name}]") from exc
        nodes.append(ComparisonNode("eq", name, value))
    return nodes


def _combine(
    rql_node: Optional[AbstractQueryNode], extra: List[AbstractQueryNode]
) -> Optional[AbstractQueryNode]:
    nodes = ([rql_node] if rql_node is not None else []) + extra
    if not nodes:
        return None
    if len(nodes) == 1:
        return nodes[0]
    return LogicalNode("and", tuple(nodes))


def _build_page(
    params: Dict[str, int], rql: Query, default_size: int, max_size: int
) -> Page:
    if "size" in params or "number" in params:
        size = params.get("size", default_size)
        if size < 1:
            raise BadRequest("page[size] must be at least 1", parameter="page[size]")
        size = min(size, max_size)
        number = params.get("number", 1)
        if number < 1:
            raise BadRequest("page[number] must be at least 1", parameter="page[number]")
        return Page(offset=(number - 1) * size, size=size)

    if "limit" in params or "offset" in params:
        size = params.get("limit", default_size)
        if size < 1:
            raise BadRequest("page[limit] must be at least 1", parameter="page[limit]")
        return Page(offset=params.get("offset", 0), size=min(size, max_size))

    if rql.limit is not None and rql.limit.limit > 0:
        return Page(offset=rql.limit.offset or 0, size=min(rql.limit.limit, max_size))

    return Page(offset=0, size=min(default_size, max_size))
