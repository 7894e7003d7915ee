"""
RQL abstract syntax tree.

Query nodes fall into three categories: comparison nodes (a field compared to
a single value), array nodes (a field tested against a set of values) and
logical nodes (a connective over child query nodes). The remaining nodes
(select/sort/limit) are carried on the Query object next to the filter tree.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

COMPARISON_OPERATORS = ("eq", "ne", "lt", "gt", "le", "ge", "like")
ARRAY_OPERATORS = ("in", "out")
LOGICAL_OPERATORS = ("and", "or", "not")


class AbstractNode:
    """Base class for every RQL node."""

    node_name: str


class AbstractQueryNode(AbstractNode):
    """Base class for nodes that take part in the filter tree."""


@dataclass(frozen=True)
class ComparisonNode(AbstractQueryNode):
    """Field compared to a single value, e.g. ``eq(name,foo)``."""
    node_name: str
    field: str
    value: Any


@dataclass(frozen=True)
class ArrayNode(AbstractQueryNode):
    """Field tested for membership, e.g. ``in(id,(1,2,3))``."""
    node_name: str
    field: str
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class LogicalNode(AbstractQueryNode):
    """Connective over child queries, e.g. ``and(eq(a,1),eq(b,2))``."""
    node_name: str
    queries: Tuple[AbstractQueryNode, ...]


@dataclass(frozen=True)
class SelectNode(AbstractNode):
    fields: Tuple[str, ...]
    node_name: str = "select"


@dataclass(frozen=True)
class SortNode(AbstractNode):
    """Sort specification; values are +1 (ascending) or -1 (descending)."""
    fields: Dict[str, int]
    node_name: str = "sort"


@dataclass(frozen=True)
class LimitNode(AbstractNode):
    limit: int
    offset: Optional[int] = None
    node_name: str = "limit"


@dataclass(frozen=True)
class Query:
    """A parsed RQL expression."""
    query: Optional[AbstractQueryNode] = None
    select: Optional[SelectNode] = None
    sort: Optional[SortNode] = None
    limit: Optional[LimitNode] = None

    def with_query(self, node: Optional[AbstractQueryNode]) -> "Query":
        """Return a copy of this query with the filter tree replaced."""
        return Query(query=node, select=self.select, sort=self.sort, limit=self.limit)


# Convenience constructors, mostly used by callers composing queries in code.

def eq(field_name: str, value: Any) -> ComparisonNode:
    return ComparisonNode("eq", field_name, value)


def ne(field_name: str, value: Any) -> ComparisonNode:
    return ComparisonNode("ne", field_name, value)


def in_(field_name: str, values) -> ArrayNode:
    return ArrayNode("in", field_name, tuple(values))


def out(field_name: str, values) -> ArrayNode:
    return ArrayNode("out", field_name, tuple(values))


def and_(*queries: AbstractQueryNode) -> LogicalNode:
    return LogicalNode("and", tuple(queries))


def or_(*queries: AbstractQueryNode) -> LogicalNode:
    return LogicalNode("or", tuple(queries))


def not_(query: AbstractQueryNode) -> LogicalNode:
    return LogicalNode("not", (query,))


__all__ = [
    "COMPARISON_OPERATORS",
    "ARRAY_OPERATORS",
    "LOGICAL_OPERATORS",
    "AbstractNode",
    "AbstractQueryNode",
    "ComparisonNode",
    "ArrayNode",
    "LogicalNode",
    "SelectNode",
    "SortNode",
    "LimitNode",
    "Query",
    "eq",
    "ne",
    "in_",
    "out",
    "and_",
    "or_",
    "not_",
]
