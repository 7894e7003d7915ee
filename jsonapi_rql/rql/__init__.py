"""
RQL (Resource Query Language) support: node model, glob patterns and parser.

The parser turns strings such as ``and(eq(status,published),gt(rating,3))``
into a tree of comparison, array and logical nodes consumed by
jsonapi_rql.query.visitor.
"""
from .exceptions import RejectedInputError, RqlSyntaxError
from .glob import Glob
from .nodes import (
    AbstractNode,
    AbstractQueryNode,
    ArrayNode,
    ComparisonNode,
    LimitNode,
    LogicalNode,
    Query,
    SelectNode,
    SortNode,
)
from .parser import parse_rql, parse_value

__all__ = [
    "RejectedInputError",
    "RqlSyntaxError",
    "Glob",
    "AbstractNode",
    "AbstractQueryNode",
    "ArrayNode",
    "ComparisonNode",
    "LimitNode",
    "LogicalNode",
    "Query",
    "SelectNode",
    "SortNode",
    "parse_rql",
    "parse_value",
]
