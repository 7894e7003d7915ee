from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional, Union

from jsonapi_rql.rql.exceptions import RejectedInputError
from jsonapi_rql.rql.glob import Glob
from jsonapi_rql.rql.nodes import (
    AbstractQueryNode,
    ArrayNode,
    ComparisonNode,
    LogicalNode,
    Query,
)

from .builder import DATE_FORMAT, TIMESTAMP_FORMAT, ClauseBuilder


class SqlAlchemyNodeVisitor:
    """
    RQL node visitor populating a ClauseBuilder.

    Comparison nodes become ``where``/``where_null``/``where_not_null`` calls,
    array nodes become ``where_in`` calls and logical nodes become nested
    groups combining their children with the node's connective.
    """

    SCALAR_OPERATORS = {
        "like": "like",
        "eq": "=",
        "ne": "<>",
        "lt": "<",
        "gt": ">",
        "le": "<=",
        "ge": ">=",
    }

    ARRAY_OPERATORS = ("in", "out")

    LOGICAL_OPERATORS = ("and", "or", "not")

    # PUBLIC_INTERFACE
    def visit(
        self,
        query: Union[Query, AbstractQueryNode, None],
        builder: ClauseBuilder,
    ) -> None:
        """
        Populate ``builder`` from ``query``.

        Parameters:
            query: a parsed Query, a bare query node, or None (no filter)
            builder: the builder to populate in place
        Raises:
            RejectedInputError: if a node, operator or connective is not supported
        """
        node = query.query if isinstance(query, Query) else query
        if node is not None:
            self.visit_query_node(node, builder)

    def visit_query_node(self, node: Any, builder: ClauseBuilder, operator: str = "and") -> None:
        if isinstance(node, ComparisonNode):
            self.visit_scalar_node(node, builder, operator)
        elif isinstance(node, ArrayNode):
            self.visit_array_node(node, builder, operator)
        elif isinstance(node, LogicalNode):
            self.visit_logical_node(node, builder, operator)
        else:
            name = getattr(node, "node_name", type(node).__name__)
            raise RejectedInputError(f'Unknown node "{name}"')

    def visit_scalar_node(self, node: ComparisonNode, builder: ClauseBuilder, operator: str) -> None:
        if node.node_name not in self.SCALAR_OPERATORS:
            raise RejectedInputError(f'Unknown scalar node "{node.node_name}"')

        value = normalize_value(node.value)

        if value is None:
            if node.node_name == "eq":
                builder.where_null(node.field, operator)
            elif node.node_name == "ne":
                builder.where_not_null(node.field, operator)
            else:
                raise RejectedInputError(
                    "Only the 'eq' and 'ne' operators can be used when comparing to 'null()'."
                )
        else:
            builder.where(node.field, self.SCALAR_OPERATORS[node.node_name], value, operator)

    def visit_array_node(self, node: ArrayNode, builder: ClauseBuilder, operator: str) -> None:
        if node.node_name not in self.ARRAY_OPERATORS:
            raise RejectedInputError(f'Unknown array node "{node.node_name}"')

        builder.where_in(
            node.field,
            [normalize_value(value) for value in node.values],
            operator,
            negate=node.node_name == "out",
        )

    def visit_logical_node(self, node: LogicalNode, builder: ClauseBuilder, operator: str) -> None:
        if node.node_name not in self.LOGICAL_OPERATORS:
            raise RejectedInputError(f'Unknown or unsupported logical node "{node.node_name}"')

        # children of not() are joined with "and" inside the negated group
        connective = "and" if node.node_name == "not" else node.node_name

        def populate(group: ClauseBuilder) -> None:
            for child in node.queries:
                self.visit_query_node(child, group, connective)

        builder.where_group(populate, operator, negate=node.node_name == "not")


# PUBLIC_INTERFACE
def normalize_value(value: Any) -> Any:
    """
    Convert RQL values to what the builder expects.

    Globs become LIKE patterns, datetimes become TIMESTAMP_FORMAT strings
    (naive values are taken as UTC) and dates become DATE_FORMAT strings.
    """
    if isinstance(value, Glob):
        return value.to_like()
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.strftime(TIMESTAMP_FORMAT)
    if isinstance(value, date):
        return value.strftime(DATE_FORMAT)
    return value


# PUBLIC_INTERFACE
def apply_query(query: Optional[Union[Query, AbstractQueryNode]], builder: ClauseBuilder) -> ClauseBuilder:
    """Visit ``query`` into ``builder`` and return the builder."""
    SqlAlchemyNodeVisitor().visit(query, builder)
    return builder
