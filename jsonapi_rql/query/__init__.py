"""
Translation of RQL query trees into SQLAlchemy filter expressions.
"""
from .builder import ClauseBuilder, TIMESTAMP_FORMAT, coerce_to_column
from .visitor import SqlAlchemyNodeVisitor, apply_query, normalize_value

__all__ = [
    "ClauseBuilder",
    "TIMESTAMP_FORMAT",
    "coerce_to_column",
    "SqlAlchemyNodeVisitor",
    "apply_query",
    "normalize_value",
]
